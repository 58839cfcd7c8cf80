from .tokens import AdminGate, TokenIssuer, ValidatedToken

__all__ = [
    "AdminGate",
    "TokenIssuer",
    "ValidatedToken",
]
