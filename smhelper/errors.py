"""Errors raised by the token, store and automation layers."""
from typing import Any, Dict, Optional


class ServiceError(Exception):
    """Base error carrying the HTTP status and JSON body it maps to."""

    status_code = 500
    default_help: Optional[str] = None

    def __init__(self, message: str, *, details: Optional[str] = None, help: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.details = details
        self.help = help if help is not None else self.default_help

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.message}
        if self.details:
            body["details"] = self.details
        if self.help:
            body["help"] = self.help
        return body


class BadRequest(ServiceError):
    status_code = 400


class Unauthenticated(ServiceError):
    status_code = 401


class QuotaExhausted(ServiceError):
    status_code = 402
    default_help = "You have used all allowed requests. Contact admin to increase your limit."


class Revoked(ServiceError):
    status_code = 403
    default_help = "This token does not exist in our records."


class InternalStoreFailure(ServiceError):
    status_code = 500


class AutomationError(ServiceError):
    """Any failure while driving the browser or harvesting its download."""

    status_code = 500


class NavigationTimeout(AutomationError):
    pass


class PlayerNotFound(AutomationError):
    pass


class DownloadOptionNotFound(AutomationError):
    pass


class DownloadTimeout(AutomationError):
    pass
