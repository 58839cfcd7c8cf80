from .settings import (
    AdminConfig,
    AutomationConfig,
    Settings,
    StoreConfig,
    TokenConfig,
    env_truthy,
)

__all__ = [
    "AdminConfig",
    "AutomationConfig",
    "Settings",
    "StoreConfig",
    "TokenConfig",
    "env_truthy",
]
