from .models import TokenRecord
from .token_store import (
    InMemoryTokenStore,
    JsonFileTokenStore,
    SqliteTokenStore,
    TokenStore,
    create_token_store,
)

__all__ = [
    "TokenRecord",
    "TokenStore",
    "SqliteTokenStore",
    "JsonFileTokenStore",
    "InMemoryTokenStore",
    "create_token_store",
]
