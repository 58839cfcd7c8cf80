from .admin import router as admin_router
from .download import router as download_router
from .tokens import router as tokens_router

__all__ = [
    "admin_router",
    "download_router",
    "tokens_router",
]
