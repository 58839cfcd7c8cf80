"""Request bodies"""
from typing import Any, Optional

from pydantic import BaseModel


class AdminCredentials(BaseModel):
    """
    Static admin credentials sent in the body of every /admin call.

    Fields are untyped; the admin check runs first and the issuer validates
    the values.
    """
    adminEmail: Any = None
    adminPass: Any = None


class GenerateTokenRequest(AdminCredentials):
    email: Any = None
    allowedRequests: Any = None


class DownloadRequest(BaseModel):
    url: Optional[str] = None
