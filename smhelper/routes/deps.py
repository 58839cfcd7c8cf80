"""Shared route dependencies"""
from typing import Optional

from fastapi import Depends, Request, Security
from fastapi.security import APIKeyHeader

from smhelper.auth import AdminGate, TokenIssuer, ValidatedToken
from smhelper.config import TokenConfig
from smhelper.services import VideoDownloader
from smhelper.state import TokenStore


class SettingsAPIKeyHeader(APIKeyHeader):
    """API key header whose name comes from the running app's ``TokenConfig``."""

    async def __call__(self, request: Request) -> Optional[str]:
        return request.headers.get(request.app.state.settings.token.header_name) or None


# The name given here only labels the scheme in the OpenAPI docs
api_token_header = SettingsAPIKeyHeader(name=TokenConfig().header_name, auto_error=False)


def get_token_store(request: Request) -> TokenStore:
    return request.app.state.token_store


def get_issuer(request: Request) -> TokenIssuer:
    return request.app.state.issuer


def get_admin_gate(request: Request) -> AdminGate:
    return request.app.state.admin_gate


def get_downloader(request: Request) -> VideoDownloader:
    return request.app.state.downloader


async def require_token(
    token: Optional[str] = Security(api_token_header),
    issuer: TokenIssuer = Depends(get_issuer),
) -> ValidatedToken:
    """Reject the request unless it carries a valid token with quota left."""
    return issuer.validate(token)
