"""Admin routes for issuing and listing API tokens"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from smhelper.auth import AdminGate, TokenIssuer
from smhelper.state import TokenStore

from .deps import get_admin_gate, get_issuer, get_token_store
from .schemas import AdminCredentials, GenerateTokenRequest

router = APIRouter(prefix="/admin", tags=["Admin"])
_logger = logging.getLogger("smhelper")


@router.post("/generate-token", response_class=JSONResponse)
async def generate_token(
    body: Optional[GenerateTokenRequest] = None,
    gate: AdminGate = Depends(get_admin_gate),
    issuer: TokenIssuer = Depends(get_issuer),
):
    """
    Generate a limited API token (admin only).

    Creates a token valid for 30 days with the given request limit.
    """
    body = body or GenerateTokenRequest()
    gate.check(body.adminEmail, body.adminPass)

    record = issuer.issue(body.email, body.allowedRequests)
    return {
        "success": True,
        "token": record.token,
        "expiresAt": record.expires_at.isoformat(),
        "allowedRequests": record.allowed_requests,
    }


@router.post("/tokens", response_class=JSONResponse)
async def list_tokens(
    body: Optional[AdminCredentials] = None,
    gate: AdminGate = Depends(get_admin_gate),
    store: TokenStore = Depends(get_token_store),
):
    """
    List all generated tokens and their remaining requests (admin only).
    """
    body = body or AdminCredentials()
    gate.check(body.adminEmail, body.adminPass)

    tokens = store.list()
    _logger.debug("List tokens count=%d", len(tokens))
    return {"success": True, "tokens": [t.to_json() for t in tokens]}


@router.post("/tokens/cleanup", response_class=JSONResponse)
async def cleanup_expired_tokens(
    body: Optional[AdminCredentials] = None,
    gate: AdminGate = Depends(get_admin_gate),
    store: TokenStore = Depends(get_token_store),
):
    """
    Delete tokens whose expiry has passed (admin only).
    """
    body = body or AdminCredentials()
    gate.check(body.adminEmail, body.adminPass)

    deleted = store.delete_expired()
    return {"success": True, "deleted": deleted}
