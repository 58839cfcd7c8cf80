"""Token self-check route"""
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from smhelper.auth import ValidatedToken

from .deps import require_token

router = APIRouter(tags=["Utility"])


@router.get("/validate-token", response_class=JSONResponse)
async def validate_token(validated: ValidatedToken = Depends(require_token)):
    """
    Return the owner and remaining request balance of the provided token.
    """
    record = validated.record
    return {
        "success": True,
        "email": record.email,
        "remaining_requests": record.allowed_requests,
        "expires_at": record.expires_at.isoformat(),
    }
