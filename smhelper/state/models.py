"""Token data model"""
import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


def utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def parse_timestamp(value: str) -> datetime.datetime:
    """Parse an ISO-8601 timestamp, treating naive values as UTC."""
    parsed = datetime.datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=datetime.timezone.utc)
    return parsed


class TokenRecord(BaseModel):
    """Stored quota for one issued API token."""
    token: str
    email: str
    allowed_requests: int = Field(ge=0)
    created_at: datetime.datetime
    expires_at: datetime.datetime

    def is_expired(self, now: Optional[datetime.datetime] = None) -> bool:
        return self.expires_at <= (now or utcnow())

    def to_json(self) -> Dict[str, Any]:
        return {
            "token": self.token,
            "email": self.email,
            "allowed_requests": self.allowed_requests,
            "created_at": self.created_at.isoformat(),
            "expires_at": self.expires_at.isoformat(),
        }

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "TokenRecord":
        return cls(
            token=data["token"],
            email=data["email"],
            allowed_requests=max(int(data["allowed_requests"]), 0),
            created_at=parse_timestamp(data["created_at"]),
            expires_at=parse_timestamp(data["expires_at"]),
        )
