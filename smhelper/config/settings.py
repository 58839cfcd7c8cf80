"""Configuration loaded from environment variables."""
import os
from typing import List, Optional, Tuple

from dotenv import load_dotenv
from pydantic import BaseModel, Field

# Read .env if present
load_dotenv()

DEFAULT_API_TOKEN_HEADER = "x-api-token"
DEFAULT_PLAYER_SELECTOR = ".xgplayer-container.tiktok-web-player"
DEFAULT_DOWNLOAD_OPTION_TEXT = "Download video"
DEFAULT_PARTIAL_SUFFIXES = (".crdownload", ".tmp", ".part", ".download")


def env_truthy(value: Optional[str], *, default: bool = False) -> bool:
    """Parse common truthy/falsey strings from environment variables."""
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "t", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "f", "no", "n", "off"}:
        return False
    return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return float(raw)


class AdminConfig(BaseModel):
    """Static admin credential pair guarding the /admin endpoints."""

    email: Optional[str] = Field(default=None)
    password: Optional[str] = Field(default=None)

    @classmethod
    def from_env(cls) -> "AdminConfig":
        return cls(email=os.getenv("ADMIN_EMAIL"), password=os.getenv("ADMIN_PASS"))


class TokenConfig(BaseModel):
    """
    Signing configuration for user API tokens.

    - jwt_secret: HMAC secret used to sign and verify tokens
    - lifetime_days: how long a freshly issued token stays valid
    - header_name: request header carrying the token
    """

    jwt_secret: Optional[str] = Field(default=None)
    algorithm: str = Field(default="HS256")
    lifetime_days: int = Field(default=30, gt=0)
    header_name: str = Field(default=DEFAULT_API_TOKEN_HEADER)

    @classmethod
    def from_env(cls) -> "TokenConfig":
        return cls(
            jwt_secret=os.getenv("JWT_SECRET"),
            lifetime_days=_env_int("TOKEN_LIFETIME_DAYS", 30),
            header_name=os.getenv("API_TOKEN_HEADER", DEFAULT_API_TOKEN_HEADER).strip(),
        )


class StoreConfig(BaseModel):
    backend: str = Field(default="sqlite")
    db_file: str = Field(default="tokens.db")
    json_file: str = Field(default="data.json")

    @classmethod
    def from_env(cls) -> "StoreConfig":
        return cls(
            backend=os.getenv("TOKEN_STORE", "sqlite").strip().lower(),
            db_file=os.getenv("TOKEN_DB_FILE", "tokens.db"),
            json_file=os.getenv("TOKEN_JSON_FILE", "data.json"),
        )


class AutomationConfig(BaseModel):
    """
    Browser automation knobs.

    Timeouts ending in ``_ms`` are handed to Playwright as milliseconds;
    ``settle_delay`` and ``poll_interval`` are seconds.
    """

    download_root: str = Field(default="./downloads")
    headless: bool = Field(default=True)
    player_selector: str = Field(default=DEFAULT_PLAYER_SELECTOR)
    download_option_text: str = Field(default=DEFAULT_DOWNLOAD_OPTION_TEXT)
    navigation_timeout_ms: int = Field(default=30000, gt=0)
    player_timeout_ms: int = Field(default=15000, gt=0)
    option_timeout_ms: int = Field(default=8000, gt=0)
    option_fallback_timeout_ms: int = Field(default=5000, gt=0)
    settle_delay: float = Field(default=1.0, ge=0)
    poll_interval: float = Field(default=0.5, gt=0)
    poll_attempts: int = Field(default=60, gt=0)
    partial_suffixes: Tuple[str, ...] = Field(default=DEFAULT_PARTIAL_SUFFIXES)

    @property
    def harvest_window_ms(self) -> int:
        return int(self.poll_interval * self.poll_attempts * 1000)

    @classmethod
    def from_env(cls) -> "AutomationConfig":
        return cls(
            download_root=os.getenv("DOWNLOAD_ROOT", "./downloads"),
            headless=env_truthy(os.getenv("HEADLESS"), default=True),
            player_selector=os.getenv("PLAYER_SELECTOR", DEFAULT_PLAYER_SELECTOR),
            download_option_text=os.getenv("DOWNLOAD_OPTION_TEXT", DEFAULT_DOWNLOAD_OPTION_TEXT),
            navigation_timeout_ms=_env_int("NAVIGATION_TIMEOUT_MS", 30000),
            player_timeout_ms=_env_int("PLAYER_TIMEOUT_MS", 15000),
            option_timeout_ms=_env_int("OPTION_TIMEOUT_MS", 8000),
            option_fallback_timeout_ms=_env_int("OPTION_FALLBACK_TIMEOUT_MS", 5000),
            settle_delay=_env_float("SETTLE_DELAY", 1.0),
            poll_interval=_env_float("POLL_INTERVAL", 0.5),
            poll_attempts=_env_int("POLL_ATTEMPTS", 60),
        )


class Settings(BaseModel):
    admin: AdminConfig = Field(default_factory=AdminConfig)
    token: TokenConfig = Field(default_factory=TokenConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    automation: AutomationConfig = Field(default_factory=AutomationConfig)

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            admin=AdminConfig.from_env(),
            token=TokenConfig.from_env(),
            store=StoreConfig.from_env(),
            automation=AutomationConfig.from_env(),
        )

    def missing(self) -> List[str]:
        """Names of required environment variables that are not set."""
        required = {
            "JWT_SECRET": self.token.jwt_secret,
            "ADMIN_EMAIL": self.admin.email,
            "ADMIN_PASS": self.admin.password,
        }
        return [name for name, value in required.items() if not value]
