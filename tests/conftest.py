"""
Shared fixtures and test utilities.
"""

import os
import tempfile
from collections.abc import AsyncGenerator, Callable, Generator
from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASS = "changeme123"
JWT_SECRET = "test-jwt-secret-key-for-testing-only"

# Set test environment variables before importing the app
os.environ.update({
    "ADMIN_EMAIL": ADMIN_EMAIL,
    "ADMIN_PASS": ADMIN_PASS,
    "JWT_SECRET": JWT_SECRET,
    "TOKEN_STORE": "memory",
    "DOWNLOAD_ROOT": tempfile.mkdtemp(),
    "LOG_LEVEL": "DEBUG",
})

from fakes import BrowserScenario, fake_playwright_factory  # noqa: E402

from smhelper.app import create_app  # noqa: E402
from smhelper.auth import TokenIssuer  # noqa: E402
from smhelper.config import AdminConfig, AutomationConfig, Settings, StoreConfig, TokenConfig  # noqa: E402
from smhelper.services import VideoDownloader  # noqa: E402
from smhelper.state import InMemoryTokenStore  # noqa: E402


@pytest.fixture
def temp_dir() -> Generator[Path]:
    """Provide a temporary directory that is cleaned up after the test."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def download_root(temp_dir: Path) -> Path:
    root = temp_dir / "downloads"
    root.mkdir()
    return root


@pytest.fixture
def automation_config(download_root: Path) -> AutomationConfig:
    """Automation settings with the waits shortened for tests."""
    return AutomationConfig(
        download_root=str(download_root),
        settle_delay=0,
        poll_interval=0.01,
        poll_attempts=5,
    )


@pytest.fixture
def scenario() -> BrowserScenario:
    return BrowserScenario()


@pytest.fixture
def downloader(automation_config: AutomationConfig, scenario: BrowserScenario) -> VideoDownloader:
    return VideoDownloader(automation_config, playwright_factory=fake_playwright_factory(scenario))


@pytest.fixture
def store() -> InMemoryTokenStore:
    return InMemoryTokenStore()


@pytest.fixture
def settings(automation_config: AutomationConfig) -> Settings:
    return Settings(
        admin=AdminConfig(email=ADMIN_EMAIL, password=ADMIN_PASS),
        token=TokenConfig(jwt_secret=JWT_SECRET),
        store=StoreConfig(backend="memory"),
        automation=automation_config,
    )


@pytest.fixture
def issuer(settings: Settings, store: InMemoryTokenStore) -> TokenIssuer:
    return TokenIssuer(settings.token, store)


@pytest.fixture
def make_token(issuer: TokenIssuer) -> Callable[..., str]:
    """Issue a token directly through the issuer."""

    def _make(email: str = "test@user.com", allowed_requests: int = 5) -> str:
        return issuer.issue(email, allowed_requests).token

    return _make


@pytest.fixture
def app(settings: Settings, store: InMemoryTokenStore, downloader: VideoDownloader):
    return create_app(settings, store=store, downloader=downloader)


@pytest.fixture
async def async_client(app) -> AsyncGenerator[AsyncClient]:
    """Provide an async HTTP client for testing the FastAPI app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def admin_credentials() -> dict:
    return {"adminEmail": ADMIN_EMAIL, "adminPass": ADMIN_PASS}


@pytest.fixture
def sample_video_url() -> str:
    """Provide a sample video URL for testing."""
    return "https://www.tiktok.com/@food9184/video/7574637317005036830?is_from_webapp=1"
