import pytest

from smhelper.config import AutomationConfig, Settings, StoreConfig, TokenConfig, env_truthy


@pytest.mark.parametrize(
    "value, expected",
    [("1", True), ("true", True), (" YES ", True), ("on", True), ("0", False), ("off", False), ("No", False)],
)
def test_env_truthy(value, expected):
    assert env_truthy(value) is expected


def test_env_truthy_default():
    assert env_truthy(None, default=True) is True
    assert env_truthy("maybe", default=False) is False


def test_automation_defaults(monkeypatch):
    for name in (
        "DOWNLOAD_ROOT",
        "HEADLESS",
        "PLAYER_SELECTOR",
        "PLAYER_TIMEOUT_MS",
        "OPTION_TIMEOUT_MS",
        "OPTION_FALLBACK_TIMEOUT_MS",
        "POLL_INTERVAL",
        "POLL_ATTEMPTS",
    ):
        monkeypatch.delenv(name, raising=False)

    cfg = AutomationConfig.from_env()
    assert cfg.download_root == "./downloads"
    assert cfg.headless is True
    assert cfg.player_selector == ".xgplayer-container.tiktok-web-player"
    assert cfg.player_timeout_ms == 15000
    assert (cfg.option_timeout_ms, cfg.option_fallback_timeout_ms) == (8000, 5000)
    assert (cfg.poll_interval, cfg.poll_attempts) == (0.5, 60)
    assert ".crdownload" in cfg.partial_suffixes


def test_automation_overrides(monkeypatch):
    monkeypatch.setenv("HEADLESS", "false")
    monkeypatch.setenv("POLL_ATTEMPTS", "10")
    monkeypatch.setenv("POLL_INTERVAL", "0.25")

    cfg = AutomationConfig.from_env()
    assert cfg.headless is False
    assert cfg.poll_attempts == 10
    assert cfg.poll_interval == 0.25


def test_store_backend_is_normalized(monkeypatch):
    monkeypatch.setenv("TOKEN_STORE", " JSON ")
    assert StoreConfig.from_env().backend == "json"


def test_token_config_from_env(monkeypatch):
    monkeypatch.setenv("JWT_SECRET", "s3cret")
    monkeypatch.setenv("TOKEN_LIFETIME_DAYS", "7")

    cfg = TokenConfig.from_env()
    assert cfg.jwt_secret == "s3cret"
    assert cfg.lifetime_days == 7
    assert cfg.header_name == "x-api-token"


def test_settings_missing(monkeypatch):
    monkeypatch.delenv("JWT_SECRET", raising=False)
    monkeypatch.delenv("ADMIN_PASS", raising=False)
    monkeypatch.setenv("ADMIN_EMAIL", "admin@example.com")

    assert Settings.from_env().missing() == ["JWT_SECRET", "ADMIN_PASS"]


def test_settings_complete(monkeypatch):
    monkeypatch.setenv("JWT_SECRET", "s3cret")
    monkeypatch.setenv("ADMIN_EMAIL", "admin@example.com")
    monkeypatch.setenv("ADMIN_PASS", "pw")

    assert Settings.from_env().missing() == []
