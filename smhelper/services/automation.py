"""Browser automation that triggers a short-video site's own "Download video" action."""
import asyncio
import datetime
import logging
import shutil
import time
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, List, Optional

from playwright.async_api import Browser, ElementHandle, Page
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright

from smhelper.config import AutomationConfig
from smhelper.errors import (
    AutomationError,
    DownloadOptionNotFound,
    DownloadTimeout,
    NavigationTimeout,
    PlayerNotFound,
)

from .harvest import latest_mtime, poll_for_artifact

_logger = logging.getLogger("smhelper")

BROWSER_ARGS = ["--no-sandbox", "--disable-setuid-sandbox"]

SCROLL_INTO_VIEW_JS = """sel => {
    const el = document.querySelector(sel);
    if (el) el.scrollIntoView({block: "center"});
}"""

ELEMENT_CENTER_JS = """sel => {
    const el = document.querySelector(sel);
    if (!el) return null;
    const box = el.getBoundingClientRect();
    return {x: box.left + box.width / 2, y: box.top + box.height / 2};
}"""

DISPATCH_CLICK_JS = "el => el.click()"

VIDEO_SRC_JS = """() => {
    const video = document.querySelector("video");
    return video ? video.src : null;
}"""


@dataclass
class LocatorStrategy:
    name: str
    selector: str
    timeout_ms: int


def download_option_strategies(text: str, primary_timeout_ms: int, fallback_timeout_ms: int) -> List[LocatorStrategy]:
    """Exact-text match first, then a looser XPath ``contains`` search."""
    return [
        LocatorStrategy("text", f'text="{text}"', primary_timeout_ms),
        LocatorStrategy("xpath", f"xpath=//*[contains(text(), '{text}')]", fallback_timeout_ms),
    ]


def download_filename(suggested: Optional[str], session_id: str) -> str:
    """Base name the site suggested, or ``<session_id>.mp4`` when it gave none."""
    name = Path(suggested or "").name
    return name or f"{session_id}.mp4"


@dataclass
class DownloadSession:
    """State for one download request; removed once the response is done."""

    session_id: str
    target_url: str
    workdir: Path
    started_at: datetime.datetime = field(default_factory=lambda: datetime.datetime.now(datetime.timezone.utc))
    artifact_path: Optional[Path] = None
    video_src: Optional[str] = None

    def cleanup(self) -> None:
        try:
            if self.artifact_path is not None:
                self.artifact_path.unlink(missing_ok=True)
            shutil.rmtree(self.workdir, ignore_errors=True)
            _logger.debug("Cleaned up session session_id=%s workdir=%s", self.session_id, self.workdir)
        except OSError:
            _logger.exception("Failed to clean up session session_id=%s workdir=%s", self.session_id, self.workdir)


async def find_first(page: Page, strategies: List[LocatorStrategy]) -> Optional[ElementHandle]:
    """Try each strategy in order, returning the first element that appears."""
    for strategy in strategies:
        try:
            handle = await page.wait_for_selector(strategy.selector, timeout=strategy.timeout_ms)
        except PlaywrightTimeoutError:
            _logger.info("Locator strategy timed out strategy=%s timeout_ms=%d", strategy.name, strategy.timeout_ms)
            continue
        if handle is not None:
            _logger.info("Locator strategy matched strategy=%s", strategy.name)
            return handle
    return None


class VideoDownloader:
    """
    Drives one isolated Chromium session per call.

    The player is right-clicked, the context menu's "Download video" entry is
    clicked, the download Playwright captures is saved into a per-session
    directory, and that directory is polled until the finished file shows up.
    """

    def __init__(self, config: AutomationConfig, playwright_factory: Callable[[], Any] = async_playwright):
        self.config = config
        self._playwright_factory = playwright_factory

    def new_session(self, url: str, session_id: Optional[str] = None) -> DownloadSession:
        session_id = session_id or uuid.uuid4().hex
        root = Path(self.config.download_root).resolve(strict=False)
        workdir = root / session_id
        workdir.mkdir(parents=True, exist_ok=True)
        return DownloadSession(session_id=session_id, target_url=url, workdir=workdir)

    async def download(self, url: str, session_id: Optional[str] = None) -> DownloadSession:
        session = self.new_session(url, session_id)
        _logger.info("Automation start session_id=%s url=%s headless=%s", session.session_id, url, self.config.headless)
        start = time.monotonic()
        try:
            async with self._playwright_factory() as playwright:
                _logger.info("Launching browser session_id=%s", session.session_id)
                browser = await playwright.chromium.launch(headless=self.config.headless, args=BROWSER_ARGS)
                try:
                    await self._run(browser, session)
                finally:
                    await browser.close()
                    _logger.info("Browser closed session_id=%s", session.session_id)
        except PlaywrightError as exc:
            session.cleanup()
            raise AutomationError(str(exc)) from exc
        except BaseException:
            session.cleanup()
            raise

        elapsed_ms = int((time.monotonic() - start) * 1000)
        _logger.info(
            "Automation done session_id=%s artifact=%s elapsed_ms=%d",
            session.session_id,
            session.artifact_path.name if session.artifact_path else None,
            elapsed_ms,
        )
        return session

    async def _run(self, browser: Browser, session: DownloadSession) -> None:
        cfg = self.config
        context = await browser.new_context(accept_downloads=True)
        page = await context.new_page()

        _logger.info("Navigating session_id=%s url=%s", session.session_id, session.target_url)
        try:
            await page.goto(session.target_url, wait_until="networkidle", timeout=cfg.navigation_timeout_ms)
        except PlaywrightTimeoutError as exc:
            raise NavigationTimeout(
                f"Page did not finish loading within {cfg.navigation_timeout_ms} ms",
                details=str(exc),
            ) from exc

        _logger.info("Waiting for player container session_id=%s selector=%s", session.session_id, cfg.player_selector)
        try:
            await page.wait_for_selector(cfg.player_selector, timeout=cfg.player_timeout_ms)
        except PlaywrightTimeoutError as exc:
            raise PlayerNotFound(
                f"Player container {cfg.player_selector} not found within {cfg.player_timeout_ms} ms",
                details=str(exc),
            ) from exc

        await page.evaluate(SCROLL_INTO_VIEW_JS, cfg.player_selector)
        await asyncio.sleep(cfg.settle_delay)

        point = await page.evaluate(ELEMENT_CENTER_JS, cfg.player_selector)
        if not point:
            raise PlayerNotFound("Could not find player container coordinates")

        _logger.info("Right-clicking player session_id=%s x=%s y=%s", session.session_id, point["x"], point["y"])
        await page.mouse.click(point["x"], point["y"], button="right")

        strategies = download_option_strategies(
            cfg.download_option_text, cfg.option_timeout_ms, cfg.option_fallback_timeout_ms
        )
        option = await find_first(page, strategies)
        if option is None:
            raise DownloadOptionNotFound(f"Could not find '{cfg.download_option_text}' option in the context menu")

        # Snapshot before clicking so the browser's own write can't race us
        since = latest_mtime(session.workdir)

        _logger.info("Triggering download via JS click session_id=%s", session.session_id)
        try:
            async with page.expect_download(timeout=cfg.harvest_window_ms) as download_info:
                await option.evaluate(DISPATCH_CLICK_JS)
            download = await download_info.value
        except PlaywrightTimeoutError as exc:
            raise DownloadTimeout(
                f"Download timed out, nothing started within {cfg.harvest_window_ms} ms",
                details=str(exc),
            ) from exc

        # Playwright keeps downloads under its own artifacts dir until the browser closes
        target = session.workdir / download_filename(download.suggested_filename, session.session_id)
        _logger.info("Saving download session_id=%s name=%s", session.session_id, target.name)
        await download.save_as(target)

        session.artifact_path = await poll_for_artifact(
            session.workdir,
            since,
            interval=cfg.poll_interval,
            attempts=cfg.poll_attempts,
            partial_suffixes=cfg.partial_suffixes,
        )

        try:
            session.video_src = await page.evaluate(VIDEO_SRC_JS)
        except PlaywrightError as exc:
            _logger.warning("Could not read video source session_id=%s error=%s", session.session_id, exc)
        if session.video_src:
            _logger.info("Original video source session_id=%s src=%s", session.session_id, session.video_src)
