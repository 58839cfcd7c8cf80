"""Video download route"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends

from smhelper.auth import ValidatedToken
from smhelper.errors import AutomationError, BadRequest
from smhelper.services import VideoDownloader, deliver_artifact
from smhelper.state import TokenStore

from .deps import get_downloader, get_token_store, require_token
from .schemas import DownloadRequest

router = APIRouter()
_logger = logging.getLogger("smhelper")


def _charge(store: TokenStore, validated: ValidatedToken) -> None:
    if store.decrement(validated.token):
        _logger.info("Usage decremented email=%s", validated.email)
    else:
        # a concurrent request spent the last unit first
        _logger.warning("Quota already exhausted at decrement time email=%s", validated.email)


@router.post("/download", tags=["Download"])
@router.post("/tiktok", include_in_schema=False)
async def api_download_video(
    body: Optional[DownloadRequest] = None,
    validated: ValidatedToken = Depends(require_token),
    downloader: VideoDownloader = Depends(get_downloader),
    store: TokenStore = Depends(get_token_store),
):
    """
    Download a short video through a headless browser and stream it back.

    One request is charged against the token once the file has been sent.
    """
    if body is None or not body.url:
        raise BadRequest("URL is required")

    _logger.info("Download request email=%s url=%s", validated.email, body.url)
    try:
        session = await downloader.download(body.url)
    except AutomationError as exc:
        _logger.exception("Download failed email=%s url=%s error=%s", validated.email, body.url, exc)
        raise AutomationError("Failed to download video", details=exc.message) from exc

    return deliver_artifact(session, on_delivered=lambda: _charge(store, validated))
