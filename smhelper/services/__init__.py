from .automation import (
    DownloadSession,
    LocatorStrategy,
    VideoDownloader,
    download_filename,
    download_option_strategies,
)
from .delivery import DeliveryResponse, deliver_artifact
from .harvest import find_new_artifact, latest_mtime, poll_for_artifact

__all__ = [
    "DownloadSession",
    "LocatorStrategy",
    "VideoDownloader",
    "download_filename",
    "download_option_strategies",
    "DeliveryResponse",
    "deliver_artifact",
    "find_new_artifact",
    "latest_mtime",
    "poll_for_artifact",
]
