"""Detect completed browser downloads by polling a directory."""
import asyncio
import logging
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

from smhelper.errors import DownloadTimeout

_logger = logging.getLogger("smhelper")


def _list_files(directory: Path) -> List[Tuple[Path, int]]:
    if not directory.exists():
        return []
    files = []
    for p in directory.iterdir():
        try:
            if p.is_file():
                files.append((p, p.stat().st_mtime_ns))
        except FileNotFoundError:
            # renamed away by the browser between listing and stat
            continue
    return files


def latest_mtime(directory: Path) -> Optional[int]:
    """Newest modification time (ns) of any file in ``directory``, or None if empty."""
    files = _list_files(directory)
    if not files:
        return None
    return max(mtime for _, mtime in files)


def is_partial(path: Path, partial_suffixes: Iterable[str]) -> bool:
    name = path.name.lower()
    return any(name.endswith(suffix) for suffix in partial_suffixes)


def find_new_artifact(
    directory: Path,
    since: Optional[int],
    partial_suffixes: Iterable[str],
) -> Optional[Path]:
    """
    Return the newest completed file modified strictly after ``since``.

    Files still being written by the browser (partial suffixes) are ignored.
    With ``since`` of None every completed file counts as new.
    """
    suffixes = tuple(partial_suffixes)
    candidates = [
        (p, mtime)
        for p, mtime in _list_files(directory)
        if (since is None or mtime > since) and not is_partial(p, suffixes)
    ]
    if not candidates:
        return None
    candidates.sort(key=lambda item: item[1], reverse=True)
    return candidates[0][0]


async def poll_for_artifact(
    directory: Path,
    since: Optional[int],
    *,
    interval: float,
    attempts: int,
    partial_suffixes: Iterable[str],
) -> Path:
    """Poll ``directory`` every ``interval`` seconds, at most ``attempts`` times."""
    suffixes = tuple(partial_suffixes)
    for attempt in range(1, attempts + 1):
        await asyncio.sleep(interval)
        found = find_new_artifact(directory, since, suffixes)
        if found is not None:
            _logger.info("New file detected name=%s attempt=%d", found.name, attempt)
            return found
    raise DownloadTimeout(f"Download timed out after {interval * attempts:g} seconds")
