"""
Network download helpers.

Downloads are single-attempt with an explicit timeout: a CI job that
cannot reach the release host should fail quickly with a clear message
instead of hanging or retrying behind the user's back.
"""

import logging
import os
import tempfile
import time
import uuid
from pathlib import Path
from typing import Optional
from urllib.parse import unquote, urlparse

import requests
from requests.exceptions import RequestException

from .exceptions import BuildcacheActionError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


class DownloadError(BuildcacheActionError):
    """Exception raised when download fails."""

    def __init__(self, url: str, message: str):
        self.url = url
        super().__init__(f"Failed to download {url}: {message}")


def get_temp_dir(environ=None) -> Path:
    """
    Get the runner temp directory.

    Uses ``RUNNER_TEMP`` when running on a CI runner, otherwise the system
    temp directory.
    """
    environ = os.environ if environ is None else environ
    runner_temp = environ.get("RUNNER_TEMP", "")
    if runner_temp:
        return Path(runner_temp)
    return Path(tempfile.gettempdir())


def download_file(
    url: str,
    destination: Path,
    timeout: float = 300,
    session: Optional[requests.Session] = None,
) -> Path:
    """
    Download file from URL to destination.

    Args:
        url: URL to download from
        destination: Local path to save file
        timeout: Connect/read timeout in seconds
        session: Optional requests session (default: module-level requests)

    Returns:
        Path to downloaded file

    Raises:
        DownloadError: On any transport error or non-2xx status
        ValueError: If URL or destination is invalid

    Example:
        >>> download_file(
        ...     "https://example.com/buildcache-linux.tar.gz",
        ...     Path("/tmp/buildcache-linux.tar.gz"),
        ... )
    """
    if not url:
        raise ValueError("URL cannot be empty")

    if not destination:
        raise ValueError("Destination path cannot be empty")

    destination = Path(destination)
    destination.parent.mkdir(parents=True, exist_ok=True)

    http = session or requests
    logger.info(f"Downloading from {url}")
    start_time = time.time()
    downloaded = 0

    try:
        with http.get(
            url, stream=True, timeout=timeout, allow_redirects=True
        ) as response:
            response.raise_for_status()
            with open(destination, "wb") as f:
                for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                    if chunk:
                        f.write(chunk)
                        downloaded += len(chunk)
    except RequestException as e:
        # Never leave a truncated archive behind for the extractor
        destination.unlink(missing_ok=True)
        raise DownloadError(url, str(e)) from e
    except OSError as e:
        destination.unlink(missing_ok=True)
        raise DownloadError(url, f"cannot write {destination}: {e}") from e

    elapsed = time.time() - start_time
    logger.info(
        f"Download complete: {destination} "
        f"({downloaded / 1024 / 1024:.1f} MB in {elapsed:.1f}s)"
    )
    return destination


def download_tool(
    url: str,
    dest_dir: Optional[Path] = None,
    timeout: float = 300,
    session: Optional[requests.Session] = None,
) -> Path:
    """
    Download a tool archive into a fresh directory under the runner temp dir.

    The archive keeps the last path segment of the URL as its filename so
    the extractor can detect its format.

    Args:
        url: Archive URL
        dest_dir: Parent directory (default: runner temp directory)
        timeout: Connect/read timeout in seconds
        session: Optional requests session

    Returns:
        Path to the downloaded archive
    """
    filename = unquote(Path(urlparse(url).path).name) or "download"
    parent = Path(dest_dir) if dest_dir is not None else get_temp_dir()
    target_dir = parent / f"download-{uuid.uuid4().hex[:12]}"
    return download_file(url, target_dir / filename, timeout=timeout, session=session)
