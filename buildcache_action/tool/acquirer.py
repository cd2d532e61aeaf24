"""
Buildcache release download.

Release archives are published as GitLab release assets:

    https://gitlab.com/bits-n-bites/buildcache/-/releases/<tag>/downloads/<archive>
"""

import logging
from pathlib import Path
from typing import Optional

import requests

from ..core.download import DownloadError, download_tool
from ..core.exceptions import AcquisitionError, UnsupportedPlatformError
from ..core.platform import PlatformInfo, detect_platform

logger = logging.getLogger(__name__)

RELEASE_DOWNLOAD_BASE = "https://gitlab.com/bits-n-bites/buildcache/-/releases"

# Release asset per operating system
RELEASE_ARCHIVES = {
    "macos": "buildcache-macos.zip",
    "linux": "buildcache-linux.tar.gz",
}


def get_archive_name(platform_info: PlatformInfo) -> str:
    """
    Get the release archive filename for a platform.

    Raises:
        UnsupportedPlatformError: If buildcache ships no archive for it
    """
    archive = RELEASE_ARCHIVES.get(platform_info.os)
    if archive is None:
        raise UnsupportedPlatformError(
            f"No buildcache release archive for {platform_info.platform_string()}. "
            f"Supported: {', '.join(sorted(RELEASE_ARCHIVES))}"
        )
    return archive


def build_download_url(
    version: str, archive_name: str, base_url: str = RELEASE_DOWNLOAD_BASE
) -> str:
    """
    Build the release asset URL.

    Example:
        >>> build_download_url("v0.28.1", "buildcache-linux.tar.gz")
        'https://gitlab.com/bits-n-bites/buildcache/-/releases/v0.28.1/downloads/buildcache-linux.tar.gz'
    """
    if not version:
        raise ValueError("version cannot be empty")
    return f"{base_url}/{version}/downloads/{archive_name}"


class ToolAcquirer:
    """
    Turns a resolved version tag into a downloaded archive.

    Example:
        >>> acquirer = ToolAcquirer()
        >>> archive = acquirer.acquire("v0.28.1")
    """

    def __init__(
        self,
        platform_info: Optional[PlatformInfo] = None,
        download_dir: Optional[Path] = None,
        timeout: float = 300,
        session: Optional[requests.Session] = None,
        base_url: str = RELEASE_DOWNLOAD_BASE,
    ):
        """
        Initialize acquirer.

        Args:
            platform_info: Platform information. If None, detected on first use.
            download_dir: Parent directory for downloads (default: runner temp)
            timeout: Download timeout in seconds
            session: Optional requests session
            base_url: Release download base URL
        """
        self._platform = platform_info
        self.download_dir = download_dir
        self.timeout = timeout
        self.session = session
        self.base_url = base_url

    @property
    def platform(self) -> PlatformInfo:
        """Target platform.

        Raises:
            UnsupportedPlatformError: If the OS cannot be detected
        """
        if self._platform is None:
            self._platform = detect_platform()
        return self._platform

    def get_download_url(self, version: str) -> str:
        """Download URL for ``version`` on this platform."""
        return build_download_url(version, get_archive_name(self.platform), self.base_url)

    def acquire(self, version: str) -> Path:
        """
        Download the buildcache archive for ``version``.

        Returns:
            Path to the downloaded archive

        Raises:
            AcquisitionError: If the download fails (single attempt)
            UnsupportedPlatformError: If no archive exists for this platform
        """
        url = self.get_download_url(version)
        logger.info(f"Download url: {url}")

        try:
            archive_path = download_tool(
                url,
                dest_dir=self.download_dir,
                timeout=self.timeout,
                session=self.session,
            )
        except DownloadError as e:
            raise AcquisitionError(str(e)) from e

        logger.info(f"Download path: {archive_path}")
        return archive_path
