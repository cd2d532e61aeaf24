"""
buildcache tool setup.

Modules:
    resolver: Resolve the buildcache release version
    acquirer: Download the release archive for this platform
    installer: Unpack the archive and publish the binary
    linking: Compiler alias symlinks
"""

from .acquirer import ToolAcquirer, get_archive_name
from .installer import InstallationLayout, Installer
from .linking import LinkManager
from .resolver import VersionResolution, VersionResolver

__all__ = [
    "InstallationLayout",
    "Installer",
    "LinkManager",
    "ToolAcquirer",
    "VersionResolution",
    "VersionResolver",
    "get_archive_name",
]
