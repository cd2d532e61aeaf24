"""
Buildcache installation.

The release archive unpacks to a fixed layout:

    <install root>/buildcache/bin/buildcache

The installer extracts the archive into the CI workspace, checks that the
binary is where it is expected, links ``clang`` and ``clang++`` to it and
puts its ``bin`` directory on the search path.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional, Sequence

from ..core.environment import ActionEnvironment
from ..core.exceptions import InstallationError
from ..core.filesystem import (
    ArchiveExtractionError,
    ensure_directory,
    extract_archive,
    is_executable,
)
from .linking import LinkManager

logger = logging.getLogger(__name__)

BINARY_NAME = "buildcache"
COMPILER_ALIASES = ("clang", "clang++")


@dataclass
class InstallationLayout:
    """
    Where buildcache ended up.

    Attributes:
        install_root: Directory the archive was extracted into
        unpack_dir: Directory returned by extraction
        binary_path: The buildcache executable
        bin_dir: Directory holding the binary and the compiler aliases
        links: Alias name -> link path
    """

    install_root: Path
    unpack_dir: Path
    binary_path: Path
    bin_dir: Path
    links: Dict[str, Path] = field(default_factory=dict)


def locate_binary(unpack_dir: Path) -> Path:
    """Path of the buildcache binary inside an unpacked release archive."""
    return unpack_dir / "buildcache" / "bin" / BINARY_NAME


class Installer:
    """
    Arranges an unpacked buildcache release for use as a compiler wrapper.

    Example:
        >>> installer = Installer(ActionEnvironment())
        >>> layout = installer.install(Path("/tmp/buildcache-linux.tar.gz"))
        >>> print(layout.bin_dir)
    """

    def __init__(
        self,
        env: ActionEnvironment,
        install_root: Optional[Path] = None,
        aliases: Sequence[str] = COMPILER_ALIASES,
        link_manager: Optional[LinkManager] = None,
    ):
        """
        Initialize installer.

        Args:
            env: CI environment (search path is published through it)
            install_root: Extraction target (default: CI workspace root)
            aliases: Compiler names to link to buildcache
            link_manager: Link manager (default: new LinkManager)
        """
        self.env = env
        self.install_root = Path(install_root) if install_root else env.workspace
        self.aliases = tuple(aliases)
        self.link_manager = link_manager or LinkManager()

    def install(self, archive_path: Path) -> InstallationLayout:
        """
        Install buildcache from a downloaded archive.

        Args:
            archive_path: Downloaded release archive

        Returns:
            InstallationLayout

        Raises:
            InstallationError: If extraction fails, the binary is missing or
                not executable, or an alias link cannot be created
        """
        install_root = ensure_directory(self.install_root)

        try:
            unpack_dir = extract_archive(archive_path, install_root)
        except ArchiveExtractionError as e:
            raise InstallationError(str(e)) from e
        logger.info(f"Unpacked folder {unpack_dir}")

        binary_path = locate_binary(unpack_dir)
        if not binary_path.exists():
            raise InstallationError(
                f"buildcache binary not found at {binary_path}; "
                "the release archive layout has changed"
            )
        if not is_executable(binary_path):
            raise InstallationError(f"buildcache binary is not executable: {binary_path}")

        bin_dir = binary_path.parent
        layout = InstallationLayout(
            install_root=install_root,
            unpack_dir=unpack_dir,
            binary_path=binary_path,
            bin_dir=bin_dir,
        )

        for alias in self.aliases:
            link_path = bin_dir / alias
            self.link_manager.ensure_link(link_path, binary_path)
            layout.links[alias] = link_path

        self.env.add_path(bin_dir)
        return layout
