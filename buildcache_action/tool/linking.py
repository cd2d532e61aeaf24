"""
Symlink management for compiler aliases.

buildcache intercepts a compiler when it is invoked under that compiler's
name, so the installer places ``clang``/``clang++`` symlinks to the
buildcache binary next to it. Link creation is idempotent: a link that
already points at the intended target is accepted as-is.
"""

import logging
import os
from pathlib import Path
from typing import Optional

from ..core.exceptions import InstallationError, LinkConflictError

logger = logging.getLogger(__name__)


class LinkManager:
    """Creates and inspects symbolic links."""

    def resolve_link(self, link_path: Path) -> Optional[Path]:
        """
        Resolve link to absolute target path.

        Args:
            link_path: Path to link

        Returns:
            Absolute path to link target, or None if not a link
        """
        if not link_path.is_symlink():
            return None

        target = Path(os.readlink(link_path))
        if not target.is_absolute():
            target = link_path.parent / target
        return target.resolve()

    def ensure_link(self, link_path: Path, target_path: Path) -> bool:
        """
        Make ``link_path`` a symlink to ``target_path``.

        Args:
            link_path: Path where link should be created
            target_path: Path that link should point to

        Returns:
            True if a link was created, False if it already existed

        Raises:
            InstallationError: If target doesn't exist or the link cannot
                be created
            LinkConflictError: If link_path exists and is not a link to
                target_path
        """
        link_path = link_path.absolute()
        target_path = target_path.resolve()

        if not target_path.exists():
            raise InstallationError(f"Link target does not exist: {target_path}")

        if link_path.is_symlink():
            existing = self.resolve_link(link_path)
            if existing == target_path:
                logger.debug(f"Link already in place: {link_path} -> {target_path}")
                return False
            raise LinkConflictError(link_path, existing)

        if link_path.exists():
            raise LinkConflictError(link_path)

        try:
            os.symlink(target_path, link_path)
        except OSError as e:
            raise InstallationError(
                f"Failed to create symlink {link_path} -> {target_path}: {e}"
            ) from e

        logger.info(f"Created symlink: {link_path} -> {target_path}")
        return True
