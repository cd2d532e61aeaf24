"""
buildcache runtime configuration and statistics.

buildcache is configured through environment variables:

    BUILDCACHE_DIR             cache directory
    BUILDCACHE_MAX_CACHE_SIZE  maximum cache size in bytes
    BUILDCACHE_DEBUG           debug log level
    BUILDCACHE_LOG_FILE        log file (set together with BUILDCACHE_DEBUG)

Statistics come from ``buildcache -s`` and are reset with ``buildcache -z``.
Statistics are diagnostics only; failures to collect them are logged and
otherwise ignored.
"""

import logging
import subprocess
from pathlib import Path
from typing import Dict, Optional

from ..core.environment import ActionEnvironment
from ..core.filesystem import ensure_directory

logger = logging.getLogger(__name__)

DEFAULT_CACHE_DIR_NAME = ".buildcache"
DEFAULT_MAX_CACHE_SIZE = "500000000"
LOG_FILE_NAME = "buildcache.log"


def resolve_cache_dir(env: ActionEnvironment, cache_dir: Optional[str] = None) -> Path:
    """
    Pick the buildcache cache directory.

    Order: explicit ``cache_dir``, ``BUILDCACHE_DIR`` environment variable,
    ``<workspace>/.buildcache``.
    """
    if cache_dir:
        return Path(cache_dir)
    from_env = env.get("BUILDCACHE_DIR")
    if from_env:
        return Path(from_env)
    return env.workspace / DEFAULT_CACHE_DIR_NAME


def configure_environment(
    env: ActionEnvironment,
    cache_dir: Path,
    max_cache_size: str = DEFAULT_MAX_CACHE_SIZE,
    debug_level: Optional[str] = None,
) -> Dict[str, str]:
    """
    Create the cache directory and export buildcache's environment.

    Args:
        env: CI environment to export into
        cache_dir: buildcache cache directory
        max_cache_size: Maximum cache size in bytes
        debug_level: BUILDCACHE_DEBUG level, None to leave debugging off

    Returns:
        Dictionary of exported variables
    """
    cache_dir = ensure_directory(cache_dir)

    env_vars = {
        "BUILDCACHE_DIR": str(cache_dir),
        "BUILDCACHE_MAX_CACHE_SIZE": str(max_cache_size),
    }
    if debug_level:
        env_vars["BUILDCACHE_DEBUG"] = str(debug_level)
        env_vars["BUILDCACHE_LOG_FILE"] = str(cache_dir / LOG_FILE_NAME)

    for name, value in env_vars.items():
        env.export_variable(name, value)

    logger.debug(f"Configured buildcache environment: {env_vars}")
    return env_vars


class BuildcacheRunner:
    """
    Runs buildcache maintenance commands.

    Attributes:
        executable: buildcache binary (or name resolvable on PATH)
        env: CI environment; its variables are passed to buildcache
        timeout: Subprocess timeout in seconds
    """

    def __init__(self, executable, env: ActionEnvironment, timeout: float = 30):
        self.executable = str(executable)
        self.env = env
        self.timeout = timeout

    def _run(self, *args: str) -> Optional[str]:
        try:
            result = subprocess.run(
                [self.executable, *args],
                capture_output=True,
                text=True,
                timeout=self.timeout,
                env=dict(self.env.environ),
            )
        except subprocess.TimeoutExpired:
            logger.warning(f"Timeout running {self.executable} {' '.join(args)}")
            return None
        except OSError as e:
            logger.warning(f"Failed to run {self.executable}: {e}")
            return None

        if result.returncode != 0:
            logger.warning(
                f"{self.executable} {' '.join(args)} exited with "
                f"{result.returncode}: {result.stderr.strip()}"
            )
            return None
        return result.stdout

    def print_stats(self) -> Optional[str]:
        """
        Log ``buildcache -s`` output.

        Returns:
            The statistics text, or None if unavailable
        """
        stats = self._run("-s")
        if stats is not None:
            logger.info(f"buildcache stats:\n{stats.rstrip()}")
        return stats

    def zero_stats(self) -> bool:
        """Reset statistics with ``buildcache -z``."""
        if self._run("-z") is None:
            return False
        logger.info("Zeroed buildcache stats")
        return True
