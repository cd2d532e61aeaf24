"""
Restore and save steps of the action.

The restore step runs at the start of the job:

    1. resolve the buildcache version
    2. download the release archive for this platform
    3. unpack it, link the compiler aliases and publish the bin directory
    4. configure buildcache's environment
    5. restore the cache directory from the cache store
    6. zero and print buildcache statistics

Steps 1-3 are fatal: any error fails the job step. Everything after is
best effort. The save step runs at the end of the job and never fails it.

Example:
    >>> env = ActionEnvironment()
    >>> result = RestorePipeline(load_config(env), env).run()
    >>> result.success
    True
"""

import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .caching.buildcache import (
    BuildcacheRunner,
    configure_environment,
    resolve_cache_dir,
)
from .caching.keys import build_cache_keys
from .caching.restorer import CacheRestorer, RestoreOutcome
from .caching.saver import CacheSaver, SaveOutcome
from .caching.store import CacheStore, HttpCacheStore, LocalCacheStore
from .config import ActionConfig, load_config, normalize_debug
from .core.environment import ActionEnvironment
from .core.exceptions import VersionResolutionError
from .log import configure_logging
from .tool.acquirer import ToolAcquirer
from .tool.installer import BINARY_NAME, InstallationLayout, Installer
from .tool.resolver import VersionResolver

logger = logging.getLogger(__name__)

# Step state shared between the restore and save steps
STATE_CACHE_DIR = "cache_dir"
STATE_SAVE_KEY = "save_key"
STATE_MATCHED_KEY = "matched_key"
STATE_BINARY = "buildcache_binary"

HTTP_STORE_TIMEOUT = 60


def create_store(config: ActionConfig) -> CacheStore:
    """Create the cache store selected by ``cache_store``."""
    if config.cache_store == "http":
        return HttpCacheStore(
            config.cache_store_url,
            token=config.cache_store_token or None,
            timeout=HTTP_STORE_TIMEOUT,
        )
    return LocalCacheStore(Path(config.cache_store_path))


@dataclass
class PipelineResult:
    """
    Result of the restore step.

    Attributes:
        success: False if a fatal stage failed
        error: Failure message
        version: Resolved buildcache version
        layout: Installation layout
        restore_outcome: Cache restore outcome
    """

    success: bool
    error: Optional[str] = None
    version: Optional[str] = None
    layout: Optional[InstallationLayout] = None
    restore_outcome: Optional[RestoreOutcome] = None


class RestorePipeline:
    """Sets up buildcache and restores the cache directory."""

    def __init__(
        self,
        config: ActionConfig,
        env: ActionEnvironment,
        resolver: Optional[VersionResolver] = None,
        acquirer: Optional[ToolAcquirer] = None,
        installer: Optional[Installer] = None,
        store: Optional[CacheStore] = None,
    ):
        """
        Initialize restore pipeline.

        Collaborators default to production instances built from ``config``.
        """
        self.config = config
        self.env = env
        self.resolver = resolver or VersionResolver(timeout=config.request_timeout)
        self.acquirer = acquirer or ToolAcquirer(timeout=config.download_timeout)
        self.installer = installer or Installer(env)
        self.store = store or create_store(config)

    def run(self) -> PipelineResult:
        """
        Run the restore step.

        Returns:
            PipelineResult; on failure the environment is marked failed
        """
        result = PipelineResult(success=False)
        try:
            resolution = self.resolver.resolve(self.config.version)
            if not resolution.resolved:
                raise VersionResolutionError(resolution.reason or "")
            result.version = resolution.tag
            logger.info(f"Using buildcache {resolution.tag} ({resolution.source})")

            archive = self.acquirer.acquire(resolution.tag)
            result.layout = self.installer.install(archive)
        except Exception as e:
            result.error = str(e)
            self.env.set_failed(result.error)
            return result

        self._record(self.env.set_output, "version", result.version)
        result.restore_outcome = self._restore_cache(result.layout)
        self._report_stats(result.layout)
        result.success = True
        return result

    def _restore_cache(self, layout: InstallationLayout) -> RestoreOutcome:
        # A broken cache setup must not fail the build.
        try:
            cache_dir = resolve_cache_dir(self.env, self.config.cache_dir)
            configure_environment(
                self.env,
                cache_dir,
                max_cache_size=self.config.max_cache_size,
                debug_level=self.config.debug or None,
            )
            key_set = build_cache_keys(self.config.cache_key)
            self.env.save_state(STATE_CACHE_DIR, str(cache_dir))
            self.env.save_state(STATE_SAVE_KEY, key_set.save_key)
            self.env.save_state(STATE_BINARY, str(layout.binary_path))
        except Exception as e:
            logger.error(f"Caching not working: {e}")
            return RestoreOutcome.failed(str(e))

        outcome = CacheRestorer(self.store).restore(key_set, cache_dir)
        if outcome.is_hit:
            self._record(self.env.save_state, STATE_MATCHED_KEY, outcome.matched_key)
        self._record(self.env.set_output, "cache-hit", "true" if outcome.exact else "false")
        return outcome

    @staticmethod
    def _record(write, name: str, value: str) -> None:
        # Outputs and state only inform later steps; losing them is not fatal.
        try:
            write(name, value)
        except (OSError, ValueError) as e:
            logger.warning(f"Could not record {name}: {e}")

    def _report_stats(self, layout: InstallationLayout) -> None:
        runner = BuildcacheRunner(layout.binary_path, self.env)
        if self.config.zero_buildcache_stats:
            runner.zero_stats()
        runner.print_stats()


class SavePipeline:
    """Saves the cache directory at the end of the job."""

    def __init__(
        self,
        config: ActionConfig,
        env: ActionEnvironment,
        store: Optional[CacheStore] = None,
        runner: Optional[BuildcacheRunner] = None,
    ):
        self.config = config
        self.env = env
        self.store = store or create_store(config)
        binary = env.get_state(STATE_BINARY) or BINARY_NAME
        self.runner = runner or BuildcacheRunner(binary, env)

    def run(self) -> SaveOutcome:
        """
        Run the save step.

        Returns:
            SaveOutcome; never raises
        """
        cache_dir = self.env.get_state(STATE_CACHE_DIR)
        save_key = self.env.get_state(STATE_SAVE_KEY)
        if not cache_dir or not save_key:
            logger.debug("No restore step state, recomputing cache dir and key")
            cache_dir = cache_dir or str(resolve_cache_dir(self.env, self.config.cache_dir))
            save_key = save_key or build_cache_keys(self.config.cache_key).save_key

        self.runner.print_stats()

        if not self.config.save_cache:
            logger.info("Not saving cache because 'save_cache' is disabled.")
            return SaveOutcome.skipped("save_cache disabled", key=save_key)

        return CacheSaver(self.store).save(save_key, Path(cache_dir))


def _startup_environment() -> ActionEnvironment:
    env = ActionEnvironment()
    configure_logging(
        debug=env.debug_enabled or bool(normalize_debug(env.get_input("debug")))
    )
    return env


def main_restore() -> int:
    """Entry point of the restore step."""
    env = _startup_environment()
    try:
        config = load_config(env)
        pipeline = RestorePipeline(config, env)
    except Exception as e:
        env.set_failed(str(e))
        return env.exit_code

    pipeline.run()
    return env.exit_code


def main_save() -> int:
    """Entry point of the save step."""
    env = _startup_environment()
    try:
        config = load_config(env)
        SavePipeline(config, env).run()
    except Exception as e:
        logger.error(f"Saving cache failed: {e}")
    return 0


def run_restore():
    """Console script wrapper for the restore step."""
    sys.exit(main_restore())


def run_save():
    """Console script wrapper for the save step."""
    sys.exit(main_save())
