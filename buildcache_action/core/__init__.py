"""
Core functionality for buildcache-action.

This package contains the foundational modules that other components depend on.
"""

from .environment import (
    ActionEnvironment,
    parse_bool,
)

from .exceptions import (
    BuildcacheActionError,
    ConfigError,
    VersionResolutionError,
    AcquisitionError,
    UnsupportedPlatformError,
    InstallationError,
    LinkConflictError,
    CacheStoreError,
)

from .platform import (
    PlatformInfo,
    detect_platform,
    clear_platform_cache,
)

__all__ = [
    # Environment
    "ActionEnvironment",
    "parse_bool",
    # Exceptions
    "BuildcacheActionError",
    "ConfigError",
    "VersionResolutionError",
    "AcquisitionError",
    "UnsupportedPlatformError",
    "InstallationError",
    "LinkConflictError",
    "CacheStoreError",
    # Platform
    "PlatformInfo",
    "detect_platform",
    "clear_platform_cache",
]
