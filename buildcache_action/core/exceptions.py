"""
Centralized exception hierarchy for buildcache-action.

Fatal errors (resolution, acquisition, installation) propagate to the
pipeline, which reports the job step as failed. Cache store errors are
caught at the restore/save boundary and never fail the job.
"""


# ============================================================================
# Base Exceptions
# ============================================================================


class BuildcacheActionError(Exception):
    """Base exception for all buildcache-action errors."""

    pass


class ConfigError(BuildcacheActionError):
    """Invalid action input or configuration file."""

    pass


# ============================================================================
# Tool Setup Exceptions
# ============================================================================


class VersionResolutionError(BuildcacheActionError):
    """Raised when no concrete buildcache version could be determined."""

    def __init__(self, reason: str = ""):
        self.reason = reason
        msg = "unresolved version: no buildcache release could be determined"
        if reason:
            msg += f" ({reason})"
        super().__init__(msg)


class AcquisitionError(BuildcacheActionError):
    """Raised when the buildcache archive cannot be downloaded."""

    pass


class UnsupportedPlatformError(AcquisitionError):
    """Raised when no buildcache release archive exists for this platform."""

    pass


class InstallationError(BuildcacheActionError):
    """Raised when the unpacked archive cannot be arranged for use."""

    pass


class LinkConflictError(InstallationError):
    """Raised when a compiler alias exists and points somewhere else."""

    def __init__(self, link_path, existing_target=None):
        self.link_path = link_path
        self.existing_target = existing_target
        if existing_target is None:
            msg = f"Cannot create link {link_path}: a non-link file is in the way"
        else:
            msg = (
                f"Cannot create link {link_path}: already points to "
                f"{existing_target}"
            )
        super().__init__(msg)


# ============================================================================
# Cache Exceptions
# ============================================================================


class CacheStoreError(BuildcacheActionError):
    """Raised when the artifact cache store cannot be reached or fails."""

    pass
