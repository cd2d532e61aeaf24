"""Test fixtures for buildcache-action tests.

- archives: Fake buildcache release archives
- environment: CI runner environments backed by temporary command files

Import fixtures in your tests using:
    from tests.fixtures.archives import release_tarball
"""

__all__ = [
    "archives",
    "environment",
]
