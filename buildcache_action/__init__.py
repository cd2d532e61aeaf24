"""
buildcache-action: install buildcache in a CI job and restore its cache.

The restore step resolves a buildcache release, downloads and unpacks it,
links it in as ``clang``/``clang++`` and restores the compiler cache from an
artifact store. The save step persists the cache directory again at the end
of the job.
"""

__version__ = "0.1.0"
