"""
Entry point for running the restore step as a module.

Usage: python -m buildcache_action
"""

from buildcache_action.pipeline import run_restore

if __name__ == "__main__":
    run_restore()
