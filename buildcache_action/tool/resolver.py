"""
Buildcache release version resolution.

A concrete version input is used as-is. An empty or ``latest`` input is
resolved by asking the GitLab GraphQL API for the most recent release of
the buildcache project. A failed query does not raise: it produces an
unresolved ``VersionResolution`` and the pipeline decides what to do.

Example:
    >>> resolver = VersionResolver()
    >>> resolution = resolver.resolve("latest")
    >>> if resolution.resolved:
    ...     print(resolution.tag)
"""

import logging
from dataclasses import dataclass
from typing import Optional

import requests
from requests.exceptions import RequestException

logger = logging.getLogger(__name__)

GITLAB_GRAPHQL_URL = "https://gitlab.com/api/graphql"
BUILDCACHE_PROJECT_PATH = "bits-n-bites/buildcache"
LATEST = "latest"

RELEASES_OPERATION = "allReleases"
RELEASES_QUERY = """\
query allReleases($fullPath: ID!, $first: Int, $sort: ReleaseSort) {
  project(fullPath: $fullPath) {
    releases(first: $first, sort: $sort) {
      nodes {
        tagName
        releasedAt
      }
    }
  }
}"""


@dataclass(frozen=True)
class VersionResolution:
    """Outcome of version resolution: a tag, or the reason there is none."""

    tag: Optional[str] = None
    """Resolved release tag"""

    source: Optional[str] = None
    """'input' or 'remote' when resolved"""

    reason: Optional[str] = None
    """Why resolution failed"""

    @property
    def resolved(self) -> bool:
        return self.tag is not None

    @classmethod
    def from_input(cls, tag: str) -> "VersionResolution":
        return cls(tag=tag, source="input")

    @classmethod
    def from_remote(cls, tag: str) -> "VersionResolution":
        return cls(tag=tag, source="remote")

    @classmethod
    def unresolved(cls, reason: str) -> "VersionResolution":
        return cls(reason=reason)


def is_latest_request(requested: Optional[str]) -> bool:
    """True if the requested version asks for remote resolution."""
    return not requested or not requested.strip() or requested.strip().lower() == LATEST


class VersionResolver:
    """
    Decides which buildcache release to install.

    Attributes:
        timeout: Timeout in seconds for the release query
        session: requests session (or module) used for the query
    """

    def __init__(
        self,
        timeout: float = 30,
        session: Optional[requests.Session] = None,
        graphql_url: str = GITLAB_GRAPHQL_URL,
        project_path: str = BUILDCACHE_PROJECT_PATH,
    ):
        self.timeout = timeout
        self.session = session or requests
        self.graphql_url = graphql_url
        self.project_path = project_path

    def resolve(self, requested: Optional[str]) -> VersionResolution:
        """
        Resolve a requested version to a release tag.

        Args:
            requested: Version input ('' or 'latest' trigger remote lookup)

        Returns:
            VersionResolution, resolved or not. Never raises for query
            failures.
        """
        if not is_latest_request(requested):
            tag = requested.strip()
            logger.info(f"Using requested buildcache version: {tag}")
            return VersionResolution.from_input(tag)

        logger.info("Looking up latest buildcache release")
        return self.fetch_latest()

    def fetch_latest(self) -> VersionResolution:
        """Query the release listing for the most recent release tag."""
        payload = {
            "operationName": RELEASES_OPERATION,
            "variables": {
                "fullPath": self.project_path,
                "first": 1,
                "sort": "RELEASED_AT_DESC",
            },
            "query": RELEASES_QUERY,
        }

        try:
            response = self.session.post(
                self.graphql_url, json=payload, timeout=self.timeout
            )
            response.raise_for_status()
            body = response.json()
        except RequestException as e:
            return self._unresolved(f"release query failed: {e}")
        except ValueError as e:
            # requests raises a ValueError subclass for non-JSON bodies
            return self._unresolved(f"release query returned invalid JSON: {e}")

        tag = extract_latest_tag(body)
        if tag is None:
            return self._unresolved("release query returned no usable tagName")

        logger.info(f"Got latest version: {tag}")
        return VersionResolution.from_remote(tag)

    @staticmethod
    def _unresolved(reason: str) -> VersionResolution:
        logger.warning(f"Could not resolve latest buildcache version: {reason}")
        return VersionResolution.unresolved(reason)


def extract_latest_tag(body) -> Optional[str]:
    """
    Pull ``data.project.releases.nodes[0].tagName`` out of a response body.

    Returns:
        The tag, or None if the body has any other shape
    """
    try:
        tag = body["data"]["project"]["releases"]["nodes"][0]["tagName"]
    except (KeyError, IndexError, TypeError):
        return None

    if not isinstance(tag, str) or not tag.strip():
        return None
    return tag.strip()
