"""Checks GitHub for a newer app release."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

import requests

from mcserver_link.errors import NetworkUnavailableError, ReleaseCheckError, RequestTimeoutError

logger = logging.getLogger(__name__)

RELEASES_API = "https://api.github.com/repos/{owner}/{repo}/releases/latest"
UPDATE_CHECK_TIMEOUT = 10


@dataclass
class ReleaseInfo:
    """A published release."""

    version: str
    notes: str
    url: str


def _version_parts(version: str) -> list[int]:
    version = version.strip().lstrip("vV")
    version = re.split(r"[-+ ]", version, maxsplit=1)[0]
    parts = []
    for piece in version.split("."):
        digits = re.match(r"\d+", piece)
        parts.append(int(digits.group(0)) if digits else 0)
    return parts


def compare_versions(a: str, b: str) -> int:
    """Compare two dotted version strings.

    Args:
        a: First version, leading "v" allowed
        b: Second version

    Returns:
        1 if a is newer, -1 if b is newer, 0 if equal
    """
    left = _version_parts(a)
    right = _version_parts(b)
    length = max(len(left), len(right))
    left += [0] * (length - len(left))
    right += [0] * (length - len(right))
    if left > right:
        return 1
    if left < right:
        return -1
    return 0


class ReleaseChecker:
    """Fetches the latest release of a GitHub repository."""

    def __init__(self, owner: str, repo: str, user_agent: str = "MCServerLink/1.0"):
        """Initialize release checker.

        Args:
            owner: GitHub repository owner
            repo: GitHub repository name
            user_agent: User agent string for requests
        """
        self.url = RELEASES_API.format(owner=owner, repo=repo)
        self.session = requests.Session()
        self.session.headers.update({"User-Agent": user_agent, "Accept": "application/vnd.github+json"})

    def fetch_latest(self) -> ReleaseInfo:
        """Fetch the latest release.

        Returns:
            ReleaseInfo

        Raises:
            RequestTimeoutError: If GitHub did not answer in time
            NetworkUnavailableError: If the connection failed
            ReleaseCheckError: On rate limiting, a missing release, or a bad response
        """
        try:
            response = self.session.get(self.url, timeout=UPDATE_CHECK_TIMEOUT)
        except requests.Timeout as e:
            raise RequestTimeoutError("Update check timed out") from e
        except requests.ConnectionError as e:
            raise NetworkUnavailableError("No network connection") from e
        except requests.RequestException as e:
            raise ReleaseCheckError(f"Update check failed: {e}") from e

        if response.status_code == 403:
            raise ReleaseCheckError("GitHub API rate limit reached, try again later")
        if response.status_code == 404:
            raise ReleaseCheckError("No published release found")
        if response.status_code != 200:
            raise ReleaseCheckError(f"Server returned an error: {response.status_code}")

        try:
            data = response.json()
            return ReleaseInfo(
                version=data["tag_name"],
                notes=data.get("body") or "",
                url=data["html_url"],
            )
        except (ValueError, KeyError, TypeError) as e:
            raise ReleaseCheckError(f"Could not read release information: {e}") from e

    def check(self, local_version: str) -> ReleaseInfo | None:
        """Check for a release newer than local_version.

        Args:
            local_version: Installed version

        Returns:
            The newer release, or None if up to date
        """
        latest = self.fetch_latest()
        if compare_versions(latest.version, local_version) > 0:
            logger.info("Update available: %s (installed %s)", latest.version, local_version)
            return latest
        return None
