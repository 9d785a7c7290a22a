"""
GitHub REST client — the handful of calls the scanner and health checks need.

Plain ``urllib.request`` with JSON decoding. Every call goes through a
circuit breaker: after repeated failures the client stops calling the
API for a while and raises ``GitHubError`` straight away.
"""

from __future__ import annotations

import base64
import json
import logging
import os
import urllib.error
import urllib.parse
import urllib.request
from typing import Any

from aggregator import __version__
from aggregator.core.models.settings import GitHubSettings
from aggregator.core.reliability.circuit_breaker import CircuitBreaker

logger = logging.getLogger(__name__)

USER_AGENT = f"claude-marketplace-aggregator/{__version__}"
ACCEPT = "application/vnd.github.v3+json"


class GitHubError(Exception):
    """Raised when a GitHub API call fails."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status

    @property
    def not_found(self) -> bool:
        return self.status == 404


class GitHubClient:
    """Minimal GitHub API client.

    Args:
        token: Personal access token (optional; unauthenticated calls
            have a much lower rate limit).
        api_url: API base URL.
        timeout: Per-request timeout in seconds.
        breaker: Circuit breaker shared by all calls.
    """

    def __init__(
        self,
        token: str | None = None,
        api_url: str = "https://api.github.com",
        timeout: float = 5.0,
        breaker: CircuitBreaker | None = None,
    ):
        self.token = token
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.breaker = breaker or CircuitBreaker(name="github", failure_threshold=3, recovery_timeout=60.0)

    @classmethod
    def from_settings(cls, settings: GitHubSettings) -> GitHubClient:
        return cls(
            token=os.environ.get(settings.token_env) or None,
            api_url=settings.api_url,
            timeout=settings.timeout,
        )

    # ── Transport ───────────────────────────────────────────────────

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": ACCEPT, "User-Agent": USER_AGENT}
        if self.token:
            headers["Authorization"] = f"token {self.token}"
        return headers

    def _fetch(self, url: str) -> Any:
        req = urllib.request.Request(url, headers=self._headers())
        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as resp:
                return json.loads(resp.read().decode("utf-8"))
        except urllib.error.HTTPError as e:
            raise GitHubError(f"GitHub API returned {e.code} for {url}", status=e.code) from e
        except urllib.error.URLError as e:
            raise GitHubError(f"GitHub API unreachable: {e.reason}") from e
        except (TimeoutError, json.JSONDecodeError) as e:
            raise GitHubError(f"GitHub API request failed: {e}") from e

    def get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """GET ``path`` (relative to the API root) and decode the JSON body.

        A 404 does not count against the circuit breaker: a missing
        manifest file is an expected answer, not an outage.

        Raises:
            GitHubError: On HTTP, network or decoding failures, or while
                the circuit is open.
        """
        url = f"{self.api_url}/{path.lstrip('/')}"
        if params:
            url = f"{url}?{urllib.parse.urlencode(params)}"

        if not self.breaker.allow_request():
            raise GitHubError(f"Circuit '{self.breaker.name}' is open; GitHub calls suspended")

        logger.debug("GET %s", url)
        try:
            data = self._fetch(url)
        except GitHubError as e:
            if e.not_found:
                self.breaker.record_success()
            else:
                self.breaker.record_failure()
            raise
        self.breaker.record_success()
        return data

    # ── Endpoints ───────────────────────────────────────────────────

    def rate_limit(self) -> dict[str, Any]:
        """The ``rate`` block of ``/rate_limit`` (limit, remaining, reset, used)."""
        data = self.get("/rate_limit")
        return data.get("rate", {}) if isinstance(data, dict) else {}

    def search_repositories(self, query: str, page: int = 1, per_page: int = 100) -> list[dict[str, Any]]:
        data = self.get("/search/repositories", {
            "q": query,
            "sort": "updated",
            "order": "desc",
            "per_page": per_page,
            "page": page,
        })
        items = data.get("items", []) if isinstance(data, dict) else []
        return [i for i in items if isinstance(i, dict)]

    def get_repository(self, owner: str, repo: str) -> dict[str, Any]:
        return self.get(f"/repos/{owner}/{repo}")

    def get_content(self, owner: str, repo: str, path: str) -> str | None:
        """Decoded text of a file, or None when the path is not a file."""
        data = self.get(f"/repos/{owner}/{repo}/contents/{path}")
        if not isinstance(data, dict) or "content" not in data:
            return None
        try:
            return base64.b64decode(data["content"]).decode("utf-8")
        except (ValueError, UnicodeDecodeError) as e:
            raise GitHubError(f"Cannot decode {owner}/{repo}/{path}: {e}") from e
