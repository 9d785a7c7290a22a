"""
Settings model — loaded from aggregator.yml.

Every field has a default so the service runs with no config file at all.
Relative paths are resolved against the directory holding the config file
(or the working directory when there is none).
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field

# GitHub search never returns more than this many results
MAX_SEARCH_RESULTS = 1000


class GitHubSettings(BaseModel):
    """GitHub API access used by the scanner and health checks."""

    token_env: str = "GITHUB_TOKEN"
    api_url: str = "https://api.github.com"
    search_query: str = "claude-plugin marketplace.json"
    max_results: int = Field(default=100, ge=1, le=MAX_SEARCH_RESULTS)
    timeout: float = 5.0
    offline: bool = False


class RateLimitSettings(BaseModel):
    """Fixed-window limits for write endpoints."""

    feedback_limit: int = Field(default=10, ge=1)
    window_seconds: float = Field(default=60.0, gt=0)


class Settings(BaseModel):
    """Root configuration for the aggregator."""

    name: str = "Claude Marketplace Aggregator"
    data_dir: str = "public/data"
    build_dir: str = "out"
    state_dir: str = ".state"
    scan_dir: str = "data/marketplaces"
    validation_dir: str = "data/plugins"
    cache_ttl_seconds: float = Field(default=300.0, ge=0)
    validation_strict: bool = False

    github: GitHubSettings = Field(default_factory=GitHubSettings)
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)

    def resolve(self, root: Path, value: str) -> Path:
        """Resolve a configured path against ``root``."""
        p = Path(value)
        return p if p.is_absolute() else (root / p)

    def data_path(self, root: Path) -> Path:
        return self.resolve(root, self.data_dir)

    def build_path(self, root: Path) -> Path:
        return self.resolve(root, self.build_dir)

    def state_path(self, root: Path) -> Path:
        return self.resolve(root, self.state_dir)

    def scan_path(self, root: Path) -> Path:
        return self.resolve(root, self.scan_dir)

    def validation_path(self, root: Path) -> Path:
        return self.resolve(root, self.validation_dir)
