"""
Marketplace scanner — discover marketplace repositories on GitHub.

Searches GitHub for repositories matching the configured query, pulls
repository details, and looks for a marketplace manifest at each of the
known paths. Results are written twice:

    <scan_dir>/raw.json, processed.json, summary.json   scan artifacts
    <data_dir>/marketplaces.json, plugins.json, index.json  served catalog
"""

from __future__ import annotations

import json
import logging
import time
from collections import Counter
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Protocol

from aggregator.core.models.marketplace import Marketplace
from aggregator.core.services.catalog import MARKETPLACES_FILE, extract_plugins
from aggregator.core.services.github_client import GitHubError

logger = logging.getLogger(__name__)

MANIFEST_PATHS = (
    ".claude-plugin/marketplace.json",
    "marketplace.json",
    "claude-marketplace.json",
    "plugins/marketplace.json",
)
PER_PAGE = 100
PLUGINS_FILE = "plugins.json"
INDEX_FILE = "index.json"


class RepositorySource(Protocol):
    """The subset of GitHubClient the scanner uses."""

    def search_repositories(self, query: str, page: int = 1, per_page: int = 100) -> list[dict[str, Any]]: ...

    def get_repository(self, owner: str, repo: str) -> dict[str, Any]: ...

    def get_content(self, owner: str, repo: str, path: str) -> str | None: ...


@dataclass
class ScanResult:
    marketplaces: list[Marketplace] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    started_at: str = ""
    duration_seconds: float = 0.0
    query: str = ""

    @property
    def with_manifests(self) -> int:
        return sum(1 for m in self.marketplaces if m.manifest)

    @property
    def success_rate(self) -> float:
        attempted = len(self.marketplaces) + len(self.errors)
        if not attempted:
            return 100.0
        return round(len(self.marketplaces) / attempted * 100, 1)

    def to_dict(self) -> dict[str, Any]:
        return {
            "query": self.query,
            "startedAt": self.started_at,
            "durationSeconds": round(self.duration_seconds, 2),
            "totalFound": len(self.marketplaces),
            "withManifests": self.with_manifests,
            "errors": self.errors,
        }


def language_stats(marketplaces: list[Marketplace]) -> dict[str, int]:
    counts = Counter(m.language or "Unknown" for m in marketplaces)
    return dict(counts.most_common())


def _write_json(path: Path, data: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
    logger.debug("Wrote %s", path)


class MarketplaceScanner:
    """Pages through GitHub search results and builds marketplace records.

    Args:
        client: GitHub client (anything with the RepositorySource calls).
        query: Repository search query.
        max_results: Stop once this many marketplaces are collected.
        page_delay: Seconds to sleep between search pages.
        sleep: Sleep function (injectable for tests).
    """

    def __init__(
        self,
        client: RepositorySource,
        query: str = "claude-plugin marketplace.json",
        max_results: int = 100,
        page_delay: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.client = client
        self.query = query
        self.max_results = max_results
        self.page_delay = page_delay
        self._sleep = sleep

    def scan(self) -> ScanResult:
        """Run the search and process every repository found.

        Per-repository failures are recorded on the result and skipped.

        Raises:
            GitHubError: If the search itself fails.
        """
        result = ScanResult(query=self.query, started_at=datetime.now(UTC).isoformat())
        start = time.monotonic()
        logger.info("Scanning GitHub: query=%r max=%d", self.query, self.max_results)

        # page size stays fixed so page N starts at (N-1) * per_page
        per_page = min(PER_PAGE, self.max_results)
        seen: set[str] = set()
        page = 1
        while len(result.marketplaces) < self.max_results:
            items = self.client.search_repositories(self.query, page=page, per_page=per_page)
            if not items:
                logger.info("No more search results after page %d", page - 1)
                break

            logger.info("Page %d: %d repositories", page, len(items))
            for item in items:
                full_name = item.get("full_name") or item.get("name", "?")
                if full_name in seen:
                    logger.debug("Skipping duplicate search result %s", full_name)
                    continue
                seen.add(full_name)
                try:
                    result.marketplaces.append(self.process_repository(item))
                except (GitHubError, KeyError, TypeError, ValueError) as e:
                    logger.warning("Error processing %s: %s", full_name, e)
                    result.errors.append(f"{full_name}: {e}")
                if len(result.marketplaces) >= self.max_results:
                    break

            if len(items) < per_page:
                break
            page += 1
            if self.page_delay:
                self._sleep(self.page_delay)

        result.duration_seconds = time.monotonic() - start
        logger.info(
            "Scan complete: %d marketplaces (%d with manifests), %d errors",
            len(result.marketplaces), result.with_manifests, len(result.errors),
        )
        return result

    def process_repository(self, item: dict[str, Any]) -> Marketplace:
        owner = item["owner"]["login"]
        name = item["name"]
        repo = self.client.get_repository(owner, name)
        license_info = repo.get("license") or {}

        return Marketplace(
            id=str(repo["id"]),
            name=repo.get("name") or name,
            description=repo.get("description") or "",
            url=repo.get("html_url") or "",
            repository_url=repo.get("html_url") or "",
            owner=(repo.get("owner") or {}).get("login") or owner,
            stars=repo.get("stargazers_count") or 0,
            forks=repo.get("forks_count") or 0,
            language=repo.get("language") or "Unknown",
            updated_at=repo.get("updated_at") or "",
            created_at=repo.get("created_at") or "",
            license=license_info.get("name") or "None",
            topics=list(repo.get("topics") or []),
            manifest=self.fetch_manifest(owner, name),
        )

    def fetch_manifest(self, owner: str, repo: str) -> dict[str, Any] | None:
        """First manifest found among MANIFEST_PATHS, or None."""
        for path in MANIFEST_PATHS:
            try:
                content = self.client.get_content(owner, repo, path)
            except GitHubError as e:
                if not e.not_found:
                    logger.debug("Manifest fetch failed for %s/%s/%s: %s", owner, repo, path, e)
                continue
            if content is None:
                continue
            try:
                manifest = json.loads(content)
            except json.JSONDecodeError:
                logger.warning("Invalid JSON manifest at %s/%s/%s", owner, repo, path)
                continue
            if isinstance(manifest, dict):
                return manifest
        logger.debug("No manifest found for %s/%s", owner, repo)
        return None

    # ── Output ──────────────────────────────────────────────────────

    def save_results(self, result: ScanResult, scan_dir: Path) -> list[Path]:
        """Write raw, processed and summary scan artifacts."""
        marketplaces = result.marketplaces
        raw = [m.to_dict(include_manifest=True) for m in marketplaces]
        processed = [
            {
                "id": m.id,
                "name": m.name,
                "description": m.description,
                "url": m.url,
                "stars": m.stars,
                "forks": m.forks,
                "language": m.language,
                "updatedAt": m.updated_at,
                "topics": m.topics,
                "hasManifest": bool(m.manifest),
            }
            for m in marketplaces
        ]
        top = sorted(marketplaces, key=lambda m: m.stars, reverse=True)[:10]
        summary = {
            **result.to_dict(),
            "lastUpdated": datetime.now(UTC).isoformat(),
            "searchQuery": self.query,
            "languages": language_stats(marketplaces),
            "topRepos": [{"name": m.name, "stars": m.stars, "url": m.url} for m in top],
        }

        paths = [scan_dir / "raw.json", scan_dir / "processed.json", scan_dir / "summary.json"]
        for path, data in zip(paths, (raw, processed, summary)):
            _write_json(path, data)
        logger.info("Scan results saved to %s", scan_dir)
        return paths

    def write_public_data(self, result: ScanResult, data_dir: Path) -> list[Path]:
        """Write the catalog files the web app serves."""
        marketplaces = result.marketplaces
        now = datetime.now(UTC).isoformat()
        total_stars = sum(m.stars for m in marketplaces)
        plugins = extract_plugins(marketplaces)

        marketplaces_data = {
            "marketplaces": [m.to_dict(include_manifest=True) for m in marketplaces],
            "lastUpdated": now,
            "totalCount": len(marketplaces),
            "source": "github-scan",
            "summary": {
                "totalMarketplaces": len(marketplaces),
                "withManifests": result.with_manifests,
                "totalStars": total_stars,
                "averageStars": round(total_stars / len(marketplaces)) if marketplaces else 0,
                "topLanguages": language_stats(marketplaces),
            },
        }
        index_data = {
            "stats": {
                "totalMarketplaces": len(marketplaces),
                "totalPlugins": len(plugins),
                "totalStars": total_stars,
                "totalDownloads": sum(p.downloads for p in plugins),
                "lastUpdated": now,
            },
            "categories": [
                {"id": name.lower(), "name": name, "count": count}
                for name, count in Counter(p.category for p in plugins).most_common()
            ],
            "metadata": {
                "lastScan": result.started_at or now,
                "scanDuration": round(result.duration_seconds, 2),
                "errorCount": len(result.errors),
                "successRate": result.success_rate,
                "searchQuery": self.query,
            },
            "lastUpdated": now,
        }

        paths = [data_dir / MARKETPLACES_FILE, data_dir / PLUGINS_FILE, data_dir / INDEX_FILE]
        for path, data in zip(paths, (marketplaces_data, [p.to_dict() for p in plugins], index_data)):
            _write_json(path, data)
        logger.info("Catalog data written to %s (%d marketplaces)", data_dir, len(marketplaces))
        return paths
