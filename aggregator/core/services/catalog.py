"""
Catalog loader — scanned marketplace data with a bundled fallback.

Reads ``<data_dir>/marketplaces.json`` (written by the scanner) and
derives the plugin list from each marketplace's manifest. When the file
is absent the bundled mock catalog is served; when it is present but
unreadable the mock catalog is served *and* the error is reported, so
callers can surface it without ever failing the request.

Sources:
    real            scanned data loaded from disk
    mock            no scanned data on disk
    mock-fallback   scanned data present but unusable
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from aggregator.core.data import get_registry
from aggregator.core.models.marketplace import Marketplace
from aggregator.core.models.plugin import Plugin
from aggregator.core.services.data_cache import DataCache

logger = logging.getLogger(__name__)

MARKETPLACES_FILE = "marketplaces.json"
LOAD_ERROR = "Failed to load marketplace data"
EXTRACT_ERROR = "Failed to extract plugin data"


class CatalogLoadError(Exception):
    """Raised internally when the scanned data file cannot be used."""


@dataclass
class CatalogSnapshot:
    """One immutable view of the catalog."""

    marketplaces: list[Marketplace] = field(default_factory=list)
    plugins: list[Plugin] = field(default_factory=list)
    last_updated: str = ""
    source: str = "mock"
    plugin_source: str = "mock"
    error: str | None = None
    loading: bool = False
    version: str = "0"

    @property
    def total_count(self) -> int:
        return len(self.marketplaces)

    def get_plugin(self, plugin_id: str) -> Plugin | None:
        for p in self.plugins:
            if p.id == plugin_id:
                return p
        return None

    def get_marketplace(self, marketplace_id: str) -> Marketplace | None:
        for m in self.marketplaces:
            if m.id == marketplace_id:
                return m
        return None

    def plugins_for(self, marketplace: Marketplace) -> list[Plugin]:
        """Plugins published by a marketplace (embedded or by name)."""
        if marketplace.plugins:
            return list(marketplace.plugins)
        return [p for p in self.plugins if p.marketplace == marketplace.name]

    def to_dict(self) -> dict[str, Any]:
        return {
            "marketplaces": [m.to_dict() for m in self.marketplaces],
            "lastUpdated": self.last_updated,
            "totalCount": self.total_count,
            "source": self.source,
            "error": self.error,
        }


# ── Loading ─────────────────────────────────────────────────────────


def _read_marketplaces(path: Path) -> list[Marketplace]:
    """Parse the scanned marketplaces file.

    Accepts ``{"marketplaces": [...]}`` or a bare list. Individual
    entries that fail validation are skipped with a warning.
    """
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise CatalogLoadError(f"Cannot read {path}: {e}") from e

    if isinstance(raw, dict):
        entries = raw.get("marketplaces", [])
    else:
        entries = raw
    if not isinstance(entries, list):
        raise CatalogLoadError(f"Expected a list of marketplaces in {path}")

    marketplaces: list[Marketplace] = []
    for i, entry in enumerate(entries):
        if not isinstance(entry, dict):
            logger.warning("Skipping non-object marketplace entry #%d in %s", i, path)
            continue
        entry = {**entry, "id": str(entry.get("id", ""))}
        try:
            marketplaces.append(Marketplace.model_validate(entry))
        except ValidationError as e:
            logger.warning("Skipping invalid marketplace entry #%d in %s: %s", i, path, e)
    return marketplaces


def extract_plugins(marketplaces: list[Marketplace]) -> list[Plugin]:
    """Derive plugin entries from each marketplace's manifest.

    Plugins do not carry their own stars; the marketplace's are used.
    The first plugin of each marketplace is marked featured.
    """
    now = datetime.now(UTC).isoformat()
    plugins: list[Plugin] = []

    for marketplace in marketplaces:
        author = marketplace.manifest_owner or marketplace.owner or "Unknown"
        for index, entry in enumerate(marketplace.manifest_plugins):
            name = str(entry.get("name") or f"Plugin {index + 1}")
            tags = entry.get("tags")
            plugins.append(Plugin(
                id=f"{marketplace.id}-{name}",
                name=name,
                description=str(entry.get("description") or "No description available"),
                category=str(entry.get("category") or "General"),
                tags=[str(t) for t in tags] if isinstance(tags, list) else [],
                author=author,
                author_url=marketplace.repository_url or marketplace.url,
                repository_url=marketplace.repository_url or marketplace.url,
                stars=marketplace.stars,
                downloads=0,
                last_updated=marketplace.updated_at or now,
                version=str(entry.get("version") or "1.0.0"),
                license=marketplace.license or "MIT",
                marketplace=marketplace.name,
                marketplace_url=marketplace.url,
                featured=index == 0,
                verified=marketplace.verified,
            ))

    return plugins


def data_version(data_dir: Path) -> str:
    """Identity of the scanned data on disk (the data file's mtime)."""
    try:
        return str((data_dir / MARKETPLACES_FILE).stat().st_mtime_ns)
    except OSError:
        return "0"


def load_catalog(data_dir: Path) -> CatalogSnapshot:
    """Load the catalog from ``data_dir``, falling back to bundled data.

    Never raises: failures are reported on the snapshot.
    """
    registry = get_registry()
    now = datetime.now(UTC).isoformat()
    path = data_dir / MARKETPLACES_FILE

    snapshot = CatalogSnapshot(last_updated=now, version=data_version(data_dir))

    if not path.is_file():
        logger.info("No scanned data at %s, using mock catalog", path)
        snapshot.marketplaces = list(registry.mock_marketplaces)
        snapshot.source = "mock"
    else:
        try:
            snapshot.marketplaces = _read_marketplaces(path)
            snapshot.source = "real"
            logger.info("Loaded %d marketplaces from %s", len(snapshot.marketplaces), path)
        except CatalogLoadError as e:
            logger.error("Error loading marketplace data: %s", e)
            snapshot.marketplaces = list(registry.mock_marketplaces)
            snapshot.source = "mock-fallback"
            snapshot.error = LOAD_ERROR

    if snapshot.source == "real":
        try:
            extracted = extract_plugins(snapshot.marketplaces)
        except (ValidationError, TypeError, ValueError) as e:
            logger.error("Error extracting plugins: %s", e)
            extracted = []
            snapshot.error = snapshot.error or EXTRACT_ERROR
        if extracted:
            snapshot.plugins = extracted
            snapshot.plugin_source = "real"
            logger.info(
                "Extracted %d plugins from %d marketplaces",
                len(extracted), len(snapshot.marketplaces),
            )
            return snapshot

    snapshot.plugins = list(registry.mock_plugins)
    snapshot.plugin_source = "mock"
    return snapshot


# ── Store ───────────────────────────────────────────────────────────


class CatalogStore:
    """Memoizes the catalog snapshot for a data directory.

    The cache key includes the data file's mtime, so a rescan is picked
    up on the next request without waiting for the TTL. Snapshots of
    superseded data are dropped when the mtime changes.
    """

    def __init__(self, data_dir: Path, ttl: float = 300.0, cache: DataCache | None = None):
        self.data_dir = data_dir
        self.ttl = ttl
        self.cache = cache or DataCache(default_ttl=ttl)
        self._current_key: str | None = None

    def _key(self) -> str:
        return f"catalog:{data_version(self.data_dir)}"

    def snapshot(self) -> CatalogSnapshot:
        key = self._key()
        if key != self._current_key:
            self.cache.invalidate_prefix("catalog:")
            self._current_key = key
        value, _hit = self.cache.get_or_compute(
            key, lambda: load_catalog(self.data_dir), self.ttl,
        )
        return value

    def invalidate(self) -> None:
        self.cache.clear()
