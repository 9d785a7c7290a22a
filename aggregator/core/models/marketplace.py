"""
Marketplace model — a cataloged GitHub repository hosting plugins.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from aggregator.core.models.plugin import Plugin

REQUIRED_FIELDS = ("name", "description", "owner")


class Marketplace(BaseModel):
    """A marketplace and the plugins it publishes.

    The scan metadata fields (forks, language, topics, manifest, ...) are
    only present for marketplaces discovered by the scanner.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    description: str = ""
    url: str = ""
    repository_url: str = Field(default="", alias="repositoryUrl")
    owner: str = ""
    stars: int = 0
    plugins: list[Plugin] = Field(default_factory=list)
    category: str = "Community"
    verified: bool = False
    featured: bool = False

    # Scan metadata
    forks: int = 0
    language: str = ""
    license: str = ""
    topics: list[str] = Field(default_factory=list)
    updated_at: str = Field(default="", alias="updatedAt")
    created_at: str = Field(default="", alias="createdAt")
    manifest: dict[str, Any] | None = None

    @property
    def manifest_plugins(self) -> list[dict[str, Any]]:
        """Plugin entries declared in the marketplace manifest."""
        if not self.manifest:
            return []
        entries = self.manifest.get("plugins")
        if not isinstance(entries, list):
            return []
        return [e for e in entries if isinstance(e, dict)]

    @property
    def manifest_owner(self) -> str:
        if not self.manifest:
            return ""
        owner = self.manifest.get("owner")
        if isinstance(owner, dict):
            return str(owner.get("name") or "")
        return ""

    def to_dict(self, include_manifest: bool = False) -> dict:
        exclude = None if include_manifest else {"manifest"}
        return self.model_dump(mode="json", by_alias=True, exclude=exclude)


class MarketplaceCreate(BaseModel):
    """Body of a marketplace submission. Unknown fields are carried through."""

    model_config = ConfigDict(extra="allow")

    name: str = ""
    description: str = ""
    owner: str = ""

    def missing_fields(self) -> list[str]:
        return [f for f in REQUIRED_FIELDS if not getattr(self, f)]

    def build(self, now: datetime | None = None) -> dict:
        """Return the submitted marketplace with server-assigned metadata."""
        now = now or datetime.now(UTC)
        return {
            **self.model_dump(mode="json"),
            "id": f"marketplace-{int(now.timestamp() * 1000)}",
            "stars": 0,
            "plugins": [],
            "verified": False,
            "featured": False,
            "createdAt": now.isoformat(),
        }
