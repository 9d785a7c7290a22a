"""
Plugin model — a cataloged tool/extension entry.

Field names are snake_case in Python and camelCase on the wire so the
JSON shape matches the static data files served to the front end.
"""

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field

REQUIRED_FIELDS = ("name", "description", "author")


class Plugin(BaseModel):
    """A plugin listed by a marketplace."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    description: str = ""
    category: str = "General"
    tags: list[str] = Field(default_factory=list)
    author: str = "Unknown"
    author_url: str = Field(default="", alias="authorUrl")
    repository_url: str = Field(default="", alias="repositoryUrl")
    stars: int = 0
    downloads: int = 0
    last_updated: str = Field(default="", alias="lastUpdated")
    version: str = "1.0.0"
    license: str = "MIT"
    marketplace: str = ""
    marketplace_url: str = Field(default="", alias="marketplaceUrl")
    featured: bool = False
    verified: bool = False

    def to_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class PluginCreate(BaseModel):
    """Body of a plugin submission. Unknown fields are carried through."""

    model_config = ConfigDict(extra="allow")

    name: str = ""
    description: str = ""
    author: str = ""

    def missing_fields(self) -> list[str]:
        return [f for f in REQUIRED_FIELDS if not getattr(self, f)]

    def build(self, now: datetime | None = None) -> dict:
        """Return the submitted plugin with server-assigned metadata."""
        now = now or datetime.now(UTC)
        return {
            **self.model_dump(mode="json"),
            "id": f"plugin-{int(now.timestamp() * 1000)}",
            "stars": 0,
            "downloads": 0,
            "lastUpdated": now.date().isoformat(),
            "verified": False,
            "featured": False,
            "createdAt": now.isoformat(),
        }
