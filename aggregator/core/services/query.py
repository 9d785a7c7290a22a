"""
Query parameter parsing shared by the list, search and stats services.

Parsers take raw strings (as they arrive in a query string) and either
return a normalized value or raise QueryError, which the web layer maps
to HTTP 400.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

DEFAULT_LIMIT = 20
MAX_LIMIT = 100


class QueryError(ValueError):
    """Raised when a query parameter is malformed."""

    def __init__(self, message: str, param: str = ""):
        super().__init__(message)
        self.param = param


@dataclass(frozen=True)
class Page:
    """Clamped pagination window."""

    limit: int = DEFAULT_LIMIT
    offset: int = 0

    def slice(self, items: list) -> list:
        return items[self.offset:self.offset + self.limit]

    def to_dict(self, total: int) -> dict:
        return {
            "total": total,
            "limit": self.limit,
            "offset": self.offset,
            "hasMore": self.offset + self.limit < total,
        }


def parse_int(raw: str | None, name: str, default: int) -> int:
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw.strip())
    except ValueError:
        raise QueryError(f"Parameter '{name}' must be an integer", name) from None


def parse_page(limit: str | None, offset: str | None) -> Page:
    """Parse limit/offset; limit is clamped to [1, 100], offset to >= 0."""
    limit_num = parse_int(limit, "limit", DEFAULT_LIMIT)
    offset_num = parse_int(offset, "offset", 0)
    return Page(
        limit=min(max(limit_num, 1), MAX_LIMIT),
        offset=max(offset_num, 0),
    )


def parse_flag(raw: str | None) -> bool:
    """Only the literal string ``true`` enables a flag."""
    return raw == "true"


def split_terms(values: Iterable[str]) -> list[str]:
    """Flatten repeated and comma-separated values, dropping blanks."""
    terms: list[str] = []
    for value in values:
        for part in value.split(","):
            part = part.strip()
            if part:
                terms.append(part)
    return terms


def parse_order(raw: str | None) -> str:
    return "desc" if raw == "desc" else "asc"
