"""
Plugin validator — check the plugin entries declared in scanned manifests.

Works offline against ``<data_dir>/marketplaces.json``: every entry in a
marketplace manifest's ``plugins`` list is checked and reported.

Rules:
    name missing                           error   (invalid)
    description / version / author missing warning
    strict mode: id missing                error   (invalid)
    strict mode: any warning               invalid
"""

from __future__ import annotations

import json
import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from aggregator.core.models.marketplace import Marketplace

logger = logging.getLogger(__name__)


@dataclass
class PluginCheck:
    """Validation outcome for one manifest plugin entry."""

    id: str
    name: str
    marketplace: str
    repository: str = ""
    version: str = ""
    author: str = ""
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "marketplace": self.marketplace,
            "repository": self.repository,
            "version": self.version,
            "author": self.author,
            "isValid": self.is_valid,
            "errors": self.errors,
            "warnings": self.warnings,
            "metadata": self.metadata,
        }


@dataclass
class ValidationReport:
    plugins: list[PluginCheck] = field(default_factory=list)
    strict: bool = False
    validation_date: str = field(default_factory=lambda: datetime.now(UTC).isoformat())
    errors: list[str] = field(default_factory=list)

    @property
    def valid(self) -> list[PluginCheck]:
        return [p for p in self.plugins if p.is_valid]

    @property
    def invalid(self) -> list[PluginCheck]:
        return [p for p in self.plugins if not p.is_valid]

    def summary(self) -> dict[str, Any]:
        total = len(self.plugins)
        return {
            "totalPlugins": total,
            "validPlugins": len(self.valid),
            "invalidPlugins": len(self.invalid),
            "validationRate": round(len(self.valid) / total * 100, 2) if total else 0,
            "validationDate": self.validation_date,
            "strictMode": self.strict,
            "errors": self.errors,
            "commonErrors": dict(Counter(e for p in self.invalid for e in p.errors).most_common()),
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "summary": self.summary(),
            "plugins": [p.to_dict() for p in self.plugins],
        }


def _text(entry: dict[str, Any], key: str) -> str:
    value = entry.get(key)
    if isinstance(value, dict):
        value = value.get("name")
    return str(value).strip() if value else ""


def validate_plugin(entry: dict[str, Any], marketplace: Marketplace, strict: bool = False) -> PluginCheck:
    name = _text(entry, "name")
    check = PluginCheck(
        id=_text(entry, "id") or name,
        name=name,
        marketplace=marketplace.name,
        repository=marketplace.url,
        version=_text(entry, "version"),
        author=_text(entry, "author"),
        metadata=entry,
    )

    if not name:
        check.errors.append("Plugin name is required")
    if not _text(entry, "description"):
        check.warnings.append("Plugin description is missing")
    if not check.version:
        check.warnings.append("Plugin version is not specified")
    if not check.author:
        check.warnings.append("Plugin author is not specified")

    if strict:
        if not _text(entry, "id"):
            check.errors.append("Plugin ID is required in strict mode")
        if check.warnings:
            check.errors.append("Warnings are not allowed in strict mode")

    return check


def validate_marketplaces(marketplaces: list[Marketplace], strict: bool = False) -> ValidationReport:
    report = ValidationReport(strict=strict)
    for marketplace in marketplaces:
        if not marketplace.manifest:
            logger.debug("No manifest for %s", marketplace.name)
            continue
        checks = [validate_plugin(e, marketplace, strict) for e in marketplace.manifest_plugins]
        report.plugins.extend(checks)
        logger.info("Validated %d plugins from %s", len(checks), marketplace.name)
    return report


def save_report(report: ValidationReport, output_dir: Path) -> list[Path]:
    """Write all/valid/invalid plugin lists and the summary."""
    output_dir.mkdir(parents=True, exist_ok=True)
    files = {
        "all-plugins.json": [p.to_dict() for p in report.plugins],
        "valid-plugins.json": [p.to_dict() for p in report.valid],
        "invalid-plugins.json": [p.to_dict() for p in report.invalid],
        "validation-summary.json": report.summary(),
    }
    paths = []
    for filename, data in files.items():
        path = output_dir / filename
        path.write_text(json.dumps(data, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
        paths.append(path)
    logger.info("Validation results saved to %s", output_dir)
    return paths
