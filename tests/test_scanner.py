"""
Tests for the marketplace scanner and the plugin validator.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from aggregator.core.models.marketplace import Marketplace
from aggregator.core.services import scanner as scanner_module
from aggregator.core.services.catalog import load_catalog
from aggregator.core.services.github_client import GitHubError
from aggregator.core.services.plugin_validator import (
    save_report,
    validate_marketplaces,
    validate_plugin,
)
from aggregator.core.services.scanner import MarketplaceScanner, ScanResult, language_stats
from tests.fakes import SCANNED_MARKETPLACES, FakeGitHub, github_repo

MANIFEST = {
    "name": "git-tools",
    "owner": {"name": "Alice Dev"},
    "plugins": [
        {"name": "git-helper", "description": "Git helper", "version": "1.0.0", "category": "Development"},
        {"name": "pr-bot", "description": "Opens PRs", "category": "Development"},
    ],
}


def _fake(**extra_repos: Any) -> FakeGitHub:
    repos = {
        "alice/git-tools": (github_repo("alice", "git-tools", stars=120), MANIFEST),
        "bob/notes": (github_repo("bob", "notes", stars=7, language="Python"), None),
    }
    repos.update(extra_repos)
    return FakeGitHub(repos)


def _scanner(client: Any, max_results: int = 10) -> MarketplaceScanner:
    return MarketplaceScanner(client, query="claude-plugin", max_results=max_results, sleep=lambda s: None)


# ── Scanning ────────────────────────────────────────────────────────


class TestScan:
    def test_collects_marketplaces(self):
        result = _scanner(_fake()).scan()
        assert [m.name for m in result.marketplaces] == ["git-tools", "notes"]
        assert result.with_manifests == 1
        assert result.errors == []
        assert result.success_rate == 100.0

    def test_repository_mapping(self):
        m = _scanner(_fake()).scan().marketplaces[0]
        assert m.id == str(sum(map(ord, "alice/git-tools")))
        assert m.owner == "alice"
        assert m.stars == 120
        assert m.license == "MIT License"
        assert m.url == "https://github.com/alice/git-tools"
        assert m.manifest == MANIFEST

    def test_max_results_caps_page_size(self):
        fake = _fake(**{"carol/extra": (github_repo("carol", "extra"), None)})
        result = _scanner(fake, max_results=2).scan()
        assert len(result.marketplaces) == 2
        assert fake.search_calls == [("claude-plugin", 1, 2)]

    def test_follows_pages(self, monkeypatch):
        monkeypatch.setattr(scanner_module, "PER_PAGE", 2)
        sleeps: list[float] = []
        fake = _fake(**{"carol/extra": (github_repo("carol", "extra"), None)})
        scanner = MarketplaceScanner(fake, query="q", max_results=10, page_delay=0.5, sleep=sleeps.append)
        assert len(scanner.scan().marketplaces) == 3
        assert fake.search_calls == [("q", 1, 2), ("q", 2, 2)]
        assert sleeps == [0.5]

    def test_partial_last_page_keeps_page_size(self):
        repos = {f"u/r{i}": (github_repo("u", f"r{i}"), None) for i in range(200)}
        fake = FakeGitHub(repos)
        result = MarketplaceScanner(fake, query="q", max_results=150, page_delay=0, sleep=lambda s: None).scan()
        assert fake.search_calls == [("q", 1, 100), ("q", 2, 100)]
        urls = [m.url for m in result.marketplaces]
        assert len(urls) == 150
        assert len(set(urls)) == 150
        assert urls[-1] == "https://github.com/u/r149"

    def test_duplicate_search_results_skipped(self, monkeypatch):
        monkeypatch.setattr(scanner_module, "PER_PAGE", 2)

        class Overlapping(FakeGitHub):
            def search_repositories(self, query: str, page: int = 1, per_page: int = 100) -> list[dict[str, Any]]:
                self.search_calls.append((query, page, per_page))
                items = [repo for repo, _manifest in self.repos.values()]
                return {1: items[0:2], 2: items[1:3]}.get(page, [])

        fake = Overlapping({f"o/{n}": (github_repo("o", n), None) for n in ("a", "b", "c")})
        result = MarketplaceScanner(fake, query="q", max_results=10, sleep=lambda s: None).scan()
        assert [m.name for m in result.marketplaces] == ["a", "b", "c"]
        assert len(fake.search_calls) == 3

    def test_per_repository_errors_recorded(self):
        broken = {"name": "broken", "full_name": "x/broken"}  # no owner
        result = _scanner(_fake(**{"x/broken": (broken, None)})).scan()
        assert len(result.marketplaces) == 2
        assert len(result.errors) == 1
        assert result.errors[0].startswith("x/broken:")
        assert result.success_rate == pytest.approx(66.7)

    def test_search_failure_raises(self):
        class Down(FakeGitHub):
            def search_repositories(self, query: str, page: int = 1, per_page: int = 100) -> list[dict[str, Any]]:
                raise GitHubError("GitHub API returned 503", status=503)

        with pytest.raises(GitHubError):
            _scanner(Down()).scan()

    def test_invalid_manifest_json_skipped(self):
        class BadManifest(FakeGitHub):
            def get_content(self, owner: str, repo: str, path: str) -> str | None:
                if path == "marketplace.json":
                    return json.dumps({"plugins": []})
                return "{not json"

        fake = BadManifest({"o/r": (github_repo("o", "r"), None)})
        assert _scanner(fake).fetch_manifest("o", "r") == {"plugins": []}

    def test_language_stats(self):
        ms = [Marketplace(id="1", name="a", language="Go"), Marketplace(id="2", name="b", language="Go"),
              Marketplace(id="3", name="c", language="")]
        assert language_stats(ms) == {"Go": 2, "Unknown": 1}


# ── Output files ────────────────────────────────────────────────────


class TestScanOutput:
    @pytest.fixture
    def scanned(self) -> tuple[MarketplaceScanner, ScanResult]:
        scanner = _scanner(_fake())
        return scanner, scanner.scan()

    def test_save_results(self, tmp_path: Path, scanned):
        scanner, result = scanned
        paths = scanner.save_results(result, tmp_path / "scan")
        assert [p.name for p in paths] == ["raw.json", "processed.json", "summary.json"]

        raw = json.loads(paths[0].read_text())
        assert raw[0]["manifest"] == MANIFEST
        processed = json.loads(paths[1].read_text())
        assert [p["hasManifest"] for p in processed] == [True, False]
        summary = json.loads(paths[2].read_text())
        assert summary["totalFound"] == 2
        assert summary["languages"] == {"TypeScript": 1, "Python": 1}
        assert summary["topRepos"][0]["name"] == "git-tools"

    def test_write_public_data_round_trips(self, tmp_path: Path, scanned):
        scanner, result = scanned
        data_dir = tmp_path / "public" / "data"
        scanner.write_public_data(result, data_dir)

        index = json.loads((data_dir / "index.json").read_text())
        assert index["stats"]["totalMarketplaces"] == 2
        assert index["stats"]["totalPlugins"] == 2
        assert index["stats"]["totalStars"] == 127
        assert index["categories"] == [{"id": "development", "name": "Development", "count": 2}]

        plugins = json.loads((data_dir / "plugins.json").read_text())
        assert [p["name"] for p in plugins] == ["git-helper", "pr-bot"]
        assert plugins[0]["author"] == "Alice Dev"

        snapshot = load_catalog(data_dir)
        assert snapshot.source == "real"
        assert [p.name for p in snapshot.plugins] == ["git-helper", "pr-bot"]


# ── Validator ───────────────────────────────────────────────────────


def _marketplaces() -> list[Marketplace]:
    return [Marketplace.model_validate(m) for m in SCANNED_MARKETPLACES]


class TestValidatePlugin:
    def test_missing_name_is_error(self):
        check = validate_plugin({"description": "x"}, _marketplaces()[0])
        assert not check.is_valid
        assert "Plugin name is required" in check.errors

    def test_warnings_only_is_valid(self):
        check = validate_plugin({"name": "a"}, _marketplaces()[0])
        assert check.is_valid
        assert len(check.warnings) == 3

    def test_author_object(self):
        check = validate_plugin({"name": "a", "author": {"name": "Ann"}}, _marketplaces()[0])
        assert check.author == "Ann"

    def test_id_defaults_to_name(self):
        assert validate_plugin({"name": "a"}, _marketplaces()[0]).id == "a"

    def test_strict_requires_id_and_no_warnings(self):
        check = validate_plugin({"name": "a"}, _marketplaces()[0], strict=True)
        assert "Plugin ID is required in strict mode" in check.errors
        assert "Warnings are not allowed in strict mode" in check.errors

    def test_strict_complete_entry_passes(self):
        entry = {"id": "a", "name": "a", "description": "d", "version": "1.0.0", "author": "x"}
        assert validate_plugin(entry, _marketplaces()[0], strict=True).is_valid


class TestValidateMarketplaces:
    def test_lenient(self):
        report = validate_marketplaces(_marketplaces())
        # empty-shelf has no manifest
        assert [p.name for p in report.plugins] == ["git-helper", "commit-writer", "pytest-runner"]
        assert report.summary()["validPlugins"] == 3
        assert report.summary()["validationRate"] == 100.0

    def test_strict(self):
        summary = validate_marketplaces(_marketplaces(), strict=True).summary()
        assert summary["invalidPlugins"] == 3
        assert summary["strictMode"] is True
        assert summary["commonErrors"]["Plugin ID is required in strict mode"] == 3

    def test_empty(self):
        assert validate_marketplaces([]).summary()["validationRate"] == 0

    def test_save_report(self, tmp_path: Path):
        report = validate_marketplaces(_marketplaces(), strict=True)
        paths = save_report(report, tmp_path / "plugins")
        assert {p.name for p in paths} == {
            "all-plugins.json", "valid-plugins.json", "invalid-plugins.json", "validation-summary.json",
        }
        assert json.loads((tmp_path / "plugins" / "valid-plugins.json").read_text()) == []
        assert len(json.loads((tmp_path / "plugins" / "all-plugins.json").read_text())) == 3
