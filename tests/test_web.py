"""
Tests for the web server — API routes and rendered pages.

Uses Flask's test client; no real server is started.
"""

from __future__ import annotations

import json
import os
from pathlib import Path

import pytest

from aggregator.core.models.settings import GitHubSettings, RateLimitSettings, Settings
from aggregator.core.observability import health
from aggregator.core.use_cases import status
from aggregator.ui.web.server import create_app
from tests.fakes import FakeGitHub


@pytest.fixture
def low_memory(monkeypatch):
    monkeypatch.setattr(health, "memory_usage_mb", lambda: 100.0)
    monkeypatch.setattr(status, "memory_usage_mb", lambda: 100.0)


# ── Plugins API ─────────────────────────────────────────────────────


class TestPluginsApi:
    def test_list_mock_catalog(self, client):
        resp = client.get("/api/plugins")
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["pagination"]["total"] == 6
        assert data["sort"] == {"by": "name", "order": "asc"}
        # default name sort
        names = [p["name"] for p in data["plugins"]]
        assert names == sorted(names, key=str.lower)

    def test_list_scanned(self, scanned_client):
        data = scanned_client.get("/api/plugins?category=testing").get_json()
        assert [p["name"] for p in data["plugins"]] == ["pytest-runner"]
        assert data["filters"]["category"] == "testing"

    def test_tags_and_pagination(self, scanned_client):
        data = scanned_client.get("/api/plugins?tags=git&limit=1&offset=1").get_json()
        assert len(data["plugins"]) == 1
        assert data["pagination"] == {"total": 2, "limit": 1, "offset": 1, "hasMore": False}

    def test_bad_limit(self, client):
        resp = client.get("/api/plugins?limit=lots")
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Bad Request"

    def test_detail(self, client):
        resp = client.get("/api/plugins/code-review-assistant")
        assert resp.status_code == 200
        assert resp.get_json()["plugin"]["name"] == "Code Review Assistant"

    def test_detail_missing(self, client):
        resp = client.get("/api/plugins/nope")
        assert resp.status_code == 404
        assert resp.get_json() == {"error": "Not Found", "message": "Plugin 'nope' not found"}

    def test_submit(self, client):
        resp = client.post("/api/plugins", json={"name": "New", "description": "d", "author": "me", "tags": ["x"]})
        assert resp.status_code == 201
        data = resp.get_json()
        assert data["message"] == "Plugin created successfully"
        assert data["plugin"]["id"].startswith("plugin-")
        assert data["plugin"]["verified"] is False
        assert data["plugin"]["tags"] == ["x"]

    def test_submit_missing_fields(self, client):
        resp = client.post("/api/plugins", json={"name": "New"})
        assert resp.status_code == 400
        assert resp.get_json()["message"] == "Missing required fields: name, description, author"

    def test_submit_not_json(self, client):
        resp = client.post("/api/plugins", data="name=x", content_type="application/x-www-form-urlencoded")
        assert resp.status_code == 400

    def test_method_not_allowed(self, client):
        resp = client.put("/api/plugins")
        assert resp.status_code == 405
        assert resp.headers["Allow"] == "GET, POST"
        assert resp.get_json()["error"] == "Method Not Allowed"


# ── Marketplaces API ────────────────────────────────────────────────


class TestMarketplacesApi:
    def test_list(self, client):
        data = client.get("/api/marketplaces?sort=stars").get_json()
        assert data["pagination"]["total"] == 3
        stars = [m["stars"] for m in data["marketplaces"]]
        assert stars == sorted(stars, reverse=True)

    def test_detail_with_plugins(self, client):
        data = client.get("/api/marketplaces/official-claude-marketplace").get_json()
        assert data["marketplace"]["id"] == "official-claude-marketplace"
        assert data["pluginCount"] == 3
        assert len(data["plugins"]) == 3

    def test_detail_scanned(self, scanned_client):
        data = scanned_client.get("/api/marketplaces/alice-git-tools").get_json()
        assert [p["name"] for p in data["plugins"]] == ["git-helper", "commit-writer"]
        assert "manifest" not in data["marketplace"]

    def test_detail_missing(self, client):
        assert client.get("/api/marketplaces/nope").status_code == 404

    def test_submit(self, client):
        resp = client.post("/api/marketplaces", json={"name": "M", "description": "d", "owner": "o"})
        assert resp.status_code == 201
        assert resp.get_json()["marketplace"]["plugins"] == []

    def test_submit_missing_owner(self, client):
        resp = client.post("/api/marketplaces", json={"name": "M", "description": "d"})
        assert resp.status_code == 400

    def test_delete_not_allowed(self, client):
        resp = client.delete("/api/marketplaces")
        assert resp.status_code == 405
        assert resp.headers["Allow"] == "GET, POST"


# ── Search API ──────────────────────────────────────────────────────


class TestSearchApi:
    def test_search(self, scanned_client):
        data = scanned_client.get("/api/search?q=git").get_json()
        assert data["query"] == "git"
        assert data["results"]["plugins"][0]["name"] == "git-helper"
        assert data["results"]["marketplaces"][0]["name"] == "git-tools"

    def test_missing_query(self, client):
        resp = client.get("/api/search")
        assert resp.status_code == 400

    def test_bad_type(self, client):
        assert client.get("/api/search?q=x&type=users").status_code == 400

    def test_post_not_allowed(self, client):
        resp = client.post("/api/search")
        assert resp.status_code == 405
        assert resp.headers["Allow"] == "GET"


# ── Ecosystem stats ─────────────────────────────────────────────────


class TestEcosystemStats:
    def test_full_payload(self, client):
        resp = client.get("/api/ecosystem-stats")
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["success"] is True
        assert set(body["data"]) == {"overview", "qualityIndicators", "growthTrends", "categoryAnalytics"}
        assert body["meta"]["dataSource"] == "mock"
        assert body["meta"]["section"] == "all"
        assert resp.headers["Access-Control-Allow-Origin"] == "*"
        assert resp.headers["Cache-Control"] == "public, max-age=300"

    def test_cache_hit(self, client):
        first = client.get("/api/ecosystem-stats?overview").get_json()
        second = client.get("/api/ecosystem-stats?overview").get_json()
        assert first["meta"]["cacheStatus"] == "miss"
        assert second["meta"]["cacheStatus"] == "hit"
        assert second["data"] == first["data"]

    def test_force_refresh(self, client):
        client.get("/api/ecosystem-stats?overview")
        resp = client.get("/api/ecosystem-stats?overview&forceRefresh=true")
        assert resp.get_json()["meta"]["cacheStatus"] == "miss"
        assert resp.headers["Cache-Control"] == "public, max-age=0"

    def test_rescan_invalidates_cached_stats(self, scanned_client, data_dir: Path):
        first = scanned_client.get("/api/ecosystem-stats?overview").get_json()
        assert first["data"]["totalMarketplaces"] == 3

        path = data_dir / "marketplaces.json"
        path.write_text(json.dumps([{"id": "a", "name": "a"}, {"id": "b", "name": "b"}]))
        st = path.stat()
        os.utime(path, ns=(st.st_atime_ns, st.st_mtime_ns + 1_000_000_000))

        listing = scanned_client.get("/api/marketplaces").get_json()
        stats = scanned_client.get("/api/ecosystem-stats?overview").get_json()
        assert listing["pagination"]["total"] == 2
        assert stats["meta"]["cacheStatus"] == "miss"
        assert stats["data"]["totalMarketplaces"] == 2

    def test_section(self, client):
        body = client.get("/api/ecosystem-stats?metric=quality").get_json()
        assert body["meta"]["section"] == "quality"
        assert "verification" in body["data"]

    def test_invalid_period(self, client):
        resp = client.get("/api/ecosystem-stats?period=forever")
        assert resp.status_code == 400
        error = resp.get_json()["error"]
        assert error["code"] == "INVALID_PARAMETER"
        assert error["details"] == {"parameter": "period"}

    def test_csv(self, client):
        resp = client.get("/api/ecosystem-stats?overview&format=csv")
        assert resp.status_code == 200
        assert resp.mimetype == "text/csv"
        assert "attachment" in resp.headers["Content-Disposition"]
        assert resp.get_data(as_text=True).startswith("field,value")

    def test_xml(self, client):
        resp = client.get("/api/ecosystem-stats?format=xml")
        assert resp.mimetype == "application/xml"
        assert "<ecosystemStats>" in resp.get_data(as_text=True)

    def test_options(self, client):
        resp = client.options("/api/ecosystem-stats")
        assert resp.status_code == 200
        assert resp.headers["Access-Control-Allow-Methods"] == "GET, OPTIONS"

    def test_post_not_allowed(self, client):
        resp = client.post("/api/ecosystem-stats")
        assert resp.status_code == 405
        assert resp.get_json()["error"]["code"] == "METHOD_NOT_ALLOWED"
        assert resp.headers["Allow"] == "GET, OPTIONS"


class TestAnalyticsApi:
    def test_report(self, scanned_client):
        resp = scanned_client.get("/api/analytics")
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["overview"]["totalMarketplaces"] == 3
        assert {"trends", "ecosystem", "health", "performance"} <= set(data)

    def test_post_not_allowed(self, client):
        assert client.post("/api/analytics").status_code == 405


# ── Feedback ────────────────────────────────────────────────────────


class TestFeedback:
    @pytest.fixture
    def limited_client(self, tmp_path: Path):
        settings = Settings(
            github=GitHubSettings(offline=True),
            rate_limit=RateLimitSettings(feedback_limit=2),
        )
        app = create_app(settings=settings, project_root=tmp_path)
        app.config["TESTING"] = True
        return app.test_client()

    def test_accepts_and_logs(self, client, tmp_path: Path):
        resp = client.post("/api/feedback", json={"rating": 5, "message": "nice"})
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["success"] is True
        assert data["feedbackId"].startswith("fb-")
        assert resp.headers["X-RateLimit-Limit"] == "10"

        lines = (tmp_path / ".state" / "feedback.ndjson").read_text().splitlines()
        assert json.loads(lines[0])["payload"] == {"rating": 5, "message": "nice"}

    def test_rate_limited(self, limited_client):
        for _ in range(2):
            assert limited_client.post("/api/feedback", json={"n": 1}).status_code == 200
        resp = limited_client.post("/api/feedback", json={"n": 1})
        assert resp.status_code == 429
        assert resp.get_json()["success"] is False
        assert int(resp.headers["Retry-After"]) > 0

    def test_limit_per_client(self, limited_client):
        for _ in range(2):
            limited_client.post("/api/feedback", json={}, headers={"X-Forwarded-For": "10.0.0.1"})
        resp = limited_client.post("/api/feedback", json={}, headers={"X-Forwarded-For": "10.0.0.2"})
        assert resp.status_code == 200

    def test_invalid_body(self, client):
        resp = client.post("/api/feedback", data="nope", content_type="text/plain")
        assert resp.status_code == 400

    def test_get_not_allowed(self, client):
        resp = client.get("/api/feedback")
        assert resp.status_code == 405
        assert resp.get_json() == {"success": False, "message": "Method not allowed"}
        assert resp.headers["Allow"] == "POST"

    def test_feedback_test_echo(self, client):
        body = client.post("/api/feedback-test", json={"a": 1}).get_json()
        assert body["success"] is True
        assert body["data"] == {"received": {"a": 1}, "method": "POST"}
        assert body["meta"]["requestId"].startswith("req_")

    def test_feedback_test_request_id(self, client):
        body = client.get("/api/feedback-test?x=1", headers={"X-Request-ID": "abc"}).get_json()
        assert body["data"]["received"] == {"x": "1"}
        assert body["meta"]["requestId"] == "abc"


# ── Ops ─────────────────────────────────────────────────────────────


class TestOps:
    def test_health_unhealthy_offline(self, client):
        resp = client.get("/api/health")
        assert resp.status_code == 503
        data = resp.get_json()
        assert data["status"] == "unhealthy"
        assert data["checks"]["githubApi"] is False
        assert resp.headers["Cache-Control"] == "no-cache, no-store, must-revalidate"

    def test_health_healthy(self, tmp_path: Path, data_dir: Path, low_memory):
        (data_dir / "index.json").write_text("{}")
        (tmp_path / "out").mkdir()
        app = create_app(settings=Settings(), project_root=tmp_path, github=FakeGitHub())
        resp = app.test_client().get("/api/health")
        assert resp.status_code == 200
        assert resp.get_json()["status"] == "healthy"

    def test_status_down_without_data(self, client):
        resp = client.get("/api/status")
        assert resp.status_code == 503
        data = resp.get_json()
        assert data["status"] == "down"
        assert data["systems"]["github"]["status"] == "degraded"

    def test_status_operational(self, tmp_path: Path, data_dir: Path, low_memory):
        (data_dir / "index.json").write_text(json.dumps({"stats": {"totalPlugins": 3}}))
        (tmp_path / "out").mkdir()
        app = create_app(settings=Settings(), project_root=tmp_path, github=FakeGitHub())
        data = app.test_client().get("/api/status").get_json()
        assert data["status"] == "operational"
        assert data["systems"]["data"]["totalMarketplaces"] == 3

    def test_metrics_json(self, client):
        client.get("/api/plugins")
        resp = client.get("/api/metrics")
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["performance"]["report"]["summary"]["requests"] >= 1
        assert "pythonVersion" in data["system"]

    def test_metrics_prometheus(self, client):
        client.get("/api/plugins")
        resp = client.get("/api/metrics?format=prometheus")
        assert resp.headers["Content-Type"] == "text/plain; version=0.0.4"
        assert 'aggregator_requests_total{route="/api/plugins"} 1' in resp.get_data(as_text=True)

    def test_metrics_post_not_allowed(self, client):
        assert client.post("/api/metrics").status_code == 405

    def test_unknown_api_route_is_json(self, client):
        resp = client.get("/api/nope")
        assert resp.status_code == 404
        assert resp.get_json()["error"] == "Not Found"

    def test_framework_405_keeps_allow(self, client):
        resp = client.delete("/api/plugins/code-review-assistant")
        assert resp.status_code == 405
        assert "GET" in resp.headers["Allow"]
        assert resp.get_json()["error"] == "Method Not Allowed"


# ── Pages ───────────────────────────────────────────────────────────


class TestPages:
    @pytest.mark.parametrize("path", [
        "/",
        "/marketplaces",
        "/plugins",
        "/docs",
        "/docs/api",
        "/admin/analytics",
        "/marketplaces/official-claude-marketplace",
        "/plugins/code-review-assistant",
    ])
    def test_renders(self, client, path: str):
        resp = client.get(path)
        assert resp.status_code == 200
        assert resp.mimetype == "text/html"

    def test_plugin_search(self, client):
        html = client.get("/plugins?q=security").get_data(as_text=True)
        assert "Security Audit Scanner" in html
        assert "React Component Builder" not in html

    def test_scanned_home(self, scanned_client):
        html = scanned_client.get("/").get_data(as_text=True)
        assert "git-helper" in html

    def test_missing_plugin_page(self, client):
        resp = client.get("/plugins/nope")
        assert resp.status_code == 404
        assert resp.mimetype == "text/html"
        assert "not found" in resp.get_data(as_text=True)

    def test_static_css(self, client):
        assert client.get("/static/style.css").status_code == 200
