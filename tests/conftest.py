"""
Shared test fixtures and configuration.
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from flask import Flask
from flask.testing import FlaskClient

from aggregator.core.models.settings import GitHubSettings, Settings
from tests.fakes import SCANNED_MARKETPLACES


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    """A data directory holding a scanned marketplaces.json."""
    d = tmp_path / "public" / "data"
    d.mkdir(parents=True)
    (d / "marketplaces.json").write_text(json.dumps({
        "marketplaces": SCANNED_MARKETPLACES,
        "lastUpdated": "2025-01-15T12:00:00Z",
        "totalCount": len(SCANNED_MARKETPLACES),
    }))
    return d


@pytest.fixture
def settings() -> Settings:
    """Offline settings with default relative paths."""
    return Settings(github=GitHubSettings(offline=True))


@pytest.fixture
def app(tmp_path: Path, settings: Settings) -> Flask:
    """App over an empty project directory (mock catalog)."""
    from aggregator.ui.web.server import create_app

    app = create_app(settings=settings, project_root=tmp_path)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app: Flask) -> FlaskClient:
    return app.test_client()


@pytest.fixture
def scanned_client(tmp_path: Path, data_dir: Path, settings: Settings) -> FlaskClient:
    """Client over a project whose data dir holds scanned marketplaces."""
    from aggregator.ui.web.server import create_app

    app = create_app(settings=settings, project_root=tmp_path)
    app.config["TESTING"] = True
    return app.test_client()

