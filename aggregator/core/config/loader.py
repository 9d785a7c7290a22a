"""
Configuration loader — reads aggregator.yml into a Settings model.

It reads YAML, validates against the Pydantic schema, and applies
environment overrides. A missing file is not an error: defaults apply.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

import yaml

from aggregator.core.models.settings import MAX_SEARCH_RESULTS, GitHubSettings, Settings

logger = logging.getLogger(__name__)

# Default config filename
CONFIG_FILE = "aggregator.yml"


class ConfigError(Exception):
    """Raised when aggregator configuration is invalid."""


def find_config_file(start_dir: Path | None = None) -> Path | None:
    """Search for aggregator.yml starting from the given directory, walking up.

    Args:
        start_dir: Directory to start searching from (default: cwd).

    Returns:
        Path to aggregator.yml, or None if not found.
    """
    current = (start_dir or Path.cwd()).resolve()

    for _ in range(20):  # safety limit
        candidate = current / CONFIG_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break  # filesystem root
        current = parent

    return None


def load_settings(path: Path | None = None) -> Settings:
    """Load and validate aggregator configuration.

    Args:
        path: Explicit path to aggregator.yml. If None, searches upward
            and falls back to defaults when nothing is found.

    Returns:
        Validated Settings model with environment overrides applied.

    Raises:
        ConfigError: If an explicit file is missing, or any file is invalid.
    """
    if path is None:
        path = find_config_file()
        if path is None:
            logger.debug("No %s found, using defaults", CONFIG_FILE)
            return apply_env_overrides(Settings())

    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    logger.debug("Loading config from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    # The YAML may wrap everything under an "aggregator" key or be flat
    settings_data = data.get("aggregator", data)

    try:
        settings = Settings.model_validate(settings_data)
    except Exception as e:
        raise ConfigError(f"Invalid configuration: {e}") from e

    logger.info("Loaded config '%s' (data_dir=%s)", settings.name, settings.data_dir)
    return apply_env_overrides(settings)


def apply_env_overrides(settings: Settings) -> Settings:
    """Apply the SEARCH_QUERY / SEARCH_RESULTS_LIMIT / VALIDATION_STRICT_MODE env vars."""
    github = settings.github.model_dump()
    query = os.environ.get("SEARCH_QUERY")
    if query:
        github["search_query"] = query

    limit = os.environ.get("SEARCH_RESULTS_LIMIT")
    if limit:
        try:
            requested = int(limit)
        except ValueError:
            logger.warning("Ignoring non-integer SEARCH_RESULTS_LIMIT=%r", limit)
        else:
            clamped = min(max(1, requested), MAX_SEARCH_RESULTS)
            if clamped != requested:
                logger.warning("SEARCH_RESULTS_LIMIT=%d out of range, using %d", requested, clamped)
            github["max_results"] = clamped

    update: dict = {"github": GitHubSettings.model_validate(github)}
    if os.environ.get("VALIDATION_STRICT_MODE") == "true":
        update["validation_strict"] = True

    return settings.model_copy(update=update)


def config_root(config_path: Path | None) -> Path:
    """Get the directory relative paths resolve against."""
    return config_path.parent.resolve() if config_path else Path.cwd()
