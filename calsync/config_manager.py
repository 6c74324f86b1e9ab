"""Configuration management for calsync."""

import logging
import os
import re
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError

from .exceptions import ConfigurationError
from .models import SelectionSettings

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "config.yaml"
USER_CONFIG_PATH = Path.home() / ".config" / "calsync" / CONFIG_FILE_NAME

# Selection settings read from numeric environment variables
_NUMERIC_ENV_SETTINGS = {
    "CALSYNC_FUTURE_HOURS": "future_hour_limit",
    "CALSYNC_RECENT_HOURS": "recent_hour_limit",
    "CALSYNC_PAST_DAYS": "selectable_past_days",
    "CALSYNC_FUTURE_DAYS": "selectable_future_days",
}

_URL_SEPARATORS = re.compile(r"[,\s]+")


class SyncConfig(BaseModel):
    """Everything one sync operation needs."""

    ics_urls: list[str] = Field(default_factory=list, description="ICS feed URLs")
    request_timeout: int = Field(default=30, description="HTTP request timeout in seconds")
    max_retries: int = Field(default=3, description="Retries on network errors and timeouts")
    retry_backoff_factor: float = Field(default=1.5, description="Exponential backoff base")
    fetch_concurrency: int = Field(default=2, description="Feeds fetched at once")
    selection: SelectionSettings = Field(default_factory=SelectionSettings)


def split_urls(value: str) -> list[str]:
    """Split a comma or whitespace separated list of feed URLs."""
    return [url for url in _URL_SEPARATORS.split(value) if url]


def positive_number(name: str, value: Any, default: float) -> float:
    """Parse a positive number, falling back to ``default`` with a warning."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        logger.warning("Invalid %s=%r; using default %s", name, value, default)
        return default

    if number <= 0:
        logger.warning("Non-positive %s=%r; using default %s", name, value, default)
        return default
    return number


class ConfigManager:
    """Loads configuration from a YAML file, a .env file and environment variables.

    Precedence, lowest first: built-in defaults, YAML file, environment
    (including values loaded from .env).
    """

    def __init__(self, env_file_path: Optional[Path] = None, config_file: Optional[Path] = None):
        """Initialize configuration manager.

        Args:
            env_file_path: Optional path to .env file (defaults to .env in current directory)
            config_file: Optional explicit YAML file; it must exist when given
        """
        self.env_file_path = env_file_path or Path.cwd() / ".env"
        self.config_file = config_file

    def load_env_file(self) -> list[str]:
        """Load .env file and set environment variables.

        Only sets variables that are not already in the environment.

        Returns:
            List of environment variable keys that were loaded from .env file
        """
        if not self.env_file_path.exists():
            logger.debug("No .env file found at %s", self.env_file_path)
            return []

        set_keys = []

        try:
            content = self.env_file_path.read_text(encoding="utf-8")
        except OSError:
            logger.debug("Failed to read .env file (continuing): %s", self.env_file_path, exc_info=True)
            return []

        for raw_line in content.splitlines():
            line = raw_line.strip()

            if not line or line.startswith("#") or "=" not in line:
                continue

            key, val = line.split("=", 1)
            key = key.strip()
            val = val.strip().strip('"').strip("'")

            if key and key not in os.environ:
                os.environ[key] = val
                set_keys.append(key)

        if set_keys:
            logger.debug("Loaded .env defaults for keys: %s", ", ".join(set_keys))

        return set_keys

    def find_config_file(self) -> Optional[Path]:
        """Locate the YAML config file.

        Raises:
            ConfigurationError: If an explicit config file does not exist
        """
        if self.config_file is not None:
            if not self.config_file.exists():
                raise ConfigurationError(f"Config file not found: {self.config_file}")
            return self.config_file

        for candidate in (Path.cwd() / CONFIG_FILE_NAME, USER_CONFIG_PATH):
            if candidate.exists():
                return candidate
        return None

    def load_yaml_config(self) -> dict[str, Any]:
        """Load the YAML config file; unreadable files are logged and skipped."""
        config_file = self.find_config_file()
        if not config_file:
            return {}

        try:
            with config_file.open(encoding="utf-8") as f:
                config_data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            logger.warning("Could not load YAML config from %s: %s", config_file, e)
            return {}

        if not isinstance(config_data, dict):
            if config_data is not None:
                logger.warning("Ignoring YAML config %s: top level is not a mapping", config_file)
            return {}

        logger.debug("Loaded YAML config from %s", config_file)
        return config_data

    def build_config_from_env(self, base: Optional[dict[str, Any]] = None) -> dict[str, Any]:
        """Overlay recognized environment variables on ``base``.

        Recognizes:
        - CALSYNC_ICS_URL -> 'ics_urls' (comma or whitespace separated)
        - CALSYNC_OWNER_EMAIL -> selection 'owner_email'
        - CALSYNC_IGNORED_TITLES -> selection 'ignored_titles' (newline separated)
        - CALSYNC_FUTURE_HOURS, CALSYNC_RECENT_HOURS, CALSYNC_PAST_DAYS,
          CALSYNC_FUTURE_DAYS -> selection time windows
        - CALSYNC_TIMEZONE -> selection 'timezone'
        """
        cfg: dict[str, Any] = dict(base or {})
        selection: dict[str, Any] = dict(cfg.get("selection") or {})

        ics_url = os.environ.get("CALSYNC_ICS_URL")
        if ics_url:
            cfg["ics_urls"] = split_urls(ics_url)

        owner_email = os.environ.get("CALSYNC_OWNER_EMAIL")
        if owner_email is not None:
            selection["owner_email"] = owner_email.strip()

        ignored = os.environ.get("CALSYNC_IGNORED_TITLES")
        if ignored is not None:
            selection["ignored_titles"] = [line for line in ignored.splitlines() if line]

        for env_key, field in _NUMERIC_ENV_SETTINGS.items():
            raw = os.environ.get(env_key)
            if raw is not None:
                selection[field] = raw

        timezone = os.environ.get("CALSYNC_TIMEZONE")
        if timezone:
            selection["timezone"] = timezone

        cfg["selection"] = selection
        return cfg

    def load_config(self) -> SyncConfig:
        """Load .env, YAML and environment into a validated SyncConfig.

        This is the main entry point for loading configuration. An empty URL
        list is allowed here; the sync service rejects it before fetching.

        Raises:
            ConfigurationError: If the explicit config file is missing or values are invalid
        """
        self.load_env_file()
        raw = self.build_config_from_env(self.load_yaml_config())

        # Legacy single-URL key
        if "ics_url" in raw and "ics_urls" not in raw:
            raw["ics_urls"] = split_urls(str(raw.pop("ics_url") or ""))
        raw.pop("ics_url", None)
        if isinstance(raw.get("ics_urls"), str):
            raw["ics_urls"] = split_urls(raw["ics_urls"])

        raw["selection"] = self._normalize_selection(raw.get("selection") or {})

        try:
            return SyncConfig(**raw)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e

    def _normalize_selection(self, selection: dict[str, Any]) -> dict[str, Any]:
        defaults = SelectionSettings()
        normalized = dict(selection)
        for field in _NUMERIC_ENV_SETTINGS.values():
            if field in normalized:
                normalized[field] = positive_number(
                    field, normalized[field], getattr(defaults, field)
                )

        titles = normalized.get("ignored_titles")
        if isinstance(titles, str):
            titles = titles.splitlines()
        if titles is not None:
            normalized["ignored_titles"] = tuple(t for t in titles if t)
        return normalized
