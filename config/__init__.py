# config/__init__.py

"""
Sectioned settings for the watch bot.

Each value has a default, may be required, and may be overridden by an
environment variable. Lookup order is environment, then ``config.json``,
then the default. Everything is read once in ``initialize`` and the
resulting values are handed to constructors by the entry point.
"""

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

logger = logging.getLogger("watchbot.config")
logger.setLevel(logging.INFO)

_TRUE_STRINGS = ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Setting:
    default: Any
    description: str
    required: bool = False
    env: Optional[str] = None

    def coerce(self, raw: str) -> Any:
        """Convert an environment string to the type of the default."""
        if isinstance(self.default, bool):
            return raw.strip().lower() in _TRUE_STRINGS
        if isinstance(self.default, int):
            return int(raw)
        if isinstance(self.default, float):
            return float(raw)
        return raw


class ConfigSection:
    def __init__(self, name: str, description: str):
        self.name = name
        self.description = description
        self.settings: Dict[str, Setting] = {}

    def add(self, key: str, default: Any, description: str, required: bool = False, env: Optional[str] = None) -> None:
        self.settings[key] = Setting(default, description, required, env)

    def defaults(self) -> Dict[str, Any]:
        return {key: setting.default for key, setting in self.settings.items()}


class Config:
    """Configuration registry plus the values loaded for this run."""

    def __init__(self):
        self._sections: Dict[str, ConfigSection] = {}
        self._values: Dict[str, Dict[str, Any]] = {}
        self._initialized = False

    def add_section(self, name: str, description: str) -> ConfigSection:
        self._sections[name] = ConfigSection(name, description)
        return self._sections[name]

    def _settings(self) -> Iterator[Tuple[str, str, Setting]]:
        for section_name, section in self._sections.items():
            for key, setting in section.settings.items():
                yield section_name, key, setting

    def initialize(self, config_file: str = "config.json", environ: Optional[Mapping[str, str]] = None) -> bool:
        """
        Load ``config_file`` if it exists, apply environment overrides and
        check required values.

        Returns False, after logging why, if the file is unreadable, an
        environment value has the wrong type or a required value is empty.
        """
        if self._initialized:
            return True

        path = Path(config_file)
        if path.exists():
            try:
                self._values = json.loads(path.read_text(encoding="utf-8"))
            except (OSError, json.JSONDecodeError) as e:
                logger.error(f"Could not read {config_file}: {e}")
                return False
            logger.info(f"Loaded settings from {config_file}")
        else:
            logger.info(f"No {config_file}, using defaults and environment variables")

        try:
            self.load_environment(os.environ if environ is None else environ)
        except ValueError as e:
            logger.error(f"Invalid environment value {e}")
            return False

        missing = self.missing_required()
        if missing:
            logger.error(f"Missing required settings: {', '.join(missing)}")
            return False

        self._initialized = True
        return True

    def load_environment(self, environ: Mapping[str, str]) -> None:
        for section_name, key, setting in self._settings():
            raw = environ.get(setting.env) if setting.env else None
            if not raw:
                continue
            try:
                self.set(section_name, key, setting.coerce(raw))
            except ValueError:
                raise ValueError(f"{setting.env}={raw!r}") from None
            logger.debug(f"{section_name}.{key} set from ${setting.env}")

    def missing_required(self) -> List[str]:
        """Dotted names of required settings that are unset or empty."""
        return [
            f"{section_name}.{key}"
            for section_name, key, setting in self._settings()
            if setting.required and not self.get(section_name, key)
        ]

    def get(self, section: str, key: str, default: Any = None) -> Any:
        values = self._values.get(section, {})
        if key in values:
            return values[key]
        if default is not None:
            return default
        setting = self._sections[section].settings.get(key) if section in self._sections else None
        return setting.default if setting else None

    def set(self, section: str, key: str, value: Any) -> None:
        self._values.setdefault(section, {})[key] = value

    def get_section(self, section: str) -> Dict[str, Any]:
        """Defaults of ``section`` overlaid with the loaded values."""
        merged = self._sections[section].defaults() if section in self._sections else {}
        merged.update(self._values.get(section, {}))
        return merged


def setup_default_config(cfg: Config) -> Config:
    """Register every section and setting the watch bot knows about."""
    core = cfg.add_section("core", "Core bot settings")
    core.add("token", "", "Discord bot token; leave empty to run the web server only", env="DISCORD_TOKEN")
    core.add("log_level", "INFO", "Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)", env="LOG_LEVEL")

    tmdb = cfg.add_section("tmdb", "TMDB API settings")
    tmdb.add("apikey", "", "TMDB API key", required=True, env="TMDB_API_KEY")

    server = cfg.add_section("server", "Web server settings")
    server.add("base_url", "", "Public base URL used in watch links", required=True, env="BASE_URL")
    server.add("host", "0.0.0.0", "Interface to bind", env="HOST")
    server.add("port", 3000, "Port to listen on", env="PORT")
    server.add("secret_key", "", "Shared secret for the /api route; empty disables it", env="SECRET_KEY")

    providers = cfg.add_section("providers", "Stream provider aggregator")
    providers.add("api_url", "", "Aggregator endpoint; empty disables primary resolution", env="PROVIDERS_API_URL")

    backup = cfg.add_section("backup", "Backup resolution services")
    backup.add("torrentio_url", "https://torrentio.strem.fun", "Torrentio base URL", env="TORRENTIO_URL")
    backup.add(
        "hls_converter_url",
        "https://savingshub.online/api/fetchHls",
        "Magnet to HLS conversion endpoint",
        env="HLS_CONVERTER_URL",
    )

    api = cfg.add_section("api", "API request settings")
    api.add("request_timeout", 20, "Outbound request timeout in seconds", env="API_REQUEST_TIMEOUT")
    return cfg


def create_config() -> Config:
    return setup_default_config(Config())


config = create_config()
