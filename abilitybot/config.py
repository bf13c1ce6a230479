"""Configuration management for abilitybot.

Loads ``settings.yaml`` and ``.env`` from the config directory into a
Config object. Property getters provide safe access with defaults for
every subsystem: Telegram connection, storage, logging, extensions and
default-ability toggles.

Key classes:
    Config: Central configuration manager.

Key functions:
    get_config: Singleton accessor for the global Config instance.
"""

import os
from pathlib import Path
from typing import List, Optional

import structlog
import yaml
from dotenv import load_dotenv

from .exceptions import ConfigError
from .telegram.sender import DEFAULT_API_URL

logger = structlog.get_logger("abilitybot.bot")


class Config:
    """Central configuration manager for abilitybot.

    Args:
        config_dir: Path to the config directory. Defaults to
            ``<repo_root>/config/``.
    """

    def __init__(self, config_dir: Optional[Path] = None):
        if config_dir is None:
            config_dir = Path(__file__).parent.parent / "config"
        self.config_dir = config_dir

        env_file = config_dir / ".env"
        if env_file.exists():
            load_dotenv(env_file)

        self.settings = self._load_yaml("settings.yaml")

    def _load_yaml(self, filename: str) -> dict:
        """Load a YAML mapping from the config directory.

        Raises:
            ConfigError: If the file is not valid YAML or not a mapping.
        """
        filepath = self.config_dir / filename
        if not filepath.exists():
            return {}
        with open(filepath, "r") as f:
            try:
                data = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ConfigError(f"Invalid YAML in {filename}: {e}", key=filename) from e
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigError(f"{filename} must contain a mapping", key=filename)
        return data

    def _section(self, name: str) -> dict:
        section = self.settings.get(name) or {}
        return section if isinstance(section, dict) else {}

    def validate(self) -> bool:
        """Check critical settings at startup.

        Logs every problem found. Returns False if the bot cannot
        start (no token or no creator id).
        """
        ok = True
        if not self.bot_token:
            logger.error("missing_bot_token", msg="Set BOT_TOKEN in .env or bot_token in settings.yaml")
            ok = False
        if self.creator_id is None:
            logger.error("missing_creator_id", msg="Set creator_id to your Telegram user id")
            ok = False
        if not self.bot_username:
            logger.warning("missing_bot_username", msg="/cmd@botname will not be recognised")

        timeout = self.settings.get("poll_timeout")
        if timeout is not None and (not isinstance(timeout, int) or timeout < 0 or timeout > 100):
            logger.error("config_invalid_value", key="poll_timeout", value=timeout, valid="0-100")
        return ok

    @property
    def bot_token(self) -> str:
        """Bot token. Env var BOT_TOKEN takes precedence."""
        return os.environ.get("BOT_TOKEN") or self.settings.get("bot_token", "")

    @property
    def bot_username(self) -> str:
        """Bot username without "@". Env var BOT_USERNAME takes precedence."""
        username = os.environ.get("BOT_USERNAME") or self.settings.get("bot_username", "")
        return username.lstrip("@")

    @property
    def creator_id(self) -> Optional[int]:
        """Telegram user id of the bot owner."""
        raw = os.environ.get("CREATOR_ID") or self.settings.get("creator_id")
        if raw is None or raw == "":
            return None
        try:
            return int(raw)
        except (TypeError, ValueError):
            logger.error("creator_id_invalid", value=str(raw))
            return None

    @property
    def api_url(self) -> str:
        """Bot API base URL (override for a self-hosted Bot API server)."""
        return self.settings.get("api_url", DEFAULT_API_URL)

    @property
    def poll_timeout(self) -> int:
        """Long-poll timeout for getUpdates in seconds (default 50)."""
        return self.settings.get("poll_timeout", 50)

    @property
    def request_timeout(self) -> int:
        """Timeout for ordinary Bot API calls in seconds (default 30)."""
        return self.settings.get("request_timeout", 30)

    @property
    def db_path(self) -> Path:
        """SQLite store path (default ``<repo_root>/data/<username>.db``)."""
        configured = self.settings.get("db_path")
        if configured:
            return Path(configured).expanduser()
        name = self.bot_username or "abilitybot"
        return Path(__file__).parent.parent / "data" / f"{name}.db"

    @property
    def log_dir(self) -> Path:
        """Directory for abilitybot.log and the subsystem logs."""
        configured = self.settings.get("log_dir")
        if configured:
            return Path(configured).expanduser()
        return Path(__file__).parent.parent / "logs"

    @property
    def logging_level(self) -> str:
        """Global log level (default INFO). Controls console and combined file."""
        return self._section("logging").get("level", "INFO")

    @property
    def logging_subsystem_levels(self) -> dict:
        """Per-subsystem log level overrides. E.g. {"db": "DEBUG"}."""
        return self._section("logging").get("subsystem_levels", {})

    @property
    def logging_max_file_size_mb(self) -> int:
        """Max size per log file in MB before rotation (default 10)."""
        return self._section("logging").get("max_file_size_mb", 10)

    @property
    def logging_backup_count(self) -> int:
        """Number of rotated log files to keep (default 5)."""
        return self._section("logging").get("backup_count", 5)

    @property
    def logging_format(self) -> str:
        """File log format: "console" (default) or "json"."""
        return self._section("logging").get("format", "console")

    @property
    def extensions_dir(self) -> Path:
        """Directory scanned for ``<name>/extension.py`` modules."""
        configured = self.settings.get("extensions_dir")
        if configured:
            return Path(configured).expanduser()
        return Path(__file__).parent.parent / "extensions"

    @property
    def extension_allowlist(self) -> Optional[List[str]]:
        """If set, only these extension directories are loaded."""
        allowlist = self.settings.get("extension_allowlist")
        if allowlist is not None and not isinstance(allowlist, list):
            logger.error("extension_allowlist_invalid_type", type=type(allowlist).__name__)
            return None
        return allowlist

    @property
    def toggle_settings(self) -> dict:
        """The ``toggle:`` block controlling default abilities."""
        return self._section("toggle")


# Global config instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get or create the global config instance."""
    global _config
    if _config is None:
        _config = Config()
    return _config
