"""Logging configuration for abilitybot.

Routes structlog events through stdlib logging so that each subsystem
gets its own rotating file next to a combined log and the console:

    root                        console
      └─ abilitybot             abilitybot.log
           ├─ abilitybot.bot        bot.log        (pipeline, defaults)
           ├─ abilitybot.db         db.log         (store, backups)
           ├─ abilitybot.extensions extensions.log (registry, loader)
           └─ abilitybot.sender     sender.log     (Bot API calls)

Bot tokens are scrubbed from every event before rendering; aiohttp
errors quote the request URL, which embeds the token.
"""

import logging
import logging.handlers
import re
import sys
from pathlib import Path
from typing import Any, Dict, NamedTuple

import structlog

SUBSYSTEMS = ("bot", "db", "extensions", "sender")

LOGGER_PREFIX = "abilitybot"

# <bot id>:<secret>, bare or inside ".../bot<token>/method"
_TOKEN_PATTERN = re.compile(r"\d{6,12}:[A-Za-z0-9_-]{30,}")

_REDACTED = "***REDACTED***"


def _scrub(value: Any) -> Any:
    if isinstance(value, str):
        return _TOKEN_PATTERN.sub(_REDACTED, value)
    if isinstance(value, (list, tuple)):
        return type(value)(_scrub(v) for v in value)
    if isinstance(value, dict):
        return {k: _scrub(v) for k, v in value.items()}
    return value


def sanitize_secrets(
    logger: Any, method_name: str, event_dict: Dict[str, Any]
) -> Dict[str, Any]:
    """structlog processor replacing bot tokens with a placeholder."""
    for key, value in event_dict.items():
        event_dict[key] = _scrub(value)
    return event_dict


class LogSettings(NamedTuple):
    log_dir: Path
    level: int
    subsystem_levels: Dict[str, int]
    max_bytes: int
    backup_count: int
    json_files: bool
    cache_loggers: bool


def _level(name: str, fallback: int) -> int:
    level = logging.getLevelName(name.upper()) if name else fallback
    return level if isinstance(level, int) else fallback


def _resolve_settings(config) -> LogSettings:
    """Defaults before config loads; the real values afterwards."""
    if config is None:
        return LogSettings(
            log_dir=Path(__file__).parent.parent / "logs",
            level=logging.INFO,
            subsystem_levels={},
            max_bytes=10 * 1024 * 1024,
            backup_count=5,
            json_files=False,
            cache_loggers=False,
        )
    level = _level(config.logging_level, logging.INFO)
    return LogSettings(
        log_dir=config.log_dir,
        level=level,
        subsystem_levels={
            name: _level(value, level)
            for name, value in (config.logging_subsystem_levels or {}).items()
        },
        max_bytes=config.logging_max_file_size_mb * 1024 * 1024,
        backup_count=config.logging_backup_count,
        json_files=config.logging_format == "json",
        cache_loggers=True,
    )


def _reset_logger(name: str, level: int) -> logging.Logger:
    logger = logging.getLogger(name)
    for handler in logger.handlers:
        handler.close()
    logger.handlers.clear()
    logger.setLevel(level)
    logger.propagate = True
    return logger


def _file_handler(
    path: Path, level: int, settings: LogSettings, formatter: logging.Formatter
) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        path,
        maxBytes=settings.max_bytes,
        backupCount=settings.backup_count,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


_SHARED_PROCESSORS = (
    structlog.stdlib.add_logger_name,
    structlog.stdlib.add_log_level,
    structlog.processors.TimeStamper(fmt="iso"),
)


def _formatter(renderer) -> structlog.stdlib.ProcessorFormatter:
    """Render structlog events and plain stdlib records alike."""
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=[*_SHARED_PROCESSORS, sanitize_secrets],
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )


def setup_logging(config=None) -> None:
    """Configure structlog and the stdlib handler tree.

    Called twice by main(): once with no config so startup errors are
    visible, and again with the loaded Config, which also enables
    structlog's logger cache.

    Args:
        config: Optional Config. Reads log_dir, logging_level,
            logging_subsystem_levels, logging_max_file_size_mb,
            logging_backup_count and logging_format.
    """
    settings = _resolve_settings(config)

    try:
        settings.log_dir.mkdir(parents=True, exist_ok=True)
        files_enabled = True
    except OSError as exc:
        files_enabled = False
        print(
            f"WARNING: Cannot create log directory {settings.log_dir}: {exc}. "
            "Logging to console only.",
            file=sys.stderr,
        )

    file_formatter = _formatter(
        structlog.processors.JSONRenderer()
        if settings.json_files
        else structlog.dev.ConsoleRenderer(colors=False)
    )

    root_logger = _reset_logger("", logging.DEBUG)
    console = logging.StreamHandler(sys.stdout)
    console.setLevel(settings.level)
    console.setFormatter(_formatter(structlog.dev.ConsoleRenderer()))
    root_logger.addHandler(console)

    combined = _reset_logger(LOGGER_PREFIX, logging.DEBUG)
    if files_enabled:
        combined.addHandler(
            _file_handler(settings.log_dir / "abilitybot.log", settings.level, settings, file_formatter)
        )

    for subsystem in SUBSYSTEMS:
        level = settings.subsystem_levels.get(subsystem, settings.level)
        sub_logger = _reset_logger(f"{LOGGER_PREFIX}.{subsystem}", level)
        if files_enabled:
            sub_logger.addHandler(
                _file_handler(settings.log_dir / f"{subsystem}.log", level, settings, file_formatter)
            )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *_SHARED_PROCESSORS,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            sanitize_secrets,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=settings.cache_loggers,
    )
