"""Extension discovery and loading.

Each extension lives in ``<extensions_dir>/<name>/extension.py`` and
exposes a module-level factory::

    def create_extension(ctx: ExtensionContext) -> AbilityExtension:
        return MyExtension(ctx)

The loader calls the factory; it never scans modules for classes.
"""

import importlib.util
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Any, List, Optional

import structlog

from .db.base import DBContext
from .exceptions import ExtensionLoadError
from .extension import AbilityExtension
from .telegram.sender import MessageSender, SilentSender

if TYPE_CHECKING:
    from .bot import AbilityBot

logger = structlog.get_logger("abilitybot.extensions")

FACTORY_NAME = "create_extension"


class ExtensionContext:
    """What an extension may use from the host bot.

    The bot itself is attached after the registry is built, so
    ``ctx.bot`` is only available inside ability actions, not while
    an extension declares its abilities.
    """

    def __init__(
        self,
        extension_name: str,
        settings: dict,
        sender: MessageSender,
        db: DBContext,
        data_dir: Path,
    ):
        self.extension_name = extension_name
        # Only expose the extension's own config section
        self._extension_settings = (settings.get("extensions") or {}).get(extension_name) or {}
        self.sender = sender
        self.silent = SilentSender(sender)
        self.db = db
        self.data_dir = data_dir
        self.logger = structlog.get_logger("abilitybot.extensions").bind(extension=extension_name)
        self._bot: Optional["AbilityBot"] = None

    def get_config(self, key: str, default: Any = None) -> Any:
        """Read extensions.<extension_name>.<key> from settings.yaml."""
        return self._extension_settings.get(key, default)

    @property
    def enabled(self) -> bool:
        return self._extension_settings.get("enabled", True)

    @property
    def bot(self) -> "AbilityBot":
        if self._bot is None:
            raise RuntimeError("Bot not built yet, ctx.bot is only usable inside actions")
        return self._bot


class ExtensionLoader:
    """Discovers and loads extensions from a directory.

    Args:
        extensions_dir: Directory holding one sub-directory per extension.
        settings: Full settings dict (allowlist and per-extension config).
        sender: Outbound transport shared with the bot.
        db: Store shared with the bot.
        data_dir: Root for per-extension data directories.
    """

    def __init__(
        self,
        extensions_dir: Path,
        settings: dict,
        sender: MessageSender,
        db: DBContext,
        data_dir: Path,
    ):
        self.extensions_dir = extensions_dir
        self._settings = settings
        self._sender = sender
        self._db = db
        self._data_dir = data_dir
        self.extensions: List[AbilityExtension] = []
        self._contexts: List[ExtensionContext] = []

    def discover_and_load(self) -> List[AbilityExtension]:
        """Load every extension found, in directory-name order.

        Failures are logged and the extension skipped.
        """
        if not self.extensions_dir.is_dir():
            logger.info("extension_loader_no_dir", path=str(self.extensions_dir))
            return []

        allowlist = self._settings.get("extension_allowlist")
        if allowlist is not None and not isinstance(allowlist, list):
            logger.error("extension_allowlist_invalid_type", type=type(allowlist).__name__)
            allowlist = None

        for ext_dir in sorted(self.extensions_dir.iterdir()):
            if not ext_dir.is_dir():
                continue
            ext_file = ext_dir / "extension.py"
            if not ext_file.is_file():
                continue

            ext_name = ext_dir.name

            if allowlist is not None and ext_name not in allowlist:
                logger.warning(
                    "extension_blocked_not_in_allowlist",
                    extension=ext_name,
                    allowlist=allowlist,
                )
                continue

            try:
                self._load_extension(ext_name, ext_file)
            except ExtensionLoadError as e:
                logger.error("extension_load_failed", extension=ext_name, error=str(e))
            except Exception as e:
                logger.error(
                    "extension_load_failed",
                    extension=ext_name,
                    error=str(e),
                    error_type=type(e).__name__,
                )

        logger.info("extension_loader_complete", extensions_loaded=len(self.extensions))
        return list(self.extensions)

    def _load_extension(self, ext_name: str, ext_file: Path) -> None:
        ext_config = (self._settings.get("extensions") or {}).get(ext_name) or {}
        if isinstance(ext_config, dict) and ext_config.get("enabled") is False:
            logger.info("extension_skipped_disabled", extension=ext_name)
            return

        module_name = f"abilitybot_extensions.{ext_name}"
        spec = importlib.util.spec_from_file_location(module_name, ext_file)
        if spec is None or spec.loader is None:
            raise ExtensionLoadError("Cannot build import spec", extension=ext_name)
        module = importlib.util.module_from_spec(spec)
        sys.modules[module_name] = module
        try:
            spec.loader.exec_module(module)
        except BaseException:
            sys.modules.pop(module_name, None)
            raise

        factory = getattr(module, FACTORY_NAME, None)
        if not callable(factory):
            raise ExtensionLoadError(f"Missing {FACTORY_NAME}(ctx) factory", extension=ext_name)

        data_dir = self._data_dir / ext_name
        data_dir.mkdir(parents=True, exist_ok=True)
        ctx = ExtensionContext(
            extension_name=ext_name,
            settings=self._settings,
            sender=self._sender,
            db=self._db,
            data_dir=data_dir,
        )

        extension = factory(ctx)
        if not isinstance(extension, AbilityExtension):
            raise ExtensionLoadError(
                f"{FACTORY_NAME} returned {type(extension).__name__}, not an AbilityExtension",
                extension=ext_name,
            )
        if not extension.name:
            extension.name = ext_name

        self.extensions.append(extension)
        self._contexts.append(ctx)
        logger.info("extension_loaded", extension=ext_name)

    def attach_bot(self, bot: "AbilityBot") -> None:
        """Expose the built bot to every loaded extension."""
        for ctx in self._contexts:
            ctx._bot = bot
