"""Custom exception hierarchy for abilitybot.

Every error raised by the framework derives from AbilityBotError so
callers can catch broadly while still handling specific failures
(duplicate registration, Telegram API errors, config problems)
precisely.
"""

from typing import Any, Optional


class AbilityBotError(Exception):
    """Base exception for all abilitybot errors.

    Attributes:
        message: Human-readable error description.
        module: Originating module name (e.g. "registry").
        context: Arbitrary key-value pairs for structured logging.
    """

    def __init__(
        self,
        message: str = "",
        *,
        module: Optional[str] = None,
        **context: Any,
    ) -> None:
        self.message = message
        self.module = module
        self.context = context
        super().__init__(message)

    def __str__(self) -> str:
        parts = [self.message or self.__class__.__name__]
        if self.module:
            parts.append(f"[module={self.module}]")
        if self.context:
            ctx = ", ".join(f"{k}={v}" for k, v in self.context.items())
            parts.append(f"({ctx})")
        return " ".join(parts)

    def __repr__(self) -> str:
        cls = self.__class__.__name__
        return f"{cls}({self.message!r}, module={self.module!r})"


class DuplicateAbilityName(AbilityBotError):
    """Two registered abilities share the same name.

    Raised while building the registry. The bot must not start.

    Attributes:
        name: The clashing ability name.
    """

    def __init__(self, name: str, **context: Any) -> None:
        self.name = name
        super().__init__(
            f"Duplicate ability name: {name}", module="registry", **context
        )


class UpdateError(AbilityBotError):
    """An update does not carry the data a lookup needs (user, chat)."""

    def __init__(self, message: str = "", **context: Any) -> None:
        super().__init__(message, module="utils", **context)


class TelegramApiError(AbilityBotError):
    """The Telegram Bot API answered with ok=false or an HTTP error.

    Attributes:
        method: Bot API method name (e.g. "sendMessage").
        error_code: Telegram or HTTP error code, if known.
    """

    def __init__(
        self,
        message: str = "",
        *,
        method: Optional[str] = None,
        error_code: Optional[int] = None,
        **context: Any,
    ) -> None:
        self.method = method
        self.error_code = error_code
        super().__init__(
            message,
            module="telegram.sender",
            method=method,
            error_code=error_code,
            **context,
        )


class ConfigError(AbilityBotError):
    """A required setting is missing or malformed."""

    def __init__(self, message: str = "", *, key: Optional[str] = None) -> None:
        self.key = key
        super().__init__(message, module="config", key=key)


class ExtensionLoadError(AbilityBotError):
    """An extension module could not be imported or built."""

    def __init__(self, message: str = "", *, extension: Optional[str] = None) -> None:
        self.extension = extension
        super().__init__(message, module="extension_loader", extension=extension)
