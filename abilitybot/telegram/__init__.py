"""Telegram Bot API models and transport."""

from .sender import DEFAULT_API_URL, MessageSender, SilentSender, TelegramSender
from .types import (
    CallbackQuery,
    Chat,
    ChatMember,
    ChosenInlineResult,
    Document,
    File,
    InlineQuery,
    Location,
    Message,
    PhotoSize,
    Update,
    User,
)

__all__ = [
    # Models
    "Update",
    "Message",
    "User",
    "Chat",
    "CallbackQuery",
    "InlineQuery",
    "ChosenInlineResult",
    "Document",
    "PhotoSize",
    "Location",
    "ChatMember",
    "File",
    # Transport
    "MessageSender",
    "TelegramSender",
    "SilentSender",
    "DEFAULT_API_URL",
]
