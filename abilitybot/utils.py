"""Helpers for pulling the originating user and chat out of an update."""

from typing import Callable, Optional

from .exceptions import UpdateError
from .flags import Flag
from .telegram.types import Message, Update, User


def _origin_message(update: Update) -> Optional[Message]:
    """Return the message an update is attached to, if any."""
    if Flag.MESSAGE.test(update):
        return update.message
    if Flag.CALLBACK_QUERY.test(update):
        return update.callback_query.message
    if Flag.CHANNEL_POST.test(update):
        return update.channel_post
    if Flag.EDITED_CHANNEL_POST.test(update):
        return update.edited_channel_post
    if Flag.EDITED_MESSAGE.test(update):
        return update.edited_message
    return None


def get_user(update: Update) -> User:
    """Fetch the user who caused the update.

    Raises:
        UpdateError: If the update kind carries no user (e.g. an
            anonymous channel post).
    """
    user = None
    if Flag.MESSAGE.test(update):
        user = update.message.from_user
    elif Flag.CALLBACK_QUERY.test(update):
        user = update.callback_query.from_user
    elif Flag.INLINE_QUERY.test(update):
        user = update.inline_query.from_user
    elif Flag.CHANNEL_POST.test(update):
        user = update.channel_post.from_user
    elif Flag.EDITED_CHANNEL_POST.test(update):
        user = update.edited_channel_post.from_user
    elif Flag.EDITED_MESSAGE.test(update):
        user = update.edited_message.from_user
    elif Flag.CHOSEN_INLINE_QUERY.test(update):
        user = update.chosen_inline_result.from_user

    if user is None:
        raise UpdateError(
            "Could not retrieve originating user from update",
            update_id=update.update_id,
        )
    return user


def get_chat_id(update: Update) -> int:
    """Fetch the chat the update came from.

    Inline queries, and callbacks from inline messages, have no chat,
    so the user's id is used.
    """
    if Flag.INLINE_QUERY.test(update):
        return update.inline_query.from_user.id
    if Flag.CHOSEN_INLINE_QUERY.test(update):
        return update.chosen_inline_result.from_user.id
    if Flag.CALLBACK_QUERY.test(update) and update.callback_query.message is None:
        return update.callback_query.from_user.id
    message = _origin_message(update)
    if message is None:
        raise UpdateError(
            "Could not retrieve originating chat ID from update",
            update_id=update.update_id,
        )
    return message.chat_id


def is_user_message(update: Update) -> bool:
    """True if the update comes from a private chat."""
    if Flag.INLINE_QUERY.test(update) or Flag.CHOSEN_INLINE_QUERY.test(update):
        return True
    message = _origin_message(update)
    if message is None:
        raise UpdateError(
            "Could not retrieve update context origin (user/group)",
            update_id=update.update_id,
        )
    return message.is_user_message()


def is_group_update(update: Update) -> bool:
    message = _origin_message(update)
    return message is not None and message.is_group_message()


def is_super_group_update(update: Update) -> bool:
    message = _origin_message(update)
    return message is not None and message.is_super_group_message()


def strip_tag(username: str) -> str:
    """Lowercase a username and drop a leading "@"."""
    lowered = username.lower()
    return lowered[1:] if lowered.startswith("@") else lowered


def add_tag(username: str) -> str:
    return "@" + username


def short_name(user: User) -> str:
    """First name, else last name, else username."""
    if user.first_name:
        return user.first_name
    if user.last_name:
        return user.last_name
    return user.username or ""


def full_name(user: User) -> str:
    return " ".join(n for n in (user.first_name, user.last_name) if n)


def is_reply_to(text: str) -> Callable[[Update], bool]:
    """Predicate: the update replies to a message whose text is ``text``."""
    def _check(update: Update) -> bool:
        message = update.message
        if message is None or message.reply_to_message is None:
            return False
        return message.reply_to_message.text == text
    return _check


def commit_to(db) -> Callable:
    """Post-action that commits the given store."""
    def _commit(ctx) -> None:
        db.commit()
    return _commit
