"""Update-shape predicates used by abilities and replies.

Flags form a closed set. Each member maps to its predicate through
``_PREDICATES`` and members are directly callable on an update.
"""

from enum import Enum
from typing import Callable, Dict, Optional

from .telegram.types import Update


class Flag(str, Enum):
    # Update flags
    NONE = "none"
    MESSAGE = "message"
    CALLBACK_QUERY = "callback_query"
    CHANNEL_POST = "channel_post"
    EDITED_CHANNEL_POST = "edited_channel_post"
    EDITED_MESSAGE = "edited_message"
    INLINE_QUERY = "inline_query"
    CHOSEN_INLINE_QUERY = "chosen_inline_query"

    # Message flags
    REPLY = "reply"
    DOCUMENT = "document"
    TEXT = "text"
    PHOTO = "photo"
    LOCATION = "location"
    CAPTION = "caption"

    def test(self, update: Optional[Update]) -> bool:
        return update is not None and _PREDICATES[self](update)

    def __call__(self, update: Optional[Update]) -> bool:
        return self.test(update)


_PREDICATES: Dict[Flag, Callable[[Update], bool]] = {
    Flag.NONE: lambda u: True,
    Flag.MESSAGE: lambda u: u.has_message(),
    Flag.CALLBACK_QUERY: lambda u: u.has_callback_query(),
    Flag.CHANNEL_POST: lambda u: u.has_channel_post(),
    Flag.EDITED_CHANNEL_POST: lambda u: u.has_edited_channel_post(),
    Flag.EDITED_MESSAGE: lambda u: u.has_edited_message(),
    Flag.INLINE_QUERY: lambda u: u.has_inline_query(),
    Flag.CHOSEN_INLINE_QUERY: lambda u: u.has_chosen_inline_query(),
    Flag.REPLY: lambda u: u.has_message() and u.message.is_reply(),
    Flag.DOCUMENT: lambda u: u.has_message() and u.message.has_document(),
    Flag.TEXT: lambda u: u.has_message() and u.message.has_text(),
    Flag.PHOTO: lambda u: u.has_message() and u.message.has_photo(),
    Flag.LOCATION: lambda u: u.has_message() and u.message.has_location(),
    Flag.CAPTION: lambda u: u.has_message() and u.message.caption is not None,
}
