"""Pydantic models for the subset of the Telegram Bot API the bot reads.

Unknown fields are ignored so newer API payloads still parse. The
``from`` key is exposed as ``from_user`` since ``from`` is reserved.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class TelegramObject(BaseModel):
    """Base for all API objects."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)


class User(TelegramObject):
    """A Telegram user or bot."""

    id: int
    is_bot: bool = False
    first_name: str = ""
    last_name: Optional[str] = None
    username: Optional[str] = None
    language_code: Optional[str] = None

    def to_record(self) -> dict:
        """Plain dict used as the stored user profile."""
        return self.model_dump(exclude_none=True)


class Chat(TelegramObject):
    """A private chat, group, supergroup or channel."""

    id: int
    type: str = Field(..., description="'private', 'group', 'supergroup' or 'channel'")
    title: Optional[str] = None
    username: Optional[str] = None


class Document(TelegramObject):
    file_id: str
    file_unique_id: Optional[str] = None
    file_name: Optional[str] = None
    mime_type: Optional[str] = None
    file_size: Optional[int] = None


class PhotoSize(TelegramObject):
    file_id: str
    width: int = 0
    height: int = 0


class Location(TelegramObject):
    longitude: float
    latitude: float


class Message(TelegramObject):
    """An inbound or sent message."""

    message_id: int
    from_user: Optional[User] = Field(default=None, alias="from")
    chat: Chat
    date: int = 0
    text: Optional[str] = None
    caption: Optional[str] = None
    document: Optional[Document] = None
    photo: Optional[List[PhotoSize]] = None
    location: Optional[Location] = None
    reply_to_message: Optional["Message"] = None

    @property
    def chat_id(self) -> int:
        return self.chat.id

    def has_text(self) -> bool:
        return self.text is not None

    def has_document(self) -> bool:
        return self.document is not None

    def has_photo(self) -> bool:
        return bool(self.photo)

    def has_location(self) -> bool:
        return self.location is not None

    def is_reply(self) -> bool:
        return self.reply_to_message is not None

    def is_user_message(self) -> bool:
        return self.chat.type == "private"

    def is_group_message(self) -> bool:
        return self.chat.type == "group"

    def is_super_group_message(self) -> bool:
        return self.chat.type == "supergroup"

    def is_channel_message(self) -> bool:
        return self.chat.type == "channel"


class CallbackQuery(TelegramObject):
    id: str
    from_user: User = Field(..., alias="from")
    message: Optional[Message] = None
    inline_message_id: Optional[str] = None
    data: Optional[str] = None


class InlineQuery(TelegramObject):
    id: str
    from_user: User = Field(..., alias="from")
    query: str = ""


class ChosenInlineResult(TelegramObject):
    result_id: str
    from_user: User = Field(..., alias="from")
    query: str = ""


class Update(TelegramObject):
    """One inbound event delivered by getUpdates or a webhook."""

    update_id: int
    message: Optional[Message] = None
    edited_message: Optional[Message] = None
    channel_post: Optional[Message] = None
    edited_channel_post: Optional[Message] = None
    callback_query: Optional[CallbackQuery] = None
    inline_query: Optional[InlineQuery] = None
    chosen_inline_result: Optional[ChosenInlineResult] = None

    def has_message(self) -> bool:
        return self.message is not None

    def has_edited_message(self) -> bool:
        return self.edited_message is not None

    def has_channel_post(self) -> bool:
        return self.channel_post is not None

    def has_edited_channel_post(self) -> bool:
        return self.edited_channel_post is not None

    def has_callback_query(self) -> bool:
        return self.callback_query is not None

    def has_inline_query(self) -> bool:
        return self.inline_query is not None

    def has_chosen_inline_query(self) -> bool:
        return self.chosen_inline_result is not None


class ChatMember(TelegramObject):
    user: User
    status: str = "member"


class File(TelegramObject):
    file_id: str
    file_unique_id: Optional[str] = None
    file_size: Optional[int] = None
    file_path: Optional[str] = None


Message.model_rebuild()
