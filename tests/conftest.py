"""Shared fixtures: update factories, an in-memory store, a mocked sender
and a small bot with one ability per pipeline stage."""

from unittest.mock import AsyncMock

import pytest

from abilitybot.bot import AbilityBot
from abilitybot.db import MemoryDBContext
from abilitybot.flags import Flag
from abilitybot.objects import Ability, Locality, Privacy, Reply
from abilitybot.telegram.sender import MessageSender
from abilitybot.telegram.types import Update

CREATOR_ID = 1337
USER_ID = 1
GROUP_CHAT_ID = -100200300


def _user(user_id, username, first_name, language_code):
    user = {"id": user_id, "is_bot": False, "first_name": first_name}
    if username is not None:
        user["username"] = username
    if language_code is not None:
        user["language_code"] = language_code
    return user


def build_update(
    text=None,
    *,
    user_id=USER_ID,
    username="alice",
    first_name="Alice",
    language_code=None,
    chat_type="private",
    chat_id=None,
    update_id=1,
    **message_fields,
):
    """Build a message update the way getUpdates delivers it."""
    if chat_id is None:
        chat_id = user_id if chat_type == "private" else GROUP_CHAT_ID
    message = {
        "message_id": update_id,
        "from": _user(user_id, username, first_name, language_code),
        "chat": {"id": chat_id, "type": chat_type},
        "date": 1700000000,
    }
    if text is not None:
        message["text"] = text
    message.update(message_fields)
    return Update.model_validate({"update_id": update_id, "message": message})


class SampleBot(AbilityBot):
    """Bot exercising each validation stage with one ability."""

    def __init__(self, db, sender, **kwargs):
        self.calls = []
        super().__init__("TestBot", CREATOR_ID, db, sender, **kwargs)

    def _record(self, label):
        return lambda ctx: self.calls.append((label, ctx.arguments))

    def abilities(self):
        return [
            Ability.builder()
            .name("test")
            .info("runs a test")
            .action(self._record("test"))
            .post(self._record("test_post"))
            .build(),
            Ability.builder().name("count").input(1).action(self._record("count")).build(),
            Ability.builder()
            .name("group")
            .locality(Locality.GROUP)
            .action(self._record("group"))
            .build(),
            Ability.builder()
            .name("private")
            .locality(Locality.USER)
            .action(self._record("private"))
            .build(),
            Ability.builder()
            .name("admin")
            .privacy(Privacy.ADMIN)
            .action(self._record("admin"))
            .build(),
            Ability.builder()
            .name("groupadmin")
            .privacy(Privacy.GROUP_ADMIN)
            .action(self._record("groupadmin"))
            .build(),
            Ability.builder()
            .name("photo")
            .flag(Flag.PHOTO)
            .action(self._record("photo"))
            .build(),
            Ability.builder()
            .name("boom")
            .action(self._explode)
            .post(self._record("boom_post"))
            .build(),
            Ability.builder()
            .name("default")
            .info("catches everything")
            .action(self._record("default"))
            .build(),
        ]

    def replies(self):
        return [
            Reply.of(
                lambda update: self.calls.append(("reply", update.message.text)),
                Flag.TEXT,
                lambda update: update.message.text == "ping",
            ),
        ]

    async def _explode(self, ctx):
        raise RuntimeError("ability blew up")


@pytest.fixture
def make_update():
    return build_update


@pytest.fixture
def db():
    return MemoryDBContext.offline_instance("test")


@pytest.fixture
def sender():
    sender = AsyncMock(spec=MessageSender)
    sender.get_chat_administrators.return_value = []
    return sender


@pytest.fixture
def bot(db, sender):
    return SampleBot(db, sender)


@pytest.fixture
def sent_texts(sender):
    """Texts passed to send_message so far, in order."""
    return lambda: [c.args[1] for c in sender.send_message.await_args_list]
