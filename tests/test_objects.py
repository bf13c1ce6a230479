"""Tests for abilities, replies, contexts, flags and update helpers."""

import pytest

from abilitybot.exceptions import UpdateError
from abilitybot.flags import Flag
from abilitybot.objects import Ability, Locality, MessageContext, Privacy, Reply, run_callable
from abilitybot.telegram.types import Update, User
from abilitybot.utils import (
    full_name,
    get_chat_id,
    get_user,
    is_reply_to,
    is_user_message,
    short_name,
    strip_tag,
)


def _noop(ctx):
    return None


# -------------------------------------------------------------------
# Ability builder
# -------------------------------------------------------------------

class TestAbilityBuilder:

    def test_defaults(self):
        ability = Ability.builder().name("hello").action(_noop).build()

        assert ability.privacy is Privacy.PUBLIC
        assert ability.locality is Locality.ALL
        assert ability.input == 0
        assert ability.info is None
        assert ability.flags == ()
        assert ability.post_action is None

    def test_flags_and_replies_accumulate(self):
        reply = Reply.of(_noop)
        ability = (
            Ability.builder()
            .name("hello")
            .action(_noop)
            .flag(Flag.TEXT)
            .flag(Flag.REPLY, Flag.MESSAGE)
            .reply(_noop, Flag.DOCUMENT)
            .reply_of(reply)
            .build()
        )

        assert ability.flags == (Flag.TEXT, Flag.REPLY, Flag.MESSAGE)
        assert len(ability.replies) == 2
        assert ability.replies[1] is reply

    @pytest.mark.parametrize("name", ["", "has space", "x" * 33, "slash/name", "émoji"])
    def test_invalid_names_rejected(self, name):
        with pytest.raises(ValueError, match="Invalid ability name"):
            Ability.builder().name(name).action(_noop).build()

    def test_longest_valid_name(self):
        assert Ability.builder().name("x" * 32).action(_noop).build().name == "x" * 32

    def test_missing_name_rejected(self):
        with pytest.raises(ValueError, match="name is required"):
            Ability.builder().action(_noop).build()

    def test_missing_action_rejected(self):
        with pytest.raises(ValueError, match="no action"):
            Ability.builder().name("hello").build()

    def test_negative_input_rejected(self):
        with pytest.raises(ValueError, match="negative"):
            Ability.builder().name("hello").input(-1).action(_noop).build()

    def test_ability_is_frozen(self):
        ability = Ability.builder().name("hello").action(_noop).build()
        with pytest.raises(AttributeError):
            ability.name = "other"

    def test_privacy_ordering(self):
        assert Privacy.PUBLIC < Privacy.GROUP_ADMIN < Privacy.ADMIN < Privacy.CREATOR


# -------------------------------------------------------------------
# Replies and contexts
# -------------------------------------------------------------------

def _text_update(text):
    return Update.model_validate({
        "update_id": 1,
        "message": {
            "message_id": 1,
            "from": {"id": 5, "first_name": "Eve"},
            "chat": {"id": 5, "type": "private"},
            "text": text,
        },
    })


class TestReply:

    def test_all_conditions_must_hold(self):
        reply = Reply.of(_noop, Flag.TEXT, lambda u: u.message.text == "yes")

        assert reply.is_ok_for(_text_update("yes")) is True
        assert reply.is_ok_for(_text_update("no")) is False

    def test_no_conditions_matches_everything(self):
        assert Reply.of(_noop).is_ok_for(_text_update("anything")) is True

    def test_disabled_reply_never_matches(self):
        reply = Reply(action=_noop, conditions=(), enabled=False)
        assert reply.is_ok_for(_text_update("anything")) is False

    @pytest.mark.asyncio
    async def test_act_on_awaits_async_actions(self):
        seen = []

        async def action(update):
            seen.append(update.message.text)

        await Reply.of(action).act_on(_text_update("hi"))
        assert seen == ["hi"]


@pytest.mark.asyncio
async def test_run_callable_handles_sync_and_async():
    async def double(x):
        return x * 2

    assert await run_callable(lambda x: x + 1, 1) == 2
    assert await run_callable(double, 2) == 4


class TestMessageContext:

    def _context(self, *arguments):
        update = _text_update("/cmd")
        return MessageContext(update=update, user=get_user(update), chat_id=5, arguments=arguments)

    def test_positional_arguments(self):
        ctx = self._context("a", "b", "c")
        assert (ctx.first_arg, ctx.second_arg, ctx.third_arg) == ("a", "b", "c")

    def test_missing_argument_raises(self):
        ctx = self._context("a")
        with pytest.raises(IndexError):
            ctx.second_arg


# -------------------------------------------------------------------
# Flags
# -------------------------------------------------------------------

class TestFlags:

    def test_none_update_never_matches(self):
        assert Flag.NONE(None) is False
        assert Flag.MESSAGE(None) is False

    def test_message_flags(self):
        update = _text_update("hi")

        assert Flag.NONE(update) is True
        assert Flag.MESSAGE(update) is True
        assert Flag.TEXT(update) is True
        assert Flag.REPLY(update) is False
        assert Flag.DOCUMENT(update) is False
        assert Flag.PHOTO(update) is False
        assert Flag.LOCATION(update) is False
        assert Flag.CAPTION(update) is False
        assert Flag.CALLBACK_QUERY(update) is False

    def test_location_and_caption(self):
        update = Update.model_validate({
            "update_id": 1,
            "message": {
                "message_id": 1,
                "chat": {"id": 5, "type": "private"},
                "caption": "here",
                "location": {"latitude": 52.5, "longitude": 13.4},
            },
        })
        assert Flag.LOCATION(update) is True
        assert Flag.CAPTION(update) is True
        assert Flag.TEXT(update) is False

    def test_message_flags_false_for_other_update_kinds(self):
        update = Update.model_validate({
            "update_id": 1,
            "edited_message": {
                "message_id": 1,
                "chat": {"id": 5, "type": "private"},
                "text": "edited",
            },
        })
        assert Flag.EDITED_MESSAGE(update) is True
        assert Flag.MESSAGE(update) is False
        assert Flag.TEXT(update) is False


# -------------------------------------------------------------------
# Update helpers
# -------------------------------------------------------------------

class TestUpdateHelpers:

    def test_callback_query_user_and_chat(self):
        update = Update.model_validate({
            "update_id": 1,
            "callback_query": {
                "id": "cb",
                "from": {"id": 8, "first_name": "Bo"},
                "message": {"message_id": 3, "chat": {"id": -42, "type": "group"}},
                "data": "x",
            },
        })

        assert get_user(update).id == 8
        assert get_chat_id(update) == -42
        assert is_user_message(update) is False

    def test_inline_query_chat_is_the_user(self):
        update = Update.model_validate({
            "update_id": 1,
            "chosen_inline_result": {"result_id": "r", "from": {"id": 8, "first_name": "Bo"}},
        })

        assert get_chat_id(update) == 8
        assert is_user_message(update) is True

    def test_callback_from_inline_message_chat_is_the_user(self):
        update = Update.model_validate({
            "update_id": 1,
            "callback_query": {
                "id": "cb",
                "from": {"id": 8, "first_name": "Bo"},
                "inline_message_id": "im1",
            },
        })

        assert update.callback_query.inline_message_id == "im1"
        assert get_chat_id(update) == 8

    def test_empty_update_raises(self):
        update = Update(update_id=1)

        with pytest.raises(UpdateError):
            get_user(update)
        with pytest.raises(UpdateError):
            get_chat_id(update)
        with pytest.raises(UpdateError):
            is_user_message(update)

    def test_is_reply_to(self):
        update = Update.model_validate({
            "update_id": 1,
            "message": {
                "message_id": 2,
                "chat": {"id": 5, "type": "private"},
                "text": "answer",
                "reply_to_message": {
                    "message_id": 1,
                    "chat": {"id": 5, "type": "private"},
                    "text": "question?",
                },
            },
        })

        assert is_reply_to("question?")(update) is True
        assert is_reply_to("other")(update) is False
        assert is_reply_to("question?")(_text_update("x")) is False

    def test_names_and_tags(self):
        user = User(id=1, first_name="Ada", last_name="Lovelace", username="ada")

        assert strip_tag("@AdA") == "ada"
        assert strip_tag("ada") == "ada"
        assert short_name(user) == "Ada"
        assert short_name(User(id=2, username="nobody")) == "nobody"
        assert full_name(user) == "Ada Lovelace"
