"""Ability bot: registry owner and update dispatch pipeline.

Every inbound update goes through a fixed sequence of stages. Each
stage either lets the update continue or rejects it, in which case the
remaining stages are skipped:

    global flags -> blacklist -> user upsert -> replies -> ability lookup
    -> validation -> privacy -> locality -> input -> message flags
    -> context -> action -> post-action

Privacy, locality and input rejections notify the requester with a
localized message; the other rejections are silent. Exceptions raised
by an ability action propagate to the caller of update_received().

Key classes:
    AbilityBot: Dispatch engine. Subclass it (or pass extensions) to
        declare abilities.
    Outcome: How the pipeline finished for one update.
"""

import asyncio
import re
import time
from enum import Enum
from typing import Iterable, NamedTuple, Optional, Tuple

import structlog

from .db.base import ADMINS, BLACKLIST, USER_ID, USERS, DBContext
from .defaults import DefaultAbilities
from .exceptions import AbilityBotError, UpdateError
from .extension import AbilityExtension
from .i18n import (
    CHECK_INPUT_FAIL,
    CHECK_LOCALITY_FAIL,
    CHECK_PRIVACY_FAIL,
    get_localized_message,
)
from .objects import Ability, Locality, MessageContext, Privacy, run_callable
from .registry import DEFAULT, Registry, build_registry
from .telegram.sender import MessageSender, SilentSender
from .telegram.types import Update
from .toggle import AbilityToggle
from .utils import (
    get_chat_id,
    get_user,
    is_group_update,
    is_super_group_update,
    is_user_message,
)

logger = structlog.get_logger("abilitybot.bot")


class Outcome(str, Enum):
    """Terminal state of one pass through the pipeline."""
    REJECTED_GLOBAL_FLAGS = "rejected_global_flags"
    REJECTED_BLACKLIST = "rejected_blacklist"
    HANDLED_BY_REPLY = "handled_by_reply"
    REJECTED_UNKNOWN_ABILITY = "rejected_unknown_ability"
    REJECTED_PRIVACY = "rejected_privacy"
    REJECTED_LOCALITY = "rejected_locality"
    REJECTED_INPUT = "rejected_input"
    REJECTED_MESSAGE_FLAGS = "rejected_message_flags"
    EXECUTED = "executed"


class Dispatch(NamedTuple):
    """Update, resolved ability (None if unknown) and argument tokens."""
    update: Update
    ability: Optional[Ability]
    tokens: Tuple[str, ...]


class AbilityBot(AbilityExtension):
    """Dispatch engine bound to one bot account.

    The bot itself is an extension: subclasses override abilities()
    and replies() to declare their own. Subclasses must set any state
    those methods read before calling ``super().__init__``, since the
    registry is built here.

    Args:
        bot_username: Bot username, stripped from "/cmd@botname".
        creator_id: Telegram id of the bot owner.
        db: Store for users, admins and the blacklist.
        sender: Outbound transport.
        extensions: Extra ability sources, registered after the defaults.
        toggle: Policy for the built-in default abilities.

    Raises:
        DuplicateAbilityName: If the registry cannot be built.
    """

    name = "bot"

    def __init__(
        self,
        bot_username: str,
        creator_id: int,
        db: DBContext,
        sender: MessageSender,
        *,
        extensions: Iterable[AbilityExtension] = (),
        toggle: Optional[AbilityToggle] = None,
    ):
        self.bot_username = bot_username
        self.creator_id = creator_id
        self.db = db
        self.sender = sender
        self.silent = SilentSender(sender)
        self.running = False
        self._offset: Optional[int] = None
        self._username_pattern = (
            re.compile(f"@{re.escape(bot_username)}", re.IGNORECASE)
            if bot_username
            else None
        )

        self.defaults = DefaultAbilities(self)
        self.registry: Registry = build_registry(
            self.defaults,
            [*extensions, self],
            toggle=toggle,
            default_ability=self.defaults.default_ability(),
        )

    # --- Store views ---

    def users(self) -> dict:
        """Map of user id -> stored profile dict."""
        return self.db.get_map(USERS)

    def user_ids(self) -> dict:
        """Map of lowercase username -> user id."""
        return self.db.get_map(USER_ID)

    def blacklist(self) -> set:
        return self.db.get_set(BLACKLIST)

    def admins(self) -> set:
        return self.db.get_set(ADMINS)

    def is_creator(self, user_id: int) -> bool:
        return user_id == self.creator_id

    def is_admin(self, user_id: int) -> bool:
        return user_id in self.admins()

    # --- Pipeline ---

    async def update_received(self, update: Update) -> Outcome:
        """Run one update through the full pipeline.

        Raises:
            Exception: Whatever the matched ability's action raises.
        """
        logger.info("update_received", bot=self.bot_username, update_id=update.update_id)
        started = time.monotonic()
        try:
            outcome = await self._dispatch(update)
        finally:
            logger.info(
                "update_processed",
                bot=self.bot_username,
                update_id=update.update_id,
                processing_ms=int((time.monotonic() - started) * 1000),
            )
        if outcome is not Outcome.EXECUTED:
            logger.debug("update_rejected", update_id=update.update_id, outcome=outcome.value)
        return outcome

    async def _dispatch(self, update: Update) -> Outcome:
        if not self.check_global_flags(update):
            return Outcome.REJECTED_GLOBAL_FLAGS
        if not self.check_blacklist(update):
            return Outcome.REJECTED_BLACKLIST

        self.add_user(update)

        if not await self.filter_reply(update):
            return Outcome.HANDLED_BY_REPLY

        dispatch = self.get_ability(update)
        if not self.validate_ability(dispatch):
            return Outcome.REJECTED_UNKNOWN_ABILITY
        if not await self.check_privacy(dispatch):
            return Outcome.REJECTED_PRIVACY
        if not await self.check_locality(dispatch):
            return Outcome.REJECTED_LOCALITY
        if not await self.check_input(dispatch):
            return Outcome.REJECTED_INPUT
        if not self.check_message_flags(dispatch):
            return Outcome.REJECTED_MESSAGE_FLAGS

        context = self.get_context(dispatch)
        await self.consume_update(context, dispatch.ability)
        await self.post_consumption(context, dispatch.ability)
        return Outcome.EXECUTED

    def check_global_flags(self, update: Update) -> bool:
        """Admission filter applied before anything else.

        Accepts everything; override to restrict the bot to certain
        updates or chats.
        """
        return True

    def check_blacklist(self, update: Update) -> bool:
        try:
            user_id = get_user(update).id
        except UpdateError:
            logger.debug("update_without_user", update_id=update.update_id)
            return False
        return self.is_creator(user_id) or user_id not in self.blacklist()

    def add_user(self, update: Update) -> Update:
        """Insert or refresh the requester's profile and username index."""
        end_user = get_user(update)
        record = end_user.to_record()

        def _upsert(user_id, current):
            if current == record:
                return current
            self._update_user_id(user_id, current, record)
            return record

        self.db.compute(USERS, end_user.id, _upsert)
        self.db.commit()
        return update

    def _update_user_id(self, user_id: int, old: Optional[dict], new: dict) -> None:
        user_ids = self.user_ids()
        old_username = (old or {}).get("username")
        if old_username and user_ids.get(old_username.lower()) == user_id:
            del user_ids[old_username.lower()]
        new_username = new.get("username")
        if new_username:
            user_ids[new_username.lower()] = user_id

    async def filter_reply(self, update: Update) -> bool:
        """Run the first matching reply.

        Returns:
            False if a reply consumed the update, True to continue.
        """
        for reply in self.registry.replies:
            if reply.is_ok_for(update):
                logger.debug("reply_matched", update_id=update.update_id)
                await reply.act_on(update)
                return False
        return True

    def get_ability(self, update: Update) -> Dispatch:
        message = update.message
        if not update.has_message() or not message.has_text():
            return Dispatch(update, self.registry.get(DEFAULT), ())

        tokens = message.text.split()
        if not tokens:
            return Dispatch(update, self.registry.get(DEFAULT), ())

        if tokens[0].startswith("/"):
            command = self._strip_bot_username(tokens[0][1:]).lower()
            return Dispatch(update, self.registry.get(command), tuple(tokens[1:]))
        return Dispatch(update, self.registry.get(DEFAULT), tuple(tokens))

    def _strip_bot_username(self, token: str) -> str:
        if self._username_pattern is None:
            return token
        return self._username_pattern.sub("", token)

    def validate_ability(self, dispatch: Dispatch) -> bool:
        return dispatch.ability is not None

    async def get_privacy(self, update: Update, user_id: int) -> Privacy:
        """Resolve the requester's trust level for this update.

        Creator, then bot admin, then group admin of the originating
        group or supergroup, then public. An unreachable admin list
        counts as "not a group admin".
        """
        if self.is_creator(user_id):
            return Privacy.CREATOR
        if self.is_admin(user_id):
            return Privacy.ADMIN
        if (is_group_update(update) or is_super_group_update(update)) and \
                await self.is_group_admin(update, user_id):
            return Privacy.GROUP_ADMIN
        return Privacy.PUBLIC

    async def is_group_admin(self, update: Update, user_id: int) -> bool:
        members = await self.silent.get_chat_administrators(get_chat_id(update))
        return any(member.user.id == user_id for member in members or [])

    async def check_privacy(self, dispatch: Dispatch) -> bool:
        user = get_user(dispatch.update)
        privacy = await self.get_privacy(dispatch.update, user.id)
        is_ok = privacy >= dispatch.ability.privacy
        if not is_ok:
            await self._notify(dispatch.update, CHECK_PRIVACY_FAIL)
        return is_ok

    async def check_locality(self, dispatch: Dispatch) -> bool:
        required = dispatch.ability.locality
        if required is Locality.ALL:
            return True
        try:
            origin = Locality.USER if is_user_message(dispatch.update) else Locality.GROUP
        except UpdateError:
            logger.debug("update_origin_unknown", update_id=dispatch.update.update_id)
            return False

        is_ok = origin is required
        if not is_ok:
            await self._notify(dispatch.update, CHECK_LOCALITY_FAIL, required.value)
        return is_ok

    async def check_input(self, dispatch: Dispatch) -> bool:
        expected = dispatch.ability.input
        is_ok = expected == 0 or len(dispatch.tokens) == expected
        if not is_ok:
            await self._notify(
                dispatch.update,
                CHECK_INPUT_FAIL,
                expected,
                "input" if expected == 1 else "inputs",
            )
        return is_ok

    def check_message_flags(self, dispatch: Dispatch) -> bool:
        return all(flag(dispatch.update) for flag in dispatch.ability.flags)

    def get_context(self, dispatch: Dispatch) -> MessageContext:
        update = dispatch.update
        return MessageContext(
            update=update,
            user=get_user(update),
            chat_id=get_chat_id(update),
            arguments=dispatch.tokens,
        )

    async def consume_update(self, context: MessageContext, ability: Ability) -> None:
        logger.debug("ability_executing", ability=ability.name, user_id=context.user.id)
        await run_callable(ability.action, context)

    async def post_consumption(self, context: MessageContext, ability: Ability) -> None:
        if ability.post_action is not None:
            await run_callable(ability.post_action, context)

    async def _notify(self, update: Update, code: str, *args) -> None:
        """Send a localized rejection notice to the update's chat."""
        try:
            chat_id = get_chat_id(update)
        except UpdateError:
            logger.debug("notify_without_chat", update_id=update.update_id, code=code)
            return
        language = get_user(update).language_code
        await self.silent.send(get_localized_message(code, language, *args), chat_id)

    # --- Lifecycle ---

    async def start(self) -> None:
        self.running = True
        logger.info(
            "bot_started",
            bot=self.bot_username,
            abilities=sorted(self.registry.abilities),
            replies=len(self.registry.replies),
        )

    async def stop(self) -> None:
        """Stop polling and release the sender and store.

        Safe to call before start() and more than once.
        """
        was_running = self.running
        self.running = False
        await self.sender.close()
        self.db.close()
        if was_running:
            logger.info("bot_stopped", bot=self.bot_username)

    async def poll_updates(self, timeout: int = 50) -> None:
        """Long-poll getUpdates and dispatch each update in order.

        Errors raised while handling one update are logged and do not
        stop the loop. Transport errors back off exponentially.
        """
        reconnect_delay = 5
        MAX_RECONNECT_DELAY = 300

        while self.running:
            try:
                updates = await self.sender.get_updates(self._offset, timeout)
                reconnect_delay = 5
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("poll_error", error=str(e), retry_delay=reconnect_delay)
                await asyncio.sleep(reconnect_delay)
                reconnect_delay = min(reconnect_delay * 2, MAX_RECONNECT_DELAY)
                continue

            for update in updates:
                self._offset = update.update_id + 1
                try:
                    await self.update_received(update)
                except AbilityBotError as e:
                    logger.error("update_handling_error", update_id=update.update_id, error=str(e))
                except Exception:
                    logger.exception("ability_action_failed", update_id=update.update_id)

    async def run(self, timeout: int = 50) -> None:
        """Start, poll until stopped, then release resources."""
        await self.start()
        try:
            await self.poll_updates(timeout)
        finally:
            await self.stop()
