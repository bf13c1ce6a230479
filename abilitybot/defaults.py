"""Built-in abilities every bot gets.

    /claim            claim the bot (creator only)
    /report           list abilities in BotFather format
    /commands         list the abilities the requester may use
    /backup           send a backup of the store
    /recover          restore the store from a replied backup file
    /promote @user    make a known user a bot admin
    /demote @user     revoke bot admin
    /ban @user        blacklist a known user
    /unban @user      lift a ban

The catch-all ``default`` ability is supplied separately through
default_ability() so a bot can declare its own.

These abilities can be turned off or renamed with an AbilityToggle.
"""

from __future__ import annotations

import tempfile
from pathlib import Path
from typing import TYPE_CHECKING, List, Optional

import aiohttp
import structlog

from .exceptions import TelegramApiError
from .extension import AbilityExtension
from .flags import Flag
from .i18n import (
    ABILITY_BAN_CREATOR,
    ABILITY_BAN_FAIL,
    ABILITY_BAN_SUCCESS,
    ABILITY_CLAIM_SUCCESS,
    ABILITY_COMMANDS_NOT_FOUND,
    ABILITY_DEMOTE_FAIL,
    ABILITY_DEMOTE_SUCCESS,
    ABILITY_PROMOTE_FAIL,
    ABILITY_PROMOTE_SUCCESS,
    ABILITY_RECOVER_FAIL,
    ABILITY_RECOVER_MESSAGE,
    ABILITY_RECOVER_SUCCESS,
    ABILITY_UNBAN_FAIL,
    ABILITY_UNBAN_SUCCESS,
    USER_NOT_FOUND,
    get_localized_message,
)
from .objects import Ability, Locality, MessageContext, Privacy, Reply
from .registry import DEFAULT
from .telegram.types import Update
from .utils import add_tag, commit_to, get_chat_id, get_user, short_name, strip_tag

if TYPE_CHECKING:
    from .bot import AbilityBot

logger = structlog.get_logger("abilitybot.bot")

BACKUP_FILENAME = "backup.json"


class DefaultAbilities(AbilityExtension):
    """Administrative abilities bound to one bot."""

    name = "defaults"

    def __init__(self, bot: "AbilityBot"):
        self.bot = bot

    def abilities(self) -> List[Ability]:
        return [
            self.claim_creator(),
            self.report_commands(),
            self.commands(),
            self.backup_db(),
            self.recover_db(),
            self.promote_admin(),
            self.demote_admin(),
            self.ban_user(),
            self.unban_user(),
        ]

    def default_ability(self) -> Ability:
        """No-op catch-all for plain text and non-message updates."""
        return (
            Ability.builder()
            .name(DEFAULT)
            .privacy(Privacy.PUBLIC)
            .locality(Locality.ALL)
            .input(0)
            .action(lambda ctx: None)
            .build()
        )

    async def _send(self, ctx: MessageContext, code: str, *args) -> None:
        text = get_localized_message(code, ctx.user.language_code, *args)
        await self.bot.silent.send(text, ctx.chat_id)

    def _resolve_user_id(self, username: str) -> Optional[int]:
        return self.bot.user_ids().get(strip_tag(username))

    # --- Claim / listing ---

    def claim_creator(self) -> Ability:
        async def action(ctx: MessageContext) -> None:
            self.bot.admins().add(ctx.user.id)
            await self._send(ctx, ABILITY_CLAIM_SUCCESS)

        return (
            Ability.builder()
            .name("claim")
            .privacy(Privacy.CREATOR)
            .locality(Locality.ALL)
            .input(0)
            .action(action)
            .post(commit_to(self.bot.db))
            .build()
        )

    def report_commands(self) -> Ability:
        async def action(ctx: MessageContext) -> None:
            lines = sorted(
                f"{ability.name} - {ability.info}"
                for ability in self.bot.registry.abilities.values()
                if ability.info
            )
            if lines:
                await self.bot.silent.send("\n".join(lines), ctx.chat_id)
            else:
                await self._send(ctx, ABILITY_COMMANDS_NOT_FOUND)

        return (
            Ability.builder()
            .name("report")
            .privacy(Privacy.CREATOR)
            .locality(Locality.ALL)
            .input(0)
            .action(action)
            .build()
        )

    def commands(self) -> Ability:
        async def action(ctx: MessageContext) -> None:
            privacy = await self.bot.get_privacy(ctx.update, ctx.user.id)
            abilities = self.bot.registry.abilities.values()

            sections = []
            for level in Privacy:
                if level > privacy:
                    break
                entries = sorted(
                    f"/{a.name} - {a.info}" if a.info else f"/{a.name}"
                    for a in abilities
                    if a.privacy == level and (a.name != DEFAULT or a.info)
                )
                if entries:
                    sections.append("\n".join([level.name, *entries]))

            if sections:
                await self.bot.silent.send("\n".join(sections), ctx.chat_id)
            else:
                await self._send(ctx, ABILITY_COMMANDS_NOT_FOUND)

        return (
            Ability.builder()
            .name("commands")
            .privacy(Privacy.PUBLIC)
            .locality(Locality.ALL)
            .input(0)
            .action(action)
            .build()
        )

    # --- Backup / recovery ---

    def backup_db(self) -> Ability:
        async def action(ctx: MessageContext) -> None:
            with tempfile.TemporaryDirectory() as tmp:
                path = Path(tmp) / BACKUP_FILENAME
                path.write_text(self.bot.db.backup(), encoding="utf-8")
                await self.bot.sender.send_document(ctx.chat_id, path)
            logger.info("db_backup_sent", chat_id=ctx.chat_id)

        return (
            Ability.builder()
            .name("backup")
            .privacy(Privacy.CREATOR)
            .locality(Locality.USER)
            .input(0)
            .action(action)
            .build()
        )

    def recover_db(self) -> Ability:
        async def action(ctx: MessageContext) -> None:
            prompt = get_localized_message(ABILITY_RECOVER_MESSAGE, ctx.user.language_code)
            await self.bot.silent.force_reply(prompt, ctx.chat_id)

        return (
            Ability.builder()
            .name("recover")
            .privacy(Privacy.CREATOR)
            .locality(Locality.USER)
            .input(0)
            .action(action)
            .reply_of(self._recover_reply())
            .build()
        )

    def _recover_reply(self) -> Reply:
        def from_creator(update: Update) -> bool:
            return self.bot.is_creator(update.message.from_user.id)

        def replies_to_prompt(update: Update) -> bool:
            replied = update.message.reply_to_message
            prompt = get_localized_message(
                ABILITY_RECOVER_MESSAGE, update.message.from_user.language_code
            )
            return replied.text == prompt

        return Reply.of(
            self._recover_from_file,
            Flag.MESSAGE,
            Flag.DOCUMENT,
            Flag.REPLY,
            lambda u: u.message.from_user is not None,
            from_creator,
            replies_to_prompt,
        )

    async def _recover_from_file(self, update: Update) -> None:
        user = get_user(update)
        chat_id = get_chat_id(update)
        try:
            file = await self.bot.sender.get_file(update.message.document.file_id)
            content = await self.bot.sender.download_file(file)
            recovered = self.bot.db.recover(content.decode("utf-8"))
        except (TelegramApiError, aiohttp.ClientError, UnicodeDecodeError) as e:
            logger.error("db_recover_download_failed", chat_id=chat_id, error=str(e))
            recovered = False

        code = ABILITY_RECOVER_SUCCESS if recovered else ABILITY_RECOVER_FAIL
        await self.bot.silent.send(get_localized_message(code, user.language_code), chat_id)

    # --- Admin and blacklist management ---

    def promote_admin(self) -> Ability:
        async def action(ctx: MessageContext) -> None:
            user_id = self._resolve_user_id(ctx.first_arg)
            if user_id is None:
                await self._send(ctx, USER_NOT_FOUND, ctx.first_arg)
                return
            tag = add_tag(strip_tag(ctx.first_arg))
            admins = self.bot.admins()
            if user_id in admins:
                await self._send(ctx, ABILITY_PROMOTE_FAIL, tag)
            else:
                admins.add(user_id)
                await self._send(ctx, ABILITY_PROMOTE_SUCCESS, tag)

        return self._admin_ability("promote", action)

    def demote_admin(self) -> Ability:
        async def action(ctx: MessageContext) -> None:
            user_id = self._resolve_user_id(ctx.first_arg)
            if user_id is None:
                await self._send(ctx, USER_NOT_FOUND, ctx.first_arg)
                return
            tag = add_tag(strip_tag(ctx.first_arg))
            admins = self.bot.admins()
            if user_id in admins:
                admins.discard(user_id)
                await self._send(ctx, ABILITY_DEMOTE_SUCCESS, tag)
            else:
                await self._send(ctx, ABILITY_DEMOTE_FAIL, tag)

        return self._admin_ability("demote", action)

    def ban_user(self) -> Ability:
        async def action(ctx: MessageContext) -> None:
            user_id = self._resolve_user_id(ctx.first_arg)
            if user_id is None:
                await self._send(ctx, USER_NOT_FOUND, ctx.first_arg)
                return
            blacklist = self.bot.blacklist()
            if self.bot.is_creator(user_id):
                # Whoever tries to ban the creator gets banned instead
                blacklist.add(ctx.user.id)
                await self._send(ctx, ABILITY_BAN_CREATOR, short_name(ctx.user))
                logger.warning("creator_ban_attempt", user_id=ctx.user.id)
                return

            tag = add_tag(strip_tag(ctx.first_arg))
            if user_id in blacklist:
                await self._send(ctx, ABILITY_BAN_FAIL, tag)
            else:
                blacklist.add(user_id)
                await self._send(ctx, ABILITY_BAN_SUCCESS, tag)

        return self._admin_ability("ban", action)

    def unban_user(self) -> Ability:
        async def action(ctx: MessageContext) -> None:
            user_id = self._resolve_user_id(ctx.first_arg)
            if user_id is None:
                await self._send(ctx, USER_NOT_FOUND, ctx.first_arg)
                return
            tag = add_tag(strip_tag(ctx.first_arg))
            blacklist = self.bot.blacklist()
            if user_id in blacklist:
                blacklist.discard(user_id)
                await self._send(ctx, ABILITY_UNBAN_SUCCESS, tag)
            else:
                await self._send(ctx, ABILITY_UNBAN_FAIL, tag)

        return self._admin_ability("unban", action)

    def _admin_ability(self, name: str, action) -> Ability:
        return (
            Ability.builder()
            .name(name)
            .privacy(Privacy.ADMIN)
            .locality(Locality.ALL)
            .input(1)
            .action(action)
            .post(commit_to(self.bot.db))
            .build()
        )
