"""Tests for extension discovery, allowlist and factory loading."""

from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from abilitybot.db import MemoryDBContext
from abilitybot.extension_loader import ExtensionContext, ExtensionLoader
from abilitybot.telegram.sender import MessageSender

HELLO_EXTENSION = '''
from abilitybot import Ability, AbilityExtension


class Hello(AbilityExtension):
    def __init__(self, ctx):
        self.ctx = ctx

    def abilities(self):
        return [
            Ability.builder()
            .name("hello")
            .info(self.ctx.get_config("greeting", "hi"))
            .action(self.greet)
            .build(),
        ]

    async def greet(self, ctx):
        await self.ctx.bot.silent.send(self.ctx.get_config("greeting", "hi"), ctx.chat_id)


def create_extension(ctx):
    return Hello(ctx)
'''


def _write_extension(root, name, source=HELLO_EXTENSION):
    ext_dir = root / name
    ext_dir.mkdir()
    (ext_dir / "extension.py").write_text(source)


def _make_loader(extensions_dir, settings=None, data_dir=None):
    """Create an ExtensionLoader with test defaults."""
    return ExtensionLoader(
        extensions_dir=extensions_dir,
        settings=settings or {},
        sender=AsyncMock(spec=MessageSender),
        db=MemoryDBContext(),
        data_dir=data_dir or extensions_dir.parent / "data",
    )


def test_loads_extension_through_factory(tmp_path):
    root = tmp_path / "extensions"
    root.mkdir()
    _write_extension(root, "hello")

    loader = _make_loader(root, settings={"extensions": {"hello": {"greeting": "Howdy"}}})
    extensions = loader.discover_and_load()

    assert len(extensions) == 1
    assert extensions[0].label == "hello"
    assert extensions[0].abilities()[0].info == "Howdy"
    assert (tmp_path / "data" / "hello").is_dir()


def test_allowlist_blocks_unlisted_extension(tmp_path):
    _write_extension(tmp_path, "evil")

    loader = _make_loader(tmp_path, settings={"extension_allowlist": ["safe"]})

    assert loader.discover_and_load() == []


def test_allowlist_allows_listed_extension(tmp_path):
    _write_extension(tmp_path, "safe")
    _write_extension(tmp_path, "other")

    loader = _make_loader(tmp_path, settings={"extension_allowlist": ["safe"]})

    assert [e.label for e in loader.discover_and_load()] == ["safe"]


def test_disabled_extension_skipped(tmp_path):
    _write_extension(tmp_path, "hello")

    loader = _make_loader(tmp_path, settings={"extensions": {"hello": {"enabled": False}}})

    assert loader.discover_and_load() == []


def test_missing_directory_loads_nothing(tmp_path):
    assert _make_loader(tmp_path / "absent").discover_and_load() == []


@pytest.mark.parametrize("source", [
    "x = 1\n",
    "def create_extension(ctx):\n    return object()\n",
    "raise ImportError('missing dependency')\n",
])
def test_broken_extension_skipped_others_still_load(tmp_path, source):
    _write_extension(tmp_path, "a_broken", source)
    _write_extension(tmp_path, "b_hello")

    loader = _make_loader(tmp_path)

    assert [e.label for e in loader.discover_and_load()] == ["b_hello"]


def test_context_exposes_only_own_settings(tmp_path):
    ctx = ExtensionContext(
        extension_name="hello",
        settings={"bot_token": "secret", "extensions": {"hello": {"greeting": "Hey"}}},
        sender=AsyncMock(spec=MessageSender),
        db=MemoryDBContext(),
        data_dir=Path(tmp_path),
    )

    assert ctx.get_config("greeting") == "Hey"
    assert ctx.get_config("bot_token") is None
    assert ctx.enabled is True


@pytest.mark.asyncio
async def test_bot_available_to_actions_after_attach(tmp_path, db, sender, make_update):
    from conftest import SampleBot

    _write_extension(tmp_path, "hello")
    loader = ExtensionLoader(tmp_path, {}, sender, db, tmp_path / "data")
    extensions = loader.discover_and_load()

    with pytest.raises(RuntimeError):
        loader._contexts[0].bot

    bot = SampleBot(db, sender, extensions=extensions)
    loader.attach_bot(bot)
    await bot.update_received(make_update("/hello"))

    sender.send_message.assert_awaited_once_with(1, "hi")
