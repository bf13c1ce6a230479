"""Tests for registry building and default-ability toggles."""

from pathlib import Path

import pytest
import yaml

from abilitybot.bot import Outcome
from abilitybot.exceptions import DuplicateAbilityName
from abilitybot.extension import AbilityExtension
from abilitybot.objects import Ability, Reply
from abilitybot.registry import DEFAULT, build_registry
from abilitybot.toggle import (
    BareboneToggle,
    CustomToggle,
    DefaultToggle,
    toggle_from_settings,
)

from conftest import CREATOR_ID, SampleBot


def _ability(name, *replies):
    return Ability.builder().name(name).action(lambda ctx: None).reply_of(*replies).build()


def _reply(label):
    return Reply.of(lambda update: label)


class Source(AbilityExtension):
    def __init__(self, name, abilities=(), replies=()):
        self.name = name
        self._abilities = list(abilities)
        self._replies = list(replies)

    def abilities(self):
        return self._abilities

    def replies(self):
        return self._replies


# -------------------------------------------------------------------
# build_registry
# -------------------------------------------------------------------

class TestBuildRegistry:

    def test_merges_defaults_and_extensions(self):
        registry = build_registry(
            Source("defaults", [_ability("claim")]),
            [Source("ext", [_ability("hello")])],
        )
        assert list(registry.abilities) == ["claim", "hello"]

    def test_duplicate_across_sources_raises(self):
        with pytest.raises(DuplicateAbilityName, match="Duplicate ability name: hello"):
            build_registry(
                Source("defaults", []),
                [Source("a", [_ability("hello")]), Source("b", [_ability("hello")])],
            )

    def test_duplicate_check_is_case_sensitive(self):
        registry = build_registry(
            Source("defaults", []),
            [Source("ext", [_ability("Hello"), _ability("hello")])],
        )
        assert set(registry.abilities) == {"Hello", "hello"}

    def test_lookup_prefers_exact_name_then_case_insensitive(self):
        registry = build_registry(
            Source("defaults", []),
            [Source("ext", [_ability("Hello"), _ability("hello"), _ability("Stats")])],
        )

        assert registry.get("hello") is registry.abilities["hello"]
        assert registry.get("Hello") is registry.abilities["Hello"]
        assert registry.get("stats") is registry.abilities["Stats"]
        assert registry.get("missing") is None

    def test_registry_is_read_only(self):
        registry = build_registry(Source("defaults", [_ability("claim")]), [])
        with pytest.raises(TypeError):
            registry.abilities["other"] = _ability("other")

    def test_builtin_default_added_only_when_missing(self):
        builtin = _ability(DEFAULT)
        mine = Ability.builder().name(DEFAULT).info("mine").action(lambda ctx: None).build()

        plain = build_registry(Source("defaults", []), [], default_ability=builtin)
        custom = build_registry(
            Source("defaults", []), [Source("ext", [mine])], default_ability=builtin
        )

        assert plain.get(DEFAULT) is builtin
        assert custom.get(DEFAULT) is mine

    def test_embedded_replies_come_before_standalone(self):
        embedded = _reply("embedded")
        standalone_default = _reply("standalone_default")
        standalone_ext = _reply("standalone_ext")

        registry = build_registry(
            Source("defaults", [], [standalone_default]),
            [Source("ext", [_ability("hello", embedded)], [standalone_ext])],
        )

        assert registry.replies == (embedded, standalone_default, standalone_ext)

    def test_toggled_off_ability_drops_its_embedded_replies(self):
        embedded = _reply("embedded")
        registry = build_registry(
            Source("defaults", [_ability("recover", embedded)]),
            [],
            toggle=CustomToggle().turn_off("recover"),
        )
        assert registry.replies == ()

    def test_toggle_does_not_touch_extension_abilities(self):
        registry = build_registry(
            Source("defaults", [_ability("ban")]),
            [Source("ext", [_ability("hello")])],
            toggle=BareboneToggle(),
        )
        assert list(registry.abilities) == ["hello"]


# -------------------------------------------------------------------
# Toggles
# -------------------------------------------------------------------

class TestToggles:

    def test_default_toggle_keeps_ability(self):
        ability = _ability("ban")
        toggle = DefaultToggle()
        assert toggle.is_off(ability) is False
        assert toggle.process_ability(ability) is ability

    def test_custom_toggle_renames_keeping_everything_else(self):
        original = Ability.builder().name("promote").info("x").input(1).action(print).build()
        renamed = CustomToggle().toggle("promote", "sudo").process_ability(original)

        assert renamed.name == "sudo"
        assert renamed.info == "x"
        assert renamed.input == 1
        assert renamed.action is print

    def test_barebone_bot_has_only_its_own_abilities(self, db, sender):
        bot = SampleBot(db, sender, toggle=BareboneToggle())

        assert "claim" not in bot.registry.abilities
        assert "commands" not in bot.registry.abilities
        assert "test" in bot.registry.abilities

    @pytest.mark.asyncio
    async def test_renamed_default_reachable_under_new_name(self, db, sender, make_update):
        bot = SampleBot(db, sender, toggle=CustomToggle().toggle("claim", "own").turn_off("ban"))
        creator = dict(user_id=CREATOR_ID, username="boss")

        assert await bot.update_received(make_update("/own", **creator)) is Outcome.EXECUTED
        assert await bot.update_received(make_update("/claim", **creator)) \
            is Outcome.REJECTED_UNKNOWN_ABILITY
        assert "ban" not in bot.registry.abilities
        assert CREATOR_ID in bot.admins()

    def test_renaming_onto_existing_name_raises(self, db, sender):
        with pytest.raises(DuplicateAbilityName):
            SampleBot(db, sender, toggle=CustomToggle().toggle("claim", "test"))

    def test_toggle_from_settings(self):
        assert isinstance(toggle_from_settings(None), DefaultToggle)
        assert isinstance(toggle_from_settings({"barebone": True}), BareboneToggle)

        custom = toggle_from_settings({"disabled": ["ban"], "rename": {"promote": "sudo"}})
        assert custom.is_off(_ability("ban")) is True
        assert custom.process_ability(_ability("promote")).name == "sudo"

    def test_toggle_from_settings_ignores_wrong_type(self):
        toggle = toggle_from_settings(["ban"])
        assert toggle.is_off(_ability("ban")) is False

    def test_toggle_from_settings_accepts_off_read_as_false(self):
        toggle = toggle_from_settings(yaml.safe_load("off: [ban]\n"))
        assert toggle.is_off(_ability("ban")) is True

    def test_sample_settings_turn_off_report(self):
        example = Path(__file__).parent.parent / "config" / "settings.yaml.example"
        settings = yaml.safe_load(example.read_text())

        toggle = toggle_from_settings(settings["toggle"])

        assert toggle.is_off(_ability("report")) is True
        assert toggle.is_off(_ability("ban")) is False
        assert toggle.process_ability(_ability("promote")).name == "sudo"
