"""Policies that disable or rename the built-in default abilities."""

from typing import Dict, Optional, Set

import structlog

from .objects import Ability

logger = structlog.get_logger("abilitybot.bot")


class AbilityToggle:
    """Keeps every default ability as declared."""

    def is_off(self, ability: Ability) -> bool:
        return False

    def process_ability(self, ability: Ability) -> Ability:
        return ability


DefaultToggle = AbilityToggle


class BareboneToggle(AbilityToggle):
    """Drops every default ability."""

    def is_off(self, ability: Ability) -> bool:
        return True


class CustomToggle(AbilityToggle):
    """Turns off or renames individual default abilities.

    Example::

        CustomToggle().turn_off("ban").toggle("promote", "sudo")
    """

    def __init__(self):
        self._off: Set[str] = set()
        self._renames: Dict[str, str] = {}

    def turn_off(self, name: str) -> "CustomToggle":
        self._off.add(name)
        return self

    def toggle(self, name: str, new_name: str) -> "CustomToggle":
        self._renames[name] = new_name
        return self

    def is_off(self, ability: Ability) -> bool:
        return ability.name in self._off

    def process_ability(self, ability: Ability) -> Ability:
        new_name = self._renames.get(ability.name)
        if new_name is None:
            return ability
        return ability.to_builder().name(new_name).build()


def toggle_from_settings(settings: Optional[dict]) -> AbilityToggle:
    """Build a toggle from the ``toggle:`` block of settings.yaml.

    Recognised keys: ``barebone: true``, ``disabled: [names]`` and
    ``rename: {old: new}``. YAML reads a bare ``off:`` key as boolean
    False; that key is honoured as ``disabled`` with a warning.
    """
    if not settings:
        return DefaultToggle()
    if not isinstance(settings, dict):
        logger.error("toggle_settings_invalid_type", type=type(settings).__name__)
        return DefaultToggle()
    if settings.get("barebone"):
        return BareboneToggle()

    custom = CustomToggle()
    disabled = settings.get("disabled") or []
    if False in settings:
        logger.warning("toggle_off_key_read_as_false", hint="rename off: to disabled:")
        disabled = [*disabled, *(settings[False] or [])]
    for name in disabled:
        custom.turn_off(str(name))
    for name, new_name in (settings.get("rename") or {}).items():
        custom.toggle(str(name), str(new_name))
    return custom
