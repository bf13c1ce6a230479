"""Ability and reply registries.

Collects the abilities and replies declared by the default abilities
and every extension into two immutable registries. Registration is
all-or-nothing: a duplicate ability name aborts the whole build.

Key classes:
    Registry: The frozen ability mapping and reply sequence.

Key functions:
    build_registry: Merge sources into a Registry.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

import structlog

from .exceptions import DuplicateAbilityName
from .extension import AbilityExtension
from .objects import Ability, Reply
from .toggle import AbilityToggle, DefaultToggle

logger = structlog.get_logger("abilitybot.extensions")

DEFAULT = "default"


@dataclass(frozen=True)
class Registry:
    """Read-only view of everything a bot can dispatch to."""
    abilities: Mapping[str, Ability]
    replies: Tuple[Reply, ...]
    # casefolded name -> first ability registered under that folding
    folded: Mapping[str, Ability] = field(default_factory=lambda: MappingProxyType({}))

    def get(self, name: str) -> Optional[Ability]:
        """Exact name first, then a case-insensitive match."""
        ability = self.abilities.get(name)
        if ability is None:
            ability = self.folded.get(name.casefold())
        return ability


def _put(registry: Dict[str, Ability], ability: Ability, source: str) -> None:
    if ability.name in registry:
        logger.error(
            "duplicate_ability_name",
            ability=ability.name,
            source=source,
        )
        raise DuplicateAbilityName(ability.name, source=source)
    registry[ability.name] = ability


def build_registry(
    defaults: AbilityExtension,
    extensions: Iterable[AbilityExtension],
    toggle: Optional[AbilityToggle] = None,
    default_ability: Optional[Ability] = None,
) -> Registry:
    """Build the ability and reply registries.

    Args:
        defaults: Source of the built-in abilities; each passes through
            ``toggle`` (dropped if off, possibly renamed).
        extensions: Further sources, registered in order.
        toggle: Policy for built-in abilities. Defaults to keeping all.
        default_ability: Catch-all registered under ``default`` only
            when no source declares one.

    Returns:
        Registry with abilities in registration order and replies
        ordered as embedded ability replies, then standalone replies.

    Raises:
        DuplicateAbilityName: If two abilities share a name (case-sensitive).
    """
    toggle = toggle or DefaultToggle()
    extensions = list(extensions)
    abilities: Dict[str, Ability] = {}

    for ability in defaults.abilities():
        if toggle.is_off(ability):
            logger.debug("default_ability_off", ability=ability.name)
            continue
        _put(abilities, toggle.process_ability(ability), defaults.label)

    for ext in extensions:
        for ability in ext.abilities():
            _put(abilities, ability, ext.label)

    if default_ability is not None and DEFAULT not in abilities:
        abilities[DEFAULT] = default_ability

    standalone: List[Reply] = []
    for ext in [defaults, *extensions]:
        standalone.extend(ext.replies())

    folded: Dict[str, Ability] = {}
    for name, ability in abilities.items():
        folded.setdefault(name.casefold(), ability)

    embedded = [reply for ability in abilities.values() for reply in ability.replies]
    registry = Registry(
        abilities=MappingProxyType(abilities),
        replies=tuple(embedded + standalone),
        folded=MappingProxyType(folded),
    )

    logger.info(
        "registry_built",
        abilities=len(registry.abilities),
        replies=len(registry.replies),
        sources=[defaults.label] + [ext.label for ext in extensions],
    )
    return registry
