"""abilitybot: declarative, access-controlled Telegram bot commands.

Abilities are named commands with a required privacy level, chat
locality, argument count and message flags. Replies are predicate-gated
continuations matched before any command. The AbilityBot threads every
update through one ordered validation pipeline.
"""

__version__ = "1.0.0"

from .bot import AbilityBot, Outcome
from .exceptions import AbilityBotError, DuplicateAbilityName
from .extension import AbilityExtension
from .flags import Flag
from .objects import Ability, AbilityBuilder, Locality, MessageContext, Privacy, Reply
from .toggle import AbilityToggle, BareboneToggle, CustomToggle, DefaultToggle

__all__ = [
    "AbilityBot",
    "Outcome",
    "AbilityExtension",
    "Ability",
    "AbilityBuilder",
    "Reply",
    "MessageContext",
    "Privacy",
    "Locality",
    "Flag",
    "AbilityToggle",
    "DefaultToggle",
    "BareboneToggle",
    "CustomToggle",
    "AbilityBotError",
    "DuplicateAbilityName",
]
