"""Core value types: privacy, locality, abilities, replies, contexts.

Abilities and replies are frozen once built. Extensions create them
through ``Ability.builder()`` and ``Reply.of()`` and hand them to the
registry at startup.

Key classes:
    Privacy: Ordered trust levels gating ability access.
    Locality: Chat origin an ability accepts.
    Ability: Immutable command descriptor.
    AbilityBuilder: Fluent, validating constructor for Ability.
    Reply: Predicate-gated continuation matched before abilities.
    MessageContext: What an ability action receives.
"""

import inspect
import re
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, Callable, Optional, Tuple

from .telegram.types import Update, User

# Callables may be sync or async; the bot awaits awaitable results.
Action = Callable[["MessageContext"], Any]
UpdateAction = Callable[[Update], Any]
Predicate = Callable[[Update], bool]

_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_]{1,32}$")


class Privacy(IntEnum):
    """Trust levels, ordered from least to most trusted."""
    PUBLIC = 0
    GROUP_ADMIN = 1
    ADMIN = 2
    CREATOR = 3


class Locality(str, Enum):
    USER = "user"
    GROUP = "group"
    ALL = "all"


async def run_callable(fn: Callable, arg: Any) -> Any:
    """Call ``fn(arg)`` and await the result if it is awaitable."""
    result = fn(arg)
    if inspect.isawaitable(result):
        result = await result
    return result


@dataclass(frozen=True)
class Reply:
    """A conversational continuation independent of command names.

    Attributes:
        action: Called with the raw update when every condition holds.
        conditions: Predicates over the update (Flag members or callables).
        enabled: Disabled replies never match.
    """
    action: UpdateAction
    conditions: Tuple[Predicate, ...] = ()
    enabled: bool = True

    @classmethod
    def of(cls, action: UpdateAction, *conditions: Predicate) -> "Reply":
        return cls(action=action, conditions=tuple(conditions))

    def is_ok_for(self, update: Update) -> bool:
        return self.enabled and all(cond(update) for cond in self.conditions)

    async def act_on(self, update: Update) -> None:
        await run_callable(self.action, update)


@dataclass(frozen=True)
class Ability:
    """An access-controlled command handler.

    Attributes:
        name: Command name without the leading slash.
        action: Called with a MessageContext once all checks pass.
        info: One-line description shown by /report and /commands.
        privacy: Minimum requester privacy.
        locality: Accepted chat origin.
        input: Exact argument count required; 0 disables the check.
        flags: Predicates the update must all satisfy.
        post_action: Called after ``action`` returns normally.
        replies: Replies bundled with this ability.
    """
    name: str
    action: Action
    info: Optional[str] = None
    privacy: Privacy = Privacy.PUBLIC
    locality: Locality = Locality.ALL
    input: int = 0
    flags: Tuple[Predicate, ...] = ()
    post_action: Optional[Action] = None
    replies: Tuple[Reply, ...] = ()

    def __post_init__(self):
        if not self.name or not _NAME_PATTERN.match(self.name):
            raise ValueError(
                f"Invalid ability name {self.name!r}: use 1-32 letters, digits or underscores"
            )
        if self.input < 0:
            raise ValueError(f"Input arity cannot be negative for ability {self.name!r}")
        if self.action is None:
            raise ValueError(f"Ability {self.name!r} has no action")

    @staticmethod
    def builder() -> "AbilityBuilder":
        return AbilityBuilder()

    def to_builder(self) -> "AbilityBuilder":
        """Builder pre-filled with this ability's fields."""
        builder = AbilityBuilder()
        builder._fields = {
            "name": self.name,
            "action": self.action,
            "info": self.info,
            "privacy": self.privacy,
            "locality": self.locality,
            "input": self.input,
            "post_action": self.post_action,
        }
        builder._flags = list(self.flags)
        builder._replies = list(self.replies)
        return builder


class AbilityBuilder:
    """Fluent constructor for Ability.

    Example::

        Ability.builder()
            .name("hello")
            .info("says hello")
            .privacy(Privacy.PUBLIC)
            .locality(Locality.ALL)
            .action(lambda ctx: bot.silent.send("Hello!", ctx.chat_id))
            .build()
    """

    def __init__(self):
        self._fields: dict = {}
        self._flags: list = []
        self._replies: list = []

    def name(self, name: str) -> "AbilityBuilder":
        self._fields["name"] = name
        return self

    def info(self, info: str) -> "AbilityBuilder":
        self._fields["info"] = info
        return self

    def privacy(self, privacy: Privacy) -> "AbilityBuilder":
        self._fields["privacy"] = privacy
        return self

    def locality(self, locality: Locality) -> "AbilityBuilder":
        self._fields["locality"] = locality
        return self

    def input(self, count: int) -> "AbilityBuilder":
        self._fields["input"] = count
        return self

    def flag(self, *flags: Predicate) -> "AbilityBuilder":
        self._flags.extend(flags)
        return self

    def action(self, action: Action) -> "AbilityBuilder":
        self._fields["action"] = action
        return self

    def post(self, post_action: Action) -> "AbilityBuilder":
        self._fields["post_action"] = post_action
        return self

    def reply(self, action: UpdateAction, *conditions: Predicate) -> "AbilityBuilder":
        self._replies.append(Reply.of(action, *conditions))
        return self

    def reply_of(self, *replies: Reply) -> "AbilityBuilder":
        self._replies.extend(replies)
        return self

    def build(self) -> Ability:
        """Validate and freeze.

        Raises:
            ValueError: On a missing or invalid name, a missing action,
                or a negative input count.
        """
        if "name" not in self._fields:
            raise ValueError("Ability name is required")
        if "action" not in self._fields:
            raise ValueError(f"Ability {self._fields['name']!r} has no action")
        return Ability(
            flags=tuple(self._flags),
            replies=tuple(self._replies),
            **self._fields,
        )


@dataclass(frozen=True)
class MessageContext:
    """Everything an ability action needs about the current update."""
    update: Update
    user: User
    chat_id: int
    arguments: Tuple[str, ...] = field(default_factory=tuple)

    def _arg(self, index: int) -> str:
        if len(self.arguments) <= index:
            raise IndexError(f"Ability expects at least {index + 1} argument(s)")
        return self.arguments[index]

    @property
    def first_arg(self) -> str:
        return self._arg(0)

    @property
    def second_arg(self) -> str:
        return self._arg(1)

    @property
    def third_arg(self) -> str:
        return self._arg(2)
