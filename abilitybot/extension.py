"""Base class for ability extensions.

An extension is any object that declares abilities and replies. The
registry calls ``abilities()`` and ``replies()`` directly, so an
extension lists what it contributes explicitly::

    class GreeterExtension(AbilityExtension):
        def __init__(self, bot):
            self.bot = bot

        def abilities(self):
            return [
                Ability.builder()
                .name("hello")
                .action(self.say_hello)
                .build(),
            ]
"""

from typing import List

from .objects import Ability, Reply


class AbilityExtension:
    """Contributes abilities and standalone replies to a bot."""

    #: Label used in registry log events.
    name: str = ""

    def abilities(self) -> List[Ability]:
        """Return the abilities this extension declares."""
        return []

    def replies(self) -> List[Reply]:
        """Return standalone replies (not bundled with an ability)."""
        return []

    @property
    def label(self) -> str:
        return self.name or type(self).__name__
