"""Storage contract used by the bot and its abilities."""

from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Hashable, MutableMapping, MutableSet, Optional

# Collection names used by the framework
ADMINS = "ADMINS"
USERS = "USERS"
USER_ID = "USER_ID"
BLACKLIST = "BLACKLIST"


class DBContext(ABC):
    """Named maps and sets with explicit commit, backup and recovery.

    Collections returned by get_map/get_set are live views: mutations
    are visible immediately and persisted on commit().
    """

    @abstractmethod
    def get_map(self, name: str) -> MutableMapping:
        ...

    @abstractmethod
    def get_set(self, name: str) -> MutableSet:
        ...

    @abstractmethod
    def compute(
        self,
        map_name: str,
        key: Hashable,
        fn: Callable[[Hashable, Optional[Any]], Optional[Any]],
    ) -> Optional[Any]:
        """Atomically replace ``map[key]`` with ``fn(key, current)``.

        ``current`` is None when the key is absent. Returning None
        removes the key. Other collections touched inside ``fn`` are
        covered by the same lock.
        """

    @abstractmethod
    def commit(self) -> None:
        ...

    @abstractmethod
    def backup(self) -> str:
        """Serialize every collection to a string."""

    @abstractmethod
    def recover(self, backup: str) -> bool:
        """Replace all collections with a backup. False if it is invalid."""

    @abstractmethod
    def clear(self) -> None:
        ...

    @abstractmethod
    def summary(self) -> Dict[str, int]:
        """Collection name -> item count."""

    def close(self) -> None:
        """Release resources. Safe to call twice."""
