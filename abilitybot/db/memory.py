"""In-memory DBContext.

Backups are JSON documents of the form::

    {"maps": {"USERS": [[1, {...}], ...]}, "sets": {"ADMINS": [1, 2]}}

Maps are stored as key/value pairs so integer keys survive the round
trip through JSON.
"""

import json
import threading
from typing import Any, Callable, Dict, Hashable, Optional, Set

import structlog

from .base import DBContext

logger = structlog.get_logger("abilitybot.db")


class MemoryDBContext(DBContext):
    """Thread-safe store kept entirely in process memory.

    Args:
        name: Label used in log events.
    """

    def __init__(self, name: str = "memory"):
        self.name = name
        self._lock = threading.RLock()
        self._maps: Dict[str, dict] = {}
        self._sets: Dict[str, set] = {}

    @classmethod
    def offline_instance(cls, name: str = "memory") -> "MemoryDBContext":
        return cls(name)

    def get_map(self, name: str) -> dict:
        with self._lock:
            return self._maps.setdefault(name, {})

    def get_set(self, name: str) -> set:
        with self._lock:
            return self._sets.setdefault(name, set())

    def compute(
        self,
        map_name: str,
        key: Hashable,
        fn: Callable[[Hashable, Optional[Any]], Optional[Any]],
    ) -> Optional[Any]:
        with self._lock:
            target = self.get_map(map_name)
            value = fn(key, target.get(key))
            if value is None:
                target.pop(key, None)
            else:
                target[key] = value
            return value

    def commit(self) -> None:
        """Nothing to flush for a purely in-memory store."""

    def _snapshot(self) -> dict:
        with self._lock:
            return {
                "maps": {name: [[k, v] for k, v in m.items()] for name, m in self._maps.items()},
                "sets": {name: sorted(s, key=repr) for name, s in self._sets.items()},
            }

    def _restore(self, snapshot: dict) -> None:
        maps = snapshot.get("maps", {})
        sets = snapshot.get("sets", {})
        if not isinstance(maps, dict) or not isinstance(sets, dict):
            raise ValueError("Backup must hold 'maps' and 'sets' objects")
        restored_maps = {name: _restore_map(name, pairs) for name, pairs in maps.items()}
        restored_sets = {name: _restore_set(name, items) for name, items in sets.items()}
        with self._lock:
            # Mutate in place so live views held by callers stay valid
            for name in set(self._maps) | set(restored_maps):
                current = self._maps.setdefault(name, {})
                current.clear()
                current.update(restored_maps.get(name, {}))
            for name in set(self._sets) | set(restored_sets):
                current = self._sets.setdefault(name, set())
                current.clear()
                current.update(restored_sets.get(name, set()))

    def backup(self) -> str:
        return json.dumps(self._snapshot())

    def recover(self, backup: str) -> bool:
        try:
            snapshot = json.loads(backup)
            if not isinstance(snapshot, dict):
                raise ValueError("Backup root must be an object")
            self._restore(snapshot)
        except (ValueError, TypeError) as e:
            logger.error("db_recover_failed", db=self.name, error=str(e))
            return False
        self.commit()
        logger.info("db_recovered", db=self.name, collections=self.summary())
        return True

    def clear(self) -> None:
        with self._lock:
            for m in self._maps.values():
                m.clear()
            for s in self._sets.values():
                s.clear()
        self.commit()

    def summary(self) -> Dict[str, int]:
        with self._lock:
            counts = {name: len(m) for name, m in self._maps.items()}
            counts.update({name: len(s) for name, s in self._sets.items()})
            return counts


def _restore_map(name: str, pairs: Any) -> Dict[Any, Any]:
    if not isinstance(pairs, list):
        raise ValueError(f"Map {name!r} must be a list of [key, value] pairs")
    restored = {}
    for pair in pairs:
        if not isinstance(pair, list) or len(pair) != 2:
            raise ValueError(f"Map {name!r} holds an entry that is not a [key, value] pair")
        restored[_hashable(pair[0])] = pair[1]
    return restored


def _restore_set(name: str, items: Any) -> Set[Any]:
    if not isinstance(items, list):
        raise ValueError(f"Set {name!r} must be a list")
    return {_hashable(v) for v in items}


def _hashable(value: Any) -> Any:
    """JSON arrays come back as lists; turn them into tuples for keys."""
    if isinstance(value, list):
        return tuple(_hashable(v) for v in value)
    return value
