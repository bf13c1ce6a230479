"""Storage layer: the DBContext contract and its implementations."""

from .base import ADMINS, BLACKLIST, USER_ID, USERS, DBContext
from .memory import MemoryDBContext
from .sqlite import SqliteDBContext

__all__ = [
    "DBContext",
    "MemoryDBContext",
    "SqliteDBContext",
    "ADMINS",
    "USERS",
    "USER_ID",
    "BLACKLIST",
]
