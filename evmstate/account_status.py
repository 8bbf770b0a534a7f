"""Status an account can be in while blocks are executed over it."""

from __future__ import annotations

import enum


class AccountStatus(enum.Enum):
    """Every state a loaded account can be in."""

    LOADED_NOT_EXISTING = "loaded_not_existing"
    LOADED = "loaded"
    LOADED_EMPTY_EIP161 = "loaded_empty_eip161"
    IN_MEMORY_CHANGE = "in_memory_change"
    CHANGED = "changed"
    DESTROYED = "destroyed"
    DESTROYED_CHANGED = "destroyed_changed"
    DESTROYED_AGAIN = "destroyed_again"

    @classmethod
    def default(cls) -> "AccountStatus":
        return cls.LOADED_NOT_EXISTING

    def not_modified(self) -> bool:
        """Account was only loaded from the database."""
        return self in _NOT_MODIFIED

    def was_destroyed(self) -> bool:
        """Account was destroyed by SELFDESTRUCT."""
        return self in _DESTROYED

    def storage_known(self) -> bool:
        """Whole storage is in memory: new, or wiped by destruction."""
        return self in _STORAGE_KNOWN

    def modified_but_not_destroyed(self) -> bool:
        return self in (AccountStatus.CHANGED, AccountStatus.IN_MEMORY_CHANGE)


_NOT_MODIFIED = frozenset(
    {
        AccountStatus.LOADED_NOT_EXISTING,
        AccountStatus.LOADED,
        AccountStatus.LOADED_EMPTY_EIP161,
    }
)
_DESTROYED = frozenset(
    {
        AccountStatus.DESTROYED,
        AccountStatus.DESTROYED_CHANGED,
        AccountStatus.DESTROYED_AGAIN,
    }
)
_STORAGE_KNOWN = frozenset(
    {
        AccountStatus.LOADED_NOT_EXISTING,
        AccountStatus.IN_MEMORY_CHANGE,
        AccountStatus.DESTROYED,
        AccountStatus.DESTROYED_CHANGED,
        AccountStatus.DESTROYED_AGAIN,
    }
)