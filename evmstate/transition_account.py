"""Account transition produced when execution output is merged into the cache."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Optional, Tuple

from .account_status import AccountStatus
from .bundle_account import BundleAccount
from .primitives import AccountInfo, Bytecode, StorageSlot, StorageWithOriginalValues
from .reverts import AccountRevert


def _copy_info(info: Optional[AccountInfo]) -> Optional[AccountInfo]:
    return None if info is None else copy.copy(info)


def _copy_storage(storage: StorageWithOriginalValues) -> StorageWithOriginalValues:
    return {
        key: StorageSlot(slot.previous_or_original_value, slot.present_value)
        for key, slot in storage.items()
    }


@dataclass
class TransitionAccount:
    """Change of one account, with what it was before, used to build reverts."""

    info: Optional[AccountInfo] = None
    status: AccountStatus = AccountStatus.LOADED_NOT_EXISTING
    previous_info: Optional[AccountInfo] = None
    previous_status: AccountStatus = AccountStatus.LOADED_NOT_EXISTING
    storage: StorageWithOriginalValues = field(default_factory=dict)
    #: Set when a transition in between cleared the storage.
    storage_was_destroyed: bool = False

    @classmethod
    def new_empty_eip161(cls, storage: StorageWithOriginalValues) -> "TransitionAccount":
        return cls(
            info=AccountInfo(),
            status=AccountStatus.IN_MEMORY_CHANGE,
            previous_info=None,
            previous_status=AccountStatus.LOADED_NOT_EXISTING,
            storage=storage,
            storage_was_destroyed=False,
        )

    def has_new_contract(self) -> Optional[Tuple[bytes, Bytecode]]:
        """Return ``(code_hash, code)`` if the code changed and is present."""
        present = None if self.info is None else self.info.code_hash
        previous = None if self.previous_info is None else self.previous_info.code_hash
        if present != previous and self.info is not None and self.info.code is not None:
            return self.info.code_hash, self.info.code
        return None

    def update(self, other: "TransitionAccount") -> None:
        """Take new values from ``other`` while keeping the old ones intact."""
        self.info = _copy_info(other.info)
        self.status = other.status

        if other.status in (AccountStatus.DESTROYED, AccountStatus.DESTROYED_AGAIN):
            self.storage = other.storage
            self.storage_was_destroyed = True
            return

        for key, slot in other.storage.items():
            existing = self.storage.get(key)
            if existing is None:
                self.storage[key] = slot
            elif existing.original_value() == slot.present_value:
                del self.storage[key]
            else:
                existing.present_value = slot.present_value

    def create_revert(self) -> Optional[AccountRevert]:
        """Revert from this transition applied to the account as it was before."""
        previous_account = self.original_bundle_account()
        return previous_account.update_and_create_revert(self)

    def present_bundle_account(self) -> BundleAccount:
        return BundleAccount(
            info=_copy_info(self.info),
            original_info=_copy_info(self.previous_info),
            storage=_copy_storage(self.storage),
            status=self.status,
        )

    def original_bundle_account(self) -> BundleAccount:
        return BundleAccount(
            info=_copy_info(self.previous_info),
            original_info=_copy_info(self.previous_info),
            storage={},
            status=self.previous_status,
        )