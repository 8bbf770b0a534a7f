"""Account state inside a bundle, with originals kept for changesets and reverts."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, Optional

from .account_status import AccountStatus
from .primitives import AccountInfo, StorageSlot, StorageWithOriginalValues
from .reverts import AccountInfoRevert, AccountInfoRevertKind, AccountRevert, RevertToSlot

if TYPE_CHECKING:
    from .transition_account import TransitionAccount


def _copy_info(info: Optional[AccountInfo]) -> Optional[AccountInfo]:
    return None if info is None else copy.copy(info)


def _copy_slot(slot: StorageSlot) -> StorageSlot:
    return StorageSlot(slot.previous_or_original_value, slot.present_value)


def _copy_storage(storage: StorageWithOriginalValues) -> StorageWithOriginalValues:
    return {key: _copy_slot(slot) for key, slot in storage.items()}


def _extend_storage(
    this_storage: StorageWithOriginalValues, update: StorageWithOriginalValues
) -> None:
    """Merge ``update`` in, keeping original values of slots already present."""
    for key, slot in update.items():
        existing = this_storage.get(key)
        if existing is None:
            this_storage[key] = _copy_slot(slot)
        else:
            existing.present_value = slot.present_value


def _previous_storage_from_update(
    updated_storage: StorageWithOriginalValues,
) -> Dict[int, RevertToSlot]:
    return {
        key: RevertToSlot.some(slot.previous_or_original_value)
        for key, slot in updated_storage.items()
        if slot.previous_or_original_value != slot.present_value
    }


def _is_destroyed_marker(slot: RevertToSlot) -> bool:
    return slot == RevertToSlot.destroyed()


def _invalid(target: AccountStatus, current: "BundleAccount") -> ValueError:
    return ValueError(f"invalid transition to {target.name} from {current!r}")


@dataclass
class BundleAccount:
    """Present and original account info and storage, plus the account status.

    On selfdestruct the original storage values are ignored.
    """

    info: Optional[AccountInfo] = None
    original_info: Optional[AccountInfo] = None
    storage: StorageWithOriginalValues = field(default_factory=dict)
    status: AccountStatus = AccountStatus.LOADED_NOT_EXISTING

    def storage_slot(self, slot: int) -> Optional[int]:
        """Present value of a slot; zero if the whole storage is known; else ``None``."""
        entry = self.storage.get(slot)
        if entry is not None:
            return entry.present_value
        if self.status.storage_known():
            return 0
        return None

    def account_info(self) -> Optional[AccountInfo]:
        return _copy_info(self.info)

    def was_destroyed(self) -> bool:
        return self.status.was_destroyed()

    def is_info_changed(self) -> bool:
        return self.info != self.original_info

    def is_contract_changed(self) -> bool:
        present = None if self.info is None else self.info.code_hash
        original = None if self.original_info is None else self.original_info.code_hash
        return present != original

    def revert(self, revert: AccountRevert) -> bool:
        """Apply ``revert``; return True if the account can be removed."""
        self.status = revert.previous_status
        kind = revert.account.kind
        if kind is AccountInfoRevertKind.DELETE_IT:
            self.info = None
            self.storage = {}
            return True
        if kind is AccountInfoRevertKind.REVERT_TO:
            self.info = _copy_info(revert.account.info)

        for key, revert_slot in revert.storage.items():
            if _is_destroyed_marker(revert_slot):
                self.storage.pop(key, None)
                continue
            value = revert_slot.value
            existing = self.storage.get(key)
            if existing is None:
                self.storage[key] = StorageSlot.new_changed(value, value)
            else:
                existing.present_value = value
        return False

    def extend(self, other: "BundleAccount") -> None:
        """Take status, info and present storage from ``other``; keep originals."""
        self.status = other.status
        self.info = _copy_info(other.info)
        _extend_storage(self.storage, other.storage)

    def update_and_create_revert(
        self, transition: "TransitionAccount"
    ) -> Optional[AccountRevert]:
        """Move to the transition's state; return the revert that undoes it, if any."""
        updated_info = _copy_info(transition.info)
        updated_storage = transition.storage
        updated_status = transition.status

        if transition.storage_was_destroyed:
            self.storage.clear()

        if self.info != updated_info:
            info_revert = AccountInfoRevert.revert_to(
                _copy_info(self.info) if self.info is not None else AccountInfo()
            )
        else:
            info_revert = AccountInfoRevert.do_nothing()

        if updated_status is AccountStatus.CHANGED:
            previous_storage = _previous_storage_from_update(updated_storage)
            if self.status in (AccountStatus.CHANGED, AccountStatus.LOADED):
                _extend_storage(self.storage, updated_storage)
            elif self.status is AccountStatus.LOADED_EMPTY_EIP161:
                # Only a balance transfer can turn an empty account into a changed one.
                pass
            else:
                raise _invalid(updated_status, self)
            previous_status = self.status
            self.status = AccountStatus.CHANGED
            self.info = updated_info
            return AccountRevert(
                account=info_revert,
                storage=previous_storage,
                previous_status=previous_status,
                wipe_storage=False,
            )

        if updated_status is AccountStatus.IN_MEMORY_CHANGE:
            previous_storage = _previous_storage_from_update(updated_storage)
            if self.status in (AccountStatus.LOADED, AccountStatus.IN_MEMORY_CHANGE):
                _extend_storage(self.storage, updated_storage)
                account_revert = info_revert
            elif self.status is AccountStatus.LOADED_EMPTY_EIP161:
                self.storage = _copy_storage(updated_storage)
                account_revert = info_revert
            elif self.status is AccountStatus.LOADED_NOT_EXISTING:
                self.storage = _copy_storage(updated_storage)
                account_revert = AccountInfoRevert.delete_it()
            else:
                raise _invalid(updated_status, self)
            previous_status = self.status
            self.status = AccountStatus.IN_MEMORY_CHANGE
            self.info = updated_info
            return AccountRevert(
                account=account_revert,
                storage=previous_storage,
                previous_status=previous_status,
                wipe_storage=False,
            )

        if updated_status in (
            AccountStatus.LOADED,
            AccountStatus.LOADED_NOT_EXISTING,
            AccountStatus.LOADED_EMPTY_EIP161,
        ):
            return None

        if updated_status is AccountStatus.DESTROYED:
            this_info = self.info if self.info is not None else AccountInfo()
            self.info = None
            this_storage = self.storage
            self.storage = {}
            if self.status in (
                AccountStatus.IN_MEMORY_CHANGE,
                AccountStatus.CHANGED,
                AccountStatus.LOADED,
                AccountStatus.LOADED_EMPTY_EIP161,
            ):
                revert = AccountRevert.new_selfdestructed(self.status, this_info, this_storage)
            elif self.status is AccountStatus.LOADED_NOT_EXISTING:
                return None
            else:
                raise _invalid(updated_status, self)
            self.status = AccountStatus.DESTROYED
            return revert

        if updated_status is AccountStatus.DESTROYED_CHANGED:
            revert_state = AccountRevert.new_selfdestructed_from_bundle(self, updated_storage)
            if revert_state is not None:
                self.status = AccountStatus.DESTROYED_CHANGED
                self.info = updated_info
                self.storage = _copy_storage(updated_storage)
                return revert_state

            if self.status in (AccountStatus.DESTROYED, AccountStatus.LOADED_NOT_EXISTING):
                revert = AccountRevert(
                    account=AccountInfoRevert.delete_it(),
                    storage=_previous_storage_from_update(updated_storage),
                    previous_status=self.status,
                    wipe_storage=False,
                )
            elif self.status is AccountStatus.DESTROYED_CHANGED:
                revert = AccountRevert(
                    account=info_revert,
                    storage=_previous_storage_from_update(updated_storage),
                    previous_status=AccountStatus.DESTROYED_CHANGED,
                    wipe_storage=False,
                )
            elif self.status is AccountStatus.DESTROYED_AGAIN:
                revert = AccountRevert.new_selfdestructed_again(
                    AccountStatus.DESTROYED_AGAIN,
                    AccountInfo(),
                    {},
                    _copy_storage(updated_storage),
                )
            else:
                raise _invalid(updated_status, self)
            self.status = AccountStatus.DESTROYED_CHANGED
            self.info = updated_info
            _extend_storage(self.storage, updated_storage)
            return revert

        # DESTROYED_AGAIN
        revert_opt = AccountRevert.new_selfdestructed_from_bundle(self, {})
        if revert_opt is None:
            if self.status in (
                AccountStatus.DESTROYED,
                AccountStatus.DESTROYED_AGAIN,
                AccountStatus.LOADED_NOT_EXISTING,
            ):
                revert_opt = None
            elif self.status is AccountStatus.DESTROYED_CHANGED:
                revert_opt = AccountRevert(
                    account=AccountInfoRevert.revert_to(
                        _copy_info(self.info) if self.info is not None else AccountInfo()
                    ),
                    storage=_previous_storage_from_update(updated_storage),
                    previous_status=AccountStatus.DESTROYED_CHANGED,
                    wipe_storage=False,
                )
            else:
                raise _invalid(updated_status, self)
        self.status = AccountStatus.DESTROYED_AGAIN
        self.info = None
        self.storage.clear()
        return revert_opt