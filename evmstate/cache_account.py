"""Cached account that turns execution output into bundle transitions."""

from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import Callable, Optional, Tuple, TypeVar

from .account_status import AccountStatus
from .bundle_account import BundleAccount
from .primitives import (
    KECCAK_EMPTY,
    AccountInfo,
    PlainAccount,
    PlainStorage,
    StorageSlot,
    StorageWithOriginalValues,
)
from .transition_account import TransitionAccount

_T = TypeVar("_T")

_U128_MAX = (1 << 128) - 1


def _copy_info(info: Optional[AccountInfo]) -> Optional[AccountInfo]:
    return None if info is None else copy.copy(info)


def _copy_storage(storage: StorageWithOriginalValues) -> StorageWithOriginalValues:
    return {
        key: StorageSlot(slot.previous_or_original_value, slot.present_value)
        for key, slot in storage.items()
    }


def _present_values(storage: StorageWithOriginalValues) -> PlainStorage:
    return {key: slot.present_value for key, slot in storage.items()}


def _is_fresh(info: Optional[AccountInfo]) -> bool:
    """True for an account with no code and nonce zero: it lives fully in memory."""
    return info is not None and info.code_hash == KECCAK_EMPTY and info.nonce == 0


@dataclass
class CacheAccount:
    """Account loaded from the database and updated by execution output."""

    account: Optional[PlainAccount] = None
    status: AccountStatus = AccountStatus.LOADED_NOT_EXISTING

    @classmethod
    def from_bundle_account(cls, account: BundleAccount) -> "CacheAccount":
        info = account.account_info()
        plain = None
        if info is not None:
            plain = PlainAccount(info=info, storage=_present_values(account.storage))
        return cls(account=plain, status=account.status)

    @classmethod
    def new_loaded(cls, info: AccountInfo, storage: PlainStorage) -> "CacheAccount":
        return cls(PlainAccount(info=info, storage=storage), AccountStatus.LOADED)

    @classmethod
    def new_loaded_empty_eip161(cls, storage: PlainStorage) -> "CacheAccount":
        return cls(
            PlainAccount.new_empty_with_storage(storage), AccountStatus.LOADED_EMPTY_EIP161
        )

    @classmethod
    def new_loaded_not_existing(cls) -> "CacheAccount":
        return cls(None, AccountStatus.LOADED_NOT_EXISTING)

    @classmethod
    def new_newly_created(cls, info: AccountInfo, storage: PlainStorage) -> "CacheAccount":
        return cls(PlainAccount(info=info, storage=storage), AccountStatus.IN_MEMORY_CHANGE)

    @classmethod
    def new_destroyed(cls) -> "CacheAccount":
        return cls(None, AccountStatus.DESTROYED)

    @classmethod
    def new_changed(cls, info: AccountInfo, storage: PlainStorage) -> "CacheAccount":
        return cls(PlainAccount(info=info, storage=storage), AccountStatus.CHANGED)

    def is_some(self) -> bool:
        return self.status in (
            AccountStatus.CHANGED,
            AccountStatus.IN_MEMORY_CHANGE,
            AccountStatus.DESTROYED_CHANGED,
            AccountStatus.LOADED,
            AccountStatus.LOADED_EMPTY_EIP161,
        )

    def storage_slot(self, slot: int) -> Optional[int]:
        if self.account is None:
            return None
        return self.account.storage.get(slot)

    def account_info(self) -> Optional[AccountInfo]:
        return None if self.account is None else copy.copy(self.account.info)

    def into_components(
        self,
    ) -> Tuple[Optional[Tuple[AccountInfo, PlainStorage]], AccountStatus]:
        components = None if self.account is None else self.account.into_components()
        return components, self.status

    def _take_info(self) -> Optional[AccountInfo]:
        account, self.account = self.account, None
        return None if account is None else account.info

    def touch_create_pre_eip161(
        self, storage: StorageWithOriginalValues
    ) -> Optional[TransitionAccount]:
        """Touch before EIP-161: an empty account counts as created."""
        previous_status = self.status
        if previous_status is AccountStatus.DESTROYED_CHANGED:
            if self.account is not None and self.account.info.is_empty():
                return None
            new_status = AccountStatus.DESTROYED_CHANGED
        elif previous_status in (AccountStatus.DESTROYED, AccountStatus.DESTROYED_AGAIN):
            new_status = AccountStatus.DESTROYED_CHANGED
        elif previous_status is AccountStatus.LOADED_EMPTY_EIP161:
            return None
        elif previous_status in (
            AccountStatus.IN_MEMORY_CHANGE,
            AccountStatus.LOADED_NOT_EXISTING,
        ):
            new_status = AccountStatus.IN_MEMORY_CHANGE
        else:
            raise ValueError(
                f"wrong state transition: touch create is not possible from {self!r}"
            )
        self.status = new_status
        previous_info = self._take_info()
        self.account = PlainAccount.new_empty_with_storage(_present_values(storage))
        return TransitionAccount(
            info=AccountInfo(),
            status=self.status,
            previous_info=previous_info,
            previous_status=previous_status,
            storage=_copy_storage(storage),
            storage_was_destroyed=False,
        )

    def touch_empty_eip161(self) -> Optional[TransitionAccount]:
        """Touch an empty account; under EIP-161 this removes it."""
        previous_status = self.status
        if previous_status in (
            AccountStatus.IN_MEMORY_CHANGE,
            AccountStatus.DESTROYED,
            AccountStatus.LOADED_EMPTY_EIP161,
        ):
            new_status = AccountStatus.DESTROYED
        elif previous_status is AccountStatus.LOADED_NOT_EXISTING:
            new_status = AccountStatus.LOADED_NOT_EXISTING
        elif previous_status in (
            AccountStatus.DESTROYED_AGAIN,
            AccountStatus.DESTROYED_CHANGED,
        ):
            new_status = AccountStatus.DESTROYED_AGAIN
        else:
            raise ValueError(
                f"wrong state transition: touch empty is not possible from {self!r}"
            )
        previous_info = self._take_info()
        self.status = new_status
        if previous_status in (
            AccountStatus.LOADED_NOT_EXISTING,
            AccountStatus.DESTROYED,
            AccountStatus.DESTROYED_AGAIN,
        ):
            return None
        return TransitionAccount(
            info=None,
            status=self.status,
            previous_info=previous_info,
            previous_status=previous_status,
            storage={},
            storage_was_destroyed=True,
        )

    def selfdestruct(self) -> Optional[TransitionAccount]:
        """Mark the account destroyed; ``None`` if it never existed."""
        previous_info = self._take_info()
        previous_status = self.status
        if previous_status.was_destroyed():
            self.status = AccountStatus.DESTROYED_AGAIN
        else:
            self.status = AccountStatus.DESTROYED

        if previous_status is AccountStatus.LOADED_NOT_EXISTING:
            self.status = AccountStatus.LOADED_NOT_EXISTING
            return None
        return TransitionAccount(
            info=None,
            status=self.status,
            previous_info=previous_info,
            previous_status=previous_status,
            storage={},
            storage_was_destroyed=True,
        )

    def newly_created(
        self, new_info: AccountInfo, new_storage: StorageWithOriginalValues
    ) -> TransitionAccount:
        previous_status = self.status
        previous_info = self._take_info()
        if previous_status.was_destroyed():
            self.status = AccountStatus.DESTROYED_CHANGED
        else:
            # The executor has already checked that creation is allowed here.
            self.status = AccountStatus.IN_MEMORY_CHANGE
        transition = TransitionAccount(
            info=copy.copy(new_info),
            status=self.status,
            previous_info=previous_info,
            previous_status=previous_status,
            storage=_copy_storage(new_storage),
            storage_was_destroyed=False,
        )
        self.account = PlainAccount(info=new_info, storage=_present_values(new_storage))
        return transition

    def increment_balance(self, balance: int) -> TransitionAccount:
        """Add ``balance`` (assumed non-zero) to the account balance."""

        def add(info: AccountInfo) -> None:
            info.balance += balance

        return self._account_info_change(add)[1]

    def drain_balance(self) -> Tuple[int, TransitionAccount]:
        """Set the balance to zero; return the drained amount and the transition."""

        def drain(info: AccountInfo) -> int:
            amount = info.balance
            if amount > _U128_MAX:
                raise OverflowError(f"balance does not fit in 128 bits: {amount}")
            info.balance = 0
            return amount

        return self._account_info_change(drain)

    def _account_info_change(
        self, change: Callable[[AccountInfo], _T]
    ) -> Tuple[_T, TransitionAccount]:
        previous_status = self.status
        previous_info = self.account_info()
        account = self.account if self.account is not None else PlainAccount()
        output = change(account.info)
        self.account = account

        if previous_status is AccountStatus.LOADED:
            self.status = (
                AccountStatus.IN_MEMORY_CHANGE
                if _is_fresh(previous_info)
                else AccountStatus.CHANGED
            )
        elif previous_status in (
            AccountStatus.LOADED_NOT_EXISTING,
            AccountStatus.LOADED_EMPTY_EIP161,
            AccountStatus.IN_MEMORY_CHANGE,
        ):
            self.status = AccountStatus.IN_MEMORY_CHANGE
        elif previous_status is AccountStatus.CHANGED:
            self.status = AccountStatus.CHANGED
        else:
            self.status = AccountStatus.DESTROYED_CHANGED

        return output, TransitionAccount(
            info=self.account_info(),
            status=self.status,
            previous_info=previous_info,
            previous_status=previous_status,
            storage={},
            storage_was_destroyed=False,
        )

    def change(
        self, new: AccountInfo, storage: StorageWithOriginalValues
    ) -> TransitionAccount:
        """Apply new info and changed storage from execution."""
        previous_status = self.status
        previous_info = self.account_info()
        this_storage = {} if self.account is None else self.account.storage
        self.account = None
        this_storage.update(_present_values(storage))

        if previous_status is AccountStatus.LOADED:
            self.status = (
                AccountStatus.IN_MEMORY_CHANGE
                if _is_fresh(previous_info)
                else AccountStatus.CHANGED
            )
        elif previous_status is AccountStatus.CHANGED:
            self.status = AccountStatus.CHANGED
        elif previous_status in (
            AccountStatus.IN_MEMORY_CHANGE,
            AccountStatus.LOADED_EMPTY_EIP161,
            AccountStatus.LOADED_NOT_EXISTING,
        ):
            self.status = AccountStatus.IN_MEMORY_CHANGE
        else:
            self.status = AccountStatus.DESTROYED_CHANGED

        self.account = PlainAccount(info=new, storage=this_storage)
        return TransitionAccount(
            info=_copy_info(new),
            status=self.status,
            previous_info=previous_info,
            previous_status=previous_status,
            storage=_copy_storage(storage),
            storage_was_destroyed=False,
        )