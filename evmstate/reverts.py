"""Reverts that take an account back from a newer state to an older one."""

from __future__ import annotations

import copy
import enum
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, Optional

from .account_status import AccountStatus
from .primitives import AccountInfo, StorageWithOriginalValues

if TYPE_CHECKING:
    from .bundle_account import BundleAccount


class AccountInfoRevertKind(enum.Enum):
    DO_NOTHING = "do_nothing"
    DELETE_IT = "delete_it"
    REVERT_TO = "revert_to"


@dataclass(frozen=True)
class AccountInfoRevert:
    """What to do with the account info on revert."""

    kind: AccountInfoRevertKind = AccountInfoRevertKind.DO_NOTHING
    info: Optional[AccountInfo] = None

    @classmethod
    def do_nothing(cls) -> "AccountInfoRevert":
        return cls(AccountInfoRevertKind.DO_NOTHING)

    @classmethod
    def delete_it(cls) -> "AccountInfoRevert":
        return cls(AccountInfoRevertKind.DELETE_IT)

    @classmethod
    def revert_to(cls, info: AccountInfo) -> "AccountInfoRevert":
        return cls(AccountInfoRevertKind.REVERT_TO, info)


@dataclass(frozen=True)
class RevertToSlot:
    """Value a storage slot returns to, or a marker that it was created."""

    value: int = 0
    destroyed: bool = False

    @classmethod
    def some(cls, value: int) -> "RevertToSlot":
        return cls(value=value)

    @classmethod
    def destroyed(cls) -> "RevertToSlot":  # type: ignore[override]
        return cls(value=0, destroyed=True)

    def to_previous_value(self) -> int:
        return 0 if self.destroyed else self.value


@dataclass
class AccountRevert:
    """Everything needed to undo one account transition."""

    account: AccountInfoRevert = field(default_factory=AccountInfoRevert.do_nothing)
    storage: Dict[int, RevertToSlot] = field(default_factory=dict)
    previous_status: AccountStatus = AccountStatus.LOADED_NOT_EXISTING
    wipe_storage: bool = False

    @classmethod
    def new_selfdestructed_again(
        cls,
        status: AccountStatus,
        account: AccountInfo,
        previous_storage: StorageWithOriginalValues,
        updated_storage: StorageWithOriginalValues,
    ) -> "AccountRevert":
        """Like ``new_selfdestructed`` but slots set after re-creation revert to destroyed."""
        storage = {
            key: RevertToSlot.some(slot.present_value)
            for key, slot in previous_storage.items()
        }
        for key in updated_storage:
            storage.setdefault(key, RevertToSlot.destroyed())
        return cls(
            account=AccountInfoRevert.revert_to(account),
            storage=storage,
            previous_status=status,
            wipe_storage=False,
        )

    @classmethod
    def new_selfdestructed_from_bundle(
        cls,
        bundle_account: "BundleAccount",
        updated_storage: StorageWithOriginalValues,
    ) -> Optional["AccountRevert"]:
        """Revert for an account that existed before a selfdestruct; drains its storage."""
        if bundle_account.status not in (
            AccountStatus.IN_MEMORY_CHANGE,
            AccountStatus.CHANGED,
            AccountStatus.LOADED_EMPTY_EIP161,
            AccountStatus.LOADED,
        ):
            return None
        info = copy.copy(bundle_account.info) if bundle_account.info is not None else AccountInfo()
        previous_storage = dict(bundle_account.storage)
        bundle_account.storage.clear()
        revert = cls.new_selfdestructed_again(
            bundle_account.status, info, previous_storage, dict(updated_storage)
        )
        revert.wipe_storage = True
        return revert

    @classmethod
    def new_selfdestructed(
        cls,
        status: AccountStatus,
        account: AccountInfo,
        storage: StorageWithOriginalValues,
    ) -> "AccountRevert":
        """Revert for a selfdestruct: restore info and all present slot values."""
        return cls(
            account=AccountInfoRevert.revert_to(account),
            storage={
                key: RevertToSlot.some(slot.present_value) for key, slot in storage.items()
            },
            previous_status=status,
            wipe_storage=True,
        )