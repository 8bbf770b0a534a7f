"""Bundle of changed accounts, created contracts and per-block reverts."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple, Union

from .account_status import AccountStatus
from .bundle_account import BundleAccount
from .primitives import (
    AccountInfo,
    Bytecode,
    StateChangeset,
    StateReverts,
    StorageSlot,
)
from .reverts import AccountInfoRevert, AccountInfoRevertKind, AccountRevert, RevertToSlot
from .transition_state import TransitionState

#: A revert entry as accepted by :meth:`BundleState.from_parts`:
#: ``None`` leaves the account alone, an :class:`AccountInfo` restores it,
#: and an :class:`AccountInfoRevert` is used as given.
RevertAccountSpec = Union[None, AccountInfo, AccountInfoRevert]


def _to_info_revert(account: RevertAccountSpec) -> AccountInfoRevert:
    if isinstance(account, AccountInfoRevert):
        return account
    if account is None:
        return AccountInfoRevert.do_nothing()
    if isinstance(account, AccountInfo):
        return AccountInfoRevert.revert_to(account)
    raise TypeError(f"unsupported account revert: {account!r}")


@dataclass
class BundleState:
    """Changed accounts with original and present values, plus reverts.

    Each inner list of ``reverts`` belongs to one applied transition; it is
    unique by address but not sorted.
    """

    state: Dict[bytes, BundleAccount] = field(default_factory=dict)
    contracts: Dict[bytes, Bytecode] = field(default_factory=dict)
    reverts: List[List[Tuple[bytes, AccountRevert]]] = field(default_factory=list)

    @classmethod
    def from_parts(
        cls,
        state: Iterable[
            Tuple[
                bytes,
                Optional[AccountInfo],
                Optional[AccountInfo],
                Dict[int, Tuple[int, int]],
            ]
        ],
        reverts: Iterable[
            Iterable[Tuple[bytes, RevertAccountSpec, Iterable[Tuple[int, int]]]]
        ],
        contracts: Iterable[Tuple[bytes, Bytecode]],
    ) -> "BundleState":
        """Build a bundle from original/present infos and (original, present) slots."""
        accounts = {
            address: BundleAccount(
                info=present,
                original_info=original,
                storage={
                    key: StorageSlot.new_changed(original_value, present_value)
                    for key, (original_value, present_value) in storage.items()
                },
                status=AccountStatus.CHANGED,
            )
            for address, original, present, storage in state
        }
        block_reverts = [
            [
                (
                    address,
                    AccountRevert(
                        account=_to_info_revert(account),
                        storage={key: RevertToSlot.some(value) for key, value in storage},
                        previous_status=AccountStatus.CHANGED,
                        wipe_storage=False,
                    ),
                )
                for address, account, storage in block
            ]
            for block in reverts
        ]
        return cls(state=accounts, contracts=dict(contracts), reverts=block_reverts)

    def __len__(self) -> int:
        """Number of changed accounts."""
        return len(self.state)

    def is_empty(self) -> bool:
        return len(self) == 0

    def account(self, address: bytes) -> Optional[BundleAccount]:
        return self.state.get(address)

    def bytecode(self, code_hash: bytes) -> Optional[Bytecode]:
        return self.contracts.get(code_hash)

    def apply_block_substate_and_create_reverts(self, transitions: TransitionState) -> None:
        """Apply all transitions and record the reverts as one new block."""
        block_reverts: List[Tuple[bytes, AccountRevert]] = []
        for address, transition in transitions.transitions.items():
            new_contract = transition.has_new_contract()
            if new_contract is not None:
                code_hash, code = new_contract
                self.contracts[code_hash] = code

            existing = self.state.get(address)
            if existing is not None:
                revert = existing.update_and_create_revert(transition)
            else:
                present = transition.present_bundle_account()
                revert = transition.create_revert()
                if revert is not None:
                    self.state[address] = present

            if revert is not None:
                block_reverts.append((address, revert))
        self.reverts.append(block_reverts)

    def take_sorted_plain_change_inner(self, omit_changed_check: bool) -> StateChangeset:
        """Drain the state and contracts into a changeset sorted by key.

        With ``omit_changed_check`` every account and slot is included, changed or not.
        """
        accounts: List[Tuple[bytes, Optional[AccountInfo]]] = []
        storage: List[Tuple[bytes, Tuple[bool, List[Tuple[int, int]]]]] = []

        state, self.state = self.state, {}
        for address, account in state.items():
            was_destroyed = account.was_destroyed()
            if omit_changed_check or account.is_info_changed():
                info = None
                if account.info is not None:
                    info = copy.copy(account.info)
                    info.code = None
                accounts.append((address, info))

            if was_destroyed:
                # Storage was wiped, so only non-zero values need writing.
                changed = [
                    (key, slot.present_value)
                    for key, slot in account.storage.items()
                    if omit_changed_check or slot.present_value != 0
                ]
            else:
                changed = [
                    (key, slot.present_value)
                    for key, slot in account.storage.items()
                    if omit_changed_check or slot.is_changed()
                ]
            changed.sort(key=lambda item: item[0])
            storage.append((address, (account.status.was_destroyed(), changed)))

        accounts.sort(key=lambda item: item[0])
        storage.sort(key=lambda item: item[0])

        contracts, self.contracts = self.contracts, {}
        sorted_contracts = sorted(contracts.items(), key=lambda item: item[0])

        return StateChangeset(accounts=accounts, storage=storage, contracts=sorted_contracts)

    def take_reverts(self) -> StateReverts:
        """Drain all reverts, sorting accounts by address and slots by key."""
        state_reverts = StateReverts()
        reverts, self.reverts = self.reverts, []
        for block in reverts:
            accounts: List[Tuple[bytes, Optional[AccountInfo]]] = []
            storage: List[Tuple[bytes, bool, List[Tuple[int, int]]]] = []
            for address, revert_account in block:
                kind = revert_account.account.kind
                if kind is AccountInfoRevertKind.REVERT_TO:
                    accounts.append((address, revert_account.account.info))
                elif kind is AccountInfoRevertKind.DELETE_IT:
                    accounts.append((address, None))
                if revert_account.wipe_storage or revert_account.storage:
                    account_storage = sorted(
                        (
                            (key, slot.to_previous_value())
                            for key, slot in revert_account.storage.items()
                        ),
                        key=lambda item: item[0],
                    )
                    storage.append((address, revert_account.wipe_storage, account_storage))
            accounts.sort(key=lambda item: item[0])
            state_reverts.accounts.append(accounts)
            state_reverts.storage.append(storage)
        return state_reverts

    def extend(self, other: "BundleState") -> None:
        """Layer ``other``, built on top of this bundle, over it."""
        other = copy.deepcopy(other)
        for address, account in other.state.items():
            existing = self.state.get(address)
            if existing is not None:
                existing.extend(account)
            else:
                self.state[address] = account
        self.contracts.update(other.contracts)
        self.reverts.extend(other.reverts)

    def detach_lower_part_reverts(self, num_of_detachments: int) -> Optional["BundleState"]:
        """Split off the oldest ``num_of_detachments`` reverts into a new bundle.

        Returns ``None`` for zero or for more than there are. The returned bundle
        holds reverts only.
        """
        if num_of_detachments == 0 or num_of_detachments > len(self.reverts):
            return None
        detached = self.reverts[:num_of_detachments]
        self.reverts = self.reverts[num_of_detachments:]
        return BundleState(reverts=detached)

    def revert(self, transition: int) -> None:
        """Undo the last ``transition`` applied transitions."""
        if transition == 0:
            return
        while self.reverts:
            block = self.reverts.pop()
            for address, revert_account in block:
                account = self.state.get(address)
                if account is None:
                    raise ValueError(
                        f"account {address.hex()} for revert {revert_account!r} should exist"
                    )
                if account.revert(revert_account):
                    del self.state[address]
            transition -= 1
            if transition == 0:
                break