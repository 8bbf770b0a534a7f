"""Cache of loaded accounts that execution output is applied to."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Mapping, Tuple

from .cache_account import CacheAccount
from .primitives import Account, AccountInfo, Bytecode, PlainAccount, PlainStorage
from .transition_account import TransitionAccount


@dataclass
class CacheState:
    """Accounts loaded from the database with their in-memory changes.

    Applying execution output produces the transitions that build a bundle.
    """

    accounts: Dict[bytes, CacheAccount] = field(default_factory=dict)
    contracts: Dict[bytes, Bytecode] = field(default_factory=dict)
    #: EIP-161 state clear (Spurious Dragon) is in effect.
    has_state_clear: bool = True

    def set_state_clear_flag(self, has_state_clear: bool) -> None:
        self.has_state_clear = has_state_clear

    def trie_account(self) -> Iterator[Tuple[bytes, PlainAccount]]:
        """Yield every existing account with its plain state."""
        for address, account in self.accounts.items():
            if account.account is not None:
                yield address, account.account

    def insert_not_existing(self, address: bytes) -> None:
        self.accounts[address] = CacheAccount.new_loaded_not_existing()

    def insert_account(self, address: bytes, info: AccountInfo) -> None:
        self.insert_account_with_storage(address, info, {})

    def insert_account_with_storage(
        self, address: bytes, info: AccountInfo, storage: PlainStorage
    ) -> None:
        if info.is_empty():
            account = CacheAccount.new_loaded_empty_eip161(storage)
        else:
            account = CacheAccount.new_loaded(info, storage)
        self.accounts[address] = account

    def apply_evm_state(
        self, evm_state: Mapping[bytes, Account]
    ) -> List[Tuple[bytes, TransitionAccount]]:
        """Apply execution output and return the resulting transitions."""
        transitions: List[Tuple[bytes, TransitionAccount]] = []
        for address, account in evm_state.items():
            if not account.is_touched():
                continue
            this_account = self.accounts.get(address)
            if this_account is None:
                raise KeyError(f"account {address.hex()} should be present inside cache")

            if account.is_selfdestructed():
                transition = this_account.selfdestruct()
                if transition is not None:
                    transitions.append((address, transition))
                continue

            # Created is checked after selfdestruct: a contract can be created
            # and destroyed within the same block.
            if account.is_created():
                transitions.append(
                    (address, this_account.newly_created(account.info, account.storage))
                )
            elif account.is_empty():
                if self.has_state_clear:
                    transition = this_account.touch_empty_eip161()
                else:
                    transition = this_account.touch_create_pre_eip161(account.storage)
                if transition is not None:
                    transitions.append((address, transition))
            else:
                transitions.append(
                    (address, this_account.change(account.info, account.storage))
                )
        return transitions