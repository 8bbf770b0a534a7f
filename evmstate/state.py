"""Block execution state: cache, database, pending transitions and the bundle."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Protocol, Tuple, Union

from .bundle_state import BundleState
from .cache import CacheState
from .cache_account import CacheAccount
from .emptydb import EmptyDB
from .primitives import Account, AccountInfo, Bytecode, PlainStorage
from .transition_account import TransitionAccount
from .transition_state import TransitionState

#: Number of most recent block hashes kept in the block hash cache.
BLOCK_HASH_HISTORY = 256

_U64_MAX = (1 << 64) - 1


class Database(Protocol):
    """Source the state falls back to for anything it has not cached."""

    def basic(self, address: bytes) -> Optional[AccountInfo]: ...

    def code_by_hash(self, code_hash: bytes) -> Bytecode: ...

    def storage(self, address: bytes, index: int) -> int: ...

    def block_hash(self, number: int) -> bytes: ...


@dataclass
class State:
    """State of the chain while blocks are executed.

    Lookups go to the cache first, then (optionally) to a preloaded bundle,
    then to the database. Execution output is turned into transitions, which
    are merged into the bundle state on request.
    """

    cache: CacheState = field(default_factory=CacheState)
    database: Database = field(default_factory=EmptyDB)
    #: Transitions of the current block; ``None`` disables bundle updates.
    transition_state: Optional[TransitionState] = field(default_factory=TransitionState)
    bundle_state: Optional[BundleState] = None
    #: Look into ``bundle_state`` before asking the database.
    use_preloaded_bundle: bool = False
    #: Block hashes consulted before the database.
    block_hashes: Dict[int, bytes] = field(default_factory=dict)

    def increment_balances(
        self, balances: Union[Mapping[bytes, int], Iterable[Tuple[bytes, int]]]
    ) -> None:
        """Add the given amounts to account balances, loading accounts as needed."""
        pairs = balances.items() if isinstance(balances, Mapping) else balances
        transitions: List[Tuple[bytes, TransitionAccount]] = []
        for address, balance in pairs:
            account = self.load_cache_account(address)
            transitions.append((address, account.increment_balance(balance)))
        self.apply_transition(transitions)

    def drain_balances(self, addresses: Iterable[bytes]) -> List[int]:
        """Zero the balances of the given accounts and return the drained amounts."""
        transitions: List[Tuple[bytes, TransitionAccount]] = []
        balances: List[int] = []
        for address in addresses:
            account = self.load_cache_account(address)
            balance, transition = account.drain_balance()
            balances.append(balance)
            transitions.append((address, transition))
        self.apply_transition(transitions)
        return balances

    def set_state_clear_flag(self, has_state_clear: bool) -> None:
        """Enable or disable EIP-161 state clear."""
        self.cache.set_state_clear_flag(has_state_clear)

    def insert_not_existing(self, address: bytes) -> None:
        self.cache.insert_not_existing(address)

    def insert_account(self, address: bytes, info: AccountInfo) -> None:
        self.cache.insert_account(address, info)

    def insert_account_with_storage(
        self, address: bytes, info: AccountInfo, storage: PlainStorage
    ) -> None:
        self.cache.insert_account_with_storage(address, info, storage)

    def apply_transition(self, transitions: Iterable[Tuple[bytes, TransitionAccount]]) -> None:
        """Add transitions to the current block, if bundle updates are enabled."""
        if self.transition_state is not None:
            self.transition_state.add_transitions(transitions)

    def merge_transitions(self) -> None:
        """Merge pending transitions into the bundle state, creating reverts."""
        if self.transition_state is None:
            return
        transitions = self.transition_state.take()
        if self.bundle_state is None:
            self.bundle_state = BundleState()
        self.bundle_state.apply_block_substate_and_create_reverts(transitions)

    def load_cache_account(self, address: bytes) -> CacheAccount:
        """Return the cached account, loading it from the bundle or database first."""
        cached = self.cache.accounts.get(address)
        if cached is not None:
            return cached
        if self.use_preloaded_bundle and self.bundle_state is not None:
            bundle_account = self.bundle_state.account(address)
            if bundle_account is not None:
                account = CacheAccount.from_bundle_account(bundle_account)
                self.cache.accounts[address] = account
                return account
        info = self.database.basic(address)
        if info is None:
            account = CacheAccount.new_loaded_not_existing()
        elif info.is_empty():
            account = CacheAccount.new_loaded_empty_eip161({})
        else:
            account = CacheAccount.new_loaded(info, {})
        self.cache.accounts[address] = account
        return account

    def take_bundle(self) -> BundleState:
        """Return the bundle state and leave an empty one in its place."""
        if self.bundle_state is None:
            raise ValueError("no bundle state present")
        bundle, self.bundle_state = self.bundle_state, BundleState()
        return bundle

    def basic(self, address: bytes) -> Optional[AccountInfo]:
        return self.load_cache_account(address).account_info()

    def code_by_hash(self, code_hash: bytes) -> Bytecode:
        cached = self.cache.contracts.get(code_hash)
        if cached is not None:
            return cached
        if self.use_preloaded_bundle and self.bundle_state is not None:
            code = self.bundle_state.contracts.get(code_hash)
            if code is not None:
                self.cache.contracts[code_hash] = code
                return code
        code = self.database.code_by_hash(code_hash)
        self.cache.contracts[code_hash] = code
        return code

    def storage(self, address: bytes, index: int) -> int:
        """Storage value of a slot; the account must already be loaded."""
        account = self.cache.accounts.get(address)
        if account is None:
            raise KeyError(f"account {address.hex()} must be loaded before its storage")
        if account.account is None:
            return 0
        slots = account.account.storage
        if index in slots:
            return slots[index]
        # Newly created or destroyed accounts have their whole storage in memory.
        if account.status.storage_known():
            value = 0
        else:
            value = self.database.storage(address, index)
        slots[index] = value
        return value

    def block_hash(self, number: int) -> bytes:
        """Hash of a block, cached; hashes older than the history window are pruned."""
        if not 0 <= number <= _U64_MAX:
            raise OverflowError(f"block number does not fit in 64 bits: {number}")
        cached = self.block_hashes.get(number)
        if cached is not None:
            return cached
        value = self.database.block_hash(number)
        self.block_hashes[number] = value

        oldest_kept = max(number - BLOCK_HASH_HISTORY, 0)
        for key in sorted(self.block_hashes):
            if key >= oldest_kept:
                break
            del self.block_hashes[key]
        return value

    def commit(self, evm_state: Mapping[bytes, Account]) -> None:
        """Apply execution output to the cache and record its transitions."""
        transitions = self.cache.apply_evm_state(evm_state)
        self.apply_transition(transitions)