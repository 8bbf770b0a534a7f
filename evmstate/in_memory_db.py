"""Database that keeps every state change in memory over a read-only backing database."""

from __future__ import annotations

import copy
import enum
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Protocol

from .emptydb import EmptyDB
from .primitives import (
    KECCAK_EMPTY,
    U256_MAX,
    ZERO_HASH,
    Account,
    AccountInfo,
    Bytecode,
    Log,
)


def _check_u256(number: int) -> int:
    if not 0 <= number <= U256_MAX:
        raise ValueError(f"value out of 256-bit range: {number}")
    return number


class DatabaseRef(Protocol):
    """Read-only database interface."""

    def basic_ref(self, address: bytes) -> Optional[AccountInfo]: ...

    def code_by_hash_ref(self, code_hash: bytes) -> Bytecode: ...

    def storage_ref(self, address: bytes, index: int) -> int: ...

    def block_hash_ref(self, number: int) -> bytes: ...


class AccountState(enum.Enum):
    """What execution did to a cached account."""

    #: Distinct from an empty account before Spurious Dragon.
    NOT_EXISTING = "not_existing"
    #: Touched by execution; may be cleared under newer rules.
    TOUCHED = "touched"
    #: Storage was cleared; missing slots are zero and not asked of the database.
    STORAGE_CLEARED = "storage_cleared"
    #: Untouched by execution.
    NONE = "none"

    def is_storage_cleared(self) -> bool:
        return self is AccountState.STORAGE_CLEARED


@dataclass
class DbAccount:
    """Cached account info, state and storage."""

    info: AccountInfo = field(default_factory=AccountInfo)
    account_state: AccountState = AccountState.NONE
    storage: Dict[int, int] = field(default_factory=dict)

    @classmethod
    def new_not_existing(cls) -> "DbAccount":
        return cls(account_state=AccountState.NOT_EXISTING)

    @classmethod
    def from_info(cls, info: Optional[AccountInfo]) -> "DbAccount":
        """Account for ``info``, or a not-existing one for ``None``."""
        if info is None:
            return cls.new_not_existing()
        return cls(info=info, account_state=AccountState.NONE)

    def account_info(self) -> Optional[AccountInfo]:
        if self.account_state is AccountState.NOT_EXISTING:
            return None
        return copy.copy(self.info)


class CacheDB:
    """Keeps accounts, code, logs and block hashes in memory over a read-only database.

    Code lives in ``contracts`` keyed by code hash; the backing database is never written.
    """

    def __init__(self, db: DatabaseRef) -> None:
        self.accounts: Dict[bytes, DbAccount] = {}
        self.contracts: Dict[bytes, Bytecode] = {
            KECCAK_EMPTY: Bytecode(),
            ZERO_HASH: Bytecode(),
        }
        self.logs: List[Log] = []
        self.block_hashes: Dict[int, bytes] = {}
        self.db = db

    def insert_contract(self, account: AccountInfo) -> None:
        """Store the account's code by hash and fix up its code hash."""
        code = account.code
        if code is not None and not code.is_empty():
            account.code_hash = code.hash_slow()
            self.contracts.setdefault(account.code_hash, code)
        if account.code_hash == ZERO_HASH:
            account.code_hash = KECCAK_EMPTY

    def insert_account_info(self, address: bytes, info: AccountInfo) -> None:
        """Set account info, keeping any storage already cached."""
        self.insert_contract(info)
        self.accounts.setdefault(address, DbAccount()).info = info

    def load_account(self, address: bytes) -> DbAccount:
        """Cached account, loaded from the backing database if missing."""
        account = self.accounts.get(address)
        if account is None:
            account = DbAccount.from_info(self.db.basic_ref(address))
            self.accounts[address] = account
        return account

    def insert_account_storage(self, address: bytes, slot: int, value: int) -> None:
        self.load_account(address).storage[slot] = value

    def replace_account_storage(self, address: bytes, storage: Mapping[int, int]) -> None:
        """Replace all storage of the account; missing slots then read as zero."""
        account = self.load_account(address)
        account.account_state = AccountState.STORAGE_CLEARED
        account.storage = dict(storage)

    def commit(self, changes: Mapping[bytes, Account]) -> None:
        """Apply execution output to the cache."""
        for address, account in changes.items():
            if not account.is_touched():
                continue
            if account.is_selfdestructed():
                db_account = self.accounts.setdefault(address, DbAccount())
                db_account.storage.clear()
                db_account.account_state = AccountState.NOT_EXISTING
                db_account.info = AccountInfo()
                continue
            is_newly_created = account.is_created()
            self.insert_contract(account.info)

            db_account = self.accounts.setdefault(address, DbAccount())
            db_account.info = account.info
            if is_newly_created:
                db_account.storage.clear()
                db_account.account_state = AccountState.STORAGE_CLEARED
            elif db_account.account_state.is_storage_cleared():
                db_account.account_state = AccountState.STORAGE_CLEARED
            else:
                db_account.account_state = AccountState.TOUCHED
            db_account.storage.update(
                (key, slot.present_value) for key, slot in account.storage.items()
            )

    def basic(self, address: bytes) -> Optional[AccountInfo]:
        return self.load_account(address).account_info()

    def code_by_hash(self, code_hash: bytes) -> Bytecode:
        code = self.contracts.get(code_hash)
        if code is None:
            code = self.db.code_by_hash_ref(code_hash)
            self.contracts[code_hash] = code
        return code

    def storage(self, address: bytes, index: int) -> int:
        """Storage value of a slot, caching what is read from the backing database."""
        account = self.accounts.get(address)
        if account is not None:
            if index in account.storage:
                return account.storage[index]
            if account.account_state in (
                AccountState.STORAGE_CLEARED,
                AccountState.NOT_EXISTING,
            ):
                return 0
            value = self.db.storage_ref(address, index)
            account.storage[index] = value
            return value

        info = self.db.basic_ref(address)
        account = DbAccount.from_info(info)
        value = 0
        if info is not None:
            value = self.db.storage_ref(address, index)
            account.storage[index] = value
        self.accounts[address] = account
        return value

    def block_hash(self, number: int) -> bytes:
        cached = self.block_hashes.get(number)
        if cached is None:
            cached = self.db.block_hash_ref(number)
            self.block_hashes[number] = cached
        return cached

    def basic_ref(self, address: bytes) -> Optional[AccountInfo]:
        account = self.accounts.get(address)
        if account is not None:
            return account.account_info()
        return self.db.basic_ref(address)

    def code_by_hash_ref(self, code_hash: bytes) -> Bytecode:
        code = self.contracts.get(code_hash)
        if code is not None:
            return code
        return self.db.code_by_hash_ref(code_hash)

    def storage_ref(self, address: bytes, index: int) -> int:
        account = self.accounts.get(address)
        if account is None:
            return self.db.storage_ref(address, index)
        if index in account.storage:
            return account.storage[index]
        if account.account_state in (AccountState.STORAGE_CLEARED, AccountState.NOT_EXISTING):
            return 0
        return self.db.storage_ref(address, index)

    def block_hash_ref(self, number: int) -> bytes:
        cached = self.block_hashes.get(number)
        if cached is not None:
            return cached
        return self.db.block_hash_ref(number)


_ZERO_ADDRESS = bytes(20)
_ADDRESS_ONE = bytes(19) + b"\x01"
_BENCHMARK_BALANCE = 10_000_000


@dataclass
class BenchmarkDB:
    """Database with a funded contract at the zero address and a funded account at 1."""

    bytecode: Bytecode = field(default_factory=Bytecode)
    code_hash: bytes = field(init=False)

    def __post_init__(self) -> None:
        self.code_hash = self.bytecode.hash_slow()

    def basic(self, address: bytes) -> Optional[AccountInfo]:
        if address == _ZERO_ADDRESS:
            return AccountInfo(
                balance=_BENCHMARK_BALANCE,
                nonce=1,
                code_hash=self.code_hash,
                code=self.bytecode,
            )
        if address == _ADDRESS_ONE:
            return AccountInfo(
                balance=_BENCHMARK_BALANCE, nonce=0, code_hash=KECCAK_EMPTY, code=None
            )
        return None

    def code_by_hash(self, code_hash: bytes) -> Bytecode:
        return Bytecode()

    def storage(self, address: bytes, index: int) -> int:
        """Every slot of a valid 256-bit index holds zero."""
        return _check_u256(index) & 0

    def block_hash(self, number: int) -> bytes:
        """The zero hash for every valid 256-bit block number."""
        _check_u256(number)
        return bytes(ZERO_HASH)


def in_memory_db() -> CacheDB:
    """A :class:`CacheDB` over an empty database."""
    return CacheDB(EmptyDB())