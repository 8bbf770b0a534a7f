"""Core value types shared by the state layers: accounts, storage slots, bytecode."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from Crypto.Hash import keccak

#: 20-byte account address.
Address = bytes
#: 32-byte hash.
Hash = bytes


def keccak256(data: bytes) -> bytes:
    """Return the Keccak-256 digest of ``data``."""
    hasher = keccak.new(digest_bits=256)
    hasher.update(bytes(data))
    return hasher.digest()


#: Hash of empty code.
KECCAK_EMPTY: bytes = keccak256(b"")
#: The all-zero 32-byte hash.
ZERO_HASH: bytes = bytes(32)
#: Largest value a 256-bit word can hold.
U256_MAX: int = (1 << 256) - 1


@dataclass(frozen=True)
class Bytecode:
    """Raw contract code."""

    raw: bytes = b""

    def hash_slow(self) -> bytes:
        """Compute the code hash; empty code hashes to ``KECCAK_EMPTY``."""
        if self.is_empty():
            return KECCAK_EMPTY
        return keccak256(self.raw)

    def is_empty(self) -> bool:
        return len(self.raw) == 0

    def __len__(self) -> int:
        return len(self.raw)


@dataclass(eq=False)
class AccountInfo:
    """Balance, nonce and code of an account.

    Equality compares balance, nonce and code hash; the code itself is ignored.
    """

    balance: int = 0
    nonce: int = 0
    code_hash: bytes = KECCAK_EMPTY
    code: Optional[Bytecode] = field(default_factory=Bytecode)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AccountInfo):
            return NotImplemented
        return (
            self.balance == other.balance
            and self.nonce == other.nonce
            and self.code_hash == other.code_hash
        )

    def is_empty(self) -> bool:
        """True for zero balance, zero nonce and no code."""
        code_empty = self.code_hash in (KECCAK_EMPTY, ZERO_HASH)
        return self.balance == 0 and self.nonce == 0 and code_empty

    def exists(self) -> bool:
        return not self.is_empty()


@dataclass
class StorageSlot:
    """A storage value together with the value it had before the change."""

    previous_or_original_value: int = 0
    present_value: int = 0

    @classmethod
    def new_changed(cls, original: int, present: int) -> "StorageSlot":
        return cls(previous_or_original_value=original, present_value=present)

    def original_value(self) -> int:
        return self.previous_or_original_value

    def is_changed(self) -> bool:
        return self.previous_or_original_value != self.present_value


class AccountFlags(enum.Flag):
    NONE = 0
    TOUCHED = enum.auto()
    SELFDESTRUCTED = enum.auto()
    CREATED = enum.auto()


@dataclass
class Account:
    """Account as produced by an execution: info, changed storage and flags."""

    info: AccountInfo = field(default_factory=AccountInfo)
    storage: Dict[int, StorageSlot] = field(default_factory=dict)
    flags: AccountFlags = AccountFlags.NONE

    def mark_touch(self) -> None:
        self.flags |= AccountFlags.TOUCHED

    def mark_selfdestruct(self) -> None:
        self.flags |= AccountFlags.SELFDESTRUCTED

    def mark_created(self) -> None:
        self.flags |= AccountFlags.CREATED

    def is_touched(self) -> bool:
        return AccountFlags.TOUCHED in self.flags

    def is_selfdestructed(self) -> bool:
        return AccountFlags.SELFDESTRUCTED in self.flags

    def is_created(self) -> bool:
        return AccountFlags.CREATED in self.flags

    def is_empty(self) -> bool:
        return self.info.is_empty()


@dataclass(frozen=True)
class Log:
    """A log entry emitted by a contract."""

    address: bytes
    topics: Tuple[bytes, ...] = ()
    data: bytes = b""


#: Storage slots carrying both the original and the present value.
StorageWithOriginalValues = Dict[int, StorageSlot]
#: Plain storage with present values only.
PlainStorage = Dict[int, int]


@dataclass
class PlainAccount:
    """Account info with plain storage."""

    info: AccountInfo = field(default_factory=AccountInfo)
    storage: PlainStorage = field(default_factory=dict)

    @classmethod
    def new_empty_with_storage(cls, storage: PlainStorage) -> "PlainAccount":
        return cls(info=AccountInfo(), storage=storage)

    @classmethod
    def from_info(cls, info: AccountInfo) -> "PlainAccount":
        return cls(info=info, storage={})

    def into_components(self) -> Tuple[AccountInfo, PlainStorage]:
        return self.info, self.storage


#: Per address: (storage must be wiped, sorted (slot, value) pairs).
StorageChangeset = List[Tuple[bytes, Tuple[bool, List[Tuple[int, int]]]]]
#: Per block, per address: (address, wipe storage, sorted (slot, value) pairs).
StorageRevert = List[List[Tuple[bytes, bool, List[Tuple[int, int]]]]]


@dataclass
class StateChangeset:
    """Sorted account, storage and contract changes ready for a database."""

    accounts: List[Tuple[bytes, Optional[AccountInfo]]] = field(default_factory=list)
    storage: StorageChangeset = field(default_factory=list)
    contracts: List[Tuple[bytes, Bytecode]] = field(default_factory=list)


@dataclass
class StateReverts:
    """Sorted per-block reverts; ``None`` account info means removal."""

    accounts: List[List[Tuple[bytes, Optional[AccountInfo]]]] = field(default_factory=list)
    storage: StorageRevert = field(default_factory=list)