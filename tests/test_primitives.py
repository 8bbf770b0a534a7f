from evmstate.primitives import (
    KECCAK_EMPTY,
    ZERO_HASH,
    Account,
    AccountInfo,
    Bytecode,
    Log,
    PlainAccount,
    StateChangeset,
    StateReverts,
    StorageSlot,
    keccak256,
)


def test_keccak_of_empty_input_is_known_constant():
    expected = bytes.fromhex(
        "c5d2460186f7233c927e7db2dcc703c0e500b653ca82273b7bfad8045d85a470"
    )
    assert keccak256(b"") == expected
    assert KECCAK_EMPTY == expected


def test_keccak_is_deterministic_and_32_bytes():
    assert keccak256(b"abc") == keccak256(bytearray(b"abc"))
    assert len(keccak256(b"abc")) == 32
    assert keccak256(b"abc") != keccak256(b"abd")


def test_bytecode_hash():
    assert Bytecode().is_empty()
    assert Bytecode().hash_slow() == KECCAK_EMPTY
    code = Bytecode(b"\x60\x00")
    assert not code.is_empty()
    assert code.hash_slow() == keccak256(b"\x60\x00")


def test_account_info_default_is_empty():
    info = AccountInfo()
    assert info.is_empty()
    assert not info.exists()
    assert info.code_hash == KECCAK_EMPTY


def test_account_info_with_zero_hash_is_empty():
    assert AccountInfo(code_hash=ZERO_HASH).is_empty()


def test_account_info_with_nonce_exists():
    info = AccountInfo(nonce=1)
    assert info.exists()
    assert not AccountInfo(balance=5).is_empty()


def test_account_info_equality_ignores_code():
    a = AccountInfo(balance=10, nonce=1, code=None)
    b = AccountInfo(balance=10, nonce=1, code=Bytecode(b"\x00"))
    assert a == b
    assert a != AccountInfo(balance=11, nonce=1)


def test_storage_slot():
    slot = StorageSlot.new_changed(1, 2)
    assert slot.original_value() == 1
    assert slot.present_value == 2
    assert slot.is_changed()
    assert not StorageSlot.new_changed(3, 3).is_changed()


def test_account_flags():
    account = Account()
    assert not account.is_touched()
    account.mark_touch()
    assert account.is_touched()
    assert not account.is_selfdestructed()
    account.mark_selfdestruct()
    account.mark_created()
    assert account.is_selfdestructed()
    assert account.is_created()
    assert account.is_empty()


def test_log_fields():
    log = Log(address=b"\x01" * 20, topics=(b"\x02" * 32,), data=b"\x03")
    assert log.topics == (b"\x02" * 32,)
    assert log == Log(address=b"\x01" * 20, topics=(b"\x02" * 32,), data=b"\x03")


def test_plain_account_constructors():
    empty = PlainAccount.new_empty_with_storage({1: 2})
    assert empty.info.is_empty()
    assert empty.storage == {1: 2}
    info = AccountInfo(nonce=7)
    plain = PlainAccount.from_info(info)
    assert plain.into_components() == (info, {})


def test_changeset_and_reverts_start_empty():
    changes = StateChangeset()
    reverts = StateReverts()
    assert (changes.accounts, changes.storage, changes.contracts) == ([], [], [])
    assert (reverts.accounts, reverts.storage) == ([], [])