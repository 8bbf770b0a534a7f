from evmstate.account_status import AccountStatus
from evmstate.bundle_account import BundleAccount
from evmstate.primitives import AccountInfo, Bytecode, StorageSlot
from evmstate.reverts import AccountInfoRevert, AccountRevert, RevertToSlot
from evmstate.transition_account import TransitionAccount


def test_new_empty_eip161():
    storage = {1: StorageSlot(0, 4)}
    transition = TransitionAccount.new_empty_eip161(storage)
    assert transition.info == AccountInfo()
    assert transition.status is AccountStatus.IN_MEMORY_CHANGE
    assert transition.previous_info is None
    assert transition.previous_status is AccountStatus.LOADED_NOT_EXISTING
    assert transition.storage == storage
    assert transition.storage_was_destroyed is False


def test_has_new_contract_when_code_hash_changes():
    code = Bytecode(b"\x60\x00")
    code_hash = code.hash_slow()
    info = AccountInfo(nonce=1, code_hash=code_hash, code=code)
    transition = TransitionAccount(info=info, status=AccountStatus.IN_MEMORY_CHANGE)
    assert transition.has_new_contract() == (code_hash, code)


def test_has_new_contract_none_when_hash_same():
    code = Bytecode(b"\x60\x00")
    code_hash = code.hash_slow()
    transition = TransitionAccount(
        info=AccountInfo(nonce=2, code_hash=code_hash, code=code),
        status=AccountStatus.CHANGED,
        previous_info=AccountInfo(nonce=1, code_hash=code_hash, code=code),
    )
    assert transition.has_new_contract() is None


def test_update_merges_storage():
    first = TransitionAccount(
        info=AccountInfo(nonce=1),
        status=AccountStatus.CHANGED,
        storage={1: StorageSlot(2, 3), 4: StorageSlot(5, 6)},
    )
    second = TransitionAccount(
        info=AccountInfo(nonce=2),
        status=AccountStatus.CHANGED,
        storage={1: StorageSlot(3, 2), 4: StorageSlot(6, 8), 9: StorageSlot(0, 1)},
    )
    first.update(second)
    assert first.info == AccountInfo(nonce=2)
    assert first.storage == {4: StorageSlot(5, 8), 9: StorageSlot(0, 1)}
    assert first.storage_was_destroyed is False


def test_update_with_destroy_replaces_storage():
    first = TransitionAccount(
        info=AccountInfo(nonce=1),
        status=AccountStatus.CHANGED,
        storage={1: StorageSlot(2, 3)},
    )
    second = TransitionAccount(info=None, status=AccountStatus.DESTROYED)
    first.update(second)
    assert first.info is None
    assert first.status is AccountStatus.DESTROYED
    assert first.storage == {}
    assert first.storage_was_destroyed is True


def test_present_and_original_bundle_account():
    previous = AccountInfo(balance=10, nonce=1)
    present = AccountInfo(balance=20, nonce=3)
    transition = TransitionAccount(
        info=present,
        status=AccountStatus.CHANGED,
        previous_info=previous,
        previous_status=AccountStatus.LOADED,
        storage={5: StorageSlot(0, 15)},
    )
    assert transition.present_bundle_account() == BundleAccount(
        info=present,
        original_info=previous,
        storage={5: StorageSlot(0, 15)},
        status=AccountStatus.CHANGED,
    )
    assert transition.original_bundle_account() == BundleAccount(
        info=previous,
        original_info=previous,
        storage={},
        status=AccountStatus.LOADED,
    )


def test_create_revert_for_new_account():
    transition = TransitionAccount(
        info=AccountInfo(nonce=1, balance=1),
        status=AccountStatus.IN_MEMORY_CHANGE,
        previous_status=AccountStatus.LOADED_NOT_EXISTING,
        storage={1: StorageSlot(0, 1)},
    )
    assert transition.create_revert() == AccountRevert(
        account=AccountInfoRevert.delete_it(),
        previous_status=AccountStatus.LOADED_NOT_EXISTING,
        storage={1: RevertToSlot.some(0)},
        wipe_storage=False,
    )


def test_create_revert_for_loaded_is_none():
    transition = TransitionAccount(
        info=AccountInfo(nonce=1),
        status=AccountStatus.LOADED,
        previous_info=AccountInfo(nonce=1),
        previous_status=AccountStatus.LOADED,
    )
    assert transition.create_revert() is None