import copy

import pytest

from evmstate.account_status import AccountStatus
from evmstate.bundle_account import BundleAccount
from evmstate.bundle_state import BundleState
from evmstate.primitives import KECCAK_EMPTY, AccountInfo, Bytecode, StorageSlot
from evmstate.reverts import AccountInfoRevert, AccountRevert, RevertToSlot
from evmstate.transition_account import TransitionAccount
from evmstate.transition_state import TransitionState


def account1() -> bytes:
    return bytes([0x60] * 20)


def account2() -> bytes:
    return bytes([0x61] * 20)


SLOT = 5


def info(nonce: int, balance: int) -> AccountInfo:
    return AccountInfo(balance=balance, nonce=nonce, code_hash=KECCAK_EMPTY, code=None)


def bundle1() -> BundleState:
    return BundleState.from_parts(
        [
            (account1(), None, info(1, 10), {SLOT: (0, 10)}),
            (account2(), None, info(1, 10), {}),
        ],
        [
            [
                (account1(), AccountInfoRevert.delete_it(), [(SLOT, 0)]),
                (account2(), AccountInfoRevert.delete_it(), []),
            ]
        ],
        [],
    )


def bundle2() -> BundleState:
    return BundleState.from_parts(
        [(account1(), None, info(3, 20), {SLOT: (0, 15)})],
        [[(account1(), info(1, 10), [(SLOT, 10)])]],
        [],
    )


def test_transition_states():
    address = bytes([0x01] * 20)
    acc1 = info(1, 10)
    bundle = BundleState()
    transition = TransitionAccount(
        info=acc1,
        status=AccountStatus.IN_MEMORY_CHANGE,
        previous_info=None,
        previous_status=AccountStatus.LOADED_NOT_EXISTING,
        storage={},
        storage_was_destroyed=False,
    )
    bundle.apply_block_substate_and_create_reverts(TransitionState.single(address, transition))

    assert bundle.account(address) == BundleAccount(
        info=info(1, 10),
        original_info=None,
        storage={},
        status=AccountStatus.IN_MEMORY_CHANGE,
    )
    assert bundle.reverts == [
        [
            (
                address,
                AccountRevert(
                    account=AccountInfoRevert.delete_it(),
                    storage={},
                    previous_status=AccountStatus.LOADED_NOT_EXISTING,
                    wipe_storage=False,
                ),
            )
        ]
    ]
    assert bundle.contracts == {}


def test_sanity_path():
    b1 = bundle1()
    b2 = bundle2()

    extended = copy.deepcopy(b1)
    extended.extend(copy.deepcopy(b2))

    reverted = copy.deepcopy(extended)
    reverted.revert(0)
    assert reverted == extended

    reverted.revert(1)
    assert reverted == b1

    reverted.revert(1)
    assert reverted == BundleState()

    reverted = copy.deepcopy(extended)
    reverted.revert(10)
    assert reverted == BundleState()


def test_extend_keeps_original_and_updates_present():
    extended = bundle1()
    extended.extend(bundle2())
    acc = extended.account(account1())
    assert acc.info == info(3, 20)
    assert acc.storage[SLOT] == StorageSlot(0, 15)
    assert len(extended.reverts) == 2


def test_len_and_is_empty():
    assert BundleState().is_empty()
    assert len(BundleState()) == 0
    b = bundle1()
    assert len(b) == 2
    assert not b.is_empty()


def test_account_missing_returns_none():
    assert bundle1().account(bytes(20)) is None


def test_take_sorted_plain_change_inner():
    b = bundle1()
    changeset = b.take_sorted_plain_change_inner(False)
    assert [address for address, _ in changeset.accounts] == [account1(), account2()]
    assert changeset.accounts[0][1] == info(1, 10)
    assert changeset.accounts[0][1].code is None
    assert changeset.storage == [
        (account1(), (False, [(SLOT, 10)])),
        (account2(), (False, [])),
    ]
    assert changeset.contracts == []
    assert b.state == {}


def test_take_sorted_plain_change_omit_changed_check():
    address = bytes([0x10] * 20)
    unchanged = BundleState.from_parts(
        [(address, info(1, 1), info(1, 1), {7: (3, 3)})], [], []
    )
    plain = copy.deepcopy(unchanged).take_sorted_plain_change_inner(False)
    assert plain.accounts == []
    assert plain.storage == [(address, (False, []))]

    forced = unchanged.take_sorted_plain_change_inner(True)
    assert forced.accounts == [(address, info(1, 1))]
    assert forced.storage == [(address, (False, [(7, 3)]))]


def test_take_sorted_plain_change_destroyed_account():
    address = bytes([0x20] * 20)
    b = BundleState(
        state={
            address: BundleAccount(
                info=None,
                original_info=info(1, 1),
                storage={
                    3: StorageSlot(5, 0),
                    4: StorageSlot(1, 2),
                    1: StorageSlot(9, 9),
                },
                status=AccountStatus.DESTROYED,
            )
        }
    )
    changeset = b.take_sorted_plain_change_inner(False)
    assert changeset.accounts == [(address, None)]
    assert changeset.storage == [(address, (True, [(1, 9), (4, 2)]))]


def test_take_sorted_plain_change_sorts_contracts():
    code_a = Bytecode(b"\x60\x01")
    code_b = Bytecode(b"\x60\x02")
    hash_a = bytes([0x02] * 32)
    hash_b = bytes([0x01] * 32)
    b = BundleState(contracts={hash_a: code_a, hash_b: code_b})
    changeset = b.take_sorted_plain_change_inner(False)
    assert changeset.contracts == [(hash_b, code_b), (hash_a, code_a)]
    assert b.contracts == {}


def test_take_reverts():
    b = bundle1()
    reverts = b.take_reverts()
    assert reverts.accounts == [[(account1(), None), (account2(), None)]]
    assert reverts.storage == [[(account1(), False, [(SLOT, 0)])]]
    assert b.reverts == []


def test_take_reverts_revert_to_and_destroyed_slot():
    address = bytes([0x30] * 20)
    b = BundleState(
        reverts=[
            [
                (
                    address,
                    AccountRevert(
                        account=AccountInfoRevert.revert_to(info(2, 5)),
                        storage={9: RevertToSlot.destroyed(), 2: RevertToSlot.some(4)},
                        previous_status=AccountStatus.CHANGED,
                        wipe_storage=True,
                    ),
                )
            ]
        ]
    )
    reverts = b.take_reverts()
    assert reverts.accounts == [[(address, info(2, 5))]]
    assert reverts.storage == [[(address, True, [(2, 4), (9, 0)])]]


def test_detach_lower_part_reverts():
    extended = bundle1()
    extended.extend(bundle2())
    b1_reverts = copy.deepcopy(bundle1().reverts)
    b2_reverts = copy.deepcopy(bundle2().reverts)

    assert extended.detach_lower_part_reverts(0) is None
    assert extended.detach_lower_part_reverts(3) is None

    detached = extended.detach_lower_part_reverts(1)
    assert detached == BundleState(reverts=b1_reverts)
    assert detached.state == {}
    assert extended.reverts == b2_reverts


def test_revert_unknown_account_raises():
    b = BundleState(
        reverts=[[(bytes([0x40] * 20), AccountRevert(account=AccountInfoRevert.delete_it()))]]
    )
    with pytest.raises(ValueError):
        b.revert(1)


def test_apply_existing_account_creates_revert_and_contract():
    address = bytes([0x50] * 20)
    b = BundleState()
    b.apply_block_substate_and_create_reverts(
        TransitionState.single(
            address,
            TransitionAccount(
                info=info(1, 10),
                status=AccountStatus.IN_MEMORY_CHANGE,
                previous_status=AccountStatus.LOADED_NOT_EXISTING,
            ),
        )
    )

    code = Bytecode(b"\x60\x00")
    code_hash = code.hash_slow()
    new_info = AccountInfo(balance=10, nonce=2, code_hash=code_hash, code=code)
    b.apply_block_substate_and_create_reverts(
        TransitionState.single(
            address,
            TransitionAccount(
                info=new_info,
                status=AccountStatus.IN_MEMORY_CHANGE,
                previous_info=info(1, 10),
                previous_status=AccountStatus.IN_MEMORY_CHANGE,
                storage={1: StorageSlot(0, 5)},
            ),
        )
    )

    assert b.bytecode(code_hash) == code
    assert b.reverts[1] == [
        (
            address,
            AccountRevert(
                account=AccountInfoRevert.revert_to(info(1, 10)),
                storage={1: RevertToSlot.some(0)},
                previous_status=AccountStatus.IN_MEMORY_CHANGE,
                wipe_storage=False,
            ),
        )
    ]
    assert b.account(address).storage == {1: StorageSlot(0, 5)}

    b.revert(1)
    acc = b.account(address)
    assert acc.info == info(1, 10)
    assert acc.storage[1].present_value == 0
    b.revert(1)
    assert b.is_empty()


def test_from_parts_revert_spec_variants():
    address = bytes([0x70] * 20)
    b = BundleState.from_parts(
        [],
        [[(address, None, [(1, 2)]), (account1(), info(4, 4), [])]],
        [(KECCAK_EMPTY, Bytecode())],
    )
    assert b.reverts[0][0][1].account == AccountInfoRevert.do_nothing()
    assert b.reverts[0][0][1].storage == {1: RevertToSlot.some(2)}
    assert b.reverts[0][1][1].account == AccountInfoRevert.revert_to(info(4, 4))
    assert b.bytecode(KECCAK_EMPTY) == Bytecode()