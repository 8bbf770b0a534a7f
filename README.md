# evmstate

In-memory account state for an Ethereum Virtual Machine. It caches the
accounts and storage an execution reads and writes. It records every change
as a transition. It folds each block's transitions into a bundle. A bundle
can be turned into sorted changesets or reverted block by block.

Addresses are 20-byte `bytes` values. Hashes are 32-byte `bytes` values.
Balances, nonces, storage slots and storage values are plain `int`s.

## Installation

```
pip install evmstate
```

## Building a state

`evmstate.state_builder.StateBuilder` configures and creates an
`evmstate.state.State`. If no database is given, every lookup goes to an
`EmptyDB` (`evmstate.emptydb`). An `EmptyDB` knows no accounts and gives
empty code and zero storage. Its hash for a block is the keccak-256 of the
block number written as 32 big-endian bytes.

```python
from evmstate.primitives import AccountInfo
from evmstate.state_builder import StateBuilder

address = bytes(19) + b"\x01"

state = StateBuilder().build()
state.insert_account(address, AccountInfo(balance=10, nonce=1))
state.increment_balances([(address, 100)])   # e.g. a block reward
state.merge_transitions()
bundle = state.take_bundle()
```

Each builder method returns a new builder:

- `with_database(db)` sets the database the state falls back to.
- `without_state_clear()` turns off EIP-161 state clear.
- `with_bundle_prestate(bundle)` makes the state look in `bundle` after its
  cache and before the database.
- `with_cached_prestate(cache)` starts from a given `CacheState`. The bundle
  prestate and the state clear option are then ignored.
- `without_bundle_update()` stops the state from recording transitions.
- `with_block_hashes(mapping)` sets block hashes that are used before the
  database is asked.
- `with_background_transition_merge()` only records a flag. `build()` does
  not use it, and transitions are always merged when `merge_transitions()`
  is called.

A `State` acts as a database itself. It provides `basic`, `code_by_hash`,
`storage` and `block_hash`. `storage` requires the account to be loaded
first. `block_hash` caches hashes and drops those more than 256 blocks older
than the block just asked for. `commit` takes a mapping of addresses to
`evmstate.primitives.Account` objects, which hold the info, changed storage
and flags of each account an execution changed. `drain_balances` sets the
balances of the given accounts to zero and returns the amounts it drained.

## Bundles and reverts

A `BundleState` (`evmstate.bundle_state`) holds the present and original
values of every changed account, the contracts that were created, and one
list of reverts for each merged block.

```python
changes = bundle.take_sorted_plain_change_inner(omit_changed_check=False)
reverts = bundle.take_reverts()
```

`changes` is a `StateChangeset`. It holds accounts, storage and contracts,
each sorted by key and ready to be written to separate tables.
`take_sorted_plain_change_inner` empties the bundle's accounts and
contracts. `reverts` is a `StateReverts` with one list of entries for each
block. In it, account info of `None` means the account is to be removed.

Other bundle operations:

- `revert(n)` undoes the last `n` blocks.
- `extend(other)` lays a later bundle over this one.
- `detach_lower_part_reverts(n)` splits off the oldest `n` reverts into a
  new bundle. It returns `None` for zero or for more reverts than there are.
- `from_parts(state, reverts, contracts)` builds a bundle from its parts.

## In-memory database

`evmstate.in_memory_db` provides `CacheDB`, a cache over a read-only
database. The read-only database is never written to. The function
`in_memory_db()` returns a `CacheDB` over an `EmptyDB`. The module also has
`BenchmarkDB`. It serves a funded contract with the given bytecode at the
zero address and a funded account without code at address 1. It knows no
other accounts.

```python
from evmstate.in_memory_db import in_memory_db
from evmstate.primitives import AccountInfo

address = bytes(19) + b"\x2a"

db = in_memory_db()
db.insert_account_info(address, AccountInfo(nonce=1))
db.insert_account_storage(address, 5, 10)
assert db.storage(address, 5) == 10
```

## What it does not do

The package does not execute transactions or run contract code. The
`Account` objects passed to `commit` must come from an executor outside
this package. It has no database backed by disk or by a network node. Its
only databases are `EmptyDB`, `CacheDB` and `BenchmarkDB`, or any object
with the same methods.

## Running the tests

```
pip install -e ".[test]"
pytest
```