"""Builder that sets up a :class:`State` with the chosen options."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional

from .bundle_state import BundleState
from .cache import CacheState
from .emptydb import EmptyDB
from .state import Database, State
from .transition_state import TransitionState


@dataclass(frozen=True)
class StateBuilder:
    """Collects options for a :class:`State`; each option returns a new builder."""

    #: EIP-161 state clear is enabled.
    state_clear: bool = True
    #: Database the state falls back to.
    database: Database = field(default_factory=EmptyDB)
    #: Bundle used as an extra cache layer between the state cache and the database.
    bundle_prestate: Optional[BundleState] = None
    #: Cache the state starts from; overrides the bundle prestate.
    cache_prestate: Optional[CacheState] = None
    #: Create transitions and update the bundle state.
    bundle_update: bool = True
    #: Merge transitions in the background.
    background_transition_merge: bool = False
    #: Block hashes consulted before the database.
    block_hashes: Dict[int, bytes] = field(default_factory=dict)

    def with_database(self, database: Database) -> "StateBuilder":
        return dataclasses.replace(self, database=database)

    def without_state_clear(self) -> "StateBuilder":
        """Disable EIP-161 state clear, as needed for early mainnet blocks."""
        return dataclasses.replace(self, state_clear=False)

    def with_bundle_prestate(self, bundle: BundleState) -> "StateBuilder":
        """Use ``bundle`` as a lookup layer after the cache and before the database."""
        return dataclasses.replace(self, bundle_prestate=bundle)

    def without_bundle_update(self) -> "StateBuilder":
        """Create no transitions and leave the bundle state untouched."""
        return dataclasses.replace(self, bundle_update=False)

    def with_cached_prestate(self, cache: CacheState) -> "StateBuilder":
        """Start from ``cache``; the bundle prestate and state clear flag are then ignored."""
        return dataclasses.replace(self, cache_prestate=cache)

    def with_background_transition_merge(self) -> "StateBuilder":
        return dataclasses.replace(self, background_transition_merge=True)

    def with_block_hashes(self, block_hashes: Mapping[int, bytes]) -> "StateBuilder":
        return dataclasses.replace(self, block_hashes=dict(block_hashes))

    def build(self) -> State:
        if self.cache_prestate is not None:
            bundle_state = None
            use_preloaded_bundle = False
            cache = self.cache_prestate
        else:
            bundle_state = self.bundle_prestate
            use_preloaded_bundle = bundle_state is not None
            cache = CacheState(has_state_clear=self.state_clear)
        return State(
            cache=cache,
            database=self.database,
            transition_state=TransitionState() if self.bundle_update else None,
            bundle_state=bundle_state,
            use_preloaded_bundle=use_preloaded_bundle,
            block_hashes=dict(self.block_hashes),
        )