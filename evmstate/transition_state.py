"""Transitions of all accounts touched within a block."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, Tuple

from .transition_account import TransitionAccount


@dataclass
class TransitionState:
    """Per-address transitions accumulated over a block."""

    transitions: Dict[bytes, TransitionAccount] = field(default_factory=dict)

    @classmethod
    def single(cls, address: bytes, transition: TransitionAccount) -> "TransitionState":
        return cls(transitions={address: transition})

    def take(self) -> "TransitionState":
        """Return all transitions and leave this state empty."""
        taken = TransitionState(transitions=self.transitions)
        self.transitions = {}
        return taken

    def add_transitions(self, transitions: Iterable[Tuple[bytes, TransitionAccount]]) -> None:
        for address, account in transitions:
            existing = self.transitions.get(address)
            if existing is None:
                self.transitions[address] = account
            else:
                existing.update(account)