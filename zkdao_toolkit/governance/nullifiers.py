"""
Per-proposal registry of spent nullifiers.

`spend` is the single point at which a vote becomes cast: the membership test
and the insert happen under one lock, so concurrent submissions of the same
nullifier produce exactly one success. Entries are never removed.
"""

import threading
from collections import defaultdict
from typing import Dict, Set

from zkdao_toolkit.shared.exceptions import DoubleVoteException


class NullifierRegistry:
    def __init__(self):
        self._spent: Dict[int, Set[int]] = defaultdict(set)
        self._lock = threading.Lock()

    def is_spent(self, proposal_id: int, nullifier: int) -> bool:
        with self._lock:
            return nullifier in self._spent.get(proposal_id, ())

    def spend(self, proposal_id: int, nullifier: int) -> None:
        """Record `nullifier`; raises DoubleVoteException if already present."""
        with self._lock:
            spent = self._spent[proposal_id]
            if nullifier in spent:
                raise DoubleVoteException(proposal_id)
            spent.add(nullifier)

    def count(self, proposal_id: int) -> int:
        with self._lock:
            return len(self._spent.get(proposal_id, ()))
