"""
Minimal timelock: operations are scheduled with an ETA no earlier than
`now + min_delay` and become executable once the ETA has passed.
"""

from dataclasses import dataclass
from typing import Callable, Dict, Optional

from zkdao_toolkit.shared.exceptions import InvalidStateException

DONE = -1


@dataclass
class Timelock:
    min_delay: int
    clock: Callable[[], int]

    def __post_init__(self):
        self._timestamps: Dict[bytes, int] = {}

    def get_eta(self, operation: bytes) -> Optional[int]:
        eta = self._timestamps.get(operation)
        return None if eta in (None, DONE) else eta

    def is_pending(self, operation: bytes) -> bool:
        return self.get_eta(operation) is not None

    def is_ready(self, operation: bytes) -> bool:
        eta = self.get_eta(operation)
        return eta is not None and self.clock() >= eta

    def is_done(self, operation: bytes) -> bool:
        return self._timestamps.get(operation) == DONE

    def schedule(self, operation: bytes, delay: Optional[int] = None) -> int:
        delay = self.min_delay if delay is None else delay
        if delay < self.min_delay:
            raise InvalidStateException(
                f"Delay {delay}s is below the minimum {self.min_delay}s"
            )
        if operation in self._timestamps:
            raise InvalidStateException("Operation already scheduled")
        eta = self.clock() + delay
        self._timestamps[operation] = eta
        return eta

    def mark_done(self, operation: bytes) -> None:
        if not self.is_ready(operation):
            raise InvalidStateException("Operation is not ready")
        self._timestamps[operation] = DONE

    def cancel(self, operation: bytes) -> None:
        if not self.is_pending(operation):
            raise InvalidStateException("Operation is not pending")
        del self._timestamps[operation]
