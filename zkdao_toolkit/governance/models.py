"""
Data models for the anonymous governor.
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Dict, Optional, Sequence

from eth_abi import encode
from eth_utils import keccak, to_checksum_address

from zkdao_toolkit.shared.constants import GovernanceConstants


class ProposalState(IntEnum):
    """Same numbering as OpenZeppelin's IGovernor.ProposalState."""

    PENDING = 0
    ACTIVE = 1
    CANCELED = 2
    DEFEATED = 3
    SUCCEEDED = 4
    QUEUED = 5
    EXPIRED = 6
    EXECUTED = 7

    @property
    def is_terminal(self) -> bool:
        return self in (
            ProposalState.CANCELED,
            ProposalState.DEFEATED,
            ProposalState.EXPIRED,
            ProposalState.EXECUTED,
        )


class VoteType(IntEnum):
    AGAINST = GovernanceConstants.AGAINST
    FOR = GovernanceConstants.FOR
    ABSTAIN = GovernanceConstants.ABSTAIN


@dataclass(frozen=True)
class GovernorParams:
    voting_delay: int = GovernanceConstants.VOTING_DELAY
    voting_period: int = GovernanceConstants.VOTING_PERIOD
    proposal_threshold: int = GovernanceConstants.PROPOSAL_THRESHOLD
    quorum_fraction: int = GovernanceConstants.QUORUM_FRACTION
    min_delay: int = GovernanceConstants.MIN_DELAY
    grace_period: int = GovernanceConstants.GRACE_PERIOD

    def __post_init__(self):
        if self.voting_delay < 0 or self.min_delay < 0:
            raise ValueError("Delays must be non-negative")
        if self.voting_period <= 0:
            raise ValueError("voting_period must be positive")
        if not 0 <= self.quorum_fraction <= 100:
            raise ValueError("quorum_fraction must be a percentage")
        if self.grace_period <= 0:
            raise ValueError("grace_period must be positive")


@dataclass(frozen=True)
class ProposalCall:
    targets: tuple
    values: tuple
    calldatas: tuple

    @classmethod
    def build(
        cls,
        targets: Sequence[str],
        values: Sequence[int],
        calldatas: Sequence[bytes],
    ) -> "ProposalCall":
        if not targets:
            raise ValueError("A proposal needs at least one call")
        if not len(targets) == len(values) == len(calldatas):
            raise ValueError("targets, values and calldatas lengths differ")
        return cls(
            targets=tuple(to_checksum_address(t) for t in targets),
            values=tuple(int(v) for v in values),
            calldatas=tuple(_to_bytes(c) for c in calldatas),
        )


def _to_bytes(value) -> bytes:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    return bytes.fromhex(str(value).removeprefix("0x"))


def hash_description(description: str) -> bytes:
    return keccak(text=description)


def hash_operation(call: ProposalCall, description_hash: bytes) -> bytes:
    """keccak(abi.encode(targets, values, calldatas, descriptionHash))."""
    if len(description_hash) != 32:
        raise ValueError("description_hash must be 32 bytes")
    return keccak(
        encode(
            ["address[]", "uint256[]", "bytes[]", "bytes32"],
            [
                list(call.targets),
                list(call.values),
                list(call.calldatas),
                description_hash,
            ],
        )
    )


@dataclass
class Proposal:
    id: int
    proposer: str
    operation_hash: bytes
    description: str
    vote_start: int
    vote_end: int
    quorum: int
    snapshot_root: int = 0
    for_votes: int = 0
    against_votes: int = 0
    abstain_votes: int = 0
    eta: Optional[int] = None
    queued: bool = False
    executed: bool = False
    canceled: bool = False

    @property
    def has_snapshot(self) -> bool:
        return self.snapshot_root != 0

    def quorum_reached(self) -> bool:
        return self.for_votes + self.abstain_votes >= self.quorum

    def vote_succeeded(self) -> bool:
        return self.for_votes > self.against_votes

    def add_votes(self, choice: VoteType, weight: int) -> None:
        if choice == VoteType.FOR:
            self.for_votes += weight
        elif choice == VoteType.AGAINST:
            self.against_votes += weight
        else:
            self.abstain_votes += weight

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "proposer": self.proposer,
            "operationHash": "0x" + self.operation_hash.hex(),
            "description": self.description,
            "voteStart": self.vote_start,
            "voteEnd": self.vote_end,
            "quorum": self.quorum,
            "snapshotRoot": hex(self.snapshot_root),
            "forVotes": self.for_votes,
            "againstVotes": self.against_votes,
            "abstainVotes": self.abstain_votes,
            "eta": self.eta,
        }


@dataclass(frozen=True)
class VoteReceipt:
    proposal_id: int
    nullifier: int
    choice: VoteType
    weight: int


@dataclass(frozen=True)
class GovernanceEvent:
    name: str
    proposal_id: int
    timestamp: int
    data: Dict[str, Any] = field(default_factory=dict)

