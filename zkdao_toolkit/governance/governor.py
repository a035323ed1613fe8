"""
Anonymous governor: proposal lifecycle, snapshot roots and ZK vote tallying.

Every mutating call runs under one re-entrant lock and validates all of its
preconditions before touching state, so a failed call leaves no partial
effects (the serialized-transaction model of a contract).

State machine
-------------
    Pending -> Active -> Defeated | Succeeded -> Queued -> Executed
    Succeeded | Queued -> Expired   (grace period elapsed)
    Active | Succeeded | Queued -> Canceled

Times are integer seconds from an injectable clock. The executor receives a
queued proposal's whole batch of calls and applies all of them or none, like
a TimelockController batch; if it raises, the proposal stays Queued.
"""

import threading
import time
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence, Tuple

from eth_utils import to_checksum_address

from zkdao_toolkit.circuit.field import FIELD_MODULUS
from zkdao_toolkit.governance.models import (
    GovernanceEvent,
    GovernorParams,
    Proposal,
    ProposalCall,
    ProposalState,
    VoteReceipt,
    VoteType,
    hash_description,
    hash_operation,
)
from zkdao_toolkit.governance.nullifiers import NullifierRegistry
from zkdao_toolkit.governance.timelock import Timelock
from zkdao_toolkit.governance.verifier import ProofVerifier
from zkdao_toolkit.shared.constants import CircuitConstants
from zkdao_toolkit.shared.exceptions import (
    DoubleVoteException,
    InvalidProofException,
    InvalidStateException,
    SnapshotNotSetException,
    UnauthorizedException,
)
from zkdao_toolkit.shared.logging import get_logger, redact

_logger = get_logger(__name__)

_PI = {name: i for i, name in enumerate(CircuitConstants.PUBLIC_INPUTS)}


class VotingPowerSource(Protocol):
    def get_votes(self, account: str) -> int: ...

    def total_supply(self) -> int: ...


def _word_to_int(value: Any) -> int:
    """Public input word (bytes32, hex/decimal string or int) as an integer."""
    if isinstance(value, bool):
        raise InvalidProofException("Public inputs must be field elements")
    if isinstance(value, (bytes, bytearray)):
        if len(value) != 32:
            raise InvalidProofException("Public inputs must be 32-byte words")
        number = int.from_bytes(value, "big")
    elif isinstance(value, int):
        number = value
    elif isinstance(value, str):
        text = value.strip()
        try:
            number = int(text, 16) if text.lower().startswith("0x") else int(text)
        except ValueError:
            raise InvalidProofException("Public input is not an integer") from None
    else:
        raise InvalidProofException(
            f"Unsupported public input type {type(value).__name__}"
        )
    if not 0 <= number < FIELD_MODULUS:
        raise InvalidProofException("Public input is not a canonical field element")
    return number


def parse_public_inputs(public_inputs: Sequence[Any]) -> Tuple[int, ...]:
    if len(public_inputs) != len(CircuitConstants.PUBLIC_INPUTS):
        raise InvalidProofException(
            f"Expected {len(CircuitConstants.PUBLIC_INPUTS)} public inputs, "
            f"got {len(public_inputs)}"
        )
    return tuple(_word_to_int(v) for v in public_inputs)


class AnonymousGovernor:
    """Governor whose votes are cast with ZK proofs and nullifiers."""

    def __init__(
        self,
        verifier: ProofVerifier,
        voting_power: VotingPowerSource,
        params: Optional[GovernorParams] = None,
        snapshot_oracle: Optional[str] = None,
        guardian: Optional[str] = None,
        clock: Optional[Callable[[], int]] = None,
        executor: Optional[Callable[[ProposalCall], Any]] = None,
        nullifiers: Optional[NullifierRegistry] = None,
    ):
        self.verifier = verifier
        self.voting_power = voting_power
        self.params = params or GovernorParams()
        self.clock = clock or (lambda: int(time.time()))
        self.executor = executor
        self.nullifiers = nullifiers or NullifierRegistry()
        self.timelock = Timelock(self.params.min_delay, self.clock)
        self.guardian = to_checksum_address(guardian) if guardian else None
        self.snapshot_oracle = (
            to_checksum_address(snapshot_oracle) if snapshot_oracle else None
        )

        self._lock = threading.RLock()
        self._proposals: Dict[int, Proposal] = {}
        self._by_operation: Dict[bytes, int] = {}
        self._next_id = 1
        self.events: List[GovernanceEvent] = []

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def get_proposal(self, proposal_id: int) -> Proposal:
        try:
            return self._proposals[proposal_id]
        except KeyError:
            raise InvalidStateException(f"Unknown proposal {proposal_id}") from None

    def state(self, proposal_id: int) -> ProposalState:
        with self._lock:
            proposal = self.get_proposal(proposal_id)
            now = self.clock()

            if proposal.executed:
                return ProposalState.EXECUTED
            if proposal.canceled:
                return ProposalState.CANCELED
            if now < proposal.vote_start:
                return ProposalState.PENDING
            if now <= proposal.vote_end:
                return ProposalState.ACTIVE
            if not (proposal.quorum_reached() and proposal.vote_succeeded()):
                return ProposalState.DEFEATED
            if proposal.queued:
                if now >= proposal.eta + self.params.grace_period:
                    return ProposalState.EXPIRED
                return ProposalState.QUEUED
            if now > proposal.vote_end + self.params.grace_period:
                return ProposalState.EXPIRED
            return ProposalState.SUCCEEDED

    def quorum(self) -> int:
        """Votes (for + abstain) needed for a proposal created now."""
        return self.voting_power.total_supply() * self.params.quorum_fraction // 100

    def proposal_votes(self, proposal_id: int) -> Tuple[int, int, int]:
        """(against, for, abstain), the GovernorCountingSimple order."""
        with self._lock:
            p = self.get_proposal(proposal_id)
            return p.against_votes, p.for_votes, p.abstain_votes

    def has_voted(self, proposal_id: int, nullifier: Any) -> bool:
        return self.nullifiers.is_spent(proposal_id, _word_to_int(nullifier))

    def _emit(self, name: str, proposal_id: int, **data) -> None:
        event = GovernanceEvent(
            name=name, proposal_id=proposal_id, timestamp=self.clock(), data=data
        )
        self.events.append(event)
        _logger.info("%s proposal=%s", name, proposal_id)

    # ------------------------------------------------------------------
    # Proposals
    # ------------------------------------------------------------------

    def propose(
        self,
        proposer: str,
        targets: Sequence[str],
        values: Sequence[int],
        calldatas: Sequence[bytes],
        description: str,
    ) -> int:
        call = ProposalCall.build(targets, values, calldatas)
        proposer = to_checksum_address(proposer)

        with self._lock:
            votes = self.voting_power.get_votes(proposer)
            if votes < self.params.proposal_threshold:
                raise UnauthorizedException(
                    f"Proposer votes {votes} below threshold "
                    f"{self.params.proposal_threshold}"
                )

            operation = hash_operation(call, hash_description(description))
            if operation in self._by_operation:
                raise InvalidStateException("Proposal already exists")

            now = self.clock()
            vote_start = now + self.params.voting_delay
            proposal = Proposal(
                id=self._next_id,
                proposer=proposer,
                operation_hash=operation,
                description=description,
                vote_start=vote_start,
                vote_end=vote_start + self.params.voting_period,
                quorum=self.quorum(),
            )
            self._proposals[proposal.id] = proposal
            self._by_operation[operation] = proposal.id
            self._next_id += 1

            self._emit(
                "ProposalCreated",
                proposal.id,
                proposer=proposer,
                vote_start=proposal.vote_start,
                vote_end=proposal.vote_end,
                description=description,
            )
            return proposal.id

    def set_snapshot_root(self, caller: str, proposal_id: int, root: Any) -> None:
        """Publish the eligibility root; oracle only, once, non-zero."""
        with self._lock:
            if self.snapshot_oracle is None or (
                to_checksum_address(caller) != self.snapshot_oracle
            ):
                raise UnauthorizedException("Only the snapshot oracle can set roots")
            self._check_snapshot_root(proposal_id, root)
            proposal = self.get_proposal(proposal_id)
            proposal.snapshot_root = _word_to_int(root)
            self._emit("SnapshotRootSet", proposal_id, root=hex(proposal.snapshot_root))

    def set_snapshot_roots(self, caller: str, roots: Dict[int, Any]) -> None:
        """Set several roots at once; nothing is written unless all are valid."""
        with self._lock:
            if self.snapshot_oracle is None or (
                to_checksum_address(caller) != self.snapshot_oracle
            ):
                raise UnauthorizedException("Only the snapshot oracle can set roots")
            for proposal_id, root in roots.items():
                self._check_snapshot_root(proposal_id, root)
            for proposal_id, root in roots.items():
                self.set_snapshot_root(caller, proposal_id, root)

    def _check_snapshot_root(self, proposal_id: int, root: Any) -> None:
        proposal = self.get_proposal(proposal_id)
        try:
            value = _word_to_int(root)
        except InvalidProofException as e:
            raise ValueError(f"Invalid snapshot root: {e.message}") from None
        if value == 0:
            raise ValueError("Snapshot root must be non-zero")
        if proposal.has_snapshot:
            raise InvalidStateException(
                f"Snapshot root already set for proposal {proposal_id}"
            )
        if self.state(proposal_id).is_terminal:
            raise InvalidStateException(
                f"Proposal {proposal_id} is {self.state(proposal_id).name}"
            )

    # ------------------------------------------------------------------
    # Voting
    # ------------------------------------------------------------------

    def cast_anonymous_vote(
        self,
        proposal_id: int,
        proof_bytes: bytes,
        public_inputs: Sequence[Any],
    ) -> VoteReceipt:
        with self._lock:
            proposal = self.get_proposal(proposal_id)

            current = self.state(proposal_id)
            if current != ProposalState.ACTIVE:
                raise InvalidStateException(
                    f"Proposal {proposal_id} is {current.name}, not ACTIVE"
                )
            if not proposal.has_snapshot:
                raise SnapshotNotSetException(proposal_id)

            fields = parse_public_inputs(public_inputs)
            nullifier = fields[_PI["nullifier"]]
            if self.nullifiers.is_spent(proposal_id, nullifier):
                raise DoubleVoteException(proposal_id)

            if fields[_PI["proposal_id"]] != proposal_id:
                raise InvalidProofException("Proof is bound to another proposal")
            if fields[_PI["snapshot_root"]] != proposal.snapshot_root:
                raise InvalidProofException("Proof is bound to another snapshot root")
            try:
                choice = VoteType(fields[_PI["choice"]])
            except ValueError:
                raise InvalidProofException("Invalid vote choice") from None
            weight = fields[_PI["weight"]]
            if weight == 0:
                raise InvalidProofException("Vote weight is zero")

            if not self.verifier.verify(bytes(proof_bytes), fields):
                raise InvalidProofException("Proof verification failed")

            self.nullifiers.spend(proposal_id, nullifier)
            proposal.add_votes(choice, weight)

            self._emit(
                "VoteCast",
                proposal_id,
                nullifier=redact(hex(nullifier)),
                choice=choice.name,
                weight=weight,
            )
            return VoteReceipt(
                proposal_id=proposal_id,
                nullifier=nullifier,
                choice=choice,
                weight=weight,
            )

    # ------------------------------------------------------------------
    # Timelock
    # ------------------------------------------------------------------

    def _lookup(
        self,
        targets: Sequence[str],
        values: Sequence[int],
        calldatas: Sequence[bytes],
        description_hash: bytes,
    ) -> Proposal:
        call = ProposalCall.build(targets, values, calldatas)
        operation = hash_operation(call, bytes(description_hash))
        proposal_id = self._by_operation.get(operation)
        if proposal_id is None:
            raise InvalidStateException("No proposal matches this operation")
        return self._proposals[proposal_id]

    def queue(
        self,
        targets: Sequence[str],
        values: Sequence[int],
        calldatas: Sequence[bytes],
        description_hash: bytes,
    ) -> int:
        with self._lock:
            proposal = self._lookup(targets, values, calldatas, description_hash)
            current = self.state(proposal.id)
            if current != ProposalState.SUCCEEDED:
                raise InvalidStateException(
                    f"Proposal {proposal.id} is {current.name}, not SUCCEEDED"
                )
            proposal.eta = self.timelock.schedule(proposal.operation_hash)
            proposal.queued = True
            self._emit("ProposalQueued", proposal.id, eta=proposal.eta)
            return proposal.id

    def execute(
        self,
        targets: Sequence[str],
        values: Sequence[int],
        calldatas: Sequence[bytes],
        description_hash: bytes,
    ) -> int:
        with self._lock:
            proposal = self._lookup(targets, values, calldatas, description_hash)
            current = self.state(proposal.id)
            if current != ProposalState.QUEUED:
                raise InvalidStateException(
                    f"Proposal {proposal.id} is {current.name}, not QUEUED"
                )
            if not self.timelock.is_ready(proposal.operation_hash):
                raise InvalidStateException(
                    f"Timelock delay not elapsed (eta {proposal.eta})"
                )

            call = ProposalCall.build(targets, values, calldatas)
            if self.executor is not None:
                self.executor(call)

            self.timelock.mark_done(proposal.operation_hash)
            proposal.executed = True
            self._emit("ProposalExecuted", proposal.id)
            return proposal.id

    def cancel(self, caller: str, proposal_id: int) -> None:
        with self._lock:
            proposal = self.get_proposal(proposal_id)
            caller = to_checksum_address(caller)
            if caller not in (proposal.proposer, self.guardian):
                raise UnauthorizedException("Only the proposer or guardian can cancel")

            current = self.state(proposal_id)
            if current not in (
                ProposalState.ACTIVE,
                ProposalState.SUCCEEDED,
                ProposalState.QUEUED,
            ):
                raise InvalidStateException(
                    f"Proposal {proposal_id} cannot be canceled while {current.name}"
                )

            if current == ProposalState.QUEUED:
                self.timelock.cancel(proposal.operation_hash)
            proposal.canceled = True
            self._emit("ProposalCanceled", proposal_id)
