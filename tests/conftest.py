"""
Pytest configuration and shared fixtures.

Fakes for the external collaborators (proving backend, on-chain verifier,
voting token, clock) and a small eligibility tree shared by the unit tests.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

import pytest
from eth_account import Account
from eth_utils import to_checksum_address

from zkdao_toolkit.circuit.backend import (
    ProofData,
    Witness,
    join_public_inputs,
    split_public_inputs,
)
from zkdao_toolkit.circuit.inputs import CircuitInputs, RawVoteInputs
from zkdao_toolkit.circuit.merkle import build_eligibility_tree, voter_nullifier
from zkdao_toolkit.circuit.signature import VoteSignature, hash_vote_message
from zkdao_toolkit.governance.governor import AnonymousGovernor
from zkdao_toolkit.governance.models import GovernorParams
from zkdao_toolkit.oracle.relay import DEFAULT_RELAY_ADDRESS
from zkdao_toolkit.proofs.generator import expected_public_inputs
from zkdao_toolkit.proofs.types import EligibilityProof

TREE_DEPTH = 4
VALID_PROOF = b"\x01" * 64


@dataclass
class Voter:
    private_key: str
    address: str
    weight: int
    secret: int


@dataclass
class EligibilityFixture:
    voters: List[Voter]
    tree: object

    @property
    def root(self) -> int:
        return self.tree.root

    def proof_for(self, index: int) -> EligibilityProof:
        voter = self.voters[index]
        return EligibilityProof(
            secret=voter.secret,
            weight=voter.weight,
            snapshot_root=self.root,
            leaf=self.tree.leaf(index),
            index=index,
            nullifier=voter_nullifier(voter.secret, voter.weight),
            path=tuple(self.tree.proof(index)),
        )

    def api_payload(self, index: int) -> Dict:
        proof = self.proof_for(index)
        return {
            "secret": str(proof.secret),
            "weight": proof.weight,
            "snapshotMerkleTree": hex(proof.snapshot_root),
            "leaf": hex(proof.leaf),
            "index": proof.index,
            "nullifier": hex(proof.nullifier),
            "path": [hex(p) for p in proof.path],
        }

    def raw_inputs(
        self,
        index: int,
        proposal_id: int = 1,
        choice: int = 1,
        message: Optional[str] = None,
    ) -> RawVoteInputs:
        voter = self.voters[index]
        signature = VoteSignature.sign(
            voter.private_key, message or f"Vote for proposal {proposal_id}"
        )
        return RawVoteInputs.from_eligibility(
            self.proof_for(index),
            proposal_id=proposal_id,
            voter=voter.address,
            choice=choice,
            signature=signature,
        )


@pytest.fixture(scope="session")
def eligibility() -> EligibilityFixture:
    """Four voters (weights 1000, 500, 250, 125) in a depth-4 tree."""
    voters = []
    for i, weight in enumerate((1000, 500, 250, 125)):
        key = "0x" + f"{i + 1:02x}" * 32
        voters.append(
            Voter(
                private_key=key,
                address=Account.from_key(key).address,
                weight=weight,
                secret=0xC0FFEE + i,
            )
        )
    tree = build_eligibility_tree(
        [(v.address, v.weight, v.secret) for v in voters], TREE_DEPTH
    )
    return EligibilityFixture(voters=voters, tree=tree)


@pytest.fixture
def sample_signature() -> VoteSignature:
    return VoteSignature.sign("0x" + "01" * 32, "Vote for proposal 1")


@pytest.fixture
def sample_hashed_message() -> bytes:
    return hash_vote_message("Vote for proposal 1")


class FakeBackend:
    """ProofBackend stand-in that records every call."""

    def __init__(self, verifies: bool = True):
        self.verifies = verifies
        self.calls: List[str] = []
        self.public_inputs_override = None

    async def execute(self, inputs: CircuitInputs) -> Witness:
        self.calls.append("execute")
        return Witness(data=join_public_inputs(expected_public_inputs(inputs)))

    async def generate_proof(self, witness: Witness) -> ProofData:
        self.calls.append("generate_proof")
        public_inputs = self.public_inputs_override or split_public_inputs(witness.data)
        return ProofData(proof=VALID_PROOF, public_inputs=tuple(public_inputs))

    async def verify_proof(self, proof: ProofData) -> bool:
        self.calls.append("verify_proof")
        return self.verifies


@pytest.fixture
def fake_backend() -> FakeBackend:
    return FakeBackend()


class FakeVerifier:
    """Accepts VALID_PROOF only."""

    def __init__(self):
        self.calls = []

    def verify(self, proof: bytes, public_inputs) -> bool:
        self.calls.append((proof, tuple(public_inputs)))
        return proof == VALID_PROOF


@pytest.fixture
def fake_verifier() -> FakeVerifier:
    return FakeVerifier()


@dataclass
class FakeVotingPower:
    votes: Dict[str, int] = field(default_factory=dict)
    supply: int = 10_000

    def get_votes(self, account: str) -> int:
        votes = {to_checksum_address(k): v for k, v in self.votes.items()}
        return votes.get(to_checksum_address(account), 0)

    def total_supply(self) -> int:
        return self.supply


class FakeClock:
    def __init__(self, now: int = 1_700_000_000):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def proposer() -> str:
    return "0x52f541764E6e90eeBc5c21Ff570De0e2D63766B6"


@pytest.fixture
def oracle_address() -> str:
    return DEFAULT_RELAY_ADDRESS


@pytest.fixture
def guardian() -> str:
    return "0x000000073D065Fc33a3050C2d4a8e82EE5C5C25a"


@pytest.fixture
def governor(fake_verifier, clock, proposer, oracle_address, guardian):
    executed = []
    gov = AnonymousGovernor(
        verifier=fake_verifier,
        voting_power=FakeVotingPower(votes={proposer: 100}),
        params=GovernorParams(),
        snapshot_oracle=oracle_address,
        guardian=guardian,
        clock=clock,
        executor=lambda call: executed.extend(
            zip(call.targets, call.values, call.calldatas)
        ),
    )
    gov.executed_calls = executed
    return gov


@pytest.fixture
def proposal_call():
    return (
        ["0x7E1444BA99dcdFfE8fBdb42C02fb0DA4AAAcE4d5"],
        [0],
        [bytes.fromhex("a9059cbb") + b"\x00" * 64],
        "Cross-chain transfer 1000 tokens via CCIP",
    )
