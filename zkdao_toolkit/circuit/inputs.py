"""
Circuit input bundles.

RawVoteInputs is what a caller assembles (eligibility proof + vote choice +
signature). CircuitInputs is the normalized, field-reduced bundle handed to
the proving backend, keyed exactly like the Noir `main` parameters.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from zkdao_toolkit.circuit.field import (
    FieldLike,
    address_to_field,
    normalize,
)
from zkdao_toolkit.circuit.signature import VoteSignature
from zkdao_toolkit.shared.constants import GovernanceConstants

VALID_CHOICES = (
    GovernanceConstants.AGAINST,
    GovernanceConstants.FOR,
    GovernanceConstants.ABSTAIN,
)


@dataclass(frozen=True)
class RawVoteInputs:
    proposal_id: FieldLike
    voter: str
    secret: FieldLike = field(repr=False)
    weight: int
    choice: int
    snapshot_root: FieldLike
    leaf: FieldLike
    index: int
    path: Sequence[FieldLike]
    signature: VoteSignature
    nullifier: Optional[FieldLike] = field(default=None, repr=False)

    @classmethod
    def from_eligibility(
        cls,
        proof,
        proposal_id: FieldLike,
        voter: str,
        choice: int,
        signature: VoteSignature,
    ) -> "RawVoteInputs":
        """Assemble inputs from an EligibilityProof."""
        return cls(
            proposal_id=proposal_id,
            voter=voter,
            secret=proof.secret,
            weight=proof.weight,
            choice=choice,
            snapshot_root=proof.snapshot_root,
            leaf=proof.leaf,
            index=proof.index,
            path=proof.path,
            signature=signature,
            nullifier=proof.nullifier,
        )


@dataclass(frozen=True)
class CircuitInputs:
    proposal_id: str
    secret: str = field(repr=False)
    voter: str
    weight: str
    choice: str
    snapshot_root: str
    leaf: str
    index: str
    path: List[str]
    signature: VoteSignature

    @classmethod
    def normalize(cls, raw: RawVoteInputs) -> "CircuitInputs":
        if raw.choice not in VALID_CHOICES:
            raise ValueError(f"choice must be one of {VALID_CHOICES}")
        if int(raw.weight) <= 0:
            raise ValueError("weight must be positive")
        if int(raw.index) < 0:
            raise ValueError("index must be non-negative")

        return cls(
            proposal_id=normalize(raw.proposal_id),
            secret=normalize(raw.secret),
            voter=str(address_to_field(raw.voter)),
            weight=normalize(int(raw.weight)),
            choice=normalize(int(raw.choice)),
            snapshot_root=normalize(raw.snapshot_root),
            leaf=normalize(raw.leaf),
            index=normalize(int(raw.index)),
            path=[normalize(p) for p in raw.path],
            signature=raw.signature,
        )

    def to_prover_inputs(self) -> Dict[str, Any]:
        """Input map for the Noir program."""
        inputs: Dict[str, Any] = {
            "_proposalId": self.proposal_id,
            "_secret": self.secret,
            "_voter": self.voter,
            "_weight": self.weight,
            "_choice": self.choice,
            "_snapshot_merkle_tree": self.snapshot_root,
            "_leaf": self.leaf,
            "_index": self.index,
            "_path": list(self.path),
        }
        inputs.update(self.signature.to_circuit())
        return inputs

    def to_prover_toml(self) -> str:
        """Prover.toml body for `nargo execute`."""
        lines = []
        for key, value in self.to_prover_inputs().items():
            if isinstance(value, list):
                if value and isinstance(value[0], str):
                    items = ", ".join(f'"{v}"' for v in value)
                else:
                    items = ", ".join(str(v) for v in value)
                lines.append(f"{key} = [{items}]")
            else:
                lines.append(f'{key} = "{value}"')
        return "\n".join(lines) + "\n"
