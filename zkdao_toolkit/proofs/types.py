"""
Type definitions for eligibility proofs and zero-knowledge vote proofs.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple, TypedDict

from zkdao_toolkit.circuit import merkle
from zkdao_toolkit.circuit.field import to_bytes32_hex, to_field_int
from zkdao_toolkit.shared.constants import CircuitConstants
from zkdao_toolkit.shared.exceptions import MalformedResponseException

# =============================================================================
# WIRE TYPES (JSON from the eligibility service)
# =============================================================================


class MerkleProofResponse(TypedDict):
    """Body of GET /merkle-tree/getMerkleProof/..."""

    secret: str
    weight: int
    snapshotMerkleTree: str
    leaf: str
    index: int
    nullifier: str
    path: list


# =============================================================================
# ELIGIBILITY PROOF
# =============================================================================


@dataclass(frozen=True)
class EligibilityProof:
    """Membership proof of one voter in a proposal's snapshot tree.

    All field values are stored reduced. `secret` is excluded from repr.
    """

    secret: int = field(repr=False)
    weight: int
    snapshot_root: int
    leaf: int
    index: int
    nullifier: Optional[int]
    path: Tuple[int, ...]

    @classmethod
    def from_api(cls, payload: Mapping[str, Any]) -> "EligibilityProof":
        """Parse the service JSON; any deviation is a MalformedResponse."""
        if not isinstance(payload, Mapping):
            raise MalformedResponseException(
                "Merkle proof response is not a JSON object"
            )

        missing = [
            key
            for key in ("secret", "weight", "snapshotMerkleTree", "leaf", "index", "path")
            if key not in payload
        ]
        if missing:
            raise MalformedResponseException(
                f"Merkle proof response is missing {', '.join(missing)}"
            )

        path = payload["path"]
        if not isinstance(path, list):
            raise MalformedResponseException("path must be a list")

        try:
            weight = int(payload["weight"])
            index = int(payload["index"])
            nullifier = payload.get("nullifier")
            proof = cls(
                secret=to_field_int(payload["secret"]),
                weight=weight,
                snapshot_root=to_field_int(payload["snapshotMerkleTree"]),
                leaf=to_field_int(payload["leaf"]),
                index=index,
                nullifier=(
                    to_field_int(nullifier) if nullifier not in (None, "") else None
                ),
                path=tuple(to_field_int(p) for p in path),
            )
        except (TypeError, ValueError) as e:
            # The message never echoes the offending value (it may be the secret)
            raise MalformedResponseException(
                f"Merkle proof response has an invalid field: {type(e).__name__}"
            ) from None

        if weight <= 0:
            raise MalformedResponseException("weight must be positive")
        if index < 0:
            raise MalformedResponseException("index must be non-negative")
        return proof

    def path_reaches_root(self) -> bool:
        return merkle.verify(self.leaf, self.path, self.index, self.snapshot_root)

    def path_length_matches(self, depth: int = CircuitConstants.TREE_DEPTH) -> bool:
        return depth <= 0 or len(self.path) == depth


# =============================================================================
# ZK PROOF
# =============================================================================


@dataclass(frozen=True)
class ZKProof:
    """Proof bytes plus ordered public inputs (bytes32 hex).

    Public inputs follow CircuitConstants.PUBLIC_INPUTS, so index 0 is the
    nullifier. A proof is consumed by exactly one vote.
    """

    proof_bytes: bytes
    public_inputs: Tuple[str, ...]

    @property
    def nullifier(self) -> str:
        return self.public_inputs[0]

    @property
    def proof_hex(self) -> str:
        return "0x" + self.proof_bytes.hex()

    def public_input(self, name: str) -> int:
        position = CircuitConstants.PUBLIC_INPUTS.index(name)
        return to_field_int(self.public_inputs[position])

    def to_dict(self) -> Dict[str, Any]:
        return {
            "proofBytes": self.proof_hex,
            "publicInputs": list(self.public_inputs),
            "nullifier": self.nullifier,
        }

    @classmethod
    def from_fields(cls, proof_bytes: bytes, fields) -> "ZKProof":
        return cls(
            proof_bytes=bytes(proof_bytes),
            public_inputs=tuple(to_bytes32_hex(f) for f in fields),
        )
