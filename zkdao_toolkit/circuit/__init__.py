"""Circuit-side primitives: field, Poseidon, Merkle, signatures, backend."""

from .field import normalize
from .inputs import CircuitInputs, RawVoteInputs
from .signature import VoteSignature

__all__ = ["normalize", "CircuitInputs", "RawVoteInputs", "VoteSignature"]
