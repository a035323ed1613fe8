"""zkDAO Toolkit - anonymous governance voting with Merkle eligibility and ZK proofs."""

__version__ = "0.1.0"

from .governance import AnonymousGovernor
from .proofs import ZKVoteProofs as ProofManager
from .shared.chains import get_chain_registry

__all__ = ["AnonymousGovernor", "ProofManager", "get_chain_registry"]
