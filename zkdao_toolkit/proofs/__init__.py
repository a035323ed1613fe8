from zkdao_toolkit.proofs.eligibility_client import MerkleEligibilityClient
from zkdao_toolkit.proofs.generator import ProofGenerator
from zkdao_toolkit.proofs.manager import ZKVoteProofs
from zkdao_toolkit.proofs.types import EligibilityProof, ZKProof

__all__ = [
    "MerkleEligibilityClient",
    "ProofGenerator",
    "ZKVoteProofs",
    "EligibilityProof",
    "ZKProof",
]
