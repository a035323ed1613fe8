"""Anonymous governance: proposals, nullifiers, timelock and verifiers."""

from .governor import AnonymousGovernor, VotingPowerSource
from .models import (
    GovernorParams,
    Proposal,
    ProposalState,
    VoteReceipt,
    VoteType,
    hash_description,
)
from .nullifiers import NullifierRegistry
from .verifier import ContractProofVerifier, ProofVerifier

__all__ = [
    "AnonymousGovernor",
    "VotingPowerSource",
    "GovernorParams",
    "Proposal",
    "ProposalState",
    "VoteReceipt",
    "VoteType",
    "hash_description",
    "NullifierRegistry",
    "ContractProofVerifier",
    "ProofVerifier",
]
