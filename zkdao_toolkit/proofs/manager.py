from typing import Any, Optional

from eth_account import Account

from zkdao_toolkit.circuit.backend import default_backend
from zkdao_toolkit.circuit.inputs import RawVoteInputs
from zkdao_toolkit.circuit.signature import VoteSignature
from zkdao_toolkit.proofs.eligibility_client import MerkleEligibilityClient
from zkdao_toolkit.proofs.generator import ProofGenerator
from zkdao_toolkit.proofs.types import EligibilityProof, ZKProof
from zkdao_toolkit.shared.exceptions import (
    NonRetryableException,
    RetryableException,
)
from zkdao_toolkit.shared.logging import get_logger, redact
from zkdao_toolkit.shared.results import Result
from zkdao_toolkit.shared.retry import HTTP_RETRY_CONFIG, RetryConfig

_logger = get_logger(__name__)

VOTE_MESSAGE_TEMPLATE = "Vote for proposal {proposal_id}"


class ZKVoteProofs:
    """End-to-end vote proof: eligibility lookup, signature, proof."""

    def __init__(
        self,
        eligibility_client: Optional[MerkleEligibilityClient] = None,
        generator: Optional[ProofGenerator] = None,
        retry: Optional[RetryConfig] = HTTP_RETRY_CONFIG,
    ):
        self.eligibility_client = eligibility_client or MerkleEligibilityClient()
        self.generator = generator or ProofGenerator(default_backend())
        self.retry = retry

    async def fetch_eligibility(
        self, space_id: str, proposal_id: Any, voter: str
    ) -> EligibilityProof:
        if self.retry is None:
            return await self.eligibility_client.get_proof(
                space_id, proposal_id, voter
            )
        return await self.retry.run(
            self.eligibility_client.get_proof, space_id, proposal_id, voter
        )

    async def prepare_vote(
        self,
        space_id: str,
        proposal_id: Any,
        private_key: str,
        choice: int,
        message: Optional[str] = None,
    ) -> RawVoteInputs:
        """Fetch eligibility for the key's address and sign the vote message."""
        voter = Account.from_key(private_key).address
        eligibility = await self.fetch_eligibility(space_id, proposal_id, voter)
        signature = VoteSignature.sign(
            private_key,
            message or VOTE_MESSAGE_TEMPLATE.format(proposal_id=proposal_id),
        )
        return RawVoteInputs.from_eligibility(
            eligibility,
            proposal_id=proposal_id,
            voter=voter,
            choice=choice,
            signature=signature,
        )

    async def get_vote_proof(
        self,
        space_id: str,
        proposal_id: Any,
        private_key: str,
        choice: int,
        message: Optional[str] = None,
    ) -> Result[ZKProof]:
        """
        Generate a vote proof for one voter.

        Returns:
            Result[ZKProof]: Success with the proof, or failure carrying the
            typed exception (re-raised by `unwrap()`)
        """
        context = {"space": space_id, "proposal": redact(proposal_id), "choice": choice}
        try:
            raw = await self.prepare_vote(
                space_id, proposal_id, private_key, choice, message
            )
            return Result.ok(await self.generator.generate_proof(raw))
        except (RetryableException, NonRetryableException, ValueError) as e:
            _logger.warning("Vote proof failed: %s", e)
            return Result.from_exception("vote_proof", e, context=context)
