"""
Unit tests for ZKVoteProofs, the end-to-end vote proof flow.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from conftest import TREE_DEPTH, FakeBackend
from zkdao_toolkit.proofs.generator import ProofGenerator
from zkdao_toolkit.proofs.manager import ZKVoteProofs
from zkdao_toolkit.shared.exceptions import (
    ProofInputMismatchException,
    ServiceRejectedException,
    TransportException,
)
from zkdao_toolkit.shared.retry import RetryConfig


def make_proofs(client, backend=None, retry=None):
    generator = ProofGenerator(backend or FakeBackend(), tree_depth=TREE_DEPTH)
    return ZKVoteProofs(eligibility_client=client, generator=generator, retry=retry)


@pytest.fixture
def client(eligibility):
    client = MagicMock()
    client.get_proof = AsyncMock(return_value=eligibility.proof_for(0))
    return client


class TestGetVoteProof:
    @pytest.mark.asyncio
    async def test_success(self, client, eligibility):
        voter = eligibility.voters[0]
        proofs = make_proofs(client)

        result = await proofs.get_vote_proof("my-dao", 1, voter.private_key, 1)

        assert result.success
        client.get_proof.assert_awaited_once_with("my-dao", 1, voter.address)
        assert result.data.public_input("weight") == 1000

    @pytest.mark.asyncio
    async def test_wrong_key_is_caught_locally(self, client, eligibility):
        # Service answers with voter 0's leaf for voter 1's key
        proofs = make_proofs(client)

        result = await proofs.get_vote_proof(
            "my-dao", 1, eligibility.voters[1].private_key, 1
        )

        assert not result.success
        with pytest.raises(ProofInputMismatchException):
            result.unwrap()

    @pytest.mark.asyncio
    async def test_service_rejection(self, client, eligibility):
        client.get_proof.side_effect = ServiceRejectedException(404)
        result = await make_proofs(client).get_vote_proof(
            "my-dao", 1, eligibility.voters[0].private_key, 1
        )
        assert result.errors[0].kind == "service_rejected"

    @pytest.mark.asyncio
    async def test_invalid_choice(self, client, eligibility):
        result = await make_proofs(client).get_vote_proof(
            "my-dao", 1, eligibility.voters[0].private_key, 5
        )
        assert not result.success

    @pytest.mark.asyncio
    async def test_transport_errors_are_retried(self, client, eligibility):
        client.get_proof.side_effect = [
            TransportException("down"),
            eligibility.proof_for(0),
        ]
        proofs = make_proofs(
            client, retry=RetryConfig(max_attempts=2, base_delay=0.0)
        )

        result = await proofs.get_vote_proof(
            "my-dao", 1, eligibility.voters[0].private_key, 1
        )

        assert result.success
        assert client.get_proof.await_count == 2
