"""
Unit tests for ProofGenerator: local cross-checks, self-verification and
the public-input binding of generated proofs.
"""

import asyncio
from dataclasses import replace

import pytest

from conftest import TREE_DEPTH, VALID_PROOF, FakeBackend
from zkdao_toolkit.circuit.signature import VoteSignature
from zkdao_toolkit.proofs.generator import ProofGenerator, expected_public_inputs
from zkdao_toolkit.shared.exceptions import (
    OperationTimeoutException,
    ProofGenerationFailedException,
    ProofInputMismatchException,
)


def make_generator(backend, **kwargs) -> ProofGenerator:
    kwargs.setdefault("tree_depth", TREE_DEPTH)
    return ProofGenerator(backend, **kwargs)


class TestPrepareInputs:
    def test_valid_inputs_normalize(self, eligibility, fake_backend):
        raw = eligibility.raw_inputs(0, proposal_id=7, choice=2)
        inputs = make_generator(fake_backend).prepare_inputs(raw)

        assert inputs.proposal_id == "7"
        assert inputs.choice == "2"
        assert inputs.weight == "1000"
        assert len(inputs.path) == TREE_DEPTH
        assert fake_backend.calls == []

    def test_tampered_leaf_never_reaches_backend(self, eligibility, fake_backend):
        raw = eligibility.raw_inputs(0)
        tampered = replace(raw, leaf=raw.leaf + 1)

        with pytest.raises(ProofInputMismatchException) as exc_info:
            make_generator(fake_backend).prepare_inputs(tampered)

        assert exc_info.value.field == "leaf"
        assert fake_backend.calls == []

    def test_nullifier_mismatch(self, eligibility, fake_backend):
        raw = eligibility.raw_inputs(1)
        tampered = replace(raw, nullifier=raw.nullifier + 1)

        with pytest.raises(ProofInputMismatchException) as exc_info:
            make_generator(fake_backend).prepare_inputs(tampered)
        assert exc_info.value.field == "nullifier"

    def test_inflated_weight_breaks_leaf(self, eligibility, fake_backend):
        raw = eligibility.raw_inputs(3)
        inflated = replace(raw, weight=raw.weight * 10, nullifier=None)

        with pytest.raises(ProofInputMismatchException) as exc_info:
            make_generator(fake_backend).prepare_inputs(inflated)
        assert exc_info.value.field == "leaf"

    def test_wrong_path_depth(self, eligibility, fake_backend):
        raw = eligibility.raw_inputs(0)
        generator = make_generator(fake_backend, tree_depth=TREE_DEPTH + 1)

        with pytest.raises(ProofInputMismatchException) as exc_info:
            generator.prepare_inputs(raw)
        assert exc_info.value.field == "path"

    def test_path_length_check_is_opt_in(self, eligibility, fake_backend):
        raw = eligibility.raw_inputs(0)
        generator = ProofGenerator(fake_backend, tree_depth=0)

        assert len(generator.prepare_inputs(raw).path) == TREE_DEPTH
        with pytest.raises(ProofInputMismatchException) as exc_info:
            generator.prepare_inputs(replace(raw, snapshot_root=raw.snapshot_root + 1))
        assert exc_info.value.field == "snapshot_root"

    def test_path_that_misses_root(self, eligibility, fake_backend):
        raw = eligibility.raw_inputs(0)
        wrong_root = replace(raw, snapshot_root=raw.snapshot_root + 1)

        with pytest.raises(ProofInputMismatchException) as exc_info:
            make_generator(fake_backend).prepare_inputs(wrong_root)
        assert exc_info.value.field == "snapshot_root"

    def test_path_check_can_be_left_to_circuit(self, eligibility, fake_backend):
        raw = eligibility.raw_inputs(0)
        wrong_root = replace(raw, snapshot_root=raw.snapshot_root + 1)

        inputs = make_generator(fake_backend, check_merkle_path=False).prepare_inputs(
            wrong_root
        )
        assert int(inputs.snapshot_root) == raw.snapshot_root + 1

    def test_signature_from_another_voter(self, eligibility, fake_backend):
        raw = eligibility.raw_inputs(0)
        other = VoteSignature.sign(
            eligibility.voters[1].private_key, "Vote for proposal 1"
        )

        with pytest.raises(ProofInputMismatchException) as exc_info:
            make_generator(fake_backend).prepare_inputs(replace(raw, signature=other))
        assert exc_info.value.field == "signer"

    def test_mismatch_message_does_not_leak_secret(self, eligibility, fake_backend):
        raw = eligibility.raw_inputs(0)
        tampered = replace(raw, leaf=raw.leaf + 1)

        with pytest.raises(ProofInputMismatchException) as exc_info:
            make_generator(fake_backend).prepare_inputs(tampered)
        assert str(eligibility.voters[0].secret) not in str(exc_info.value)
        assert hex(eligibility.voters[0].secret) not in str(exc_info.value)


class TestGenerateProof:
    @pytest.mark.asyncio
    async def test_happy_path(self, eligibility, fake_backend):
        raw = eligibility.raw_inputs(0, proposal_id=1, choice=1)
        generator = make_generator(fake_backend)

        proof = await generator.generate_proof(raw)

        assert fake_backend.calls == ["execute", "generate_proof", "verify_proof"]
        assert proof.proof_bytes == VALID_PROOF
        assert proof.public_input("weight") == 1000
        assert proof.public_input("proposal_id") == 1
        assert proof.public_input("choice") == 1
        assert proof.public_input("snapshot_root") == eligibility.root
        assert proof.public_input("nullifier") == raw.nullifier

    @pytest.mark.asyncio
    async def test_unverifiable_proof_is_never_returned(self, eligibility):
        backend = FakeBackend(verifies=False)

        with pytest.raises(ProofGenerationFailedException):
            await make_generator(backend).generate_proof(eligibility.raw_inputs(0))

    @pytest.mark.asyncio
    async def test_public_inputs_must_match_vote(self, eligibility, fake_backend):
        raw = eligibility.raw_inputs(0, choice=1)
        inputs = make_generator(fake_backend).prepare_inputs(raw)
        wrong = list(expected_public_inputs(inputs))
        wrong[-1] = 0
        fake_backend.public_inputs_override = tuple(wrong)

        with pytest.raises(ProofGenerationFailedException) as exc_info:
            await make_generator(fake_backend).generate_proof(raw)
        assert "choice" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_timeout(self, eligibility):
        class SlowBackend(FakeBackend):
            async def generate_proof(self, witness):
                await asyncio.sleep(10)

        generator = make_generator(SlowBackend(), timeout=0.05)
        with pytest.raises(OperationTimeoutException) as exc_info:
            await generator.generate_proof(eligibility.raw_inputs(0))
        assert exc_info.value.operation == "proof generation"

    @pytest.mark.asyncio
    async def test_generator_is_stateless(self, eligibility, fake_backend):
        generator = make_generator(fake_backend)
        first = await generator.generate_proof(eligibility.raw_inputs(0))
        second = await generator.generate_proof(eligibility.raw_inputs(1))

        assert first.nullifier != second.nullifier
        assert second.public_input("weight") == 500
