"""
Vote proof generation.

ProofGenerator turns RawVoteInputs into a self-verified ZKProof:

1. normalize every input into the field
2. recompute nullifier = Hash2(secret, weight) and
   leaf = Hash3(voter, weight, nullifier)
3. compare against the supplied values (plus Merkle path and signature),
   failing with ProofInputMismatchException before the backend is touched
4. execute the circuit (witness)
5. prove
6. verify locally; an unverifiable proof is never returned

The generator holds no state between calls. Steps 4-6 run under a single
timeout and are cancellable.
"""

import asyncio
from typing import Optional, Tuple

from eth_utils import to_checksum_address

from zkdao_toolkit.circuit import merkle
from zkdao_toolkit.circuit.backend import ProofBackend, ProofData
from zkdao_toolkit.circuit.field import to_field_int
from zkdao_toolkit.circuit.inputs import CircuitInputs, RawVoteInputs
from zkdao_toolkit.proofs.types import ZKProof
from zkdao_toolkit.shared.constants import CircuitConstants, ServiceConstants
from zkdao_toolkit.shared.exceptions import (
    OperationTimeoutException,
    ProofGenerationFailedException,
    ProofInputMismatchException,
)
from zkdao_toolkit.shared.logging import get_logger, redact

_logger = get_logger(__name__)


def expected_public_inputs(inputs: CircuitInputs) -> Tuple[int, ...]:
    """Public inputs the circuit must expose for `inputs`, in circuit order."""
    nullifier = merkle.voter_nullifier(inputs.secret, inputs.weight)
    values = {
        "nullifier": nullifier,
        "proposal_id": int(inputs.proposal_id),
        "snapshot_root": int(inputs.snapshot_root),
        "weight": int(inputs.weight),
        "choice": int(inputs.choice),
    }
    return tuple(values[name] for name in CircuitConstants.PUBLIC_INPUTS)


class ProofGenerator:
    def __init__(
        self,
        backend: ProofBackend,
        timeout: float = ServiceConstants.PROOF_TIMEOUT,
        tree_depth: int = CircuitConstants.TREE_DEPTH,
        check_merkle_path: bool = True,
    ):
        self.backend = backend
        self.timeout = timeout
        self.tree_depth = tree_depth
        self.check_merkle_path = check_merkle_path

    def prepare_inputs(self, raw: RawVoteInputs) -> CircuitInputs:
        """Steps 1-3: normalize and cross-check. No backend call."""
        inputs = CircuitInputs.normalize(raw)

        nullifier = merkle.voter_nullifier(inputs.secret, inputs.weight)
        if raw.nullifier is not None and to_field_int(raw.nullifier) != nullifier:
            raise ProofInputMismatchException("nullifier")

        leaf = merkle.voter_leaf(inputs.voter, inputs.weight, nullifier)
        if leaf != int(inputs.leaf):
            raise ProofInputMismatchException("leaf")

        if self.tree_depth > 0 and len(inputs.path) != self.tree_depth:
            raise ProofInputMismatchException(
                "path",
                f"expected {self.tree_depth} siblings, got {len(inputs.path)}",
            )

        if self.check_merkle_path and not merkle.verify(
            leaf, inputs.path, int(inputs.index), inputs.snapshot_root
        ):
            raise ProofInputMismatchException(
                "snapshot_root", "Merkle path does not reach the root"
            )

        signature = inputs.signature
        if not signature.verify():
            raise ProofInputMismatchException(
                "signature", "does not verify against the hashed message"
            )
        if signature.signer != to_checksum_address(raw.voter):
            raise ProofInputMismatchException(
                "signer", "signature does not recover to the voter"
            )

        return inputs

    async def generate_proof(self, raw: RawVoteInputs) -> ZKProof:
        inputs = self.prepare_inputs(raw)
        try:
            return await asyncio.wait_for(self._prove(inputs), timeout=self.timeout)
        except asyncio.TimeoutError:
            raise OperationTimeoutException("proof generation", self.timeout) from None

    async def _prove(self, inputs: CircuitInputs) -> ZKProof:
        witness = await self.backend.execute(inputs)
        proof_data = await self.backend.generate_proof(witness)

        if not await self.backend.verify_proof(proof_data):
            raise ProofGenerationFailedException(
                "Generated proof failed local verification"
            )

        mismatch = self._public_input_mismatch(proof_data, inputs)
        if mismatch is not None:
            raise ProofGenerationFailedException(
                f"Proof public input '{mismatch}' does not match the vote"
            )

        proof = ZKProof.from_fields(proof_data.proof, proof_data.public_inputs)
        _logger.info("Vote proof ready, nullifier=%s", redact(proof.nullifier))
        return proof

    @staticmethod
    def _public_input_mismatch(
        proof_data: ProofData, inputs: CircuitInputs
    ) -> Optional[str]:
        expected = expected_public_inputs(inputs)
        actual = tuple(proof_data.public_inputs)
        if len(actual) != len(expected):
            return "length"
        for name, want, got in zip(CircuitConstants.PUBLIC_INPUTS, expected, actual):
            if want != got:
                return name
        return None
