"""
Cryptographic proof verifiers used by the governor.

A verifier is a pure check of (proof bytes, public inputs) with no governance
state. ContractProofVerifier delegates to the deployed Honk verifier.
"""

from typing import Protocol, Sequence

from web3.exceptions import ContractLogicError

from zkdao_toolkit.circuit.field import to_field_int
from zkdao_toolkit.shared.logging import get_logger
from zkdao_toolkit.shared.retry import retry_sync_operation
from zkdao_toolkit.shared.services.web3_service import Web3Service

_logger = get_logger(__name__)


class ProofVerifier(Protocol):
    def verify(self, proof: bytes, public_inputs: Sequence[int]) -> bool: ...


class ContractProofVerifier:
    """`verify(bytes, bytes32[])` on an UltraHonk verifier contract."""

    def __init__(
        self,
        web3_service: Web3Service,
        address: str,
        abi_name: str = "honk_verifier",
        max_retries: int = 3,
    ):
        self.web3_service = web3_service
        self.contract = web3_service.get_contract(address, abi_name)
        self.max_retries = max_retries

    def verify(self, proof: bytes, public_inputs: Sequence[int]) -> bool:
        words = [to_field_int(v).to_bytes(32, "big") for v in public_inputs]
        call = self.contract.functions.verify(bytes(proof), words)
        try:
            return bool(
                retry_sync_operation(
                    call.call,
                    max_attempts=self.max_retries,
                    base_delay=1.0,
                    operation_name="verifier.verify",
                )
            )
        except ContractLogicError as e:
            # Honk verifiers revert on malformed or invalid proofs
            _logger.info("Verifier reverted: %s", e)
            return False
