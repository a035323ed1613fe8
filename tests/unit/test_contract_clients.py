"""
Unit tests for the contract-backed verifier and CCIP router with the web3
layer mocked out.
"""

from unittest.mock import MagicMock

import pytest
from web3.exceptions import ContractLogicError

from zkdao_toolkit.crosschain.router import Web3CcipRouter
from zkdao_toolkit.crosschain.types import EVM2AnyMessage
from zkdao_toolkit.governance.verifier import ContractProofVerifier

VERIFIER = "0x" + "a1" * 20
ROUTER = "0x" + "b2" * 20


@pytest.fixture
def web3_service():
    service = MagicMock()
    service.contract = MagicMock()
    service.get_contract.return_value = service.contract
    return service


class TestContractProofVerifier:
    def test_encodes_bytes32_words(self, web3_service):
        web3_service.contract.functions.verify.return_value.call.return_value = True
        verifier = ContractProofVerifier(web3_service, VERIFIER)

        assert verifier.verify(b"\x01" * 64, [1, 2])

        web3_service.get_contract.assert_called_once_with(VERIFIER, "honk_verifier")
        proof, words = web3_service.contract.functions.verify.call_args[0]
        assert proof == b"\x01" * 64
        assert words == [(1).to_bytes(32, "big"), (2).to_bytes(32, "big")]

    def test_revert_means_invalid(self, web3_service):
        web3_service.contract.functions.verify.return_value.call.side_effect = (
            ContractLogicError("SumcheckFailed")
        )
        verifier = ContractProofVerifier(web3_service, VERIFIER)

        assert verifier.verify(b"\x00", [1]) is False


class TestWeb3CcipRouter:
    def test_get_fee(self, web3_service):
        web3_service.contract.functions.getFee.return_value.call.return_value = 123
        router = Web3CcipRouter(web3_service, ROUTER)
        message = EVM2AnyMessage.token_transfer(
            "0x" + "01" * 20, "0x" + "02" * 20, 10, "0x" + "03" * 20
        )

        assert router.get_fee(5, message) == 123
        selector, payload = web3_service.contract.functions.getFee.call_args[0]
        assert selector == 5
        assert payload == message.to_abi_tuple()

    def test_send_requires_key(self, web3_service):
        router = Web3CcipRouter(web3_service, ROUTER)
        message = EVM2AnyMessage.token_transfer(
            "0x" + "01" * 20, "0x" + "02" * 20, 10, "0x" + "03" * 20
        )
        with pytest.raises(ValueError):
            router.ccip_send("0x" + "04" * 20, 5, message)
        web3_service.send_transaction.assert_not_called()
