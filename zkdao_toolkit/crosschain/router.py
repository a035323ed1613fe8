"""
CCIP routers.

Web3CcipRouter talks to a deployed Router contract. LocalCcipRouter charges a
flat fee per destination and pulls tokens through an InMemoryTokenLedger,
which is enough to exercise the coordinator on a development chain.
"""

from typing import Dict, Optional, Protocol

from eth_abi import encode
from eth_account import Account
from eth_utils import keccak, to_checksum_address

from zkdao_toolkit.crosschain.ledger import InMemoryTokenLedger
from zkdao_toolkit.crosschain.types import EVM2AnyMessage
from zkdao_toolkit.shared.exceptions import UnsupportedDestinationException
from zkdao_toolkit.shared.logging import get_logger
from zkdao_toolkit.shared.retry import retry_sync_operation
from zkdao_toolkit.shared.services.web3_service import Web3Service

_logger = get_logger(__name__)


class CcipRouter(Protocol):
    address: str

    def is_chain_supported(self, selector: int) -> bool: ...

    def get_fee(self, selector: int, message: EVM2AnyMessage) -> int: ...

    def ccip_send(self, sender: str, selector: int, message: EVM2AnyMessage) -> str: ...


class Web3CcipRouter:
    def __init__(
        self, web3_service: Web3Service, address: str, private_key: Optional[str] = None
    ):
        self.web3_service = web3_service
        self.address = to_checksum_address(address)
        self.contract = web3_service.get_contract(self.address, "ccip_router")
        self.private_key = private_key

    def is_chain_supported(self, selector: int) -> bool:
        call = self.contract.functions.isChainSupported(selector)
        return bool(retry_sync_operation(call.call, operation_name="isChainSupported"))

    def get_fee(self, selector: int, message: EVM2AnyMessage) -> int:
        call = self.contract.functions.getFee(selector, message.to_abi_tuple())
        return int(retry_sync_operation(call.call, operation_name="getFee"))

    def ccip_send(self, sender: str, selector: int, message: EVM2AnyMessage) -> str:
        if self.private_key is None:
            raise ValueError("No signing key configured for ccipSend")
        if Account.from_key(self.private_key).address != to_checksum_address(sender):
            raise ValueError("Signing key does not belong to the sender")
        fn = self.contract.functions.ccipSend(selector, message.to_abi_tuple())
        # The router returns the message id; read it from a simulation first
        message_id = fn.call({"from": sender})
        self.web3_service.send_transaction(fn, self.private_key)
        return "0x" + bytes(message_id).hex()


class LocalCcipRouter:
    def __init__(
        self,
        ledger: InMemoryTokenLedger,
        fees: Dict[int, int],
        address: str = "0x000000000000000000000000000000000000cc1b",
    ):
        self.ledger = ledger
        self.fees = dict(fees)
        self.address = to_checksum_address(address)
        self.sent = []

    def is_chain_supported(self, selector: int) -> bool:
        return selector in self.fees

    def get_fee(self, selector: int, message: EVM2AnyMessage) -> int:
        if selector not in self.fees:
            raise UnsupportedDestinationException(f"Unsupported chain {selector}")
        return self.fees[selector]

    def ccip_send(self, sender: str, selector: int, message: EVM2AnyMessage) -> str:
        fee = self.get_fee(selector, message)
        self.ledger.transfer_from(
            message.fee_token, self.address, sender, self.address, fee
        )
        for token_amount in message.token_amounts:
            self.ledger.transfer_from(
                token_amount.token,
                self.address,
                sender,
                self.address,
                token_amount.amount,
            )
        self.sent.append((selector, message))
        message_id = keccak(
            encode(
                ["address", "uint64", "uint256"],
                [self.address, selector, len(self.sent)],
            )
        )
        _logger.debug("Local CCIP send to %d, fee %d", selector, fee)
        return "0x" + message_id.hex()
