"""
Cross-chain token transfers paid in LINK.

`transfer_crosschain` mirrors transferTokensPayLINK: resolve the destination
selector, build the CCIP message, quote the fee, check that the fee budget,
fee-token balance and allowances cover it, then hand fee + tokens to the
router through `ccipSend`. All checks run before anything is approved or
sent. Delivery on the destination chain is out of this coordinator's hands.
"""

import threading
from typing import List, Optional

from eth_utils import is_address, to_checksum_address

from zkdao_toolkit.crosschain.ledger import TokenLedger
from zkdao_toolkit.crosschain.router import CcipRouter
from zkdao_toolkit.crosschain.types import CrosschainMessage, EVM2AnyMessage
from zkdao_toolkit.shared.chains import ChainRegistry, get_chain_registry
from zkdao_toolkit.shared.exceptions import (
    ConfigurationException,
    InsufficientFeeException,
    InvalidStateException,
    UnsupportedDestinationException,
)
from zkdao_toolkit.shared.logging import get_logger, redact

_logger = get_logger(__name__)


class CrosschainTransferCoordinator:
    def __init__(
        self,
        source_chain: str,
        router: CcipRouter,
        ledger: TokenLedger,
        sender: str,
        registry: Optional[ChainRegistry] = None,
        fee_token: Optional[str] = None,
        auto_approve: bool = True,
    ):
        self.registry = registry or get_chain_registry()
        self.chain = self.registry.get(source_chain)
        self.router = router
        self.ledger = ledger
        self.sender = to_checksum_address(sender)
        self.fee_token = to_checksum_address(
            fee_token or self.chain.require("link_token")
        )
        self.auto_approve = auto_approve
        self.messages: List[CrosschainMessage] = []
        self._lock = threading.RLock()

    def destination_selector(self, destination: str) -> int:
        try:
            selector = self.registry.destination_selector(self.chain.name, destination)
        except ConfigurationException as e:
            raise UnsupportedDestinationException(e.message) from None
        if not self.router.is_chain_supported(selector):
            raise UnsupportedDestinationException(
                f"Router does not support {destination} ({selector})"
            )
        return selector

    def build_message(self, receiver: str, token: str, amount: int) -> EVM2AnyMessage:
        if not is_address(receiver) or not is_address(token):
            raise ValueError("receiver and token must be addresses")
        if amount <= 0:
            raise ValueError("amount must be positive")
        return EVM2AnyMessage.token_transfer(receiver, token, amount, self.fee_token)

    def estimate_fee(self, destination: str, receiver: str, token: str, amount: int) -> int:
        selector = self.destination_selector(destination)
        return self.router.get_fee(selector, self.build_message(receiver, token, amount))

    def _ensure_allowance(self, token: str, required: int, fee_side: bool) -> None:
        allowance = self.ledger.allowance(token, self.sender, self.router.address)
        if allowance >= required:
            return
        if not self.auto_approve:
            if fee_side:
                raise InsufficientFeeException(required, allowance, "fee-token allowance")
            raise InvalidStateException(
                f"Token allowance {allowance} below required {required}"
            )
        self.ledger.approve(token, self.sender, self.router.address, required)

    def transfer_crosschain(
        self,
        destination: str,
        receiver: str,
        token: str,
        amount: int,
        fee: int,
    ) -> CrosschainMessage:
        """Send `amount` of `token` to `receiver` on `destination`.

        `fee` is the most the caller is willing to pay in the fee token.
        """
        with self._lock:
            selector = self.destination_selector(destination)
            message = self.build_message(receiver, token, amount)
            token = message.token_amounts[0].token

            required_fee = self.router.get_fee(selector, message)
            if fee < required_fee:
                raise InsufficientFeeException(required_fee, fee, "fee budget")

            same_token = token == self.fee_token
            fee_needed = required_fee + (amount if same_token else 0)
            fee_balance = self.ledger.balance_of(self.fee_token, self.sender)
            if fee_balance < fee_needed:
                raise InsufficientFeeException(fee_needed, fee_balance, "fee-token balance")
            if not same_token:
                token_balance = self.ledger.balance_of(token, self.sender)
                if token_balance < amount:
                    raise InvalidStateException(
                        f"Token balance {token_balance} below amount {amount}"
                    )
                self._ensure_allowance(token, amount, fee_side=False)
            self._ensure_allowance(self.fee_token, fee_needed, fee_side=True)

            message_id = self.router.ccip_send(self.sender, selector, message)

            sent = CrosschainMessage(
                message_id=message_id,
                source_chain=self.chain.name,
                destination_chain=destination,
                destination_selector=selector,
                sender=self.sender,
                receiver=to_checksum_address(receiver),
                token=token,
                amount=amount,
                fee_token=self.fee_token,
                fee_paid=required_fee,
                message=message,
            )
            self.messages.append(sent)
            _logger.info(
                "Sent CCIP message %s: %d of %s to %s on %s (fee %d)",
                redact(message_id),
                amount,
                redact(token),
                redact(sent.receiver),
                destination,
                required_fee,
            )
            return sent
