"""
CCIP message types (Client.EVM2AnyMessage and friends).
"""

from dataclasses import dataclass
from typing import Any, Dict, Tuple

from eth_abi import encode
from eth_utils import to_checksum_address

# bytes4(keccak256("CCIP EVMExtraArgsV1"))
EVM_EXTRA_ARGS_V1_TAG = bytes.fromhex("97a657c9")


def evm_extra_args_v1(gas_limit: int) -> bytes:
    """Client._argsToBytes(EVMExtraArgsV1({gasLimit}))."""
    return EVM_EXTRA_ARGS_V1_TAG + encode(["uint256"], [gas_limit])


@dataclass(frozen=True)
class TokenAmount:
    token: str
    amount: int


@dataclass(frozen=True)
class EVM2AnyMessage:
    receiver: bytes
    data: bytes
    token_amounts: Tuple[TokenAmount, ...]
    fee_token: str
    extra_args: bytes

    @classmethod
    def token_transfer(
        cls,
        receiver: str,
        token: str,
        amount: int,
        fee_token: str,
        gas_limit: int = 0,
    ) -> "EVM2AnyMessage":
        """Tokens only, no data; gas limit 0 since no receiver logic runs."""
        return cls(
            receiver=encode(["address"], [to_checksum_address(receiver)]),
            data=b"",
            token_amounts=(TokenAmount(to_checksum_address(token), int(amount)),),
            fee_token=to_checksum_address(fee_token),
            extra_args=evm_extra_args_v1(gas_limit),
        )

    def to_abi_tuple(self) -> tuple:
        return (
            self.receiver,
            self.data,
            [(t.token, t.amount) for t in self.token_amounts],
            self.fee_token,
            self.extra_args,
        )


@dataclass(frozen=True)
class CrosschainMessage:
    """A sent CCIP message; delivery is the router's responsibility."""

    message_id: str
    source_chain: str
    destination_chain: str
    destination_selector: int
    sender: str
    receiver: str
    token: str
    amount: int
    fee_token: str
    fee_paid: int
    message: EVM2AnyMessage

    def to_dict(self) -> Dict[str, Any]:
        return {
            "messageId": self.message_id,
            "sourceChain": self.source_chain,
            "destinationChain": self.destination_chain,
            "destinationChainSelector": str(self.destination_selector),
            "sender": self.sender,
            "receiver": self.receiver,
            "token": self.token,
            "amount": str(self.amount),
            "feeToken": self.fee_token,
            "fees": str(self.fee_paid),
        }
