"""CCIP token transfers."""

from .ledger import InMemoryTokenLedger, TokenLedger, Web3TokenLedger
from .router import CcipRouter, LocalCcipRouter, Web3CcipRouter
from .transfer import CrosschainTransferCoordinator
from .types import CrosschainMessage, EVM2AnyMessage, evm_extra_args_v1

__all__ = [
    "InMemoryTokenLedger",
    "TokenLedger",
    "Web3TokenLedger",
    "CcipRouter",
    "LocalCcipRouter",
    "Web3CcipRouter",
    "CrosschainTransferCoordinator",
    "CrosschainMessage",
    "EVM2AnyMessage",
    "evm_extra_args_v1",
]
