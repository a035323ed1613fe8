"""
Web3 Service module for interacting with EVM chains.

Manages one Web3 connection per configured chain, caches contract
instances, and signs transactions with a local account for the few write
paths the toolkit has (CCIP sends).
"""

from typing import Any, Dict, Optional

from eth_account import Account
from web3 import Web3

from zkdao_toolkit.shared.chains import get_chain_registry
from zkdao_toolkit.shared.logging import get_logger
from zkdao_toolkit.shared.services.resource_manager import resource_manager

_logger = get_logger(__name__)


class Web3Service:
    """
    A service class for managing Web3 connections and interactions.
    """

    _instances: Dict[str, "Web3Service"] = {}

    def __init__(self, chain: str, rpc_url: str, w3: Optional[Web3] = None):
        """
        Args:
            chain: Chain name as configured in the chain registry
            rpc_url: The RPC URL to use
            w3: Pre-built Web3 instance (tests pass a mocked one)
        """
        self.chain = chain
        self.w3 = w3 if w3 is not None else Web3(Web3.HTTPProvider(rpc_url))
        self._contract_cache: Dict[tuple, Any] = {}

    @classmethod
    def get_instance(cls, chain: str) -> "Web3Service":
        """Get or create a Web3Service instance for a configured chain"""
        if chain not in cls._instances:
            rpc_url = get_chain_registry().get_rpc_url(chain)
            cls._instances[chain] = cls(chain, rpc_url)
        return cls._instances[chain]

    def get_contract(self, address: str, abi_name: str) -> Any:
        """Get a contract instance for a given address and ABI name"""
        key = (address.lower(), abi_name)
        if key not in self._contract_cache:
            abi = resource_manager.load_abi(abi_name)
            self._contract_cache[key] = self.w3.eth.contract(
                address=Web3.to_checksum_address(address.lower()), abi=abi
            )
        return self._contract_cache[key]

    def send_transaction(
        self,
        contract_function: Any,
        private_key: str,
        value: int = 0,
        timeout: float = 180,
    ) -> Dict[str, Any]:
        """Build, sign and send a contract call; wait for the receipt.

        Raises ContractLogicError if the call reverts during gas estimation.
        """
        account = Account.from_key(private_key)
        tx = contract_function.build_transaction(
            {
                "from": account.address,
                "value": value,
                "nonce": self.w3.eth.get_transaction_count(account.address),
                "chainId": self.w3.eth.chain_id,
            }
        )
        signed = account.sign_transaction(tx)
        tx_hash = self.w3.eth.send_raw_transaction(signed.raw_transaction)
        _logger.info("Sent transaction %s on %s", tx_hash.hex(), self.chain)

        receipt = self.w3.eth.wait_for_transaction_receipt(
            tx_hash, timeout=timeout
        )
        if receipt["status"] != 1:
            raise RuntimeError(f"Transaction {tx_hash.hex()} reverted")
        return receipt
