"""
ERC-20 balance/allowance views used by the transfer coordinator.

Web3TokenLedger reads (and approves) through real ERC-20 contracts.
InMemoryTokenLedger is a local stand-in for development chains and tests.
"""

import threading
from collections import defaultdict
from typing import Dict, Optional, Protocol, Tuple

from eth_account import Account
from eth_utils import to_checksum_address

from zkdao_toolkit.shared.exceptions import InvalidStateException
from zkdao_toolkit.shared.retry import retry_sync_operation
from zkdao_toolkit.shared.services.web3_service import Web3Service


class TokenLedger(Protocol):
    def balance_of(self, token: str, account: str) -> int: ...

    def allowance(self, token: str, owner: str, spender: str) -> int: ...

    def approve(self, token: str, owner: str, spender: str, amount: int) -> None: ...


class Web3TokenLedger:
    """ERC-20 reads over RPC; approvals are signed with `private_key`."""

    def __init__(self, web3_service: Web3Service, private_key: Optional[str] = None):
        self.web3_service = web3_service
        self.private_key = private_key

    def _token(self, token: str):
        return self.web3_service.get_contract(token, "erc20")

    def balance_of(self, token: str, account: str) -> int:
        call = self._token(token).functions.balanceOf(to_checksum_address(account))
        return retry_sync_operation(call.call, operation_name="erc20.balanceOf")

    def allowance(self, token: str, owner: str, spender: str) -> int:
        call = self._token(token).functions.allowance(
            to_checksum_address(owner), to_checksum_address(spender)
        )
        return retry_sync_operation(call.call, operation_name="erc20.allowance")

    def approve(self, token: str, owner: str, spender: str, amount: int) -> None:
        if self.private_key is None:
            raise InvalidStateException("No signing key configured for approvals")
        if Account.from_key(self.private_key).address != to_checksum_address(owner):
            raise InvalidStateException("Signing key does not belong to the owner")
        fn = self._token(token).functions.approve(to_checksum_address(spender), amount)
        self.web3_service.send_transaction(fn, self.private_key)


class InMemoryTokenLedger:
    def __init__(self):
        self._balances: Dict[Tuple[str, str], int] = defaultdict(int)
        self._allowances: Dict[Tuple[str, str, str], int] = defaultdict(int)
        self._lock = threading.Lock()

    @staticmethod
    def _key(*addresses: str) -> tuple:
        return tuple(to_checksum_address(a) for a in addresses)

    def mint(self, token: str, account: str, amount: int) -> None:
        with self._lock:
            self._balances[self._key(token, account)] += amount

    def balance_of(self, token: str, account: str) -> int:
        return self._balances[self._key(token, account)]

    def allowance(self, token: str, owner: str, spender: str) -> int:
        return self._allowances[self._key(token, owner, spender)]

    def approve(self, token: str, owner: str, spender: str, amount: int) -> None:
        with self._lock:
            self._allowances[self._key(token, owner, spender)] = amount

    def transfer_from(
        self, token: str, spender: str, owner: str, recipient: str, amount: int
    ) -> None:
        """ERC-20 transferFrom semantics: allowance and balance both consumed."""
        with self._lock:
            allowance_key = self._key(token, owner, spender)
            owner_key = self._key(token, owner)
            if self._allowances[allowance_key] < amount:
                raise InvalidStateException("ERC20: insufficient allowance")
            if self._balances[owner_key] < amount:
                raise InvalidStateException("ERC20: transfer amount exceeds balance")
            self._allowances[allowance_key] -= amount
            self._balances[owner_key] -= amount
            self._balances[self._key(token, recipient)] += amount
