"""
Unit tests for the cross-chain transfer coordinator against the local CCIP
router and in-memory token ledger.
"""

import pytest
from eth_abi import decode

from zkdao_toolkit.crosschain.ledger import InMemoryTokenLedger
from zkdao_toolkit.crosschain.router import LocalCcipRouter
from zkdao_toolkit.crosschain.transfer import CrosschainTransferCoordinator
from zkdao_toolkit.crosschain.types import (
    EVM_EXTRA_ARGS_V1_TAG,
    EVM2AnyMessage,
    evm_extra_args_v1,
)
from zkdao_toolkit.shared.chains import ChainRegistry
from zkdao_toolkit.shared.exceptions import (
    ErrorKind,
    InsufficientFeeException,
    InvalidStateException,
    UnsupportedDestinationException,
)

SENDER = "0x" + "5e" * 20
RECEIVER = "0x" + "7e" * 20
FEE = 10**17


@pytest.fixture
def registry():
    return ChainRegistry(environ={})


@pytest.fixture
def source(registry):
    return registry.get("ethereumSepolia")


@pytest.fixture
def fuji_selector(registry):
    return registry.get("avalancheFuji").chain_selector


@pytest.fixture
def ledger(source):
    ledger = InMemoryTokenLedger()
    ledger.mint(source.link_token, SENDER, 10**18)
    ledger.mint(source.ccip_bnm_token, SENDER, 5000)
    return ledger


@pytest.fixture
def router(ledger, fuji_selector):
    return LocalCcipRouter(ledger, fees={fuji_selector: FEE})


def make_coordinator(registry, router, ledger, **kwargs):
    return CrosschainTransferCoordinator(
        "ethereumSepolia", router, ledger, SENDER, registry=registry, **kwargs
    )


class TestMessage:
    def test_extra_args_encoding(self):
        encoded = evm_extra_args_v1(200_000)
        assert encoded[:4] == EVM_EXTRA_ARGS_V1_TAG
        assert decode(["uint256"], encoded[4:]) == (200_000,)

    def test_token_transfer_message(self, source):
        message = EVM2AnyMessage.token_transfer(
            RECEIVER, source.ccip_bnm_token, 1000, source.link_token
        )
        assert decode(["address"], message.receiver)[0].lower() == RECEIVER
        assert message.data == b""
        assert message.token_amounts[0].amount == 1000
        assert decode(["uint256"], message.extra_args[4:]) == (0,)


class TestTransferCrosschain:
    def test_moves_tokens_and_fee(self, registry, router, ledger, source, fuji_selector):
        coordinator = make_coordinator(registry, router, ledger)

        sent = coordinator.transfer_crosschain(
            "avalancheFuji", RECEIVER, source.ccip_bnm_token, 1000, fee=FEE
        )

        assert sent.destination_selector == fuji_selector
        assert sent.fee_paid == FEE
        assert sent.message_id.startswith("0x") and len(sent.message_id) == 66
        assert ledger.balance_of(source.ccip_bnm_token, SENDER) == 4000
        assert ledger.balance_of(source.link_token, SENDER) == 10**18 - FEE
        assert ledger.balance_of(source.ccip_bnm_token, router.address) == 1000
        assert coordinator.messages == [sent]
        assert router.sent[0][0] == fuji_selector

    def test_estimate_fee(self, registry, router, ledger, source):
        coordinator = make_coordinator(registry, router, ledger)
        assert (
            coordinator.estimate_fee("avalancheFuji", RECEIVER, source.ccip_bnm_token, 1)
            == FEE
        )

    def test_unconfigured_destination(self, registry, router, ledger, source):
        coordinator = make_coordinator(registry, router, ledger)
        with pytest.raises(UnsupportedDestinationException):
            coordinator.transfer_crosschain(
                "localhost", RECEIVER, source.ccip_bnm_token, 1000, fee=FEE
            )

    def test_router_does_not_support_destination(self, registry, ledger, source):
        router = LocalCcipRouter(ledger, fees={})
        coordinator = make_coordinator(registry, router, ledger)

        with pytest.raises(UnsupportedDestinationException):
            coordinator.transfer_crosschain(
                "avalancheFuji", RECEIVER, source.ccip_bnm_token, 1000, fee=FEE
            )
        assert ledger.balance_of(source.ccip_bnm_token, SENDER) == 5000

    def test_fee_budget_too_low(self, registry, router, ledger, source):
        coordinator = make_coordinator(registry, router, ledger)

        with pytest.raises(InsufficientFeeException) as exc_info:
            coordinator.transfer_crosschain(
                "avalancheFuji", RECEIVER, source.ccip_bnm_token, 1000, fee=FEE - 1
            )

        assert exc_info.value.kind == ErrorKind.INSUFFICIENT_FEE
        assert exc_info.value.required == FEE
        assert router.sent == []
        assert ledger.allowance(source.link_token, SENDER, router.address) == 0

    def test_fee_token_balance_too_low(self, registry, source, fuji_selector):
        ledger = InMemoryTokenLedger()
        ledger.mint(source.link_token, SENDER, FEE // 2)
        ledger.mint(source.ccip_bnm_token, SENDER, 5000)
        router = LocalCcipRouter(ledger, fees={fuji_selector: FEE})
        coordinator = make_coordinator(registry, router, ledger)

        with pytest.raises(InsufficientFeeException):
            coordinator.transfer_crosschain(
                "avalancheFuji", RECEIVER, source.ccip_bnm_token, 1000, fee=FEE
            )
        assert ledger.balance_of(source.ccip_bnm_token, SENDER) == 5000

    def test_fee_allowance_without_auto_approve(self, registry, router, ledger, source):
        ledger.approve(source.ccip_bnm_token, SENDER, router.address, 1000)
        coordinator = make_coordinator(registry, router, ledger, auto_approve=False)

        with pytest.raises(InsufficientFeeException) as exc_info:
            coordinator.transfer_crosschain(
                "avalancheFuji", RECEIVER, source.ccip_bnm_token, 1000, fee=FEE
            )
        assert "allowance" in str(exc_info.value)
        assert router.sent == []

    def test_preapproved_without_auto_approve(self, registry, router, ledger, source):
        ledger.approve(source.ccip_bnm_token, SENDER, router.address, 1000)
        ledger.approve(source.link_token, SENDER, router.address, FEE)
        coordinator = make_coordinator(registry, router, ledger, auto_approve=False)

        coordinator.transfer_crosschain(
            "avalancheFuji", RECEIVER, source.ccip_bnm_token, 1000, fee=FEE
        )
        assert ledger.balance_of(source.ccip_bnm_token, SENDER) == 4000

    def test_token_balance_too_low(self, registry, router, ledger, source):
        coordinator = make_coordinator(registry, router, ledger)

        with pytest.raises(InvalidStateException):
            coordinator.transfer_crosschain(
                "avalancheFuji", RECEIVER, source.ccip_bnm_token, 6000, fee=FEE
            )
        assert ledger.balance_of(source.link_token, SENDER) == 10**18

    def test_bridging_the_fee_token(self, registry, router, ledger, source):
        coordinator = make_coordinator(registry, router, ledger)

        coordinator.transfer_crosschain(
            "avalancheFuji", RECEIVER, source.link_token, 10**17, fee=FEE
        )
        assert ledger.balance_of(source.link_token, SENDER) == 10**18 - 2 * 10**17

    def test_bridging_the_fee_token_needs_amount_plus_fee(self, registry, router, ledger, source):
        coordinator = make_coordinator(registry, router, ledger)

        with pytest.raises(InsufficientFeeException):
            coordinator.transfer_crosschain(
                "avalancheFuji", RECEIVER, source.link_token, 10**18, fee=FEE
            )

    def test_invalid_amount(self, registry, router, ledger, source):
        coordinator = make_coordinator(registry, router, ledger)
        with pytest.raises(ValueError):
            coordinator.transfer_crosschain(
                "avalancheFuji", RECEIVER, source.ccip_bnm_token, 0, fee=FEE
            )


class TestInMemoryTokenLedger:
    def test_transfer_from_requires_allowance(self, source):
        ledger = InMemoryTokenLedger()
        ledger.mint(source.link_token, SENDER, 100)

        with pytest.raises(InvalidStateException):
            ledger.transfer_from(source.link_token, RECEIVER, SENDER, RECEIVER, 10)

        ledger.approve(source.link_token, SENDER, RECEIVER, 10)
        ledger.transfer_from(source.link_token, RECEIVER, SENDER, RECEIVER, 10)
        assert ledger.balance_of(source.link_token, RECEIVER) == 10
        assert ledger.allowance(source.link_token, SENDER, RECEIVER) == 0
