"""
Chain configuration registry.

One keyed table replaces the per-chain constant helpers (LINK_TOKEN(chain),
FUNCTIONS_ROUTER(chain), ...). Entries are checked when the registry is
built: chain selectors must be unique, a chain may not bridge to itself, and
destinations must reference configured chains. Lookups on unknown chains
raise ConfigurationException instead of falling back to a default.

Environment overrides use the chain prefix, e.g. ETHEREUM_SEPOLIA_RPC_URL,
ETHEREUM_SEPOLIA_FUNCTIONS_SUBSCRIPTION_ID, ETHEREUM_SEPOLIA_FUNCTIONS_DON_ID.
"""

import os
from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, Mapping, Optional, Tuple

from eth_utils import is_hex_address, to_checksum_address

from zkdao_toolkit.shared.exceptions import ConfigurationException

# Names used by earlier deployment scripts; refuse them rather than guess
LEGACY_ENV_NAMES = {
    "FUNCTION_DON_ID": "FUNCTIONS_DON_ID",
    "ETHEREUM_SEPOLIA__USDC_TOKEN": "ETHEREUM_SEPOLIA_USDC_TOKEN",
}


@dataclass(frozen=True)
class ChainConfig:
    """Addresses and oracle parameters for one chain."""

    name: str
    chain_id: int
    env_prefix: str
    rpc_url: Optional[str] = None
    link_token: Optional[str] = None
    functions_router: Optional[str] = None
    functions_subscription_id: Optional[int] = None
    functions_don_id: Optional[str] = None
    ccip_router: Optional[str] = None
    ccip_bnm_token: Optional[str] = None
    chain_selector: Optional[int] = None
    destination_chains: Tuple[str, ...] = field(default_factory=tuple)
    block_confirmations: int = 1

    @property
    def don_id_bytes(self) -> bytes:
        if not self.functions_don_id:
            raise ConfigurationException(
                f"FUNCTIONS_DON_ID not set for chain {self.name}"
            )
        return bytes.fromhex(self.functions_don_id.removeprefix("0x"))

    def require(self, attribute: str):
        """Return a configured attribute or fail loudly."""
        value = getattr(self, attribute)
        if value is None or value == "":
            raise ConfigurationException(
                f"{attribute} is not configured for chain {self.name}"
            )
        return value


DEFAULT_CHAINS: Tuple[ChainConfig, ...] = (
    ChainConfig(
        name="ethereumSepolia",
        chain_id=11155111,
        env_prefix="ETHEREUM_SEPOLIA",
        link_token="0x779877A7B0D9E8603169DdbD7836e478b4624789",
        functions_router="0xb83E47C2bC239B3bf370bc41e1459A34b41238D0",
        functions_subscription_id=5195,
        functions_don_id="0x66756e2d657468657265756d2d7365706f6c69612d3100000000000000000000",
        ccip_router="0x0BF3dE8c5D3e8A2B34D2BEeB17ABfCeBaf363A59",
        ccip_bnm_token="0xFd57b4ddBf88a4e07fF4e34C487b99af2Fe82a05",
        chain_selector=16015286601757825753,
        destination_chains=("avalancheFuji",),
        block_confirmations=3,
    ),
    ChainConfig(
        name="avalancheFuji",
        chain_id=43113,
        env_prefix="AVALANCHE_FUJI",
        link_token="0x0b9d5D9136855f6FEc3c0993feE6E9CE8a297846",
        functions_router="0xA9d587a00A31A52Ed70D6026794a8FC5E2F5dCb0",
        functions_subscription_id=15681,
        functions_don_id="0x66756e2d6176616c616e6368652d66756a692d31000000000000000000000000",
        ccip_router="0xF694E193200268f9a4868e4Aa017A0118C9a8177",
        ccip_bnm_token="0xD21341536c5cF5EB1bcb58f6723cE26e8D8E90e4",
        chain_selector=14767482510784806043,
        destination_chains=("ethereumSepolia",),
        block_confirmations=3,
    ),
    ChainConfig(
        name="localhost",
        chain_id=31337,
        env_prefix="LOCALHOST",
        rpc_url="http://127.0.0.1:8545",
    ),
)


def _check_legacy_env(environ: Mapping[str, str]) -> None:
    for legacy, canonical in LEGACY_ENV_NAMES.items():
        if environ.get(legacy):
            raise ConfigurationException(
                f"Environment variable {legacy} is no longer read; "
                f"rename it to {canonical}"
            )


def _apply_env(chain: ChainConfig, environ: Mapping[str, str]) -> ChainConfig:
    prefix = chain.env_prefix
    overrides = {}

    rpc_url = environ.get(f"{prefix}_RPC_URL")
    if rpc_url:
        overrides["rpc_url"] = rpc_url

    subscription = environ.get(f"{prefix}_FUNCTIONS_SUBSCRIPTION_ID")
    if subscription:
        try:
            overrides["functions_subscription_id"] = int(subscription)
        except ValueError:
            raise ConfigurationException(
                f"{prefix}_FUNCTIONS_SUBSCRIPTION_ID must be an integer"
            )

    don_id = environ.get(f"{prefix}_FUNCTIONS_DON_ID")
    if don_id:
        overrides["functions_don_id"] = don_id

    return replace(chain, **overrides) if overrides else chain


def _validate(chains: Dict[str, ChainConfig]) -> None:
    seen_selectors: Dict[int, str] = {}
    seen_ids: Dict[int, str] = {}

    for chain in chains.values():
        if chain.chain_id in seen_ids:
            raise ConfigurationException(
                f"Chain id {chain.chain_id} used by both "
                f"{seen_ids[chain.chain_id]} and {chain.name}"
            )
        seen_ids[chain.chain_id] = chain.name

        if chain.chain_selector is not None:
            if chain.chain_selector in seen_selectors:
                raise ConfigurationException(
                    f"Chain selector {chain.chain_selector} used by both "
                    f"{seen_selectors[chain.chain_selector]} and {chain.name}"
                )
            seen_selectors[chain.chain_selector] = chain.name

        for attribute in (
            "link_token",
            "functions_router",
            "ccip_router",
            "ccip_bnm_token",
        ):
            value = getattr(chain, attribute)
            if value is not None and not is_hex_address(value):
                raise ConfigurationException(
                    f"{attribute} for {chain.name} is not an address: {value}"
                )

        if chain.functions_don_id is not None:
            don = chain.functions_don_id.removeprefix("0x")
            if len(don) != 64:
                raise ConfigurationException(
                    f"DON id for {chain.name} must be 32 bytes"
                )

    for chain in chains.values():
        for destination in chain.destination_chains:
            if destination == chain.name:
                raise ConfigurationException(
                    f"{chain.name} lists itself as a destination"
                )
            target = chains.get(destination)
            if target is None:
                raise ConfigurationException(
                    f"{chain.name} bridges to unknown chain {destination}"
                )
            if target.chain_selector is None:
                raise ConfigurationException(
                    f"Destination {destination} has no chain selector"
                )


class ChainRegistry:
    """Resolved, validated chain configuration."""

    def __init__(
        self,
        chains: Iterable[ChainConfig] = DEFAULT_CHAINS,
        environ: Optional[Mapping[str, str]] = None,
    ):
        environ = os.environ if environ is None else environ
        _check_legacy_env(environ)

        resolved = {}
        for chain in chains:
            if chain.name in resolved:
                raise ConfigurationException(f"Duplicate chain {chain.name}")
            resolved[chain.name] = _apply_env(chain, environ)

        _validate(resolved)
        self._chains = resolved

    def get(self, name: str) -> ChainConfig:
        """Return the configuration for a chain name."""
        try:
            return self._chains[name]
        except KeyError:
            raise ConfigurationException(
                f"Unsupported chain: {name}. "
                f"Known chains: {sorted(self._chains)}"
            ) from None

    def by_chain_id(self, chain_id: int) -> ChainConfig:
        for chain in self._chains.values():
            if chain.chain_id == int(chain_id):
                return chain
        raise ConfigurationException(f"Chain ID {chain_id} not supported")

    def by_selector(self, selector: int) -> ChainConfig:
        for chain in self._chains.values():
            if chain.chain_selector == int(selector):
                return chain
        raise ConfigurationException(f"Unknown chain selector {selector}")

    def destination_selector(self, source: str, destination: str) -> int:
        """Selector of a destination reachable from source."""
        source_chain = self.get(source)
        if destination not in source_chain.destination_chains:
            raise ConfigurationException(
                f"{destination} is not a configured destination of {source}"
            )
        return self.get(destination).require("chain_selector")

    def get_rpc_url(self, name: str) -> str:
        chain = self.get(name)
        if not chain.rpc_url:
            raise ConfigurationException(
                f"RPC URL not set for chain {name} "
                f"(set {chain.env_prefix}_RPC_URL)"
            )
        return chain.rpc_url

    def names(self) -> Tuple[str, ...]:
        return tuple(self._chains)

    def checksum(self, name: str, attribute: str) -> str:
        """Checksummed address attribute of a chain."""
        return to_checksum_address(self.get(name).require(attribute))


_registry: Optional[ChainRegistry] = None


def get_chain_registry() -> ChainRegistry:
    """Shared registry resolved from the process environment."""
    global _registry
    if _registry is None:
        _registry = ChainRegistry()
    return _registry
