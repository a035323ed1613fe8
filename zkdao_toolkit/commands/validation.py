from eth_utils import is_address, to_checksum_address

from zkdao_toolkit.governance.models import VoteType
from zkdao_toolkit.shared.chains import ChainConfig, get_chain_registry


def validate_eth_address(address: str, param_name: str = "address") -> str:
    """Validate and return checksum ethereum address"""
    if not address or not isinstance(address, str):
        raise ValueError(
            f"Invalid {param_name}: address must be a non-empty string"
        )
    if not is_address(address):
        raise ValueError(
            f"Invalid {param_name}: {address} is not a valid Ethereum address"
        )
    return to_checksum_address(address)


def validate_chain(name: str) -> ChainConfig:
    """Resolve a chain name; unknown names raise ConfigurationException"""
    return get_chain_registry().get(name)


def validate_choice(choice: str) -> VoteType:
    """Accept 0/1/2 or against/for/abstain"""
    text = str(choice).strip().upper()
    if text.isdigit():
        try:
            return VoteType(int(text))
        except ValueError:
            pass
    elif text in VoteType.__members__:
        return VoteType[text]
    raise ValueError(
        f"Invalid choice: {choice}. Must be one of against/for/abstain or 0/1/2"
    )


def validate_amount(amount: int) -> int:
    if amount <= 0:
        raise ValueError(f"Invalid amount: {amount}. Must be positive")
    return amount
