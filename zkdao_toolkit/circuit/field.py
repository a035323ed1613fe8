"""
BN254 scalar-field helpers.

Every value handed to the circuit goes through `normalize`, which reduces it
modulo the field prime. Reduction is lossy for values >= the modulus, so
callers that need exact values (addresses) use `address_to_field`, which
checks that no reduction happened.
"""

from typing import Union

from eth_utils import is_address, to_checksum_address

from zkdao_toolkit.shared.constants import CircuitConstants

FIELD_MODULUS = CircuitConstants.BN254_FIELD_MODULUS

FieldLike = Union[str, int]


def to_field_int(value: FieldLike) -> int:
    """Parse a hex/decimal string or int and reduce it into the field."""
    if isinstance(value, bool):
        raise ValueError("Booleans are not field elements")

    if isinstance(value, int):
        if value < 0:
            raise ValueError("Field elements must be unsigned")
        return value % FIELD_MODULUS

    if not isinstance(value, str):
        raise ValueError(f"Unsupported field element type: {type(value).__name__}")

    text = value.strip()
    if not text:
        raise ValueError("Empty string is not a field element")

    try:
        if text.lower().startswith("0x"):
            parsed = int(text, 16)
        else:
            parsed = int(text, 10)
    except ValueError:
        raise ValueError(f"Not a hex or decimal integer: {text[:20]}") from None

    if parsed < 0:
        raise ValueError("Field elements must be unsigned")
    return parsed % FIELD_MODULUS


def normalize(value: FieldLike) -> str:
    """Reduce a value modulo the field prime, as a decimal string.

    normalize(normalize(x)) == normalize(x) for every accepted x.
    """
    return str(to_field_int(value))


def address_to_field(address: str) -> int:
    """Field representation of a 20-byte address (never reduced)."""
    if not is_address(address):
        raise ValueError(f"Not an address: {address}")
    raw = int(to_checksum_address(address), 16)
    if raw >= FIELD_MODULUS:
        raise ValueError("Address does not fit in the field")
    return raw


def to_bytes32_hex(value: FieldLike) -> str:
    """0x-prefixed 32-byte big-endian encoding of a field element."""
    return "0x" + to_field_int(value).to_bytes(32, "big").hex()
