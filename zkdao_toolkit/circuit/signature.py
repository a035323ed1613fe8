"""
ECDSA (secp256k1) vote signatures in the shape the circuit consumes.

The circuit takes the signer's public key as two 32-byte coordinates, the
signature as r||s (64 bytes, low-s) and the 32-byte keccak hash of the vote
message. The signature is over the raw hash (no EIP-191 prefix), so the key
recovered from (hash, signature) is the voter's own key.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Union

from eth_keys import keys
from eth_keys.exceptions import BadSignature
from eth_utils import keccak, to_checksum_address

from zkdao_toolkit.shared.exceptions import ProofInputMismatchException

SECP256K1_N = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141


def hash_vote_message(message: str) -> bytes:
    """keccak256 of the UTF-8 vote message."""
    return keccak(text=message)


def _to_bytes(value: Union[str, bytes]) -> bytes:
    if isinstance(value, bytes):
        return value
    return bytes.fromhex(value.removeprefix("0x"))


@dataclass(frozen=True)
class VoteSignature:
    pub_key_x: bytes
    pub_key_y: bytes
    signature: bytes  # r || s
    hashed_message: bytes

    def __post_init__(self):
        for name, size in (
            ("pub_key_x", 32),
            ("pub_key_y", 32),
            ("signature", 64),
            ("hashed_message", 32),
        ):
            if len(getattr(self, name)) != size:
                raise ValueError(f"{name} must be {size} bytes")

    @classmethod
    def sign(
        cls, private_key: Union[str, bytes], message: str
    ) -> "VoteSignature":
        """Sign keccak(message) with a local key."""
        key = keys.PrivateKey(_to_bytes(private_key))
        hashed = hash_vote_message(message)
        signature = key.sign_msg_hash(hashed)
        return cls.from_signature(signature.to_bytes(), hashed)

    @classmethod
    def from_signature(
        cls,
        signature: Union[str, bytes],
        hashed_message: Union[str, bytes],
        expected_signer: Optional[str] = None,
    ) -> "VoteSignature":
        """Decompose a 65-byte r||s||v signature over `hashed_message`.

        High-s signatures are normalized. When `expected_signer` is given the
        recovered address must match it.
        """
        raw = _to_bytes(signature)
        hashed = _to_bytes(hashed_message)
        if len(raw) != 65:
            raise ValueError("signature must be 65 bytes (r||s||v)")
        if len(hashed) != 32:
            raise ValueError("hashed_message must be 32 bytes")

        r = int.from_bytes(raw[:32], "big")
        s = int.from_bytes(raw[32:64], "big")
        v = raw[64]
        if v >= 27:
            v -= 27
        if v not in (0, 1):
            raise ValueError(f"invalid recovery id {raw[64]}")
        if s > SECP256K1_N // 2:
            s = SECP256K1_N - s
            v ^= 1

        try:
            sig = keys.Signature(vrs=(v, r, s))
            public_key = sig.recover_public_key_from_msg_hash(hashed)
        except (BadSignature, ValueError) as e:
            raise ValueError(f"signature does not recover: {e}") from None

        if expected_signer is not None:
            recovered = public_key.to_checksum_address()
            if recovered != to_checksum_address(expected_signer):
                raise ProofInputMismatchException(
                    "signer", "signature does not recover to the voter"
                )

        pub = public_key.to_bytes()
        return cls(
            pub_key_x=pub[:32],
            pub_key_y=pub[32:],
            signature=r.to_bytes(32, "big") + s.to_bytes(32, "big"),
            hashed_message=hashed,
        )

    @property
    def public_key(self) -> keys.PublicKey:
        return keys.PublicKey(self.pub_key_x + self.pub_key_y)

    @property
    def signer(self) -> str:
        return self.public_key.to_checksum_address()

    def verify(self) -> bool:
        """ECDSA check of r||s against the hash and public key."""
        r = int.from_bytes(self.signature[:32], "big")
        s = int.from_bytes(self.signature[32:], "big")
        if not (0 < r < SECP256K1_N and 0 < s < SECP256K1_N):
            return False
        # v is not used by verification
        sig = keys.Signature(vrs=(0, r, s))
        return keys.ecdsa_verify(self.hashed_message, sig, self.public_key)

    def to_circuit(self) -> Dict[str, List[int]]:
        return {
            "_pub_key_x": list(self.pub_key_x),
            "_pub_key_y": list(self.pub_key_y),
            "_signature": list(self.signature),
            "_hashed_message": list(self.hashed_message),
        }
