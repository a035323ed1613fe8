"""
Poseidon hash over the BN254 scalar field.

The voting circuit commits to voters with two Poseidon instances:

    nullifier = Hash2(secret, weight)           width t = 3
    leaf      = Hash3(voter, weight, nullifier)  width t = 4

and hashes Merkle nodes with Hash2(left, right). Both follow the circomlib
convention: the state is [0, inputs...], one permutation is applied and
state[0] is the digest.

Parameter sets are resolved in this order:

1. a set registered at startup with register_params()
2. JSON exported from the circuit build (resources/poseidon/bn254_t<t>.json)
3. the reference Grain LFSR generation for a prime field with the x^5 S-box,
   R_F = 8 and circomlib's R_P. This produces circomlib's round constants
   and Cauchy MDS matrices.

JSON schema
-----------
{
  "t": 3, "R_F": 8, "R_P": 57, "alpha": 5,
  "mds": [[...t ints...], ...],
  "rc":  [[...t ints...], ... R_F + R_P rows ...]
}
Integers may be decimal strings, 0x hex strings or JSON numbers.
"""

from dataclasses import dataclass
from typing import Dict, Iterator, List, Sequence

from zkdao_toolkit.circuit.field import FIELD_MODULUS, FieldLike, to_field_int
from zkdao_toolkit.shared.services.resource_manager import resource_manager

_P = FIELD_MODULUS
_FIELD_BITS = _P.bit_length()

# Partial-round counts of circomlib's Poseidon for t = 2..5
_PARTIAL_ROUNDS = {2: 56, 3: 57, 4: 56, 5: 60}
_FULL_ROUNDS = 8


@dataclass(frozen=True)
class PoseidonParams:
    t: int  # state width
    R_F: int  # full rounds
    R_P: int  # partial rounds
    alpha: int  # S-box exponent
    mds: List[List[int]]
    rc: List[List[int]]

    def validate(self) -> None:
        if self.t < 2:
            raise ValueError("t must be >= 2")
        if self.R_F % 2 != 0:
            raise ValueError("R_F must be even")
        if self.alpha < 3 or self.alpha % 2 == 0:
            raise ValueError("alpha must be an odd integer >= 3")
        if len(self.mds) != self.t or any(len(row) != self.t for row in self.mds):
            raise ValueError("mds must be t x t")
        rounds = self.R_F + self.R_P
        if len(self.rc) != rounds or any(len(row) != self.t for row in self.rc):
            raise ValueError(f"rc must be {rounds} x {self.t}")

    @classmethod
    def from_dict(cls, raw: Dict) -> "PoseidonParams":
        params = cls(
            t=int(raw["t"]),
            R_F=int(raw["R_F"]),
            R_P=int(raw["R_P"]),
            alpha=int(raw.get("alpha", 5)),
            mds=[[to_field_int(v) for v in row] for row in raw["mds"]],
            rc=[[to_field_int(v) for v in row] for row in raw["rc"]],
        )
        params.validate()
        return params


class GrainLFSR:
    """
    80-bit Grain LFSR in self-shrinking mode, seeded with the instance
    description (field type, S-box type, field size, t, R_F, R_P).
    """

    def __init__(self, n: int, t: int, r_f: int, r_p: int):
        # prime field = 1, x^alpha S-box = 0
        seed = (
            format(1, "02b")
            + format(0, "04b")
            + format(n, "012b")
            + format(t, "012b")
            + format(r_f, "010b")
            + format(r_p, "010b")
            + "1" * 30
        )
        self._state = [int(bit) for bit in seed]
        for _ in range(160):
            self._clock()
        self._bits = self._shrunk()

    def _clock(self) -> int:
        s = self._state
        bit = s[62] ^ s[51] ^ s[38] ^ s[23] ^ s[13] ^ s[0]
        s.pop(0)
        s.append(bit)
        return bit

    def _shrunk(self) -> Iterator[int]:
        while True:
            keep = self._clock()
            value = self._clock()
            if keep:
                yield value

    def random_int(self, num_bits: int) -> int:
        value = 0
        for _ in range(num_bits):
            value = (value << 1) | next(self._bits)
        return value

    def field_element(self, num_bits: int) -> int:
        # Rejection sampling, used for round constants
        while True:
            value = self.random_int(num_bits)
            if value < _P:
                return value


def generate_params(t: int) -> PoseidonParams:
    """Reference parameter generation for width t over BN254."""
    if t not in _PARTIAL_ROUNDS:
        raise ValueError(f"No round schedule for t={t}")
    r_p = _PARTIAL_ROUNDS[t]
    rounds = _FULL_ROUNDS + r_p
    grain = GrainLFSR(_FIELD_BITS, t, _FULL_ROUNDS, r_p)

    flat = [grain.field_element(_FIELD_BITS) for _ in range(rounds * t)]
    rc = [flat[r * t : (r + 1) * t] for r in range(rounds)]

    # Cauchy matrix 1 / (x_i + y_j); the 2t samples must be distinct mod p
    while True:
        samples = [grain.random_int(_FIELD_BITS) % _P for _ in range(2 * t)]
        if len(set(samples)) != 2 * t:
            continue
        xs, ys = samples[:t], samples[t:]
        if any((x + y) % _P == 0 for x in xs for y in ys):
            continue
        mds = [[pow(x + y, _P - 2, _P) for y in ys] for x in xs]
        break

    params = PoseidonParams(t=t, R_F=_FULL_ROUNDS, R_P=r_p, alpha=5, mds=mds, rc=rc)
    params.validate()
    return params


_REGISTRY: Dict[int, PoseidonParams] = {}


def register_params(params: PoseidonParams) -> None:
    """Use `params` for every hash of width params.t."""
    params.validate()
    _REGISTRY[params.t] = params


def get_params(t: int) -> PoseidonParams:
    if t not in _REGISTRY:
        name = f"bn254_t{t}"
        if resource_manager.has_resource("poseidon", name):
            params = PoseidonParams.from_dict(
                resource_manager.load_poseidon_params(name)
            )
        else:
            params = generate_params(t)
        _REGISTRY[t] = params
    return _REGISTRY[t]


def _sbox(x: int, alpha: int) -> int:
    if alpha == 5:
        x2 = x * x % _P
        return x2 * x2 % _P * x % _P
    return pow(x, alpha, _P)


def _mix(state: List[int], mds: List[List[int]]) -> List[int]:
    return [sum(m * s for m, s in zip(row, state)) % _P for row in mds]


def permute(state: Sequence[int], params: PoseidonParams) -> List[int]:
    """Full/partial/full round schedule of the Poseidon permutation."""
    if len(state) != params.t:
        raise ValueError(f"state length {len(state)} != t={params.t}")

    x = [int(v) % _P for v in state]
    half = params.R_F // 2
    rounds = params.R_F + params.R_P

    for r in range(rounds):
        x = [(v + c) % _P for v, c in zip(x, params.rc[r])]
        if r < half or r >= half + params.R_P:
            x = [_sbox(v, params.alpha) for v in x]
        else:
            x[0] = _sbox(x[0], params.alpha)
        x = _mix(x, params.mds)

    return x


def poseidon(inputs: Sequence[FieldLike]) -> int:
    """Poseidon digest of 1..4 field elements."""
    if not inputs:
        raise ValueError("poseidon needs at least one input")
    params = get_params(len(inputs) + 1)
    state = [0] + [to_field_int(v) for v in inputs]
    return permute(state, params)[0]


def hash2(a: FieldLike, b: FieldLike) -> int:
    return poseidon([a, b])


def hash3(a: FieldLike, b: FieldLike, c: FieldLike) -> int:
    return poseidon([a, b, c])
