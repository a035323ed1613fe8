"""
Binary Poseidon Merkle tree of eligible voters.

Pure functions only: trees are built off the vote path (by the eligibility
service or in tests), and the vote path only ever calls `compute_root` /
`verify`. Bit i of the leaf index says whether the running node is the right
child (1) or the left child (0) at level i.
"""

from typing import List, Sequence, Tuple

from zkdao_toolkit.circuit.field import FieldLike, address_to_field, to_field_int
from zkdao_toolkit.circuit.poseidon import hash2, hash3

EMPTY_LEAF = 0


def voter_leaf(voter: FieldLike, weight: FieldLike, nullifier: FieldLike) -> int:
    """Leaf committing to (address, weight, nullifier)."""
    return hash3(voter, weight, nullifier)


def voter_nullifier(secret: FieldLike, weight: FieldLike) -> int:
    return hash2(secret, weight)


class MerkleTree:
    """Fixed-depth tree padded with EMPTY_LEAF."""

    def __init__(self, leaves: Sequence[FieldLike], depth: int):
        if depth < 1:
            raise ValueError("depth must be >= 1")
        capacity = 1 << depth
        if len(leaves) > capacity:
            raise ValueError(f"{len(leaves)} leaves exceed capacity {capacity}")

        self.depth = depth
        level = [to_field_int(leaf) for leaf in leaves]
        level += [EMPTY_LEAF] * (capacity - len(level))

        self._levels: List[List[int]] = [level]
        for _ in range(depth):
            level = [
                hash2(level[i], level[i + 1]) for i in range(0, len(level), 2)
            ]
            self._levels.append(level)

    @property
    def root(self) -> int:
        return self._levels[-1][0]

    def leaf(self, index: int) -> int:
        return self._levels[0][index]

    def proof(self, index: int) -> List[int]:
        """Sibling path from leaf `index` up to (excluding) the root."""
        if not 0 <= index < len(self._levels[0]):
            raise IndexError(f"leaf index {index} out of range")
        path = []
        for level in self._levels[:-1]:
            path.append(level[index ^ 1])
            index >>= 1
        return path


def compute_root(leaf: FieldLike, path: Sequence[FieldLike], index: int) -> int:
    """Hash `leaf` up `path` following the bits of `index`."""
    if index < 0 or index >= (1 << len(path)):
        raise ValueError(f"index {index} does not fit a path of length {len(path)}")
    node = to_field_int(leaf)
    for level, sibling in enumerate(path):
        sibling = to_field_int(sibling)
        if (index >> level) & 1:
            node = hash2(sibling, node)
        else:
            node = hash2(node, sibling)
    return node


def verify(
    leaf: FieldLike, path: Sequence[FieldLike], index: int, root: FieldLike
) -> bool:
    try:
        return compute_root(leaf, path, index) == to_field_int(root)
    except ValueError:
        return False


def build_eligibility_tree(
    voters: Sequence[Tuple[str, int, FieldLike]], depth: int
) -> MerkleTree:
    """Tree over (address, weight, secret) triples, in the given order."""
    leaves = []
    for address, weight, secret in voters:
        nullifier = voter_nullifier(secret, weight)
        leaves.append(voter_leaf(address_to_field(address), weight, nullifier))
    return MerkleTree(leaves, depth)
