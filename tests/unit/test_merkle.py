"""
Unit tests for the eligibility Merkle tree helpers.
"""

import pytest

from zkdao_toolkit.circuit import merkle
from zkdao_toolkit.circuit.poseidon import hash2


class TestMerkleTree:
    def test_root_of_two_leaves(self):
        tree = merkle.MerkleTree([5, 7], depth=1)
        assert tree.root == hash2(5, 7)

    def test_padding_with_empty_leaves(self):
        tree = merkle.MerkleTree([5], depth=2)
        assert tree.root == hash2(hash2(5, merkle.EMPTY_LEAF), hash2(0, 0))

    def test_capacity_enforced(self):
        with pytest.raises(ValueError):
            merkle.MerkleTree([1, 2, 3], depth=1)

    def test_every_leaf_proof_verifies(self):
        leaves = [11, 22, 33, 44, 55]
        tree = merkle.MerkleTree(leaves, depth=3)
        for index, leaf in enumerate(leaves):
            path = tree.proof(index)
            assert len(path) == 3
            assert merkle.verify(leaf, path, index, tree.root)

    def test_proof_index_out_of_range(self):
        tree = merkle.MerkleTree([1, 2], depth=1)
        with pytest.raises(IndexError):
            tree.proof(2)


class TestVerify:
    @pytest.fixture
    def tree(self):
        return merkle.MerkleTree([10, 20, 30, 40], depth=2)

    def test_wrong_index_fails(self, tree):
        assert not merkle.verify(20, tree.proof(1), 0, tree.root)

    def test_tampered_sibling_fails(self, tree):
        path = tree.proof(2)
        path[0] += 1
        assert not merkle.verify(30, path, 2, tree.root)

    def test_index_larger_than_path_fails(self, tree):
        assert not merkle.verify(10, tree.proof(0), 4, tree.root)

    def test_compute_root_rejects_bad_index(self, tree):
        with pytest.raises(ValueError):
            merkle.compute_root(10, tree.proof(0), -1)


def test_eligibility_tree_commits_to_voter_data(eligibility):
    voter = eligibility.voters[0]
    proof = eligibility.proof_for(0)
    expected_leaf = merkle.voter_leaf(
        int(voter.address, 16),
        voter.weight,
        merkle.voter_nullifier(voter.secret, voter.weight),
    )
    assert proof.leaf == expected_leaf
    assert proof.path_reaches_root()
    assert proof.path_length_matches(4)
    assert not proof.path_length_matches(5)
