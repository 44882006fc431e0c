from merkle_verifier import hash_pair, merkle_proof, merkle_root, process_proof, staking_leaf, verify_proof


def test_hash_pair_is_order_independent():
    a = b"\x01" * 32
    b = b"\x02" * 32
    assert hash_pair(a, b) == hash_pair(b, a)


def test_single_leaf_tree():
    leaf = staking_leaf(b"\xaa" * 28, 5)
    assert merkle_root([leaf]) == leaf
    assert merkle_proof([leaf], 0) == []
    assert verify_proof([], leaf, leaf)


def test_every_leaf_proves_against_root():
    leaves = [staking_leaf(bytes([i]) * 28, i + 1) for i in range(5)]
    root = merkle_root(leaves)
    for index, leaf in enumerate(leaves):
        assert process_proof(merkle_proof(leaves, index), leaf) == root


def test_tampered_proof_fails():
    leaves = [staking_leaf(bytes([i]) * 28, i + 1) for i in range(4)]
    root = merkle_root(leaves)
    proof = merkle_proof(leaves, 2)
    proof[0] = b"\x00" * 32
    assert not verify_proof(proof, root, leaves[2])
    assert not verify_proof(merkle_proof(leaves, 2), root, leaves[1])
