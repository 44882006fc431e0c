"""
Merkle Verifier - sorted-pair SHA-256 inclusion proofs.

Node hashing: sha256(min(a, b) || max(a, b)). Sorting each pair means a
proof is just the list of sibling hashes, no left/right flags.

Leaf derivations (one per claim namespace):
- tree reward: sha256(sha256(site || tree_id || amount))
- staking:     sha256(sha256(claimant || amount))
Integers are 32-byte big endian. The double hash keeps a leaf from ever
colliding with an inner node.

process_proof / verify_proof are what the claim validator runs.
merkle_root / merkle_proof build trees off-chain (distribution scripts, tests).
"""
from hashlib import sha256
from typing import List


def hash_pair(a: bytes, b: bytes) -> bytes:
    if a <= b:
        return sha256(a + b).digest()
    return sha256(b + a).digest()


def process_proof(proof: List[bytes], leaf: bytes) -> bytes:
    """Recompute the root reached from leaf through the sibling path."""
    computed = leaf
    for sibling in proof:
        computed = hash_pair(computed, sibling)
    return computed


def verify_proof(proof: List[bytes], root: bytes, leaf: bytes) -> bool:
    return process_proof(proof, leaf) == root


def encode_uint(value: int) -> bytes:
    assert value >= 0, "Negative value"
    return value.to_bytes(32, "big")


def tree_reward_leaf(site: bytes, tree_id: int, amount: int) -> bytes:
    inner = sha256(site + encode_uint(tree_id) + encode_uint(amount)).digest()
    return sha256(inner).digest()


def staking_leaf(claimant: bytes, amount: int) -> bytes:
    inner = sha256(claimant + encode_uint(amount)).digest()
    return sha256(inner).digest()


# =============================================================================
# OFF-CHAIN BUILDERS
# =============================================================================

def _next_layer(layer: List[bytes]) -> List[bytes]:
    # An odd node is promoted unchanged
    nxt = []
    for i in range(0, len(layer), 2):
        if i + 1 < len(layer):
            nxt.append(hash_pair(layer[i], layer[i + 1]))
        else:
            nxt.append(layer[i])
    return nxt


def merkle_root(leaves: List[bytes]) -> bytes:
    assert len(leaves) > 0, "No leaves"
    layer = list(leaves)
    while len(layer) > 1:
        layer = _next_layer(layer)
    return layer[0]


def merkle_proof(leaves: List[bytes], index: int) -> List[bytes]:
    """Sibling path for leaves[index]."""
    assert 0 <= index < len(leaves), "Leaf index out of range"
    proof = []
    layer = list(leaves)
    while len(layer) > 1:
        sibling = index ^ 1
        if sibling < len(layer):
            proof.append(layer[sibling])
        layer = _next_layer(layer)
        index //= 2
    return proof
