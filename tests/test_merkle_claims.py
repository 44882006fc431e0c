import pytest

from merkle_claim_validator import ClaimStakingReward, ClaimTreeReward, SetMerkleRoot
from merkle_verifier import merkle_proof, merkle_root, staking_leaf, tree_reward_leaf
from tree_contract_config import STAKING_ROOT, TREE_REWARD_ROOT
from tree_datum_types import ConfigUpdated, MerkleClaimed, MerkleClaimPartial


@pytest.fixture
def staking_drop(env):
    """A staking root paying alice 100 and bob 40, plus filler leaves."""
    allocations = [(env.alice, 100), (env.bob, 40), (b"\x01" * 28, 7), (b"\x02" * 28, 9), (b"\x03" * 28, 11)]
    leaves = [staking_leaf(who, amount) for who, amount in allocations]
    env.pool.submit(env.admin, SetMerkleRoot(namespace=STAKING_ROOT, root=merkle_root(leaves)))
    return leaves


def test_staking_claim_once(env, deposit_package, staking_drop):
    deposit_package([1], [1000])
    proof = merkle_proof(staking_drop, 0)

    events = env.pool.submit(env.alice, ClaimStakingReward(amount=100, proof=proof))

    assert env.reward.balance_of(env.alice, 1) == 100
    assert events[-1] == MerkleClaimed(
        claimant=env.alice, namespace=STAKING_ROOT, key=staking_drop[0], claimed=100, timestamp=env.chain.now
    )
    with pytest.raises(AssertionError, match="Already claimed"):
        env.pool.submit(env.alice, ClaimStakingReward(amount=100, proof=proof))


def test_staking_claim_rejects_wrong_amount_or_claimant(env, deposit_package, staking_drop):
    deposit_package([1], [1000])
    with pytest.raises(AssertionError, match="Invalid proof"):
        env.pool.submit(env.alice, ClaimStakingReward(amount=101, proof=merkle_proof(staking_drop, 0)))
    with pytest.raises(AssertionError, match="Invalid proof"):
        env.pool.submit(env.bob, ClaimStakingReward(amount=100, proof=merkle_proof(staking_drop, 0)))
    with pytest.raises(AssertionError, match="Amount must be positive"):
        env.pool.submit(env.alice, ClaimStakingReward(amount=0, proof=[]))
    assert env.reward.balance_of(env.alice, 1) == 0


def test_claim_without_root(env):
    with pytest.raises(AssertionError, match="Merkle root not set"):
        env.pool.submit(env.alice, ClaimStakingReward(amount=1, proof=[]))
    tree_id = env.trees.mint(env.alice)
    with pytest.raises(AssertionError, match="Merkle root not set"):
        env.pool.submit(env.alice, ClaimTreeReward(site=env.trees.address, tree_id=tree_id, amount=1, proof=[]))


def test_partial_claim_keeps_remainder(env, deposit_package, staking_drop):
    deposit_package([1], [30])
    proof = merkle_proof(staking_drop, 0)

    events = env.pool.submit(env.alice, ClaimStakingReward(amount=100, proof=proof))
    assert events[-1] == MerkleClaimPartial(
        claimant=env.alice, namespace=STAKING_ROOT, key=staking_drop[0],
        claimed=30, remaining=70, timestamp=env.chain.now,
    )
    assert env.pool.state.merkle.staking_remaining[staking_drop[0]] == 70

    # Nothing left in inventory: remainder unchanged
    env.pool.submit(env.alice, ClaimStakingReward(amount=100, proof=proof))
    assert env.pool.state.merkle.staking_remaining[staking_drop[0]] == 70

    deposit_package([2], [500])
    events = env.pool.submit(env.alice, ClaimStakingReward(amount=100, proof=proof))
    assert events[-1].claimed == 70
    assert staking_drop[0] in env.pool.state.merkle.staking_claimed
    assert staking_drop[0] not in env.pool.state.merkle.staking_remaining
    assert env.reward.balance_of(env.alice, 1) + env.reward.balance_of(env.alice, 2) == 100

    with pytest.raises(AssertionError, match="Already claimed"):
        env.pool.submit(env.alice, ClaimStakingReward(amount=100, proof=proof))


def test_tree_reward_paid_to_tree_owner(env, deposit_package):
    deposit_package([1], [1000])
    first = env.trees.mint(env.alice)
    second = env.trees.mint(env.bob)
    leaves = [
        tree_reward_leaf(env.trees.address, first, 25),
        tree_reward_leaf(env.trees.address, second, 50),
    ]
    env.pool.submit(env.admin, SetMerkleRoot(namespace=TREE_REWARD_ROOT, root=merkle_root(leaves)))

    with pytest.raises(AssertionError, match="Not tree owner"):
        env.pool.submit(env.alice, ClaimTreeReward(
            site=env.trees.address, tree_id=second, amount=50, proof=merkle_proof(leaves, 1)
        ))

    env.pool.submit(env.bob, ClaimTreeReward(
        site=env.trees.address, tree_id=second, amount=50, proof=merkle_proof(leaves, 1)
    ))
    assert env.reward.balance_of(env.bob, 1) == 50

    # The receipt follows the tree, not the holder
    env.trees.transfer_from(env.bob, env.bob, env.alice, second)
    with pytest.raises(AssertionError, match="Already claimed"):
        env.pool.submit(env.alice, ClaimTreeReward(
            site=env.trees.address, tree_id=second, amount=50, proof=merkle_proof(leaves, 1)
        ))


def test_namespaces_are_independent(env, deposit_package, staking_drop):
    deposit_package([1], [1000])
    env.pool.submit(env.alice, ClaimStakingReward(amount=100, proof=merkle_proof(staking_drop, 0)))

    merkle = env.pool.state.merkle
    assert len(merkle.staking_claimed) == 1
    assert merkle.tree_reward_claimed == {}

    # Publishing the staking leaves as the tree reward root still finds no staking receipt there
    env.pool.submit(env.admin, SetMerkleRoot(namespace=TREE_REWARD_ROOT, root=merkle_root(staking_drop)))
    assert env.pool.state.merkle.tree_reward_claimed == {}
    assert staking_drop[0] in env.pool.state.merkle.staking_claimed


def test_set_merkle_root_rules(env):
    root = b"\x11" * 32
    with pytest.raises(AssertionError, match="Merkle manager role required"):
        env.pool.submit(env.alice, SetMerkleRoot(namespace=STAKING_ROOT, root=root))
    with pytest.raises(AssertionError, match="Root must be 32 bytes"):
        env.pool.submit(env.admin, SetMerkleRoot(namespace=STAKING_ROOT, root=b"\x11" * 31))
    with pytest.raises(AssertionError, match="Unknown merkle namespace"):
        env.pool.submit(env.admin, SetMerkleRoot(namespace=7, root=root))

    events = env.pool.submit(env.admin, SetMerkleRoot(namespace=TREE_REWARD_ROOT, root=root))
    assert events == [ConfigUpdated(admin=env.admin, field=b"tree_reward_root", value=root, timestamp=env.chain.now)]
    assert env.pool.state.merkle.tree_reward_root == root
    assert env.pool.state.merkle.staking_root == b""

    env.pool.submit(env.admin, SetMerkleRoot(namespace=TREE_REWARD_ROOT, root=b""))
    assert env.pool.state.merkle.tree_reward_root == b""
