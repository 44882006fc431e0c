"""
Merkle Claim Validator - one-time reward claims against published roots.

Two independent namespaces, each with its own root and receipts:
- ClaimTreeReward: leaf (site, tree id, amount), paid to the tree's owner
- ClaimStakingReward: leaf (claimant, amount), paid to the claimant

A claim is paid through the reward inventory. If the inventory falls
short, the leaf stays claimable for exactly the unpaid remainder; once
fully paid the leaf can never be claimed again.
"""
from opshin.prelude import *

from tree_contract_config import ROLE_MERKLE_MANAGER, STAKING_ROOT, TREE_REWARD_ROOT
from tree_datum_types import CallContext, MerkleClaimed, MerkleClaimPartial
from merkle_verifier import staking_leaf, tree_reward_leaf, verify_proof
from reward_inventory_validator import allocate
from ledger_config_validator import config_updated, has_role


# =============================================================================
# REDEEMERS
# =============================================================================

@dataclass
class ClaimTreeReward(PlutusData):
    """Claim a per-tree reward published for a site."""
    CONSTR_ID = 0
    site: bytes
    tree_id: int
    amount: int
    proof: List[bytes]


@dataclass
class ClaimStakingReward(PlutusData):
    """Claim a pool-level staking reward."""
    CONSTR_ID = 1
    amount: int
    proof: List[bytes]


@dataclass
class SetMerkleRoot(PlutusData):
    """Publish or clear (root = b"") a namespace root (merkle manager only)."""
    CONSTR_ID = 2
    namespace: int
    root: bytes


MerkleRedeemer = Union[ClaimTreeReward, ClaimStakingReward, SetMerkleRoot]


# =============================================================================
# HELPERS
# =============================================================================

def settle_claim(
    ctx: CallContext,
    claimed: Dict[bytes, int],
    remaining: Dict[bytes, int],
    namespace: int,
    key: bytes,
    amount: int,
    recipient: bytes,
) -> int:
    """Pay what is owed on key; record a receipt or the shortfall. Returns amount paid."""
    if key in remaining.keys():
        owed = remaining[key]
    else:
        owed = amount

    paid = allocate(ctx, recipient, owed)

    if paid == owed:
        claimed[key] = 1
        if key in remaining.keys():
            del remaining[key]
        ctx.events.append(MerkleClaimed(
            claimant=recipient, namespace=namespace, key=key, claimed=paid, timestamp=ctx.now
        ))
    else:
        remaining[key] = owed - paid
        ctx.events.append(MerkleClaimPartial(
            claimant=recipient, namespace=namespace, key=key, claimed=paid,
            remaining=owed - paid, timestamp=ctx.now,
        ))
    return paid


# =============================================================================
# VALIDATOR
# =============================================================================

def validator(ctx: CallContext, redeemer: MerkleRedeemer) -> None:
    merkle = ctx.state.merkle

    # ==========================================================================
    # CLAIM TREE REWARD
    # ==========================================================================
    if isinstance(redeemer, ClaimTreeReward):
        assert merkle.tree_reward_root != b"", "Merkle root not set"
        assert redeemer.amount > 0, "Amount must be positive"
        owner = ctx.chain.at(redeemer.site).owner_of(redeemer.tree_id)
        assert owner == ctx.caller, "Not tree owner"

        key = tree_reward_leaf(redeemer.site, redeemer.tree_id, redeemer.amount)
        assert key not in merkle.tree_reward_claimed.keys(), "Already claimed"
        assert verify_proof(redeemer.proof, merkle.tree_reward_root, key), "Invalid proof"

        settle_claim(
            ctx, merkle.tree_reward_claimed, merkle.tree_reward_remaining,
            TREE_REWARD_ROOT, key, redeemer.amount, owner,
        )

    # ==========================================================================
    # CLAIM STAKING REWARD
    # ==========================================================================
    elif isinstance(redeemer, ClaimStakingReward):
        assert merkle.staking_root != b"", "Merkle root not set"
        assert redeemer.amount > 0, "Amount must be positive"

        key = staking_leaf(ctx.caller, redeemer.amount)
        assert key not in merkle.staking_claimed.keys(), "Already claimed"
        assert verify_proof(redeemer.proof, merkle.staking_root, key), "Invalid proof"

        settle_claim(
            ctx, merkle.staking_claimed, merkle.staking_remaining,
            STAKING_ROOT, key, redeemer.amount, ctx.caller,
        )

    # ==========================================================================
    # SET MERKLE ROOT
    # ==========================================================================
    elif isinstance(redeemer, SetMerkleRoot):
        assert has_role(ctx, ROLE_MERKLE_MANAGER), "Merkle manager role required"
        assert len(redeemer.root) == 0 or len(redeemer.root) == 32, "Root must be 32 bytes"
        if redeemer.namespace == TREE_REWARD_ROOT:
            merkle.tree_reward_root = redeemer.root
            ctx.events.append(config_updated(ctx, b"tree_reward_root", redeemer.root))
        elif redeemer.namespace == STAKING_ROOT:
            merkle.staking_root = redeemer.root
            ctx.events.append(config_updated(ctx, b"staking_root", redeemer.root))
        else:
            assert False, "Unknown merkle namespace"

    else:
        assert False, "Invalid redeemer"
