"""
Stake Ledger Validator - per-tree stake lifecycle.

Each tree moves Idle -> Locked -> Staked -> Locked -> Idle:
- Lock: Put up deposit token collateral worth the fiat target
- Unlock: Return collateral minus a tiered exit fee
- StakeTree: Plant a locked tree in a plot (auto-locks first)
- Unstake: Leave the plot, pay accrued reward, optionally unlock
- ClaimReward: Pay accrued reward, carry-over first
Every operation has a *Multiple variant over parallel lists.

Rewards accrue per second at DAILY_RATE scaled by the plot tier and are paid
through the reward inventory. Whatever the inventory cannot cover is kept:
on the tree (claim) or on the owner (unstake, carry-over).

All configuration is read from LedgerConfigDatum at call time.
"""
from opshin.prelude import *

from tree_contract_config import (
    BPS_DENOMINATOR,
    CLAIM_PERIOD,
    DAILY_RATE,
    FEE_FIRST_YEAR_BPS,
    FEE_LONG_TERM_BPS,
    FEE_SECOND_YEAR_BPS,
    PREMIUM_TIER_PCT,
    RARE_TIER_PCT,
    SECONDS_PER_DAY,
    SECONDS_PER_YEAR,
    STANDARD_TIER_PCT,
)
from tree_datum_types import (
    CallContext,
    CarryOverClaimed,
    IdleStake,
    LedgerConfigDatum,
    LedgerState,
    Locked,
    LockedStake,
    RewardClaimed,
    RewardPartiallyClaimed,
    StakedStake,
    TreeStaked,
    TreeUnstaked,
    Unlocked,
    get_stake,
    put_stake,
)
from price_collateral import required_collateral
from reward_inventory_validator import allocate


# =============================================================================
# REDEEMERS
# =============================================================================

@dataclass
class Lock(PlutusData):
    """Lock collateral against a tree."""
    CONSTR_ID = 0
    tree_contract: bytes
    tree_id: int


@dataclass
class Unlock(PlutusData):
    """Release collateral (exit fee applies)."""
    CONSTR_ID = 1
    tree_contract: bytes
    tree_id: int


@dataclass
class StakeTree(PlutusData):
    """Plant a tree in a plot."""
    CONSTR_ID = 2
    tree_contract: bytes
    tree_id: int
    plot_id: int
    plot_address: bytes


@dataclass
class Unstake(PlutusData):
    """Remove a tree from its plot (auto_unlock: 1 = also unlock)."""
    CONSTR_ID = 3
    tree_contract: bytes
    tree_id: int
    auto_unlock: int


@dataclass
class ClaimReward(PlutusData):
    """Claim accrued reward for a staked tree."""
    CONSTR_ID = 4
    tree_contract: bytes
    tree_id: int


@dataclass
class LockMultiple(PlutusData):
    CONSTR_ID = 5
    tree_contracts: List[bytes]
    tree_ids: List[int]


@dataclass
class UnlockMultiple(PlutusData):
    CONSTR_ID = 6
    tree_contracts: List[bytes]
    tree_ids: List[int]


@dataclass
class StakeMultiple(PlutusData):
    CONSTR_ID = 7
    tree_contracts: List[bytes]
    tree_ids: List[int]
    plot_ids: List[int]
    plot_addresses: List[bytes]


@dataclass
class UnstakeMultiple(PlutusData):
    CONSTR_ID = 8
    tree_contracts: List[bytes]
    tree_ids: List[int]
    auto_unlocks: List[int]


@dataclass
class ClaimMultiple(PlutusData):
    CONSTR_ID = 9
    tree_contracts: List[bytes]
    tree_ids: List[int]


StakeRedeemer = Union[
    Lock, Unlock, StakeTree, Unstake, ClaimReward,
    LockMultiple, UnlockMultiple, StakeMultiple, UnstakeMultiple, ClaimMultiple,
]


# =============================================================================
# HELPERS
# =============================================================================

def tier_pct(config: LedgerConfigDatum, plot_address: bytes) -> int:
    """Reward multiplier (percent) for a plot contract. 0 if unrecognised."""
    if plot_address == b"":
        return 0
    if plot_address == config.premium_plot:
        return PREMIUM_TIER_PCT
    if plot_address == config.rare_plot:
        return RARE_TIER_PCT
    if plot_address == config.standard_plot:
        return STANDARD_TIER_PCT
    return 0


def calculate_pending(last_claim_time: int, current_time: int) -> int:
    """Untiered accrual: (now - last claim) * DAILY_RATE / 86400."""
    return (current_time - last_claim_time) * DAILY_RATE // SECONDS_PER_DAY


def calculate_reward(stake: StakedStake, config: LedgerConfigDatum, current_time: int) -> int:
    """Tier adjusted accrual plus the tree's carried remainder."""
    pending = calculate_pending(stake.last_claim_time, current_time)
    return pending * tier_pct(config, stake.plot_address) // 100 + stake.remaining_reward


def exit_fee_bps(staking_time: int, current_time: int) -> int:
    elapsed = current_time - staking_time
    if elapsed < SECONDS_PER_YEAR:
        return FEE_FIRST_YEAR_BPS
    if elapsed < 2 * SECONDS_PER_YEAR:
        return FEE_SECOND_YEAR_BPS
    return FEE_LONG_TERM_BPS


def calculate_fee(amount: int, fee_bps: int) -> int:
    return (amount * fee_bps) // BPS_DENOMINATOR


def may_act_for(ctx: CallContext, tree_contract: bytes, owner: bytes) -> bool:
    """Recorded owner, the owner's approved operator, or the tree contract (forced exit)."""
    if ctx.caller == owner:
        return True
    if ctx.caller == tree_contract:
        return True
    return ctx.chain.at(tree_contract).is_approved_for_all(owner, ctx.caller)


def pending_reward(state: LedgerState, tree_contract: bytes, tree_id: int, current_time: int) -> int:
    """What a claim on this tree would request now (0 unless staked)."""
    stake = get_stake(state, tree_contract, tree_id)
    if isinstance(stake, StakedStake):
        return calculate_reward(stake, state.config, current_time)
    return 0


def top_up_collateral(ctx: CallContext, locked_amount: int) -> int:
    """Pull the deficit to the current collateral target from the caller. Returns the amount pulled."""
    config = ctx.state.config
    target = required_collateral(ctx.chain, config.price_feed, config.collateral_target)
    if locked_amount >= target:
        return 0
    deficit = target - locked_amount
    deposit_token = ctx.chain.at(config.deposit_token)
    assert deposit_token.transfer_from(ctx.pool, ctx.caller, ctx.pool, deficit), "Deposit transfer failed"
    return deficit


def assert_same_length(a: list, b: list) -> None:
    assert len(a) > 0, "Empty batch"
    assert len(a) == len(b), "Length mismatch"


# =============================================================================
# TRANSITIONS
# =============================================================================

def lock_tree(ctx: CallContext, tree_contract: bytes, tree_id: int) -> LockedStake:
    stake = get_stake(ctx.state, tree_contract, tree_id)
    assert not isinstance(stake, StakedStake), "Tree already staked"
    assert ctx.chain.at(tree_contract).owner_of(tree_id) == ctx.caller, "Not tree owner"

    if isinstance(stake, LockedStake):
        assert stake.owner == ctx.caller, "Locked by another owner"
        locked_amount = stake.locked_amount
        staking_time = stake.staking_time
    else:
        locked_amount = 0
        # First lock is sticky across unlock/relock
        staking_time = stake.staking_time
        if staking_time == 0:
            staking_time = ctx.now

    added = top_up_collateral(ctx, locked_amount)
    new_stake = LockedStake(owner=ctx.caller, locked_amount=locked_amount + added, staking_time=staking_time)
    put_stake(ctx.state, tree_contract, tree_id, new_stake)

    ctx.events.append(Locked(
        owner=ctx.caller, tree_contract=tree_contract, tree_id=tree_id,
        added=added, locked_amount=new_stake.locked_amount, timestamp=ctx.now,
    ))
    return new_stake


def unlock_tree(ctx: CallContext, tree_contract: bytes, tree_id: int) -> None:
    stake = get_stake(ctx.state, tree_contract, tree_id)
    assert not isinstance(stake, StakedStake), "Tree is staked"
    assert isinstance(stake, LockedStake), "Tree not locked"
    assert may_act_for(ctx, tree_contract, stake.owner), "Not tree owner"

    config = ctx.state.config
    fee = calculate_fee(stake.locked_amount, exit_fee_bps(stake.staking_time, ctx.now))
    returned = stake.locked_amount - fee

    deposit_token = ctx.chain.at(config.deposit_token)
    if fee > 0:
        assert config.fee_receiver != b"", "Fee receiver not set"
        assert deposit_token.transfer(ctx.pool, config.fee_receiver, fee), "Fee transfer failed"
    if returned > 0:
        assert deposit_token.transfer(ctx.pool, stake.owner, returned), "Collateral transfer failed"

    put_stake(ctx.state, tree_contract, tree_id, IdleStake(staking_time=stake.staking_time))

    ctx.events.append(Unlocked(
        owner=stake.owner, tree_contract=tree_contract, tree_id=tree_id,
        returned=returned, fee=fee, timestamp=ctx.now,
    ))


def stake_tree(ctx: CallContext, tree_contract: bytes, tree_id: int, plot_id: int, plot_address: bytes) -> None:
    stake = get_stake(ctx.state, tree_contract, tree_id)
    assert not isinstance(stake, StakedStake), "Tree already staked"
    assert ctx.chain.at(tree_contract).owner_of(tree_id) == ctx.caller, "Not tree owner"
    assert tier_pct(ctx.state.config, plot_address) > 0, "Unknown plot tier"

    if not isinstance(stake, LockedStake):
        stake = lock_tree(ctx, tree_contract, tree_id)
    assert stake.owner == ctx.caller, "Locked by another owner"

    # Price may have moved since the lock
    added = top_up_collateral(ctx, stake.locked_amount)
    if added > 0:
        ctx.events.append(Locked(
            owner=ctx.caller, tree_contract=tree_contract, tree_id=tree_id,
            added=added, locked_amount=stake.locked_amount + added, timestamp=ctx.now,
        ))

    plot = ctx.chain.at(plot_address)
    assert plot.is_available(plot_id), "Plot at capacity"
    assert plot.owner_of(plot_id) == ctx.caller, "Not plot owner"
    plot.increment_capacity(ctx.pool, plot_id)

    put_stake(ctx.state, tree_contract, tree_id, StakedStake(
        owner=ctx.caller,
        locked_amount=stake.locked_amount + added,
        staking_time=stake.staking_time,
        last_claim_time=ctx.now,
        remaining_reward=0,
        plot_id=plot_id,
        plot_address=plot_address,
    ))

    ctx.events.append(TreeStaked(
        owner=ctx.caller, tree_contract=tree_contract, tree_id=tree_id,
        plot_id=plot_id, plot_address=plot_address, timestamp=ctx.now,
    ))


def unstake_tree(ctx: CallContext, tree_contract: bytes, tree_id: int, auto_unlock: int) -> None:
    assert auto_unlock == 0 or auto_unlock == 1, "auto_unlock must be 0 or 1"
    stake = get_stake(ctx.state, tree_contract, tree_id)
    assert isinstance(stake, StakedStake), "Tree not staked"
    assert may_act_for(ctx, tree_contract, stake.owner), "Not tree owner"

    ctx.chain.at(stake.plot_address).decrement_capacity(ctx.pool, stake.plot_id)

    owed = calculate_reward(stake, ctx.state.config, ctx.now)
    claimed = allocate(ctx, stake.owner, owed)
    if claimed < owed:
        carry = ctx.state.carry_over.get(stake.owner, 0)
        ctx.state.carry_over[stake.owner] = carry + owed - claimed

    put_stake(ctx.state, tree_contract, tree_id, LockedStake(
        owner=stake.owner, locked_amount=stake.locked_amount, staking_time=stake.staking_time
    ))

    ctx.events.append(TreeUnstaked(
        owner=stake.owner, tree_contract=tree_contract, tree_id=tree_id,
        requested=owed, claimed=claimed, timestamp=ctx.now,
    ))

    if auto_unlock == 1:
        unlock_tree(ctx, tree_contract, tree_id)


def claim_tree(ctx: CallContext, tree_contract: bytes, tree_id: int) -> None:
    stake = get_stake(ctx.state, tree_contract, tree_id)
    assert isinstance(stake, StakedStake), "Tree not staked"
    assert may_act_for(ctx, tree_contract, stake.owner), "Not tree owner"

    # Carry-over from earlier unstakes is drained before any new accrual
    carry = ctx.state.carry_over.get(stake.owner, 0)
    if carry > 0:
        claimed = allocate(ctx, stake.owner, carry)
        if claimed == carry:
            del ctx.state.carry_over[stake.owner]
        else:
            ctx.state.carry_over[stake.owner] = carry - claimed
        ctx.events.append(CarryOverClaimed(owner=stake.owner, requested=carry, claimed=claimed, timestamp=ctx.now))
        return

    assert ctx.now - stake.last_claim_time >= CLAIM_PERIOD, "Claim period not elapsed"

    owed = calculate_reward(stake, ctx.state.config, ctx.now)
    claimed = allocate(ctx, stake.owner, owed)

    put_stake(ctx.state, tree_contract, tree_id, StakedStake(
        owner=stake.owner,
        locked_amount=stake.locked_amount,
        staking_time=stake.staking_time,
        last_claim_time=ctx.now,
        remaining_reward=owed - claimed,
        plot_id=stake.plot_id,
        plot_address=stake.plot_address,
    ))

    if claimed == owed:
        ctx.events.append(RewardClaimed(
            owner=stake.owner, tree_contract=tree_contract, tree_id=tree_id, amount=claimed, timestamp=ctx.now,
        ))
    else:
        ctx.events.append(RewardPartiallyClaimed(
            owner=stake.owner, tree_contract=tree_contract, tree_id=tree_id,
            requested=owed, claimed=claimed, timestamp=ctx.now,
        ))


# =============================================================================
# VALIDATOR
# =============================================================================

def validator(ctx: CallContext, redeemer: StakeRedeemer) -> None:
    """
    Stake ledger validator.

    Batch variants run the single-tree transition in order; any failing
    item fails the whole call.
    """
    # ==========================================================================
    # SINGLE TREE
    # ==========================================================================
    if isinstance(redeemer, Lock):
        lock_tree(ctx, redeemer.tree_contract, redeemer.tree_id)

    elif isinstance(redeemer, Unlock):
        unlock_tree(ctx, redeemer.tree_contract, redeemer.tree_id)

    elif isinstance(redeemer, StakeTree):
        stake_tree(ctx, redeemer.tree_contract, redeemer.tree_id, redeemer.plot_id, redeemer.plot_address)

    elif isinstance(redeemer, Unstake):
        unstake_tree(ctx, redeemer.tree_contract, redeemer.tree_id, redeemer.auto_unlock)

    elif isinstance(redeemer, ClaimReward):
        claim_tree(ctx, redeemer.tree_contract, redeemer.tree_id)

    # ==========================================================================
    # BATCHES
    # ==========================================================================
    elif isinstance(redeemer, LockMultiple):
        assert_same_length(redeemer.tree_contracts, redeemer.tree_ids)
        for i in range(len(redeemer.tree_ids)):
            lock_tree(ctx, redeemer.tree_contracts[i], redeemer.tree_ids[i])

    elif isinstance(redeemer, UnlockMultiple):
        assert_same_length(redeemer.tree_contracts, redeemer.tree_ids)
        for i in range(len(redeemer.tree_ids)):
            unlock_tree(ctx, redeemer.tree_contracts[i], redeemer.tree_ids[i])

    elif isinstance(redeemer, StakeMultiple):
        assert_same_length(redeemer.tree_contracts, redeemer.tree_ids)
        assert_same_length(redeemer.tree_ids, redeemer.plot_ids)
        assert_same_length(redeemer.plot_ids, redeemer.plot_addresses)
        for i in range(len(redeemer.tree_ids)):
            stake_tree(
                ctx, redeemer.tree_contracts[i], redeemer.tree_ids[i],
                redeemer.plot_ids[i], redeemer.plot_addresses[i],
            )

    elif isinstance(redeemer, UnstakeMultiple):
        assert_same_length(redeemer.tree_contracts, redeemer.tree_ids)
        assert_same_length(redeemer.tree_ids, redeemer.auto_unlocks)
        for i in range(len(redeemer.tree_ids)):
            unstake_tree(ctx, redeemer.tree_contracts[i], redeemer.tree_ids[i], redeemer.auto_unlocks[i])

    elif isinstance(redeemer, ClaimMultiple):
        assert_same_length(redeemer.tree_contracts, redeemer.tree_ids)
        for i in range(len(redeemer.tree_ids)):
            claim_tree(ctx, redeemer.tree_contracts[i], redeemer.tree_ids[i])

    else:
        assert False, "Invalid redeemer"
