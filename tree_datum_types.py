"""
Tree Staking Datum Types - Shared Data Structures for All Validators

This file contains the canonical datum definitions used across the staking
ledger, the reward inventory and the merkle claim ledger. All validators
MUST import these types to ensure compatibility.

Persisted state is one LedgerState datum owned by the staking pool:
- LedgerConfigDatum: every deployment-specific setting, read at call time
- stakes: one StakeDatum per (tree contract, tree id), keyed by stake_key()
- carry_over: per-user rewards owed but not yet disbursed
- InventoryDatum: the FIFO package queue of reward tokens
- MerkleClaimDatum: roots and claim receipts for both merkle namespaces

A stake is a tagged variant. CONSTR_ID tells which state the tree is in;
fields only exist in the states where they mean something.
"""

from opshin.prelude import *
from hashlib import sha256
from typing import Any


# =============================================================================
# CONFIG DATUM
# =============================================================================

@dataclass
class LedgerConfigDatum(PlutusData):
    """
    Deployment configuration - stored in the ledger state.

    Fields:
        price_feed: Address of the sqrt-price feed (28 bytes)
        deposit_token: Address of the collateral token (28 bytes)
        reward_token: Address of the multi-id reward token (28 bytes)
        fee_receiver: Receives exit fees on unlock (28 bytes)
        access_registry: Role store consulted by every privileged call
        standard_plot: Plot contract paying the standard tier
        rare_plot: Plot contract paying the rare tier
        premium_plot: Plot contract paying the premium tier
        collateral_target: Fiat value that must be locked per tree (18 decimals)
        max_ids: Max distinct inventory entries touched per disbursement
    """
    CONSTR_ID = 0
    price_feed: bytes
    deposit_token: bytes
    reward_token: bytes
    fee_receiver: bytes
    access_registry: bytes
    standard_plot: bytes
    rare_plot: bytes
    premium_plot: bytes
    collateral_target: int
    max_ids: int


# =============================================================================
# STAKE DATUM (tagged variant)
# =============================================================================

@dataclass
class IdleStake(PlutusData):
    """
    Tree with no collateral locked.

    staking_time survives unlock so a relock keeps the original fee schedule.
    0 means the tree was never locked.
    """
    CONSTR_ID = 0
    staking_time: int           # seconds


@dataclass
class LockedStake(PlutusData):
    """Tree with collateral locked but not planted in a plot."""
    CONSTR_ID = 1
    owner: bytes                # 28 bytes
    locked_amount: int          # deposit token units
    staking_time: int           # first lock, sticky


@dataclass
class StakedStake(PlutusData):
    """
    Tree planted in a plot and accruing rewards.

    Fields:
        owner: Recorded owner at stake time (28 bytes)
        locked_amount: Collateral held for this tree
        staking_time: First lock timestamp (drives the exit fee tier)
        last_claim_time: Accrual start for the next claim
        remaining_reward: Owed but undisbursed reward from earlier claims
        plot_id: Slot inside the plot contract
        plot_address: Plot contract (decides the reward tier)
    """
    CONSTR_ID = 2
    owner: bytes
    locked_amount: int
    staking_time: int
    last_claim_time: int
    remaining_reward: int
    plot_id: int
    plot_address: bytes


StakeDatum = Union[IdleStake, LockedStake, StakedStake]


# =============================================================================
# INVENTORY DATUM
# =============================================================================

@dataclass
class Package(PlutusData):
    """
    One deposited batch of reward tokens.

    ids and amounts are parallel. Entries below cursor are spent.
    """
    CONSTR_ID = 0
    ids: List[int]
    amounts: List[int]
    cursor: int


@dataclass
class InventoryDatum(PlutusData):
    """
    FIFO reward inventory.

    Fields:
        packages: Append-only package queue
        total_available: Sum of all unspent entry balances
        oldest_non_empty: No package below this index has an unspent entry
    """
    CONSTR_ID = 0
    packages: List[Package]
    total_available: int
    oldest_non_empty: int


# =============================================================================
# MERKLE CLAIM DATUM
# =============================================================================

@dataclass
class MerkleClaimDatum(PlutusData):
    """
    Merkle roots and receipts. Keys are leaf hashes (32 bytes).

    *_claimed holds fully satisfied keys (value 1). *_remaining holds keys
    that were only partly paid, mapped to what is still owed.
    """
    CONSTR_ID = 0
    tree_reward_root: bytes
    staking_root: bytes
    tree_reward_claimed: Dict[bytes, int]
    tree_reward_remaining: Dict[bytes, int]
    staking_claimed: Dict[bytes, int]
    staking_remaining: Dict[bytes, int]


# =============================================================================
# LEDGER STATE
# =============================================================================

@dataclass
class LedgerState(PlutusData):
    """Everything the staking pool persists."""
    CONSTR_ID = 0
    config: LedgerConfigDatum
    stakes: Dict[bytes, StakeDatum]
    carry_over: Dict[bytes, int]
    inventory: InventoryDatum
    merkle: MerkleClaimDatum


def stake_key(tree_contract: bytes, tree_id: int) -> bytes:
    """Storage key for one tree: sha256(contract || id as 32-byte big endian)."""
    return sha256(tree_contract + tree_id.to_bytes(32, "big")).digest()


def get_stake(state: LedgerState, tree_contract: bytes, tree_id: int) -> StakeDatum:
    key = stake_key(tree_contract, tree_id)
    if key in state.stakes.keys():
        return state.stakes[key]
    return IdleStake(staking_time=0)


def put_stake(state: LedgerState, tree_contract: bytes, tree_id: int, stake: StakeDatum) -> None:
    state.stakes[stake_key(tree_contract, tree_id)] = stake


def empty_ledger_state(config: LedgerConfigDatum) -> LedgerState:
    return LedgerState(
        config=config,
        stakes={},
        carry_over={},
        inventory=InventoryDatum(packages=[], total_available=0, oldest_non_empty=0),
        merkle=MerkleClaimDatum(
            tree_reward_root=b"", staking_root=b"",
            tree_reward_claimed={}, tree_reward_remaining={},
            staking_claimed={}, staking_remaining={},
        ),
    )


# =============================================================================
# EVENTS
# =============================================================================

@dataclass
class Locked(PlutusData):
    CONSTR_ID = 0
    owner: bytes
    tree_contract: bytes
    tree_id: int
    added: int                  # deposit tokens pulled by this call
    locked_amount: int
    timestamp: int


@dataclass
class Unlocked(PlutusData):
    CONSTR_ID = 1
    owner: bytes
    tree_contract: bytes
    tree_id: int
    returned: int
    fee: int
    timestamp: int


@dataclass
class TreeStaked(PlutusData):
    CONSTR_ID = 2
    owner: bytes
    tree_contract: bytes
    tree_id: int
    plot_id: int
    plot_address: bytes
    timestamp: int


@dataclass
class TreeUnstaked(PlutusData):
    CONSTR_ID = 3
    owner: bytes
    tree_contract: bytes
    tree_id: int
    requested: int
    claimed: int
    timestamp: int


@dataclass
class RewardClaimed(PlutusData):
    CONSTR_ID = 4
    owner: bytes
    tree_contract: bytes
    tree_id: int
    amount: int
    timestamp: int


@dataclass
class RewardPartiallyClaimed(PlutusData):
    CONSTR_ID = 5
    owner: bytes
    tree_contract: bytes
    tree_id: int
    requested: int
    claimed: int
    timestamp: int


@dataclass
class CarryOverClaimed(PlutusData):
    CONSTR_ID = 6
    owner: bytes
    requested: int
    claimed: int
    timestamp: int


@dataclass
class PackageDeposited(PlutusData):
    CONSTR_ID = 7
    manager: bytes
    index: int
    total: int
    timestamp: int


@dataclass
class BatchDisbursed(PlutusData):
    CONSTR_ID = 8
    recipient: bytes
    ids: List[int]
    amounts: List[int]
    total: int
    timestamp: int


@dataclass
class MerkleClaimed(PlutusData):
    CONSTR_ID = 9
    claimant: bytes
    namespace: int
    key: bytes
    claimed: int
    timestamp: int


@dataclass
class MerkleClaimPartial(PlutusData):
    CONSTR_ID = 10
    claimant: bytes
    namespace: int
    key: bytes
    claimed: int
    remaining: int
    timestamp: int


@dataclass
class ConfigUpdated(PlutusData):
    CONSTR_ID = 11
    admin: bytes
    field: bytes
    value: bytes
    timestamp: int


@dataclass
class RoleChanged(PlutusData):
    CONSTR_ID = 12
    admin: bytes
    role: bytes
    account: bytes
    granted: int                # 1 = granted, 0 = revoked
    timestamp: int


@dataclass
class InventoryOverride(PlutusData):
    CONSTR_ID = 13
    manager: bytes
    field: bytes
    value: int
    timestamp: int


# =============================================================================
# CALL CONTEXT (off-chain, not serialised)
# =============================================================================

@dataclass
class CallContext:
    """
    Everything a validator sees for one call.

    policy(account, role) -> bool is the injected permission check.
    Validators append emitted events to events; the host commits them.
    """
    caller: bytes
    now: int
    state: LedgerState
    chain: Any
    pool: bytes
    policy: Any
    events: List[PlutusData]
