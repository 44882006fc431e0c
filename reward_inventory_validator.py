"""
Reward Inventory Validator - FIFO package queue of reward tokens.

Reward tokens are deposited in packages: parallel (ids, amounts) lists.
Claims are paid from the oldest package forward, entry by entry.

Operations:
- DepositPackage: Take a batch into custody (inventory manager only)
- SetMaxIds: Cap distinct entries touched per disbursement (inventory manager only)
- ForceOldestNonEmpty: Recovery force-advance of the package cursor (inventory manager only)
- ForceTotalAvailable: Recovery override of the running total (inventory manager only)

allocate() is not a redeemer. The stake ledger and the merkle claim ledger
call it to pay out; it returns how much was actually sent, which may be
less than requested.

Allocation is two passes over the same walk:
1. sizing: count touched entries, no writes
2. commit: fill exact-size output lists, spend balances, move cursors
A package that still holds any unspent entry is re-entered on every later
call; only fully drained packages are skipped via oldest_non_empty.
"""
from opshin.prelude import *

from tree_contract_config import ROLE_INVENTORY_MANAGER
from tree_datum_types import (
    BatchDisbursed,
    CallContext,
    InventoryDatum,
    InventoryOverride,
    Package,
    PackageDeposited,
)
from ledger_config_validator import has_role


# =============================================================================
# REDEEMERS
# =============================================================================

@dataclass
class DepositPackage(PlutusData):
    """Add a package of reward tokens to the queue."""
    CONSTR_ID = 0
    ids: List[int]
    amounts: List[int]


@dataclass
class SetMaxIds(PlutusData):
    """Change the per-call entry cap."""
    CONSTR_ID = 1
    max_ids: int


@dataclass
class ForceOldestNonEmpty(PlutusData):
    """Move the oldest non-empty package cursor (recovery only)."""
    CONSTR_ID = 2
    index: int


@dataclass
class ForceTotalAvailable(PlutusData):
    """Overwrite total_available (recovery only)."""
    CONSTR_ID = 3
    amount: int


InventoryRedeemer = Union[DepositPackage, SetMaxIds, ForceOldestNonEmpty, ForceTotalAvailable]


# =============================================================================
# HELPERS
# =============================================================================

def package_remaining(package: Package) -> int:
    total = 0
    for i in range(package.cursor, len(package.amounts)):
        total += package.amounts[i]
    return total


def package_drained(package: Package) -> bool:
    return package.cursor >= len(package.ids)


def package_window(inventory: InventoryDatum, start: int, end: int) -> List[Package]:
    """Copies of packages [start, end)."""
    assert 0 <= start, "Invalid window start"
    assert start <= end, "Invalid window"
    assert end <= len(inventory.packages), "Window out of range"
    window = []
    for package in inventory.packages[start:end]:
        window.append(Package(ids=list(package.ids), amounts=list(package.amounts), cursor=package.cursor))
    return window


def walk_inventory(
    inventory: InventoryDatum,
    requested: int,
    max_ids: int,
    commit: bool,
    out_ids: List[int],
    out_amounts: List[int],
) -> int:
    """
    Walk packages from oldest_non_empty, spending up to requested.

    Returns the number of entries touched. Zero balance entries are skipped
    without counting. With commit=False nothing is written, with commit=True
    out_ids/out_amounts (pre-sized from a sizing walk) are filled, balances
    are spent and each package cursor is written back once when the walk
    leaves it. Both modes visit entries in the same order.
    """
    remaining = requested
    slots = 0
    p = inventory.oldest_non_empty
    while p < len(inventory.packages) and remaining > 0 and slots < max_ids:
        package = inventory.packages[p]
        i = package.cursor
        while i < len(package.ids) and remaining > 0 and slots < max_ids:
            balance = package.amounts[i]
            if balance == 0:
                i += 1
                continue
            take = balance if balance < remaining else remaining
            if commit:
                out_ids[slots] = package.ids[i]
                out_amounts[slots] = take
                package.amounts[i] = balance - take
            remaining -= take
            slots += 1
            if take == balance:
                i += 1
        if commit:
            package.cursor = i
        p += 1
    return slots


def advance_oldest_non_empty(inventory: InventoryDatum) -> None:
    p = inventory.oldest_non_empty
    while p < len(inventory.packages) and package_drained(inventory.packages[p]):
        p += 1
    inventory.oldest_non_empty = p


def allocate(ctx: CallContext, recipient: bytes, requested: int) -> int:
    """
    Pay up to requested reward tokens to recipient from the package queue.

    Returns the amount actually transferred. Falling short is not an error;
    the caller persists the shortfall.
    """
    inventory = ctx.state.inventory
    max_ids = ctx.state.config.max_ids
    assert requested >= 0, "Negative request"

    # Pass 1: size the output
    slots = walk_inventory(inventory, requested, max_ids, False, [], [])
    if slots == 0:
        ctx.events.append(BatchDisbursed(recipient=recipient, ids=[], amounts=[], total=0, timestamp=ctx.now))
        return 0

    # Pass 2: commit into exact-size lists
    out_ids = [0] * slots
    out_amounts = [0] * slots
    committed = walk_inventory(inventory, requested, max_ids, True, out_ids, out_amounts)
    assert committed == slots, "Inventory walk diverged"

    total = 0
    for amount in out_amounts:
        total += amount

    reward_token = ctx.chain.at(ctx.state.config.reward_token)
    reward_token.safe_batch_transfer_from(ctx.pool, ctx.pool, recipient, out_ids, out_amounts)

    inventory.total_available -= total
    advance_oldest_non_empty(inventory)

    ctx.events.append(BatchDisbursed(
        recipient=recipient, ids=out_ids, amounts=out_amounts, total=total, timestamp=ctx.now
    ))
    return total


# =============================================================================
# VALIDATOR
# =============================================================================

def validator(ctx: CallContext, redeemer: InventoryRedeemer) -> None:
    """
    Inventory validator - every operation is inventory manager only.
    """
    assert has_role(ctx, ROLE_INVENTORY_MANAGER), "Inventory manager role required"
    inventory = ctx.state.inventory

    # ==========================================================================
    # DEPOSIT PACKAGE
    # ==========================================================================
    if isinstance(redeemer, DepositPackage):
        assert len(redeemer.ids) > 0, "Empty package"
        assert len(redeemer.ids) == len(redeemer.amounts), "Length mismatch"

        total = 0
        for amount in redeemer.amounts:
            assert amount > 0, "Amount must be positive"
            total += amount

        # Pull the batch into custody (manager must have approved the pool)
        reward_token = ctx.chain.at(ctx.state.config.reward_token)
        reward_token.safe_batch_transfer_from(ctx.pool, ctx.caller, ctx.pool, redeemer.ids, redeemer.amounts)

        inventory.packages.append(Package(ids=list(redeemer.ids), amounts=list(redeemer.amounts), cursor=0))
        inventory.total_available += total

        ctx.events.append(PackageDeposited(
            manager=ctx.caller, index=len(inventory.packages) - 1, total=total, timestamp=ctx.now
        ))

    # ==========================================================================
    # SET MAX IDS
    # ==========================================================================
    elif isinstance(redeemer, SetMaxIds):
        assert redeemer.max_ids > 0, "Max ids must be positive"
        ctx.state.config.max_ids = redeemer.max_ids
        ctx.events.append(InventoryOverride(
            manager=ctx.caller, field=b"max_ids", value=redeemer.max_ids, timestamp=ctx.now
        ))

    # ==========================================================================
    # FORCE OLDEST NON EMPTY
    # ==========================================================================
    elif isinstance(redeemer, ForceOldestNonEmpty):
        assert redeemer.index >= 0, "Invalid index"
        assert redeemer.index <= len(inventory.packages), "Index out of range"
        assert redeemer.index >= inventory.oldest_non_empty, "Cursor can only advance"
        inventory.oldest_non_empty = redeemer.index
        ctx.events.append(InventoryOverride(
            manager=ctx.caller, field=b"oldest_non_empty", value=redeemer.index, timestamp=ctx.now
        ))

    # ==========================================================================
    # FORCE TOTAL AVAILABLE
    # ==========================================================================
    elif isinstance(redeemer, ForceTotalAvailable):
        assert redeemer.amount >= 0, "Amount must be non-negative"
        inventory.total_available = redeemer.amount
        ctx.events.append(InventoryOverride(
            manager=ctx.caller, field=b"total_available", value=redeemer.amount, timestamp=ctx.now
        ))

    else:
        assert False, "Invalid redeemer"
