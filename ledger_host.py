"""
Staking Pool - executes redeemers against the ledger state.

submit() is the only way state changes:
1. refuse re-entry while another call is executing
2. snapshot every contract's storage on the chain
3. route the redeemer to its validator with a fresh CallContext
4. on failure restore the snapshot and re-raise; on success commit the
   call's events to the pool log

The pool also acts as a contract on the chain: it holds collateral and
reward inventory, and acknowledges batched reward transfers.
"""
import logging
from typing import List, get_args

from opshin.prelude import PlutusData

import ledger_config_validator
import merkle_claim_validator
import reward_inventory_validator
import stake_ledger_validator
from collaborators import Contract
from price_collateral import required_collateral
from tree_contract_config import BATCH_RECEIVED_ACK
from tree_datum_types import (
    CallContext,
    LedgerConfigDatum,
    LedgerState,
    Package,
    StakeDatum,
    StakedStake,
    empty_ledger_state,
    get_stake,
)

logger = logging.getLogger(__name__)


def assertions_enabled() -> bool:
    """Validators fail through assert; python -O would strip every check."""
    try:
        assert False
    except AssertionError:
        return True
    return False


ROUTES = [
    (get_args(stake_ledger_validator.StakeRedeemer), stake_ledger_validator.validator),
    (get_args(reward_inventory_validator.InventoryRedeemer), reward_inventory_validator.validator),
    (get_args(merkle_claim_validator.MerkleRedeemer), merkle_claim_validator.validator),
    (get_args(ledger_config_validator.ConfigRedeemer), ledger_config_validator.validator),
]


def route(redeemer: PlutusData):
    for redeemer_types, handler in ROUTES:
        if isinstance(redeemer, redeemer_types):
            return handler
    assert False, "Invalid redeemer"


class StakingPool(Contract):
    def __init__(self, config: LedgerConfigDatum):
        if not assertions_enabled():
            raise RuntimeError("StakingPool requires assertions enabled (do not run with python -O)")
        super().__init__()
        self.storage = {"ledger": empty_ledger_state(config)}
        self.events: List[PlutusData] = []
        self._entered = False

    @property
    def state(self) -> LedgerState:
        return self.storage["ledger"]

    def policy(self, account: bytes, role: bytes) -> bool:
        return self.chain.at(self.state.config.access_registry).has_role(role, account)

    def submit(self, caller: bytes, redeemer: PlutusData) -> List[PlutusData]:
        """Run one call atomically. Returns the events it emitted."""
        assert not self._entered, "ReentrancyGuard: reentrant call"
        handler = route(redeemer)

        snapshot = self.chain.snapshot()
        self._entered = True
        ctx = CallContext(
            caller=caller,
            now=self.chain.now,
            state=self.state,
            chain=self.chain,
            pool=self.address,
            policy=self.policy,
            events=[],
        )
        try:
            handler(ctx, redeemer)
        except Exception as exc:
            self.chain.restore(snapshot)
            logger.warning("%s from %s reverted: %s", type(redeemer).__name__, caller.hex(), exc)
            raise
        finally:
            self._entered = False

        for event in ctx.events:
            logger.info("%s %s", type(event).__name__, event)
        self.events.extend(ctx.events)
        return ctx.events

    def on_batch_received(self, operator: bytes, sender: bytes, ids: List[int], amounts: List[int]) -> bytes:
        return BATCH_RECEIVED_ACK

    # ==========================================================================
    # VIEWS
    # ==========================================================================

    def stake_of(self, tree_contract: bytes, tree_id: int) -> StakeDatum:
        return get_stake(self.state, tree_contract, tree_id)

    def is_staked(self, tree_contract: bytes, tree_id: int) -> bool:
        return isinstance(self.stake_of(tree_contract, tree_id), StakedStake)

    def carry_over(self, user: bytes) -> int:
        return self.state.carry_over.get(user, 0)

    def pending_reward(self, tree_contract: bytes, tree_id: int) -> int:
        return stake_ledger_validator.pending_reward(self.state, tree_contract, tree_id, self.chain.now)

    def required_collateral(self) -> int:
        config = self.state.config
        return required_collateral(self.chain, config.price_feed, config.collateral_target)

    def package_count(self) -> int:
        return len(self.state.inventory.packages)

    def get_packages(self, start: int, end: int) -> List[Package]:
        return reward_inventory_validator.package_window(self.state.inventory, start, end)

    def total_available(self) -> int:
        return self.state.inventory.total_available

    def unspent_balance(self) -> int:
        """Sum of every unspent entry; equals total_available unless overridden."""
        total = 0
        for package in self.state.inventory.packages:
            total += reward_inventory_validator.package_remaining(package)
        return total
