"""
Host chain and the external contracts the staking pool talks to.

Every contract keeps its persistent data in self.storage so the Chain can
snapshot all of it before a pool call and restore it if the call fails.

Contracts:
- DepositToken: fungible collateral token (balances + allowances)
- RewardToken: multi-id reward token with batched transfers; contract
  recipients must acknowledge a batch through on_batch_received
- TreeCollection: tree ownership; transferring a staked tree forces it
  out of its plot
- PlotRegistry: capacity-limited plots; only the staking pool may fill or
  free a slot
- PriceFeed: sqrt price in Q64.96
- AccessRegistry: role store behind the pool's policy check
"""
import copy
import logging
from hashlib import sha256
from typing import Dict, List

from tree_contract_config import BATCH_RECEIVED_ACK
from stake_ledger_validator import Unstake

logger = logging.getLogger(__name__)


def make_address(seed: bytes) -> bytes:
    """28-byte identity derived from seed."""
    return sha256(seed).digest()[:28]


class Contract:
    def __init__(self):
        self.address = b""
        self.chain = None
        self.storage = {}


class Chain:
    """Clock plus every deployed contract, by address."""

    def __init__(self, now: int):
        self.now = now
        self.contracts: Dict[bytes, Contract] = {}
        self._nonce = 0

    def deploy(self, contract: Contract) -> bytes:
        self._nonce += 1
        address = make_address(b"contract:" + self._nonce.to_bytes(8, "big"))
        contract.address = address
        contract.chain = self
        self.contracts[address] = contract
        logger.debug("deployed %s at %s", type(contract).__name__, address.hex())
        return address

    def at(self, address: bytes):
        assert address in self.contracts, "No contract at address"
        return self.contracts[address]

    def is_contract(self, address: bytes) -> bool:
        return address in self.contracts

    def advance(self, seconds: int) -> None:
        assert seconds >= 0, "Time only moves forward"
        self.now += seconds

    def snapshot(self) -> Dict[bytes, dict]:
        return {address: copy.deepcopy(c.storage) for address, c in self.contracts.items()}

    def restore(self, snapshot: Dict[bytes, dict]) -> None:
        for address, storage in snapshot.items():
            self.contracts[address].storage = storage


# =============================================================================
# TOKENS
# =============================================================================

class DepositToken(Contract):
    def __init__(self):
        super().__init__()
        self.storage = {"balances": {}, "allowances": {}}

    def mint(self, to: bytes, amount: int) -> None:
        assert amount > 0, "Amount must be positive"
        self.storage["balances"][to] = self.balance_of(to) + amount

    def balance_of(self, holder: bytes) -> int:
        return self.storage["balances"].get(holder, 0)

    def allowance(self, holder: bytes, spender: bytes) -> int:
        return self.storage["allowances"].get((holder, spender), 0)

    def approve(self, holder: bytes, spender: bytes, amount: int) -> bool:
        assert amount >= 0, "Negative allowance"
        self.storage["allowances"][(holder, spender)] = amount
        return True

    def _move(self, sender: bytes, to: bytes, amount: int) -> None:
        assert amount >= 0, "Negative amount"
        assert to != b"", "Transfer to zero address"
        balance = self.balance_of(sender)
        assert balance >= amount, "Insufficient balance"
        self.storage["balances"][sender] = balance - amount
        self.storage["balances"][to] = self.balance_of(to) + amount
        logger.debug("deposit token %s -> %s: %d", sender.hex(), to.hex(), amount)

    def transfer(self, sender: bytes, to: bytes, amount: int) -> bool:
        self._move(sender, to, amount)
        return True

    def transfer_from(self, spender: bytes, holder: bytes, to: bytes, amount: int) -> bool:
        allowed = self.allowance(holder, spender)
        assert allowed >= amount, "Insufficient allowance"
        self._move(holder, to, amount)
        self.storage["allowances"][(holder, spender)] = allowed - amount
        return True


class RewardToken(Contract):
    def __init__(self):
        super().__init__()
        self.storage = {"balances": {}, "operators": {}}

    def mint(self, to: bytes, token_id: int, amount: int) -> None:
        assert amount > 0, "Amount must be positive"
        self.storage["balances"][(token_id, to)] = self.balance_of(to, token_id) + amount

    def balance_of(self, holder: bytes, token_id: int) -> int:
        return self.storage["balances"].get((token_id, holder), 0)

    def total_balance_of(self, holder: bytes) -> int:
        total = 0
        for (token_id, owner), amount in self.storage["balances"].items():
            if owner == holder:
                total += amount
        return total

    def set_approval_for_all(self, holder: bytes, operator: bytes, approved: bool) -> None:
        self.storage["operators"][(holder, operator)] = approved

    def is_approved_for_all(self, holder: bytes, operator: bytes) -> bool:
        return self.storage["operators"].get((holder, operator), False)

    def safe_batch_transfer_from(
        self, operator: bytes, sender: bytes, to: bytes, ids: List[int], amounts: List[int]
    ) -> None:
        assert len(ids) == len(amounts), "Length mismatch"
        assert to != b"", "Transfer to zero address"
        assert operator == sender or self.is_approved_for_all(sender, operator), "Caller not approved"

        for token_id, amount in zip(ids, amounts):
            balance = self.balance_of(sender, token_id)
            assert balance >= amount, "Insufficient balance"
            self.storage["balances"][(token_id, sender)] = balance - amount
            self.storage["balances"][(token_id, to)] = self.balance_of(to, token_id) + amount
        logger.debug("reward batch %s -> %s: ids=%s amounts=%s", sender.hex(), to.hex(), ids, amounts)

        if self.chain.is_contract(to):
            receiver = self.chain.at(to)
            hook = getattr(receiver, "on_batch_received", None)
            assert hook is not None, "Receiver rejected batch"
            assert hook(operator, sender, list(ids), list(amounts)) == BATCH_RECEIVED_ACK, "Receiver rejected batch"


# =============================================================================
# TREES AND PLOTS
# =============================================================================

class TreeCollection(Contract):
    def __init__(self):
        super().__init__()
        self.storage = {"owners": {}, "operators": {}, "supply": 0, "staking_pool": b""}

    def mint(self, to: bytes) -> int:
        self.storage["supply"] += 1
        tree_id = self.storage["supply"]
        self.storage["owners"][tree_id] = to
        return tree_id

    def owner_of(self, tree_id: int) -> bytes:
        return self.storage["owners"].get(tree_id, b"")

    def total_supply(self) -> int:
        return self.storage["supply"]

    def set_staking_pool(self, pool: bytes) -> None:
        self.storage["staking_pool"] = pool

    def set_approval_for_all(self, holder: bytes, operator: bytes, approved: bool) -> None:
        self.storage["operators"][(holder, operator)] = approved

    def is_approved_for_all(self, holder: bytes, operator: bytes) -> bool:
        return self.storage["operators"].get((holder, operator), False)

    def transfer_from(self, caller: bytes, sender: bytes, to: bytes, tree_id: int) -> None:
        assert self.owner_of(tree_id) == sender, "Not tree owner"
        assert caller == sender or self.is_approved_for_all(sender, caller), "Caller not approved"
        assert to != b"", "Transfer to zero address"

        # A staked tree leaves its plot and its collateral is released
        pool_address = self.storage["staking_pool"]
        if pool_address != b"":
            pool = self.chain.at(pool_address)
            if pool.is_staked(self.address, tree_id):
                pool.submit(self.address, Unstake(tree_contract=self.address, tree_id=tree_id, auto_unlock=1))

        self.storage["owners"][tree_id] = to


class PlotRegistry(Contract):
    """Plots of one tier. incrementCapacity/decrementCapacity fill and free slots."""

    def __init__(self, controller: bytes):
        super().__init__()
        self.storage = {"plots": {}, "count": 0, "controller": controller}

    def create_plot(self, owner: bytes, capacity: int) -> int:
        assert capacity > 0, "Capacity must be positive"
        self.storage["count"] += 1
        plot_id = self.storage["count"]
        self.storage["plots"][plot_id] = {"owner": owner, "capacity": capacity, "used": 0}
        return plot_id

    def _plot(self, plot_id: int) -> dict:
        assert plot_id in self.storage["plots"], "Unknown plot"
        return self.storage["plots"][plot_id]

    def owner_of(self, plot_id: int) -> bytes:
        return self._plot(plot_id)["owner"]

    def used(self, plot_id: int) -> int:
        return self._plot(plot_id)["used"]

    def is_available(self, plot_id: int) -> bool:
        plot = self._plot(plot_id)
        return plot["used"] < plot["capacity"]

    def increment_capacity(self, caller: bytes, plot_id: int) -> None:
        assert caller == self.storage["controller"], "Only staking pool"
        plot = self._plot(plot_id)
        assert plot["used"] < plot["capacity"], "Plot at capacity"
        plot["used"] += 1

    def decrement_capacity(self, caller: bytes, plot_id: int) -> None:
        assert caller == self.storage["controller"], "Only staking pool"
        plot = self._plot(plot_id)
        assert plot["used"] > 0, "Plot empty"
        plot["used"] -= 1


# =============================================================================
# PRICE FEED AND ROLES
# =============================================================================

class PriceFeed(Contract):
    def __init__(self, sqrt_price_x96: int):
        super().__init__()
        self.storage = {"sqrt_price_x96": sqrt_price_x96}

    def set_sqrt_price(self, sqrt_price_x96: int) -> None:
        self.storage["sqrt_price_x96"] = sqrt_price_x96

    def sqrt_price_x96(self) -> int:
        return self.storage["sqrt_price_x96"]


class AccessRegistry(Contract):
    """
    Role store. The deployer and one controller (the staking pool) may write;
    anyone may read.
    """

    def __init__(self, owner: bytes):
        super().__init__()
        self.storage = {"owner": owner, "controller": b"", "roles": {}}

    def set_controller(self, caller: bytes, controller: bytes) -> None:
        assert caller == self.storage["owner"], "Not registry owner"
        self.storage["controller"] = controller

    def has_role(self, role: bytes, account: bytes) -> bool:
        return self.storage["roles"].get((role, account), False)

    def _assert_writer(self, caller: bytes) -> None:
        assert caller == self.storage["owner"] or caller == self.storage["controller"], "Not registry controller"

    def grant_role(self, caller: bytes, role: bytes, account: bytes) -> None:
        self._assert_writer(caller)
        self.storage["roles"][(role, account)] = True

    def revoke_role(self, caller: bytes, role: bytes, account: bytes) -> None:
        self._assert_writer(caller)
        self.storage["roles"].pop((role, account), None)
