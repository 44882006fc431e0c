from types import SimpleNamespace

import pytest

from collaborators import (
    AccessRegistry,
    Chain,
    DepositToken,
    PlotRegistry,
    PriceFeed,
    RewardToken,
    TreeCollection,
    make_address,
)
from ledger_config_validator import SetPlotTiers
from ledger_host import StakingPool
from price_collateral import sqrt_price_for
from reward_inventory_validator import DepositPackage
from stake_ledger_validator import StakeTree
from tree_contract_config import (
    COLLATERAL_TARGET_USD,
    DEFAULT_MAX_IDS,
    ROLE_ADMIN,
    ROLE_INVENTORY_MANAGER,
    ROLE_MERKLE_MANAGER,
)
from tree_datum_types import CallContext, LedgerConfigDatum

START = 1_700_000_000
DEPOSIT_PRICE = 2 * 10**18      # 2 USD per deposit token
USER_FUNDS = 10**24


@pytest.fixture
def env():
    chain = Chain(now=START)
    deployer = make_address(b"deployer")
    admin = make_address(b"admin")
    manager = make_address(b"manager")
    alice = make_address(b"alice")
    bob = make_address(b"bob")
    fee_receiver = make_address(b"fee receiver")

    deposit = DepositToken()
    chain.deploy(deposit)
    reward = RewardToken()
    chain.deploy(reward)
    feed = PriceFeed(sqrt_price_for(DEPOSIT_PRICE))
    chain.deploy(feed)
    registry = AccessRegistry(deployer)
    chain.deploy(registry)
    trees = TreeCollection()
    chain.deploy(trees)

    pool = StakingPool(LedgerConfigDatum(
        price_feed=feed.address,
        deposit_token=deposit.address,
        reward_token=reward.address,
        fee_receiver=fee_receiver,
        access_registry=registry.address,
        standard_plot=b"",
        rare_plot=b"",
        premium_plot=b"",
        collateral_target=COLLATERAL_TARGET_USD,
        max_ids=DEFAULT_MAX_IDS,
    ))
    chain.deploy(pool)

    registry.set_controller(deployer, pool.address)
    registry.grant_role(deployer, ROLE_ADMIN, admin)
    registry.grant_role(deployer, ROLE_INVENTORY_MANAGER, manager)
    registry.grant_role(deployer, ROLE_MERKLE_MANAGER, admin)
    trees.set_staking_pool(pool.address)

    standard = PlotRegistry(pool.address)
    chain.deploy(standard)
    rare = PlotRegistry(pool.address)
    chain.deploy(rare)
    premium = PlotRegistry(pool.address)
    chain.deploy(premium)
    pool.submit(admin, SetPlotTiers(
        standard_plot=standard.address, rare_plot=rare.address, premium_plot=premium.address
    ))

    for user in (alice, bob):
        deposit.mint(user, USER_FUNDS)
        deposit.approve(user, pool.address, USER_FUNDS)
    reward.set_approval_for_all(manager, pool.address, True)

    return SimpleNamespace(
        chain=chain, pool=pool, deposit=deposit, reward=reward, feed=feed, registry=registry,
        trees=trees, standard=standard, rare=rare, premium=premium,
        deployer=deployer, admin=admin, manager=manager, alice=alice, bob=bob,
        fee_receiver=fee_receiver,
    )


@pytest.fixture
def deposit_package(env):
    """Mint the batch to the inventory manager and deposit it as one package."""
    def _deposit(ids, amounts):
        for token_id, amount in zip(ids, amounts):
            env.reward.mint(env.manager, token_id, amount)
        return env.pool.submit(env.manager, DepositPackage(ids=list(ids), amounts=list(amounts)))
    return _deposit


@pytest.fixture
def plant(env):
    """Mint a tree and a plot for user and stake the tree there."""
    def _plant(user, plots=None, capacity=5):
        plots = plots or env.rare
        tree_id = env.trees.mint(user)
        plot_id = plots.create_plot(user, capacity)
        env.pool.submit(user, StakeTree(
            tree_contract=env.trees.address, tree_id=tree_id, plot_id=plot_id, plot_address=plots.address
        ))
        return tree_id, plot_id
    return _plant


@pytest.fixture
def call_context(env):
    """A CallContext on the live pool state, for driving validator helpers directly."""
    def _ctx(caller):
        return CallContext(
            caller=caller,
            now=env.chain.now,
            state=env.pool.state,
            chain=env.chain,
            pool=env.pool.address,
            policy=env.pool.policy,
            events=[],
        )
    return _ctx
