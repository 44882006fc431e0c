import pytest

from price_collateral import collateral_for_price, price_from_sqrt, sqrt_price_for
from stake_ledger_validator import Lock
from tree_contract_config import COLLATERAL_TARGET_USD, Q96


# =============================================================================
# PRICE / COLLATERAL
# =============================================================================

def test_unit_sqrt_price():
    assert price_from_sqrt(Q96) == 10**18
    assert sqrt_price_for(10**18) == Q96


def test_collateral_at_four_dollars():
    price = price_from_sqrt(2 * Q96)
    assert price == 4 * 10**18
    assert collateral_for_price(price, 100 * 10**18) == 25 * 10**18
    assert sqrt_price_for(4 * 10**18) == 2 * Q96


def test_collateral_rounds_down():
    assert collateral_for_price(3 * 10**18, 100 * 10**18) == 33333333333333333333


def test_pool_reads_feed_each_call(env):
    env.feed.set_sqrt_price(Q96)
    assert env.pool.required_collateral() == COLLATERAL_TARGET_USD
    env.feed.set_sqrt_price(2 * Q96)
    assert env.pool.required_collateral() == COLLATERAL_TARGET_USD // 4


def test_zero_price_fails(env):
    env.feed.set_sqrt_price(0)
    with pytest.raises(AssertionError, match="Price feed unavailable"):
        env.pool.required_collateral()

    tree_id = env.trees.mint(env.alice)
    with pytest.raises(AssertionError, match="Price feed unavailable"):
        env.pool.submit(env.alice, Lock(tree_contract=env.trees.address, tree_id=tree_id))

    with pytest.raises(AssertionError, match="Price feed unavailable"):
        collateral_for_price(0, COLLATERAL_TARGET_USD)


def test_tiny_sqrt_price_rounds_to_zero(env):
    env.feed.set_sqrt_price(1)
    with pytest.raises(AssertionError, match="Price feed unavailable"):
        env.pool.required_collateral()
