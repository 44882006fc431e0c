"""
Price / Collateral Helper - converts the feed's sqrt price into the deposit
token amount that covers the fiat collateral target.

The feed reports sqrt(price) as Q64.96 fixed point, where price is fiat
units per deposit token unit. Both sides carry 18 decimals.

    price_e18 = sqrt_price_x96 ** 2 * 10**18 / 2**192
    required  = target * 10**18 / price_e18

One external read per call, no state.
"""
from math import isqrt

from tree_contract_config import PRICE_DECIMALS, Q96


def price_from_sqrt(sqrt_price_x96: int) -> int:
    """Fiat price of one whole deposit token (18 decimals)."""
    return (sqrt_price_x96 * sqrt_price_x96 * PRICE_DECIMALS) // (Q96 * Q96)


def collateral_for_price(price_e18: int, target: int) -> int:
    """Deposit token units worth target fiat units at price_e18."""
    assert price_e18 > 0, "Price feed unavailable"
    return (target * PRICE_DECIMALS) // price_e18


def read_sqrt_price(chain, price_feed: bytes) -> int:
    assert price_feed != b"", "Price feed not set"
    sqrt_price_x96 = chain.at(price_feed).sqrt_price_x96()
    assert sqrt_price_x96 > 0, "Price feed unavailable"
    return sqrt_price_x96


def required_collateral(chain, price_feed: bytes, target: int) -> int:
    """Current collateral requirement for one tree."""
    return collateral_for_price(price_from_sqrt(read_sqrt_price(chain, price_feed)), target)


def sqrt_price_for(price_e18: int) -> int:
    """Inverse of price_from_sqrt, for feeds and fixtures quoting a plain price."""
    assert price_e18 > 0, "Price must be positive"
    return isqrt((price_e18 * Q96 * Q96) // PRICE_DECIMALS)
