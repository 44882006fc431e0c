"""
Tree Staking Configuration - TRUE CONSTANTS ONLY

This file contains ONLY values that never change for a deployment:
- time units and the global reward rate
- exit fee tiers and plot tier multipliers
- fixed-point helpers for the price feed
- role identifiers

ALL other configuration (token addresses, price feed, fee receiver, plot
tier addresses, max ids per call) is stored in the LedgerConfigDatum and
read at call time. Changing it never requires a redeploy.
"""

# =============================================================================
# TIME
# =============================================================================

SECONDS_PER_DAY: int = 86400
SECONDS_PER_YEAR: int = 365 * SECONDS_PER_DAY

# Minimum time between two reward claims on the same tree
CLAIM_PERIOD: int = SECONDS_PER_DAY

# =============================================================================
# REWARDS
# =============================================================================

REWARD_DECIMALS: int = 10**18

# 175 reward tokens per year, expressed per day (18 decimals)
DAILY_RATE: int = 175 * REWARD_DECIMALS // 365

# Plot tier multipliers in percent
STANDARD_TIER_PCT: int = 80
RARE_TIER_PCT: int = 90
PREMIUM_TIER_PCT: int = 100

# =============================================================================
# EXIT FEES (basis points, 10000 = 100%)
# =============================================================================

BPS_DENOMINATOR: int = 10000
FEE_FIRST_YEAR_BPS: int = 750    # 7.5%
FEE_SECOND_YEAR_BPS: int = 375   # 3.75%
FEE_LONG_TERM_BPS: int = 175     # 1.75%

# =============================================================================
# COLLATERAL
# =============================================================================

# Fiat collateral per tree (USD, 18 decimals)
COLLATERAL_TARGET_USD: int = 100 * 10**18

# sqrt prices are Q64.96 fixed point
Q96: int = 2**96
PRICE_DECIMALS: int = 10**18

# =============================================================================
# INVENTORY
# =============================================================================

DEFAULT_MAX_IDS: int = 50

# Returned by contract recipients of a batched reward transfer
BATCH_RECEIVED_ACK: bytes = bytes.fromhex("bc197c81")

# =============================================================================
# ROLES
# =============================================================================

ROLE_ADMIN: bytes = b"ADMIN_ROLE"
ROLE_INVENTORY_MANAGER: bytes = b"INVENTORY_MANAGER_ROLE"
ROLE_MERKLE_MANAGER: bytes = b"MERKLE_MANAGER_ROLE"

# =============================================================================
# MERKLE NAMESPACES
# =============================================================================

TREE_REWARD_ROOT: int = 0    # leaves are (site, tree id, amount)
STAKING_ROOT: int = 1        # leaves are (claimant, amount)
