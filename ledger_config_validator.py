"""
Ledger Config Validator - administrative surface of the staking pool.

All deployment settings live in LedgerConfigDatum and are read at call
time, so pointing the pool at a new token, feed or plot contract never
needs a redeploy.

Operations (admin only):
- SetPriceFeed / SetDepositToken / SetRewardToken / SetFeeReceiver
- SetPlotTiers: Which plot contracts pay the standard, rare and premium tiers
- GrantRole / RevokeRole: Forwarded to the access registry
"""
from opshin.prelude import *

from tree_contract_config import ROLE_ADMIN
from tree_datum_types import CallContext, ConfigUpdated, RoleChanged


# =============================================================================
# REDEEMERS
# =============================================================================

@dataclass
class SetPriceFeed(PlutusData):
    CONSTR_ID = 0
    address: bytes


@dataclass
class SetDepositToken(PlutusData):
    CONSTR_ID = 1
    address: bytes


@dataclass
class SetRewardToken(PlutusData):
    CONSTR_ID = 2
    address: bytes


@dataclass
class SetFeeReceiver(PlutusData):
    CONSTR_ID = 3
    address: bytes


@dataclass
class SetPlotTiers(PlutusData):
    """Plot contracts for each tier. b"" disables a tier."""
    CONSTR_ID = 4
    standard_plot: bytes
    rare_plot: bytes
    premium_plot: bytes


@dataclass
class GrantRole(PlutusData):
    CONSTR_ID = 5
    role: bytes
    account: bytes


@dataclass
class RevokeRole(PlutusData):
    CONSTR_ID = 6
    role: bytes
    account: bytes


ConfigRedeemer = Union[
    SetPriceFeed, SetDepositToken, SetRewardToken, SetFeeReceiver, SetPlotTiers, GrantRole, RevokeRole
]


# =============================================================================
# HELPERS
# =============================================================================

def has_role(ctx: CallContext, role: bytes) -> bool:
    """Ask the injected policy whether the caller holds role."""
    return ctx.policy(ctx.caller, role)


def config_updated(ctx: CallContext, field: bytes, value: bytes) -> ConfigUpdated:
    return ConfigUpdated(admin=ctx.caller, field=field, value=value, timestamp=ctx.now)


# =============================================================================
# VALIDATOR
# =============================================================================

def validator(ctx: CallContext, redeemer: ConfigRedeemer) -> None:
    """
    Config validator - admin only.
    """
    assert has_role(ctx, ROLE_ADMIN), "Admin role required"
    config = ctx.state.config

    if isinstance(redeemer, SetPriceFeed):
        assert redeemer.address != b"", "Zero address"
        config.price_feed = redeemer.address
        ctx.events.append(config_updated(ctx, b"price_feed", redeemer.address))

    elif isinstance(redeemer, SetDepositToken):
        assert redeemer.address != b"", "Zero address"
        config.deposit_token = redeemer.address
        ctx.events.append(config_updated(ctx, b"deposit_token", redeemer.address))

    elif isinstance(redeemer, SetRewardToken):
        assert redeemer.address != b"", "Zero address"
        config.reward_token = redeemer.address
        ctx.events.append(config_updated(ctx, b"reward_token", redeemer.address))

    elif isinstance(redeemer, SetFeeReceiver):
        assert redeemer.address != b"", "Zero address"
        config.fee_receiver = redeemer.address
        ctx.events.append(config_updated(ctx, b"fee_receiver", redeemer.address))

    elif isinstance(redeemer, SetPlotTiers):
        config.standard_plot = redeemer.standard_plot
        config.rare_plot = redeemer.rare_plot
        config.premium_plot = redeemer.premium_plot
        ctx.events.append(config_updated(ctx, b"standard_plot", redeemer.standard_plot))
        ctx.events.append(config_updated(ctx, b"rare_plot", redeemer.rare_plot))
        ctx.events.append(config_updated(ctx, b"premium_plot", redeemer.premium_plot))

    # ==========================================================================
    # ROLES
    # ==========================================================================
    elif isinstance(redeemer, GrantRole):
        assert redeemer.account != b"", "Zero address"
        ctx.chain.at(config.access_registry).grant_role(ctx.pool, redeemer.role, redeemer.account)
        ctx.events.append(RoleChanged(
            admin=ctx.caller, role=redeemer.role, account=redeemer.account, granted=1, timestamp=ctx.now
        ))

    elif isinstance(redeemer, RevokeRole):
        ctx.chain.at(config.access_registry).revoke_role(ctx.pool, redeemer.role, redeemer.account)
        ctx.events.append(RoleChanged(
            admin=ctx.caller, role=redeemer.role, account=redeemer.account, granted=0, timestamp=ctx.now
        ))

    else:
        assert False, "Invalid redeemer"
