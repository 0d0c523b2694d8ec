"""Liquidation domain schemas.

This package contains all Pydantic models for the liquidation domain layer:
- Base types, conventions and cent allocation
- Share classes and their liquidation terms
- Share holdings and option pools
- Convertible securities
- Cap table snapshots
- Liquidation scenarios
- Claims, seniority tiers and convertible resolutions
- Payouts and waterfall distributions

Usage:
    from liquidation_domain.schemas import (
        CapTableSnapshot, ShareClass, ShareHolding,
        ConvertibleSecurity, LiquidationScenario, LiquidationPayout
    )
"""

# Base types
from .base import (
    DomainModel,
    Cents,
    ShareCount,
    Percent,
    Multiple,
    DollarPrice,
    ShareClassId,
    InvestorId,
    SecurityId,
    allocate_cents,
    round_cents,
    floor_cents,
)

# Share classes
from .share_classes import ShareClass

# Holdings
from .holdings import ShareHolding, OptionPool

# Convertibles
from .convertibles import ConvertibleInvestment, ConvertibleSecurity

# Cap table
from .cap_table import CapTableSnapshot

# Scenario
from .scenario import LiquidationScenario

# Claims
from .claims import (
    Claim,
    SeniorityTier,
    ConvertibleResolution,
    SecurityType,
)

# Payouts
from .payouts import (
    LiquidationPayout,
    WaterfallStep,
    WaterfallDistribution,
)

__all__ = [
    # Base types
    "DomainModel",
    "Cents",
    "ShareCount",
    "Percent",
    "Multiple",
    "DollarPrice",
    "ShareClassId",
    "InvestorId",
    "SecurityId",
    "allocate_cents",
    "round_cents",
    "floor_cents",
    # Share classes
    "ShareClass",
    # Holdings
    "ShareHolding",
    "OptionPool",
    # Convertibles
    "ConvertibleInvestment",
    "ConvertibleSecurity",
    # Cap table
    "CapTableSnapshot",
    # Scenario
    "LiquidationScenario",
    # Claims
    "Claim",
    "SeniorityTier",
    "ConvertibleResolution",
    "SecurityType",
    # Payouts
    "LiquidationPayout",
    "WaterfallStep",
    "WaterfallDistribution",
]
