"""Base classes and type system for liquidation domain models.

This module provides the foundational types, validators, and base classes
used throughout the liquidation schema system, plus the cent allocation
helper every distribution round relies on.
"""

from decimal import Decimal, ROUND_HALF_UP, ROUND_FLOOR
from typing import Annotated, Dict, Hashable, Mapping
from pydantic import BaseModel, Field, ConfigDict

# =============================================================================
# Base Model
# =============================================================================

class DomainModel(BaseModel):
    """Base class for all domain models.

    Provides common configuration for all Pydantic models in the domain layer:
    - Validation on assignment for runtime safety
    - Support for Decimal and date types
    - Enum value serialization
    """

    model_config = ConfigDict(
        frozen=False,  # Allow mutation for computed fields
        validate_assignment=True,  # Validate on field assignment
        use_enum_values=True,  # Use enum values in JSON
        arbitrary_types_allowed=True,  # Allow Decimal, date, etc.
    )


# =============================================================================
# Type Aliases - Numeric
# =============================================================================

Cents = Annotated[
    int,
    Field(ge=0, description="Currency amount in integer cents (non-negative)")
]

ShareCount = Annotated[
    int,
    Field(gt=0, description="Number of shares (positive integer)")
]

Percent = Annotated[
    Decimal,
    Field(ge=0, le=100, description="Percentage on a 0-100 scale (20 = 20%)")
]

Multiple = Annotated[
    Decimal,
    Field(gt=0, description="Multiplier value (e.g., 2x = 2.0)")
]

DollarPrice = Annotated[
    Decimal,
    Field(gt=0, description="Price per share in dollars")
]


# =============================================================================
# ID Conventions
# =============================================================================

ShareClassId = Annotated[
    str,
    Field(
        min_length=1,
        description="Share class identifier (e.g., 'common', 'series_a_preferred')"
    )
]

InvestorId = Annotated[
    str,
    Field(
        min_length=1,
        description="Company investor identifier (e.g., 'founder_alice', 'acme_vc')"
    )
]

SecurityId = Annotated[
    str,
    Field(
        min_length=1,
        description="Identifier of the security a claim is built from "
                    "(share class id for equity, convertible id for convertibles)"
    )
]


# =============================================================================
# Cent Arithmetic
# =============================================================================

ONE_CENT = Decimal("1")
CENTS_PER_DOLLAR = Decimal("100")


def round_cents(amount: Decimal) -> int:
    """Round a Decimal cent amount to the nearest whole cent (half-up)."""
    return int(amount.quantize(ONE_CENT, rounding=ROUND_HALF_UP))


def floor_cents(amount: Decimal) -> int:
    """Round a Decimal cent amount down to a whole cent."""
    return int(amount.quantize(ONE_CENT, rounding=ROUND_FLOOR))


def allocate_cents(total: int, weights: Mapping[Hashable, Decimal]) -> Dict[Hashable, int]:
    """Split an integer cent total pro rata by weight so the parts sum exactly.

    Each key's share is rounded to the nearest cent; the rounding residual is
    then assigned to the largest claim. A negative residual never pushes a
    claim below zero, it spills over to the next-largest claim instead.

    Args:
        total: Whole cents to distribute
        weights: Non-negative weight per key (share counts or cent demands)

    Returns:
        Dict of key -> allocated cents, in the order of ``weights``

    Example:
        allocate_cents(100, {"a": 1, "b": 1, "c": 1})
        → {"a": 34, "b": 33, "c": 33}
    """
    allocations: Dict[Hashable, int] = {key: 0 for key in weights}
    total_weight = sum(weights.values(), Decimal("0"))
    if total <= 0 or total_weight <= 0:
        return allocations

    exact = {
        key: Decimal(total) * Decimal(weight) / total_weight
        for key, weight in weights.items()
    }
    for key, amount in exact.items():
        allocations[key] = round_cents(amount)

    residual = total - sum(allocations.values())
    # Largest exact share first; insertion order breaks ties
    ordered = sorted(exact, key=lambda k: exact[k], reverse=True)

    if residual > 0:
        allocations[ordered[0]] += residual
    else:
        for key in ordered:
            if residual == 0:
                break
            take = min(allocations[key], -residual)
            allocations[key] -= take
            residual += take

    return allocations
