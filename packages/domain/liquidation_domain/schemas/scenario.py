"""Liquidation scenarios.

A scenario is one distribution request: a company plus a real or hypothetical
exit amount. Each scenario produces exactly one payout set; re-running it
replaces the previous set.
"""

from typing import Optional
from datetime import date
from pydantic import Field, field_validator

from .base import DomainModel


class LiquidationScenario(DomainModel):
    """Exit scenario to run through the waterfall.

    Example:
        LiquidationScenario(
            id="acme_exit_50m",
            company_id="acme",
            exit_amount_cents=50_000_000_00,
        )
    """

    id: str = Field(description="Unique identifier for this scenario")

    company_id: str = Field(description="Company whose cap table is distributed")

    exit_amount_cents: int = Field(
        description="Proceeds to distribute, in cents (must be >= 0)"
    )

    valuation_date: date = Field(
        default_factory=date.today,
        description="Date the exit is valued at (interest accrues up to here)"
    )

    label: Optional[str] = Field(
        default=None,
        description="Human-readable label (e.g., 'Base case', 'What-if slider')"
    )

    @field_validator('exit_amount_cents', mode='before')
    @classmethod
    def validate_exit_amount(cls, v):
        """Reject missing, fractional, or negative exit amounts eagerly."""
        if v is None:
            raise ValueError("exit_amount_cents is required")
        if isinstance(v, bool) or not isinstance(v, int):
            raise ValueError(f"exit_amount_cents must be an integer number of cents, got {v!r}")
        if v < 0:
            raise ValueError(f"exit_amount_cents must be non-negative, got {v}")
        return v
