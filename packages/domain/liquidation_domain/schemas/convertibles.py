"""Convertible securities (SAFEs and convertible notes).

A convertible either converts into equity at an exit, participating alongside
common stock, or is redeemed for its principal plus accrued interest. Which
one happens is decided by the conversion resolver; this module only holds the
terms and the interest math.
"""

from typing import Optional
from datetime import date, datetime
from decimal import Decimal
from pydantic import Field, model_validator

from .base import Cents, DomainModel, InvestorId, Percent


# =============================================================================
# Convertible Investment
# =============================================================================

class ConvertibleInvestment(DomainModel):
    """A financing that issued one or more convertible securities."""

    id: str
    name: str = Field(default="", description="Label (e.g., 'Seed SAFE round')")
    valuation_cap_cents: Optional[Cents] = Field(
        default=None,
        description="Round-level valuation cap, used by securities without their own"
    )
    issued_at: Optional[datetime] = None


# =============================================================================
# Convertible Security
# =============================================================================

class ConvertibleSecurity(DomainModel):
    """An instrument convertible into equity.

    Interest mechanics (simple, accruing):
        interest = principal * rate * years
        years = days outstanding / day count basis
        accrual stops at the maturity date when one is set

    Conversion mechanics:
        - implied_shares is what the principal buys at face value, so the
          round price is principal / implied_shares
        - a valuation cap lowers the price to cap / fully diluted shares
        - a discount lowers the price to round price * (1 - discount)
        - the lowest price wins

    Example:
        $100 note, 10% simple interest, issued one year before the exit.
        Accrued: $100 + $100 * 0.10 * 1 = $110 redeems or converts.
    """

    id: str
    investor_id: InvestorId
    convertible_investment_id: Optional[str] = None

    principal_value_cents: Cents = Field(
        description="Principal invested, in cents"
    )

    implied_shares: int = Field(
        default=0,
        ge=0,
        description="Shares the principal converts into at face value"
    )

    valuation_cap_cents: Optional[Cents] = Field(
        default=None,
        description="Valuation cap for conversion pricing, in cents"
    )

    discount_rate_percent: Optional[Percent] = Field(
        default=None,
        description="Discount off the round price (20 = 20%)"
    )

    interest_rate_percent: Optional[Decimal] = Field(
        default=None,
        ge=0,
        description="Annual simple interest rate (8 = 8% per year)"
    )

    issued_at: Optional[datetime] = Field(
        default=None,
        description="Issue time; interest accrues from this date"
    )

    maturity_date: Optional[date] = Field(
        default=None,
        description="Date interest stops accruing"
    )

    @model_validator(mode='after')
    def validate_interest_terms(self):
        """Interest cannot accrue without an issue date to accrue from."""
        if self.interest_rate_percent and self.issued_at is None:
            raise ValueError(
                f"Convertible '{self.id}' has interest_rate_percent but no issued_at"
            )
        return self

    def accrued_interest_cents(
        self,
        valuation_date: date,
        day_count_basis: Decimal = Decimal("365.25"),
    ) -> Decimal:
        """Simple interest accrued up to min(maturity_date, valuation_date).

        Args:
            valuation_date: Date the exit is valued at
            day_count_basis: Days per year for the accrual fraction

        Returns:
            Accrued interest in (fractional) cents; zero without a rate
        """
        if not self.interest_rate_percent or self.issued_at is None:
            return Decimal("0")

        end_date = valuation_date
        if self.maturity_date is not None:
            end_date = min(self.maturity_date, valuation_date)

        days = max((end_date - self.issued_at.date()).days, 0)
        years = Decimal(days) / day_count_basis
        return Decimal(self.principal_value_cents) * (self.interest_rate_percent / Decimal("100")) * years

    def redemption_value_cents(
        self,
        valuation_date: date,
        day_count_basis: Decimal = Decimal("365.25"),
    ) -> Decimal:
        """Principal plus accrued interest, in (fractional) cents."""
        return Decimal(self.principal_value_cents) + self.accrued_interest_cents(
            valuation_date, day_count_basis
        )
