"""Claims on exit proceeds.

A Claim is what the waterfall actually pays: one per (investor, security).
Equity claims come from aggregated share holdings; convertible claims come
from resolved convertible securities, either as a cash preference
(redemption) or as shares participating alongside common (conversion).
"""

from typing import List, Literal, Optional, Tuple
from decimal import Decimal
from pydantic import Field, model_validator

from .base import DomainModel, InvestorId, SecurityId


SecurityType = Literal["equity", "convertible"]


# =============================================================================
# Claim
# =============================================================================

class Claim(DomainModel):
    """One investor's claim on exit proceeds through one security.

    Rounds a claim can take part in:
        - Preference round: preference_cents > 0
          (preferred holdings, redeemed convertibles)
        - Participation round: participating_shares > 0
          (common, as-converted convertibles, participating preferred)

    Recording:
        - is_preferred claims record participation as participation_amount
        - everything else records it as common_proceeds_amount
    """

    investor_id: InvestorId
    security_id: SecurityId
    security_type: SecurityType

    share_class_id: Optional[str] = None
    share_class_name: Optional[str] = None
    number_of_shares: Optional[int] = Field(
        default=None,
        description="Shares held (equity) or implied shares (convertible)"
    )

    is_preferred: bool = False

    preference_cents: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        description="Liquidation preference demanded, in (fractional) cents"
    )

    participating_shares: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        description="Share count used for pro-rata participation"
    )

    participation_cap_cents: Optional[Decimal] = Field(
        default=None,
        ge=0,
        description="Ceiling on preference + participation, in cents"
    )

    @model_validator(mode='after')
    def validate_cap(self):
        """A cap below the preference itself is contradictory data."""
        if self.participation_cap_cents is not None and self.participation_cap_cents < self.preference_cents:
            raise ValueError(
                f"Participation cap ({self.participation_cap_cents}) is below the liquidation "
                f"preference ({self.preference_cents}) for investor '{self.investor_id}', "
                f"security '{self.security_id}'"
            )
        return self

    @property
    def key(self) -> Tuple[str, str, str]:
        return (self.investor_id, self.security_type, self.security_id)

    @property
    def sort_key(self) -> Tuple[str, str]:
        """Deterministic order within a tier: investor id, then security id."""
        return (self.investor_id, self.security_id)


# =============================================================================
# Seniority Tier
# =============================================================================

class SeniorityTier(DomainModel):
    """Claims paid at the same seniority level.

    Preference tiers are paid in list order (most senior first). The final
    tier of a stack is the residual tier: its claims share what is left
    pro rata by participating_shares.
    """

    label: str = Field(description="Human-readable tier name (e.g., 'Series B Preferred')")

    rank: Optional[int] = Field(
        default=None,
        description="Seniority rank the tier was built from (None for default-stacked tiers)"
    )

    is_residual: bool = False

    claims: List[Claim] = Field(default_factory=list)

    @property
    def total_preference_cents(self) -> Decimal:
        return sum((c.preference_cents for c in self.claims), Decimal("0"))

    @property
    def total_participating_shares(self) -> Decimal:
        return sum((c.participating_shares for c in self.claims), Decimal("0"))


# =============================================================================
# Convertible Resolution
# =============================================================================

class ConvertibleResolution(DomainModel):
    """Outcome of the conversion-vs-redemption decision for one convertible."""

    security_id: str
    investor_id: InvestorId

    converts: bool = Field(description="True = converts to equity, False = redeemed for cash")

    redemption_value_cents: Decimal = Field(
        ge=0,
        description="Principal + accrued interest, in cents"
    )

    conversion_price_cents: Optional[Decimal] = Field(
        default=None,
        description="Effective price per converted share, in cents (None when unpriceable)"
    )

    converted_shares: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        description="Shares received on conversion"
    )

    implied_shares: int = 0

    as_converted_payout_cents: int = Field(
        default=0,
        description="Waterfall payout if converted (others held at their final decision)"
    )

    redemption_payout_cents: Optional[int] = Field(
        default=None,
        description=(
            "Waterfall payout if redeemed (others held at their final decision); "
            "None when the as-converted payout exceeds any possible redemption payout"
        )
    )
