"""Share classes and the economic terms that drive liquidation payouts.

Preferred and common stock carry different rights in an exit: preferred
classes are paid their liquidation preference first (in seniority order), and
participating preferred also shares in what is left alongside common.
"""

from typing import Optional
from datetime import datetime
from decimal import Decimal
from pydantic import Field, model_validator

from .base import (
    CENTS_PER_DOLLAR,
    DomainModel,
    DollarPrice,
    Multiple,
    ShareClassId,
)


# =============================================================================
# Share Class
# =============================================================================

class ShareClass(DomainModel):
    """A class of stock with the financial terms needed for payout math.

    Liquidation preference:
        preference = shares * original_issue_price * liquidation_preference_multiple

    Participation:
        - Non-participating: receives its preference only.
        - Participating: receives its preference AND a pro-rata share of the
          residual proceeds alongside common ("double dip").
        - Capped participating: as participating, but total proceeds
          (preference + participation) never exceed
          shares * original_issue_price * participation_cap_multiple.

    Seniority:
        - Lower seniority_rank = more senior (paid first)
        - Classes sharing a rank are pari passu
        - Unranked classes are stacked after every ranked class

    Example:
        Series A Preferred, $1.00 issue price, 1x non-participating:
            100 shares → $100 preference before common sees anything.
    """

    id: ShareClassId
    name: str = Field(description="Human-readable name (e.g., 'Series A Preferred')")

    is_preferred: bool = Field(
        default=False,
        description="True for preferred stock (carries a liquidation preference)"
    )

    original_issue_price_per_share: Optional[DollarPrice] = Field(
        default=None,
        description="Original issue price in dollars (required for preferred)"
    )

    liquidation_preference_multiple: Multiple = Field(
        default=Decimal("1"),
        description="Liquidation preference multiple (1 = 1x, 2 = 2x)"
    )

    is_participating: bool = Field(
        default=False,
        description="Preferred also shares residual proceeds after its preference"
    )

    participation_cap_multiple: Optional[Multiple] = Field(
        default=None,
        description="Cap on preference + participation as a multiple of "
                    "issue price * shares. None = uncapped."
    )

    seniority_rank: Optional[int] = Field(
        default=None,
        ge=0,
        description="Priority in the waterfall (0 = most senior). None = default stacking."
    )

    created_at: Optional[datetime] = Field(
        default=None,
        description="Creation time; orders classes for ties and default stacking"
    )

    @model_validator(mode='after')
    def validate_economic_rights(self):
        """Common stock carries no preference terms; preferred needs an issue price."""
        if not self.is_preferred:
            if self.is_participating:
                raise ValueError("Common stock cannot be flagged is_participating")
            if self.participation_cap_multiple is not None:
                raise ValueError("Common stock cannot have participation_cap_multiple")
            return self

        if self.original_issue_price_per_share is None:
            raise ValueError(
                f"Preferred class '{self.id}' requires original_issue_price_per_share"
            )

        if self.participation_cap_multiple is not None and not self.is_participating:
            raise ValueError(
                "participation_cap_multiple only valid for participating preferred"
            )

        return self

    @property
    def original_issue_price_cents(self) -> Decimal:
        """Issue price converted to (possibly fractional) cents."""
        if self.original_issue_price_per_share is None:
            return Decimal("0")
        return self.original_issue_price_per_share * CENTS_PER_DOLLAR

    @property
    def preference_per_share_cents(self) -> Decimal:
        """Liquidation preference owed per share, in cents. Zero for common."""
        if not self.is_preferred:
            return Decimal("0")
        return self.original_issue_price_cents * self.liquidation_preference_multiple

    @property
    def is_capped(self) -> bool:
        return self.is_preferred and self.is_participating and self.participation_cap_multiple is not None

    def participation_cap_cents(self, shares: Decimal) -> Optional[Decimal]:
        """Total proceeds ceiling for ``shares`` of this class, or None if uncapped."""
        if not self.is_capped:
            return None
        return self.original_issue_price_cents * Decimal(shares) * self.participation_cap_multiple
