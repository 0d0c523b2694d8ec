"""Share holdings and option pool reservations.

A ShareHolding is a block of issued shares owned by one company investor.
Option pools are never paid out in a liquidation; they only widen the
fully-diluted share count used to price convertible conversions.
"""

from pydantic import Field, model_validator

from .base import DomainModel, InvestorId, ShareClassId, ShareCount


# =============================================================================
# Share Holding
# =============================================================================

class ShareHolding(DomainModel):
    """Shares of one class owned by one investor.

    Read-only input: the engine never mutates holdings. Several holdings for
    the same investor and class are aggregated into a single claim.

    Example:
        investor_id="founder_alice"
        share_class_id="common"
        number_of_shares=5_000_000
    """

    investor_id: InvestorId = Field(
        description="Company investor owning the shares"
    )

    share_class_id: ShareClassId = Field(
        description="Share class of the holding"
    )

    number_of_shares: ShareCount = Field(
        description="Number of shares held"
    )


# =============================================================================
# Option Pool
# =============================================================================

class OptionPool(DomainModel):
    """Shares reserved for future option grants."""

    id: str
    share_class_id: ShareClassId

    authorized_shares: int = Field(ge=0, description="Shares authorized for the pool")
    issued_shares: int = Field(
        default=0,
        ge=0,
        description="Shares already granted out of the pool"
    )

    @model_validator(mode='after')
    def validate_issued(self):
        if self.issued_shares > self.authorized_shares:
            raise ValueError(
                f"Option pool '{self.id}' has issued_shares ({self.issued_shares}) "
                f"above authorized_shares ({self.authorized_shares})"
            )
        return self

    @property
    def available_shares(self) -> int:
        return self.authorized_shares - self.issued_shares
