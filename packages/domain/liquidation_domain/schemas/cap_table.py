"""Cap table snapshot consumed by the liquidation engine.

The snapshot is a read-only, point-in-time copy of a company's capital
structure. The engine never writes to it; it is loaded once per scenario from
whatever persistence layer owns the cap table.
"""

from typing import Dict, List, Optional, Tuple
from collections import defaultdict
from decimal import Decimal
from pydantic import Field, model_validator

from .base import DomainModel
from .share_classes import ShareClass
from .holdings import ShareHolding, OptionPool
from .convertibles import ConvertibleSecurity


# =============================================================================
# Cap Table Snapshot
# =============================================================================

class CapTableSnapshot(DomainModel):
    """A company's capital structure at the time a scenario is computed.

    Key properties:
        - Immutable input (the engine only reads it)
        - Reproducible (same snapshot + same exit → same payouts)
        - Self-consistent (every holding refers to a known share class)

    Fully diluted shares:
        outstanding shares (all classes, preferred counted 1:1)
        + option pool shares still available for grant

    Usage:
        snapshot = load_cap_table_snapshot(session, company_id)
        snapshot.fully_diluted_shares
        snapshot.aggregated_holdings()
    """

    company_id: str = Field(description="Company the cap table belongs to")

    share_classes: Dict[str, ShareClass] = Field(
        default_factory=dict,
        description="Share class definitions (share_class_id → ShareClass)"
    )

    share_holdings: List[ShareHolding] = Field(
        default_factory=list,
        description="All issued share holdings"
    )

    convertible_securities: List[ConvertibleSecurity] = Field(
        default_factory=list,
        description="Outstanding convertible securities"
    )

    option_pools: List[OptionPool] = Field(
        default_factory=list,
        description="Option pools (count towards fully diluted shares only)"
    )

    recorded_fully_diluted_shares: Optional[int] = Field(
        default=None,
        ge=0,
        description="Fully diluted total recorded by the company, if any"
    )

    @model_validator(mode='after')
    def validate_references(self):
        """Every holding and pool must point at a defined share class."""
        for class_id, share_class in self.share_classes.items():
            if class_id != share_class.id:
                raise ValueError(
                    f"share_classes key '{class_id}' does not match class id '{share_class.id}'"
                )

        for holding in self.share_holdings:
            if holding.share_class_id not in self.share_classes:
                raise ValueError(
                    f"Holding of investor '{holding.investor_id}' refers to unknown "
                    f"share class '{holding.share_class_id}'"
                )

        for pool in self.option_pools:
            if pool.share_class_id not in self.share_classes:
                raise ValueError(
                    f"Option pool '{pool.id}' refers to unknown share class '{pool.share_class_id}'"
                )

        return self

    @property
    def outstanding_shares(self) -> int:
        """Issued shares across every class."""
        return sum(h.number_of_shares for h in self.share_holdings)

    @property
    def option_pool_available_shares(self) -> int:
        return sum(p.available_shares for p in self.option_pools)

    @property
    def fully_diluted_shares(self) -> int:
        """Outstanding shares + ungranted option pool shares."""
        return self.outstanding_shares + self.option_pool_available_shares

    @property
    def total_convertible_implied_shares(self) -> int:
        return sum(c.implied_shares for c in self.convertible_securities)

    @property
    def is_empty(self) -> bool:
        return not self.share_holdings and not self.convertible_securities

    def aggregated_holdings(self) -> Dict[Tuple[str, str], int]:
        """Total shares per (investor_id, share_class_id).

        Returns:
            Dict ordered by first appearance of each investor/class pair
        """
        totals: Dict[Tuple[str, str], int] = defaultdict(int)
        for holding in self.share_holdings:
            totals[(holding.investor_id, holding.share_class_id)] += holding.number_of_shares
        return dict(totals)

    def share_class_shares(self, share_class_id: str) -> int:
        return sum(
            h.number_of_shares for h in self.share_holdings
            if h.share_class_id == share_class_id
        )

    def implied_price_per_share_cents(self, exit_amount_cents: int) -> Decimal:
        """Exit value per fully diluted share (as-converted), in cents.

        Returns zero when there are no fully diluted shares to divide by.
        """
        denominator = self.fully_diluted_shares + self.total_convertible_implied_shares
        if denominator <= 0:
            return Decimal("0")
        return Decimal(exit_amount_cents) / Decimal(denominator)
