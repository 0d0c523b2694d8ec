"""Payout records and the full result of one waterfall run."""

from typing import Dict, List, Optional, Tuple
from pydantic import Field, model_validator

from .base import Cents, DomainModel, InvestorId, SecurityId
from .claims import SecurityType


# =============================================================================
# Liquidation Payout
# =============================================================================

class LiquidationPayout(DomainModel):
    """What one (investor, security) claim receives in a scenario.

    Breakdown (all whole cents):
        - liquidation_preference_amount: paid in the preference round
        - participation_amount: preferred participation in the residual
        - common_proceeds_amount: residual paid to common / as-converted holders

    payout_amount_cents always equals the sum of the three.
    """

    scenario_id: Optional[str] = None
    company_investor_id: InvestorId
    security_id: SecurityId
    security_type: SecurityType

    share_class_name: Optional[str] = None
    number_of_shares: Optional[int] = None

    payout_amount_cents: Cents
    liquidation_preference_amount: Cents = 0
    participation_amount: Cents = 0
    common_proceeds_amount: Cents = 0

    @model_validator(mode='after')
    def validate_breakdown(self):
        breakdown = (
            self.liquidation_preference_amount
            + self.participation_amount
            + self.common_proceeds_amount
        )
        if breakdown != self.payout_amount_cents:
            raise ValueError(
                f"payout_amount_cents ({self.payout_amount_cents}) does not equal "
                f"its breakdown ({breakdown})"
            )
        return self

    @property
    def key(self) -> Tuple[str, str, str]:
        return (self.company_investor_id, self.security_type, self.security_id)


# =============================================================================
# Waterfall Step
# =============================================================================

class WaterfallStep(DomainModel):
    """One step of the waterfall, for audit display."""

    step: int
    step_name: str
    amount_available: Cents
    amount_distributed: Cents
    amount_remaining: Cents


# =============================================================================
# Waterfall Distribution
# =============================================================================

class WaterfallDistribution(DomainModel):
    """Result of distributing one exit amount over a seniority stack."""

    exit_amount_cents: Cents
    payouts: List[LiquidationPayout] = Field(default_factory=list)
    steps: List[WaterfallStep] = Field(default_factory=list)

    @property
    def total_distributed_cents(self) -> int:
        return sum(p.payout_amount_cents for p in self.payouts)

    @property
    def undistributed_cents(self) -> int:
        """Proceeds no claim could absorb (e.g., every participant capped)."""
        return self.exit_amount_cents - self.total_distributed_cents

    def payouts_by_key(self) -> Dict[Tuple[str, str, str], LiquidationPayout]:
        return {p.key: p for p in self.payouts}

    def payout_for(
        self,
        investor_id: str,
        security_id: str,
        security_type: Optional[SecurityType] = None,
    ) -> Optional[LiquidationPayout]:
        """Find the payout for an investor's security (any type unless given)."""
        for payout in self.payouts:
            if payout.company_investor_id != investor_id or payout.security_id != security_id:
                continue
            if security_type is None or payout.security_type == security_type:
                return payout
        return None

    def payouts_for_investor(self, investor_id: str) -> List[LiquidationPayout]:
        return [p for p in self.payouts if p.company_investor_id == investor_id]

    def with_scenario(self, scenario_id: str) -> "WaterfallDistribution":
        """Copy with every payout tagged with ``scenario_id``."""
        return self.model_copy(update={
            "payouts": [p.model_copy(update={"scenario_id": scenario_id}) for p in self.payouts]
        })
