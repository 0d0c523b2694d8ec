"""Waterfall computation block.

Distributes exit proceeds over a seniority stack:
1. Liquidation preferences, tier by tier (most senior first)
2. Residual proceeds pro rata by share count to common, as-converted
   convertibles and participating preferred
3. Participation caps enforced by water-filling: capped claims are clamped
   and the excess is redistributed among the remaining participants

All amounts are integer cents at round boundaries. Each round is split with
allocate_cents, so every round sums exactly to what it distributes.
"""

from typing import Dict, List, Tuple
from decimal import Decimal
import pandas as pd
import structlog

from .base import Block, BlockContext
from ..errors import DataInconsistencyError, InvalidScenarioError
from ..schemas import (
    Claim,
    LiquidationPayout,
    LiquidationScenario,
    SeniorityTier,
    WaterfallDistribution,
    WaterfallStep,
    allocate_cents,
    floor_cents,
    round_cents,
)

logger = structlog.get_logger()

ClaimKey = Tuple[str, str, str]


# =============================================================================
# Distribution
# =============================================================================

def distribute(stack: List[SeniorityTier], exit_amount_cents: int) -> WaterfallDistribution:
    """Distribute ``exit_amount_cents`` over a seniority stack.

    Args:
        stack: Tiers from build_seniority_stack (most senior first, residual last)
        exit_amount_cents: Proceeds to distribute

    Returns:
        WaterfallDistribution with one payout per claim and the steps taken

    Raises:
        InvalidScenarioError: If the exit amount is missing or negative
        DataInconsistencyError: If the stack has more than one residual tier

    Example:
        Preferred: 100 shares @ $1.00, non-participating (rank 0)
        Common: 100 shares
        Exit: $150

        Step 1 - Liquidation Preference: preferred $100, remaining $50
        Step 2 - Participation: common $50
    """
    if exit_amount_cents is None or isinstance(exit_amount_cents, bool) or not isinstance(exit_amount_cents, int):
        raise InvalidScenarioError(f"exit_amount_cents must be an integer, got {exit_amount_cents!r}")
    if exit_amount_cents < 0:
        raise InvalidScenarioError(f"exit_amount_cents must be non-negative, got {exit_amount_cents}")

    claims: Dict[ClaimKey, Claim] = {}
    for tier in stack:
        for claim in tier.claims:
            claims.setdefault(claim.key, claim)

    ledger: Dict[ClaimKey, Dict[str, int]] = {
        key: {"preference": 0, "participation": 0, "common": 0} for key in claims
    }
    steps: List[WaterfallStep] = []
    remaining = exit_amount_cents

    preference_tiers = [tier for tier in stack if not tier.is_residual]
    residual_tiers = [tier for tier in stack if tier.is_residual]
    if len(residual_tiers) > 1:
        raise DataInconsistencyError(f"Seniority stack has {len(residual_tiers)} residual tiers")

    # Step 1: Preferences by seniority
    remaining = _distribute_preferences(preference_tiers, remaining, ledger, steps)

    # Step 2-3: Participation with cap water-filling
    if residual_tiers:
        remaining = _distribute_participation(residual_tiers[0], remaining, ledger, claims, steps)

    payouts = []
    for key, claim in claims.items():
        amounts = ledger[key]
        payouts.append(LiquidationPayout(
            company_investor_id=claim.investor_id,
            security_id=claim.security_id,
            security_type=claim.security_type,
            share_class_name=claim.share_class_name,
            number_of_shares=claim.number_of_shares,
            payout_amount_cents=amounts["preference"] + amounts["participation"] + amounts["common"],
            liquidation_preference_amount=amounts["preference"],
            participation_amount=amounts["participation"],
            common_proceeds_amount=amounts["common"],
        ))

    return WaterfallDistribution(
        exit_amount_cents=exit_amount_cents,
        payouts=payouts,
        steps=steps,
    )


def _distribute_preferences(
    tiers: List[SeniorityTier],
    remaining: int,
    ledger: Dict[ClaimKey, Dict[str, int]],
    steps: List[WaterfallStep],
) -> int:
    """Pay each tier's preference in order; a short tier is paid pro rata.

    Returns:
        Remaining proceeds after the preference round
    """
    for tier in tiers:
        if remaining <= 0:
            break

        demand = tier.total_preference_cents
        if demand <= 0:
            continue

        amount_to_pay = min(round_cents(demand), remaining)
        allocations = allocate_cents(
            amount_to_pay,
            {claim.key: claim.preference_cents for claim in tier.claims},
        )
        for key, amount in allocations.items():
            ledger[key]["preference"] += amount

        steps.append(_step(
            steps,
            f"Liquidation Preference - {tier.label}" + (f" (Rank {tier.rank})" if tier.rank is not None else ""),
            remaining,
            amount_to_pay,
        ))
        remaining -= amount_to_pay

    return remaining


def _distribute_participation(
    tier: SeniorityTier,
    remaining: int,
    ledger: Dict[ClaimKey, Dict[str, int]],
    claims: Dict[ClaimKey, Claim],
    steps: List[WaterfallStep],
) -> int:
    """Share the residual pro rata by share count, honoring participation caps.

    Water-filling: every pass clamps the claims whose pro-rata share would
    reach their cap headroom, then re-splits what is left among the rest.
    Each pass caps at least one claim or ends the loop, so at most
    N + 1 passes run for N capped claims.

    Returns:
        Proceeds no participant could absorb (zero unless everyone is capped)
    """
    participants = [claim for claim in tier.claims if claim.participating_shares > 0]
    if remaining <= 0 or not participants:
        return remaining

    headroom: Dict[ClaimKey, int] = {}
    for claim in participants:
        if claim.participation_cap_cents is not None:
            cap = floor_cents(claim.participation_cap_cents)
            headroom[claim.key] = max(cap - ledger[claim.key]["preference"], 0)

    clamped: Dict[ClaimKey, int] = {}
    active = list(participants)
    available = remaining

    for _ in range(len(headroom) + 1):
        total_shares = sum((c.participating_shares for c in active), Decimal("0"))
        if total_shares <= 0 or available <= 0:
            break

        newly_capped = [
            claim for claim in active
            if claim.key in headroom
            and Decimal(available) * claim.participating_shares / total_shares >= headroom[claim.key]
        ]
        if not newly_capped:
            break

        for claim in newly_capped:
            clamped[claim.key] = headroom[claim.key]
            available -= headroom[claim.key]
        active = [claim for claim in active if claim.key not in clamped]

    allocations = dict(clamped)
    if active and available > 0:
        allocations.update(allocate_cents(
            available,
            {claim.key: claim.participating_shares for claim in active},
        ))
        _enforce_headroom(allocations, active, headroom)

    distributed = sum(allocations.values())
    for key, amount in allocations.items():
        bucket = "participation" if claims[key].is_preferred else "common"
        ledger[key][bucket] += amount

    if clamped:
        logger.debug("participation_caps_applied", capped_claims=len(clamped))

    steps.append(_step(
        steps,
        f"Participation - {tier.label}" + (f" ({len(clamped)} capped)" if clamped else ""),
        remaining,
        distributed,
    ))

    return remaining - distributed


def _enforce_headroom(
    allocations: Dict[ClaimKey, int],
    active: List[Claim],
    headroom: Dict[ClaimKey, int],
) -> None:
    """Move rounding cents that overshoot a cap onto the largest uncapped claim."""
    overflow = 0
    for claim in active:
        limit = headroom.get(claim.key)
        if limit is not None and allocations[claim.key] > limit:
            overflow += allocations[claim.key] - limit
            allocations[claim.key] = limit

    if overflow == 0:
        return

    uncapped = [claim for claim in active if claim.key not in headroom]
    if uncapped:
        largest = max(uncapped, key=lambda c: allocations[c.key])
        allocations[largest.key] += overflow


def _step(steps: List[WaterfallStep], name: str, available: int, distributed: int) -> WaterfallStep:
    return WaterfallStep(
        step=len(steps) + 1,
        step_name=name,
        amount_available=available,
        amount_distributed=distributed,
        amount_remaining=available - distributed,
    )


# =============================================================================
# Waterfall Block
# =============================================================================

class WaterfallBlock(Block):
    """Computes the liquidation waterfall for a scenario.

    Inputs (from context):
        - seniority_stack: List[SeniorityTier] from SeniorityBlock
        - liquidation_scenario: LiquidationScenario with the exit amount

    Outputs (to context):
        - waterfall_distribution: WaterfallDistribution (payouts + steps)

        - waterfall_steps: DataFrame, one row per step:
            * step, step_name, amount_available, amount_distributed, amount_remaining

        - waterfall_by_holder: DataFrame, one row per claim:
            * company_investor_id, security_type, security_id, share_class_name
            * number_of_shares
            * liquidation_preference_amount, participation_amount, common_proceeds_amount
            * payout_amount_cents
            * distribution_pct: percentage of the exit amount

        - waterfall_by_class: DataFrame aggregated by security:
            * security_type, security_id, payout_amount_cents, distribution_pct

    Example:
        context = BlockContext()
        context.set("seniority_stack", stack)
        context.set("liquidation_scenario", scenario)

        WaterfallBlock().execute(context)
        by_holder_df = context.get("waterfall_by_holder")
    """

    def __init__(
        self,
        stack_key: str = "seniority_stack",
        scenario_key: str = "liquidation_scenario",
    ):
        self.stack_key = stack_key
        self.scenario_key = scenario_key

    def inputs(self) -> List[str]:
        return [self.stack_key, self.scenario_key]

    def outputs(self) -> List[str]:
        return [
            "waterfall_distribution",
            "waterfall_steps",
            "waterfall_by_holder",
            "waterfall_by_class",
        ]

    def execute(self, context: BlockContext) -> None:
        stack: List[SeniorityTier] = context.get(self.stack_key)
        scenario: LiquidationScenario = context.get(self.scenario_key)

        distribution = distribute(stack, scenario.exit_amount_cents).with_scenario(scenario.id)

        context.set("waterfall_distribution", distribution)
        context.set("waterfall_steps", self._compute_steps(distribution))
        by_holder_df = self._compute_by_holder(distribution)
        context.set("waterfall_by_holder", by_holder_df)
        context.set("waterfall_by_class", self._compute_by_class(by_holder_df))

    def _compute_steps(self, distribution: WaterfallDistribution) -> pd.DataFrame:
        columns = ["step", "step_name", "amount_available", "amount_distributed", "amount_remaining"]
        return pd.DataFrame([s.model_dump() for s in distribution.steps], columns=columns)

    def _compute_by_holder(self, distribution: WaterfallDistribution) -> pd.DataFrame:
        columns = [
            "company_investor_id",
            "security_type",
            "security_id",
            "share_class_name",
            "number_of_shares",
            "liquidation_preference_amount",
            "participation_amount",
            "common_proceeds_amount",
            "payout_amount_cents",
            "distribution_pct",
        ]
        exit_amount = distribution.exit_amount_cents

        rows = []
        for payout in distribution.payouts:
            row = payout.model_dump(include=set(columns))
            row["distribution_pct"] = (
                payout.payout_amount_cents / exit_amount * 100 if exit_amount > 0 else 0.0
            )
            rows.append(row)

        df = pd.DataFrame(rows, columns=columns)
        if not df.empty:
            df = df.sort_values("payout_amount_cents", ascending=False, kind="stable").reset_index(drop=True)
        return df

    def _compute_by_class(self, by_holder_df: pd.DataFrame) -> pd.DataFrame:
        if by_holder_df.empty:
            return pd.DataFrame(columns=[
                "security_type",
                "security_id",
                "payout_amount_cents",
                "distribution_pct",
            ])

        by_class = by_holder_df.groupby(["security_type", "security_id"]).agg({
            "payout_amount_cents": "sum",
            "distribution_pct": "sum",
        }).reset_index()

        return by_class.sort_values("payout_amount_cents", ascending=False, kind="stable").reset_index(drop=True)
