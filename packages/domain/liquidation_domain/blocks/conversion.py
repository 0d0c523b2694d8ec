"""Convertible conversion computation block.

Decides, for every convertible security, whether the holder is better off
converting to equity or being redeemed for principal plus accrued interest
at the scenario's exit amount.

Conversion price (lowest applicable wins):
    round price     = principal / implied_shares
    cap price       = valuation_cap / fully diluted shares
    discount price  = round price * (1 - discount / 100)

Converted shares = (principal + accrued interest) / conversion price

Convertibles interact: each conversion dilutes the residual pool for every
other as-converted holder. Decisions are therefore resolved by fixed-point
iteration over full waterfall evaluations.
"""

from typing import Dict, List, Optional
from decimal import Decimal
import structlog

from .base import Block, BlockContext
from .seniority import build_convertible_claim, build_equity_claims, build_seniority_stack
from .waterfall import distribute
from ..config import EngineSettings, get_settings
from ..schemas import (
    CapTableSnapshot,
    Claim,
    ConvertibleResolution,
    ConvertibleSecurity,
    LiquidationScenario,
)

logger = structlog.get_logger()


# =============================================================================
# Pricing
# =============================================================================

def conversion_price_cents(
    security: ConvertibleSecurity,
    fully_diluted_shares: int,
    implied_price_cents: Decimal,
) -> Optional[Decimal]:
    """Lowest applicable conversion price per share, in cents.

    Args:
        security: Convertible to price
        fully_diluted_shares: Denominator for the valuation cap price
        implied_price_cents: Exit value per as-converted share, used as the
            round price when the security has no implied shares

    Returns:
        Price in cents, or None when no positive price exists (zero fully
        diluted shares and no implied shares, or zero principal)
    """
    candidates: List[Decimal] = []

    if security.implied_shares > 0:
        round_price = Decimal(security.principal_value_cents) / Decimal(security.implied_shares)
    else:
        round_price = implied_price_cents
    candidates.append(round_price)

    if security.valuation_cap_cents is not None and fully_diluted_shares > 0:
        candidates.append(Decimal(security.valuation_cap_cents) / Decimal(fully_diluted_shares))

    if security.discount_rate_percent is not None:
        candidates.append(round_price * (Decimal("1") - security.discount_rate_percent / Decimal("100")))

    prices = [price for price in candidates if price > 0]
    return min(prices) if prices else None


# =============================================================================
# Resolution
# =============================================================================

class _Terms:
    """Scenario-specific numbers and both candidate claims for one convertible."""

    def __init__(self, security: ConvertibleSecurity, redemption_value: Decimal, price: Optional[Decimal]):
        self.security = security
        self.redemption_value = redemption_value
        self.price = price
        self.converted_shares = redemption_value / price if price else Decimal("0")
        self.converted_claim = build_convertible_claim(
            security,
            converts=True,
            converted_shares=self.converted_shares,
            redemption_value_cents=redemption_value,
        )
        self.redeemed_claim = build_convertible_claim(
            security,
            converts=False,
            converted_shares=self.converted_shares,
            redemption_value_cents=redemption_value,
        )

    def claim(self, converts: bool) -> Claim:
        return self.converted_claim if converts else self.redeemed_claim


def resolve_convertibles(
    snapshot: CapTableSnapshot,
    scenario: LiquidationScenario,
    settings: Optional[EngineSettings] = None,
) -> Dict[str, ConvertibleResolution]:
    """Decide conversion vs. redemption for every convertible.

    Every convertible starts out converting. Each pass re-evaluates one
    convertible at a time with the others held at their current decision;
    the holder converts when the as-converted payout is at least the cash
    payout. Passes repeat until one changes nothing. If
    max_conversion_iterations is reached first, the last decisions stand and
    a warning is logged.

    The waterfall for the current decisions is kept between evaluations, so
    each convertible costs at most one extra waterfall run per pass. A
    converting holder whose current payout already exceeds anything its
    redemption could pay (redemption value plus rounding slack) keeps
    converting without running the redeemed alternative.

    Args:
        snapshot: Cap table snapshot
        scenario: Scenario providing the exit amount and valuation date
        settings: Engine settings (defaults to get_settings())

    Returns:
        Dict of security_id -> ConvertibleResolution

    Example:
        $100 principal, 100 implied shares, 100 common shares, $400 exit
        → converting pays $200, redeeming at most $100 → converts
    """
    settings = settings or get_settings()
    if not snapshot.convertible_securities:
        return {}

    fully_diluted = snapshot.fully_diluted_shares
    implied_price = snapshot.implied_price_per_share_cents(scenario.exit_amount_cents)

    terms: Dict[str, _Terms] = {}
    for security in snapshot.convertible_securities:
        redemption_value = security.redemption_value_cents(
            scenario.valuation_date, settings.interest_day_count_basis
        )
        price = conversion_price_cents(security, fully_diluted, implied_price)
        terms[security.id] = _Terms(security, redemption_value, price)

    equity_claims = build_equity_claims(snapshot)
    # A redeemed claim gets its rounded share of its tier plus at most one
    # cent per claim of rounding residual
    rounding_slack = len(equity_claims) + len(terms) + 1

    def evaluate(trial: Dict[str, bool]) -> Dict[str, int]:
        claims = equity_claims + [terms[sid].claim(trial[sid]) for sid in terms]
        stack = build_seniority_stack(claims, snapshot.share_classes, settings)
        payouts = distribute(stack, scenario.exit_amount_cents).payouts_by_key()
        result = {}
        for sid, term in terms.items():
            payout = payouts.get((term.security.investor_id, "convertible", sid))
            result[sid] = payout.payout_amount_cents if payout else 0
        return result

    decisions: Dict[str, bool] = {sid: t.price is not None for sid, t in terms.items()}
    current = evaluate(decisions)

    as_converted: Dict[str, int] = {}
    redeemed: Dict[str, Optional[int]] = {}
    for sid in terms:
        if decisions[sid]:
            as_converted[sid] = current[sid]
            redeemed[sid] = None
        else:
            as_converted[sid] = 0
            redeemed[sid] = current[sid]

    converged = False
    for _ in range(settings.max_conversion_iterations):
        changed = False
        for security_id, term in terms.items():
            if term.price is None:
                redeemed[security_id] = current[security_id]
                continue

            converts = decisions[security_id]
            if converts and current[security_id] >= term.redemption_value + rounding_slack:
                as_converted[security_id] = current[security_id]
                redeemed[security_id] = None
                continue

            trial = dict(decisions)
            trial[security_id] = not converts
            alternative = evaluate(trial)

            if converts:
                as_converted[security_id], redeemed[security_id] = current[security_id], alternative[security_id]
            else:
                as_converted[security_id], redeemed[security_id] = alternative[security_id], current[security_id]

            best = as_converted[security_id] >= redeemed[security_id]
            if best != converts:
                decisions, current = trial, alternative
                changed = True

        if not changed:
            converged = True
            break

    if not converged:
        logger.warning(
            "convertible_resolution_not_converged",
            company_id=snapshot.company_id,
            scenario_id=scenario.id,
            iterations=settings.max_conversion_iterations,
            decisions=decisions,
        )

    resolutions: Dict[str, ConvertibleResolution] = {}
    for security_id, term in terms.items():
        resolutions[security_id] = ConvertibleResolution(
            security_id=security_id,
            investor_id=term.security.investor_id,
            converts=decisions[security_id],
            redemption_value_cents=term.redemption_value,
            conversion_price_cents=term.price,
            converted_shares=term.converted_shares,
            implied_shares=term.security.implied_shares,
            as_converted_payout_cents=as_converted[security_id],
            redemption_payout_cents=redeemed[security_id],
        )

    logger.debug(
        "convertibles_resolved",
        company_id=snapshot.company_id,
        scenario_id=scenario.id,
        converted=sum(1 for r in resolutions.values() if r.converts),
        redeemed=sum(1 for r in resolutions.values() if not r.converts),
    )
    return resolutions


# =============================================================================
# Conversion Block
# =============================================================================

class ConversionBlock(Block):
    """Resolves every convertible of the snapshot for the scenario.

    Inputs (from context):
        - cap_table_snapshot: CapTableSnapshot
        - liquidation_scenario: LiquidationScenario

    Outputs (to context):
        - convertible_resolutions: Dict[security_id, ConvertibleResolution]
    """

    def __init__(
        self,
        snapshot_key: str = "cap_table_snapshot",
        scenario_key: str = "liquidation_scenario",
        settings: Optional[EngineSettings] = None,
    ):
        self.snapshot_key = snapshot_key
        self.scenario_key = scenario_key
        self.settings = settings

    def inputs(self) -> List[str]:
        return [self.snapshot_key, self.scenario_key]

    def outputs(self) -> List[str]:
        return ["convertible_resolutions"]

    def execute(self, context: BlockContext) -> None:
        snapshot: CapTableSnapshot = context.get(self.snapshot_key)
        scenario: LiquidationScenario = context.get(self.scenario_key)
        context.set("convertible_resolutions", resolve_convertibles(snapshot, scenario, self.settings))
