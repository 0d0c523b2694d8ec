"""Tests for convertible pricing, interest and convert-vs-redeem resolution.

Unless stated otherwise: one convertible with $100.00 principal and 100
implied shares (round price $1.00), 100 common shares, no option pool.
"""

from datetime import date, datetime
from decimal import Decimal

import pytest
from pydantic import ValidationError
from structlog.testing import capture_logs

import liquidation_domain.blocks.conversion as conversion_module
from liquidation_domain import LiquidationScenarioCalculation
from liquidation_domain.blocks import BlockContext, ConversionBlock, conversion_price_cents, resolve_convertibles
from liquidation_domain.config import EngineSettings
from liquidation_domain.schemas import (
    CapTableSnapshot,
    ConvertibleSecurity,
    LiquidationScenario,
    ShareClass,
    ShareHolding,
    round_cents,
)


VALUATION_DATE = date(2025, 1, 1)


def safe(security_id="safe_1", investor_id="angel", principal=10000, implied_shares=100, **terms):
    return ConvertibleSecurity(
        id=security_id,
        investor_id=investor_id,
        principal_value_cents=principal,
        implied_shares=implied_shares,
        **terms,
    )


def snapshot_with(*convertibles, common_shares=100, extra_classes=(), extra_holdings=()):
    classes = [ShareClass(id="common", name="Common", created_at=datetime(2020, 1, 1)), *extra_classes]
    holdings = [ShareHolding(investor_id="founder", share_class_id="common", number_of_shares=common_shares)]
    holdings += [
        ShareHolding(investor_id=investor, share_class_id=class_id, number_of_shares=shares)
        for investor, class_id, shares in extra_holdings
    ]
    return CapTableSnapshot(
        company_id="acme",
        share_classes={c.id: c for c in classes},
        share_holdings=holdings,
        convertible_securities=list(convertibles),
    )


def scenario(exit_amount_cents):
    return LiquidationScenario(
        id="exit",
        company_id="acme",
        exit_amount_cents=exit_amount_cents,
        valuation_date=VALUATION_DATE,
    )


def run(snapshot, exit_amount_cents, settings=None):
    settings = settings or EngineSettings(_env_file=None)
    return LiquidationScenarioCalculation(session=None, settings=settings).calculate(
        snapshot, scenario(exit_amount_cents)
    )


class TestConversionPrice:
    def test_round_price(self):
        assert conversion_price_cents(safe(), 100, Decimal("0")) == Decimal("100")

    def test_valuation_cap_price_wins_when_lower(self):
        security = safe(valuation_cap_cents=2000)
        assert conversion_price_cents(security, 100, Decimal("0")) == Decimal("20")

    def test_discount_price(self):
        security = safe(discount_rate_percent=Decimal("20"))
        assert conversion_price_cents(security, 100, Decimal("0")) == Decimal("80")

    def test_lowest_of_cap_and_discount(self):
        security = safe(valuation_cap_cents=9000, discount_rate_percent=Decimal("20"))
        # cap price 90, discount price 80
        assert conversion_price_cents(security, 100, Decimal("0")) == Decimal("80")

    def test_cap_ignored_without_fully_diluted_shares(self):
        security = safe(valuation_cap_cents=2000)
        assert conversion_price_cents(security, 0, Decimal("0")) == Decimal("100")

    def test_implied_price_used_without_implied_shares(self):
        security = safe(implied_shares=0)
        assert conversion_price_cents(security, 100, Decimal("250")) == Decimal("250")

    def test_unpriceable(self):
        security = safe(implied_shares=0)
        assert conversion_price_cents(security, 0, Decimal("0")) is None


class TestInterest:
    def test_simple_interest_for_one_year(self):
        """10% on $100.00 over 366 days (2024 is a leap year) / 365.25."""
        security = safe(interest_rate_percent=Decimal("10"), issued_at=datetime(2024, 1, 1))

        interest = security.accrued_interest_cents(VALUATION_DATE)

        assert round_cents(interest) == 1002
        assert round_cents(security.redemption_value_cents(VALUATION_DATE)) == 11002

    def test_accrual_stops_at_maturity(self):
        security = safe(
            interest_rate_percent=Decimal("10"),
            issued_at=datetime(2024, 1, 1),
            maturity_date=date(2024, 7, 1),
        )

        # 182 days
        assert round_cents(security.accrued_interest_cents(VALUATION_DATE)) == 498

    def test_no_interest_before_issue(self):
        security = safe(interest_rate_percent=Decimal("10"), issued_at=datetime(2026, 1, 1))
        assert security.accrued_interest_cents(VALUATION_DATE) == Decimal("0")

    def test_no_rate_no_interest(self):
        assert safe().redemption_value_cents(VALUATION_DATE) == Decimal("10000")

    def test_day_count_basis_is_configurable(self):
        security = safe(interest_rate_percent=Decimal("10"), issued_at=datetime(2024, 1, 2))
        # 365 days on a 365-day basis is exactly one year
        assert security.accrued_interest_cents(VALUATION_DATE, Decimal("365")) == Decimal("1000")

    def test_rate_requires_issue_date(self):
        with pytest.raises(ValidationError, match="no issued_at"):
            safe(interest_rate_percent=Decimal("8"))


class TestResolution:
    def test_beneficial_conversion(self):
        """Exit $400.00: converting pays $200.00 vs. $100.00 redeemed."""
        distribution = run(snapshot_with(safe()), 40000)

        convertible = distribution.payout_for("angel", "safe_1", "convertible")
        assert convertible.payout_amount_cents == 20000
        assert convertible.common_proceeds_amount == 20000
        assert distribution.payout_for("founder", "common").payout_amount_cents == 20000

    def test_valuation_cap_conversion(self):
        """Cap $20.00 over 100 FD shares → $0.20/share → 500 shares.

        Exit $500.00 split 500:100 → $416.67 to the SAFE, $83.33 to common.
        """
        distribution = run(snapshot_with(safe(valuation_cap_cents=2000)), 50000)

        assert distribution.payout_for("angel", "safe_1").payout_amount_cents == 41667
        assert distribution.payout_for("founder", "common").payout_amount_cents == 8333

    def test_discount_conversion(self):
        """20% discount → $0.80/share → 125 shares; exit $500.00 split 125:100."""
        distribution = run(snapshot_with(safe(discount_rate_percent=Decimal("20"))), 50000)

        assert distribution.payout_for("angel", "safe_1").payout_amount_cents == 27778
        assert distribution.payout_for("founder", "common").payout_amount_cents == 22222

    def test_redemption_with_interest(self):
        """Note with 10% interest and 50 implied shares, exit $200.00.

        Converting: ~55 shares of ~155 → ~$70.98.
        Redeeming: $100.00 + $10.02 interest → $110.02, paid first.
        """
        note = safe(implied_shares=50, interest_rate_percent=Decimal("10"), issued_at=datetime(2024, 1, 1))

        distribution = run(snapshot_with(note), 20000)

        payout = distribution.payout_for("angel", "safe_1")
        assert payout.payout_amount_cents == 11002
        assert payout.liquidation_preference_amount == 11002
        assert distribution.payout_for("founder", "common").payout_amount_cents == 8998

    def test_multiple_convertibles_all_convert(self):
        """Two identical SAFEs and 100 common, exit $600.00 → $200.00 each."""
        snapshot = snapshot_with(safe("safe_1", "angel"), safe("safe_2", "other_angel"))

        distribution = run(snapshot, 60000)

        assert distribution.payout_for("angel", "safe_1").payout_amount_cents == 20000
        assert distribution.payout_for("other_angel", "safe_2").payout_amount_cents == 20000
        assert distribution.payout_for("founder", "common").payout_amount_cents == 20000

    def test_insufficient_exit_redeems(self):
        """Exit $50.00 below principal: the SAFE takes everything as redemption."""
        distribution = run(snapshot_with(safe()), 5000)

        assert distribution.payout_for("angel", "safe_1").payout_amount_cents == 5000
        assert distribution.payout_for("founder", "common").payout_amount_cents == 0

    def test_redeemed_convertible_senior_to_preferred_by_default(self):
        """Preferred 100 @ $1.00 (rank 0), SAFE $100.00, exit $150.00.

        Converting would pay $25.00; redeeming first pays $100.00.
        """
        series_a = ShareClass(
            id="series_a",
            name="Series A",
            is_preferred=True,
            original_issue_price_per_share=Decimal("1.00"),
            seniority_rank=0,
            created_at=datetime(2021, 1, 1),
        )
        snapshot = snapshot_with(safe(), extra_classes=[series_a], extra_holdings=[("vc", "series_a", 100)])

        distribution = run(snapshot, 15000)

        assert distribution.payout_for("angel", "safe_1").payout_amount_cents == 10000
        assert distribution.payout_for("vc", "series_a").payout_amount_cents == 5000
        assert distribution.payout_for("founder", "common").payout_amount_cents == 0

    def test_convertible_seniority_rank_configurable(self):
        series_a = ShareClass(
            id="series_a",
            name="Series A",
            is_preferred=True,
            original_issue_price_per_share=Decimal("1.00"),
            seniority_rank=0,
            created_at=datetime(2021, 1, 1),
        )
        snapshot = snapshot_with(safe(), extra_classes=[series_a], extra_holdings=[("vc", "series_a", 100)])

        distribution = run(snapshot, 15000, EngineSettings(_env_file=None, convertible_seniority_rank=1))

        assert distribution.payout_for("vc", "series_a").payout_amount_cents == 10000
        assert distribution.payout_for("angel", "safe_1").payout_amount_cents == 5000

    def test_dominant_conversion_skips_redemption_run(self):
        """Converting pays $200.00, more than the $100.00 redemption could ever pay."""
        resolutions = resolve_convertibles(
            snapshot_with(safe()), scenario(40000), EngineSettings(_env_file=None)
        )

        resolution = resolutions["safe_1"]
        assert resolution.converts
        assert resolution.conversion_price_cents == Decimal("100")
        assert resolution.converted_shares == Decimal("100")
        assert resolution.as_converted_payout_cents == 20000
        assert resolution.redemption_payout_cents is None

    def test_redeemed_resolution_reports_both_outcomes(self):
        """Exit $50.00: converting pays $25.00, redeeming $50.00."""
        resolutions = resolve_convertibles(
            snapshot_with(safe()), scenario(5000), EngineSettings(_env_file=None)
        )

        resolution = resolutions["safe_1"]
        assert not resolution.converts
        assert resolution.as_converted_payout_cents == 2500
        assert resolution.redemption_payout_cents == 5000

    def test_divergent_decisions(self):
        """Expensive note (50 implied shares for $100.00) and cheap SAFE ($10.00 for 100), exit $300.00.

        All converting: 250 shares → note $60.00, so the note redeems for $100.00.
        Remaining $200.00 split 100:100 → SAFE $100.00 (vs. $10.00 cash), common $100.00.
        """
        note = safe("note_a", "fund", principal=10000, implied_shares=50)
        cheap_safe = safe("safe_b", "angel", principal=1000, implied_shares=100)

        distribution = run(snapshot_with(note, cheap_safe), 30000)

        note_payout = distribution.payout_for("fund", "note_a")
        assert note_payout.payout_amount_cents == 10000
        assert note_payout.liquidation_preference_amount == 10000
        safe_payout = distribution.payout_for("angel", "safe_b")
        assert safe_payout.payout_amount_cents == 10000
        assert safe_payout.common_proceeds_amount == 10000
        assert distribution.payout_for("founder", "common").payout_amount_cents == 10000

    def test_redemption_cascades_to_other_convertible(self):
        """SAFE $120.00 and note $200.00, 100 implied shares each, exit $400.00.

        Pass 1: all converting the SAFE gets $133.33 and keeps converting;
        the note redeems ($200.00 vs. $133.33).
        Pass 2: with the note paid first the SAFE converts into only $100.00,
        so it redeems for $120.00. The note stays redeemed ($200.00 vs. $140.00).
        Pass 3: nothing changes. Common keeps $80.00.
        """
        snapshot = snapshot_with(
            safe("safe_b", "angel", principal=12000, implied_shares=100),
            safe("note_a", "fund", principal=20000, implied_shares=100),
        )

        with capture_logs() as logs:
            resolutions = resolve_convertibles(snapshot, scenario(40000), EngineSettings(_env_file=None))

        assert not resolutions["safe_b"].converts
        assert resolutions["safe_b"].as_converted_payout_cents == 10000
        assert resolutions["safe_b"].redemption_payout_cents == 12000
        assert not resolutions["note_a"].converts
        assert resolutions["note_a"].as_converted_payout_cents == 14000
        assert resolutions["note_a"].redemption_payout_cents == 20000
        assert not [e for e in logs if e["event"] == "convertible_resolution_not_converged"]

        distribution = run(snapshot, 40000)
        assert distribution.payout_for("fund", "note_a").payout_amount_cents == 20000
        assert distribution.payout_for("angel", "safe_b").payout_amount_cents == 12000
        assert distribution.payout_for("founder", "common").payout_amount_cents == 8000

    def test_iteration_limit_keeps_last_decisions(self):
        """Same cap table with a single pass: the SAFE's second-pass flip never happens."""
        snapshot = snapshot_with(
            safe("safe_b", "angel", principal=12000, implied_shares=100),
            safe("note_a", "fund", principal=20000, implied_shares=100),
        )
        settings = EngineSettings(_env_file=None, max_conversion_iterations=1)

        with capture_logs() as logs:
            distribution = run(snapshot, 40000, settings)

        warnings = [e for e in logs if e["event"] == "convertible_resolution_not_converged"]
        assert len(warnings) == 1
        assert warnings[0]["log_level"] == "warning"
        assert warnings[0]["iterations"] == 1
        assert warnings[0]["decisions"] == {"safe_b": True, "note_a": False}

        assert distribution.payout_for("fund", "note_a").payout_amount_cents == 20000
        assert distribution.payout_for("angel", "safe_b").payout_amount_cents == 10000
        assert distribution.payout_for("founder", "common").payout_amount_cents == 10000

    def test_dominant_conversions_need_one_waterfall_run(self, monkeypatch):
        """20 SAFEs of $1.00 for 100 shares each, exit $21,000.00 → $1,000.00 apiece.

        Every SAFE is worth far more converted than its cash value, so only the
        initial all-converting waterfall is run.
        """
        runs = []
        original = conversion_module.distribute

        def counting_distribute(stack, exit_amount_cents):
            runs.append(exit_amount_cents)
            return original(stack, exit_amount_cents)

        monkeypatch.setattr(conversion_module, "distribute", counting_distribute)
        snapshot = snapshot_with(*[
            safe(f"safe_{i}", f"angel_{i}", principal=100, implied_shares=100) for i in range(20)
        ])

        resolutions = resolve_convertibles(snapshot, scenario(2100000), EngineSettings(_env_file=None))

        assert len(runs) == 1
        assert all(r.converts for r in resolutions.values())
        assert {r.as_converted_payout_cents for r in resolutions.values()} == {100000}

    def test_zero_principal_convertible_gets_zero_payout_row(self):
        """$0.00 principal converts into 0 shares but still appears in the payouts."""
        zero = safe(principal=0, implied_shares=10, valuation_cap_cents=2000)

        distribution = run(snapshot_with(zero), 10000)

        payout = distribution.payout_for("angel", "safe_1", "convertible")
        assert payout is not None
        assert payout.payout_amount_cents == 0
        assert payout.number_of_shares == 10
        assert distribution.payout_for("founder", "common").payout_amount_cents == 10000
        assert len(distribution.payouts) == 2

    def test_conversion_block_writes_resolutions(self):
        context = BlockContext()
        context.set("cap_table_snapshot", snapshot_with())
        context.set("liquidation_scenario", scenario(10000))

        ConversionBlock(settings=EngineSettings(_env_file=None)).execute(context)

        assert context.get("convertible_resolutions") == {}
