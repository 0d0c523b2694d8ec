"""Read-only loading of cap tables and scenarios into domain models.

The engine computes on plain Pydantic snapshots; ORM rows never leak past
this module. Schema validation failures on stored rows are surfaced as
InvalidScenarioError, since the scenario cannot be computed from them.
"""

from typing import Optional

import structlog
from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.orm import Session

from ..errors import DataInconsistencyError, InvalidScenarioError
from ..schemas import (
    CapTableSnapshot,
    ConvertibleSecurity,
    LiquidationScenario,
    OptionPool,
    ShareClass,
    ShareHolding,
)
from .models import (
    Company,
    ConvertibleSecurityRecord,
    LiquidationScenarioRecord,
    OptionPoolRecord,
    ShareClassRecord,
    ShareHoldingRecord,
)

logger = structlog.get_logger()


def load_scenario(session: Session, scenario_id: str) -> LiquidationScenario:
    """Load and validate a stored scenario.

    Raises:
        InvalidScenarioError: If the scenario does not exist or its exit
            amount is missing or invalid
    """
    record = session.get(LiquidationScenarioRecord, scenario_id)
    if record is None:
        raise InvalidScenarioError(f"Liquidation scenario '{scenario_id}' not found")

    data = {
        "id": record.id,
        "company_id": record.company_id,
        "exit_amount_cents": record.exit_amount_cents,
        "label": record.name,
    }
    if record.valuation_date is not None:
        data["valuation_date"] = record.valuation_date

    try:
        return LiquidationScenario(**data)
    except ValidationError as exc:
        raise InvalidScenarioError(f"Liquidation scenario '{scenario_id}' is invalid: {exc}") from exc


def load_cap_table_snapshot(session: Session, company_id: str) -> CapTableSnapshot:
    """Build a CapTableSnapshot from the company's cap table rows.

    Share classes come back in creation order, which the seniority stack
    relies on for reverse-issuance stacking.

    Raises:
        InvalidScenarioError: If a share class or convertible is missing the
            financial terms it needs (e.g., preferred without issue price)
        DataInconsistencyError: If rows refer to share classes of another
            company
    """
    company = session.get(Company, company_id)
    recorded_fully_diluted: Optional[int] = company.fully_diluted_shares if company else None

    class_rows = session.scalars(
        select(ShareClassRecord)
        .where(ShareClassRecord.company_id == company_id)
        .order_by(ShareClassRecord.created_at, ShareClassRecord.id)
    ).all()
    holding_rows = session.scalars(
        select(ShareHoldingRecord)
        .where(ShareHoldingRecord.company_id == company_id)
        .order_by(ShareHoldingRecord.id)
    ).all()
    pool_rows = session.scalars(
        select(OptionPoolRecord)
        .where(OptionPoolRecord.company_id == company_id)
        .order_by(OptionPoolRecord.id)
    ).all()
    convertible_rows = session.scalars(
        select(ConvertibleSecurityRecord)
        .where(ConvertibleSecurityRecord.company_id == company_id)
        .order_by(ConvertibleSecurityRecord.id)
    ).all()

    try:
        share_classes = {row.id: _share_class(row) for row in class_rows}
        convertibles = [_convertible(row) for row in convertible_rows]
        holdings = [
            ShareHolding(
                investor_id=row.company_investor_id,
                share_class_id=row.share_class_id,
                number_of_shares=row.number_of_shares,
            )
            for row in holding_rows
            if row.number_of_shares
        ]
        pools = [
            OptionPool(
                id=row.id,
                share_class_id=row.share_class_id,
                authorized_shares=row.authorized_shares,
                issued_shares=row.issued_shares,
            )
            for row in pool_rows
        ]
    except ValidationError as exc:
        raise InvalidScenarioError(f"Cap table of company '{company_id}' is invalid: {exc}") from exc

    for holding in holdings:
        if holding.share_class_id not in share_classes:
            raise DataInconsistencyError(
                f"Holding of investor '{holding.investor_id}' refers to share class "
                f"'{holding.share_class_id}' outside company '{company_id}'"
            )
    for pool in pools:
        if pool.share_class_id not in share_classes:
            raise DataInconsistencyError(
                f"Option pool '{pool.id}' refers to share class "
                f"'{pool.share_class_id}' outside company '{company_id}'"
            )

    snapshot = CapTableSnapshot(
        company_id=company_id,
        share_classes=share_classes,
        share_holdings=holdings,
        convertible_securities=convertibles,
        option_pools=pools,
        recorded_fully_diluted_shares=recorded_fully_diluted,
    )

    logger.debug(
        "cap_table_snapshot_loaded",
        company_id=company_id,
        share_classes=len(share_classes),
        holdings=len(holdings),
        convertibles=len(convertibles),
        option_pools=len(pools),
    )
    return snapshot


def _share_class(row: ShareClassRecord) -> ShareClass:
    return ShareClass(
        id=row.id,
        name=row.name,
        is_preferred=row.preferred,
        original_issue_price_per_share=row.original_issue_price_in_dollars,
        liquidation_preference_multiple=row.liquidation_preference_multiple,
        is_participating=row.participating,
        participation_cap_multiple=row.participation_cap_multiple,
        seniority_rank=row.seniority_rank,
        created_at=row.created_at,
    )


def _convertible(row: ConvertibleSecurityRecord) -> ConvertibleSecurity:
    valuation_cap = row.valuation_cap_cents
    if valuation_cap is None and row.convertible_investment is not None:
        valuation_cap = row.convertible_investment.valuation_cap_cents

    return ConvertibleSecurity(
        id=row.id,
        investor_id=row.company_investor_id,
        convertible_investment_id=row.convertible_investment_id,
        principal_value_cents=row.principal_value_in_cents,
        implied_shares=row.implied_shares,
        valuation_cap_cents=valuation_cap,
        discount_rate_percent=row.discount_rate_percent,
        interest_rate_percent=row.interest_rate_percent,
        issued_at=row.issued_at,
        maturity_date=row.maturity_date,
    )
