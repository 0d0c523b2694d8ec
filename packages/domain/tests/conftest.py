"""Shared fixtures: in-memory SQLite database and engine settings."""

from datetime import date, datetime
from decimal import Decimal

import pytest

from liquidation_domain.config import EngineSettings
from liquidation_domain.persistence import (
    Company,
    ConvertibleInvestmentRecord,
    ConvertibleSecurityRecord,
    LiquidationScenarioRecord,
    OptionPoolRecord,
    ShareClassRecord,
    ShareHoldingRecord,
    create_db_engine,
    create_schema,
    create_session_factory,
)


@pytest.fixture
def settings():
    """Default engine settings, isolated from the environment and .env files."""
    return EngineSettings(_env_file=None, database_url="sqlite://")


@pytest.fixture
def db_engine(settings):
    engine = create_db_engine(settings)
    create_schema(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(db_engine):
    factory = create_session_factory(db_engine)
    with factory() as session:
        yield session


@pytest.fixture
def seeded_company(session):
    """Acme: 1x non-participating Series A, common, one SAFE, one option pool.

    - founder_alice: 600 common, founder_bob: 400 common
    - acme_vc: 500 Series A @ $2.00 (preference $1,000.00)
    - angel_carol: $500.00 SAFE, 250 implied shares
    - option pool: 200 authorized, 50 issued (150 available)
    - scenario "acme_exit": $3,000.00 exit
    """
    session.add(Company(id="acme", name="Acme Inc.", fully_diluted_shares=2000))
    session.add_all([
        ShareClassRecord(
            id="acme_common",
            company_id="acme",
            name="Common",
            preferred=False,
            created_at=datetime(2020, 1, 1),
        ),
        ShareClassRecord(
            id="acme_series_a",
            company_id="acme",
            name="Series A Preferred",
            preferred=True,
            original_issue_price_in_dollars=Decimal("2.00"),
            liquidation_preference_multiple=Decimal("1"),
            seniority_rank=0,
            created_at=datetime(2022, 6, 1),
        ),
    ])
    session.flush()
    session.add_all([
        ShareHoldingRecord(company_id="acme", company_investor_id="founder_alice",
                           share_class_id="acme_common", number_of_shares=600),
        ShareHoldingRecord(company_id="acme", company_investor_id="founder_bob",
                           share_class_id="acme_common", number_of_shares=400),
        ShareHoldingRecord(company_id="acme", company_investor_id="acme_vc",
                           share_class_id="acme_series_a", number_of_shares=500),
        OptionPoolRecord(id="acme_pool", company_id="acme", share_class_id="acme_common",
                         authorized_shares=200, issued_shares=50),
        ConvertibleInvestmentRecord(id="acme_safe_round", company_id="acme",
                                    name="2023 SAFE", issued_at=datetime(2023, 3, 1)),
    ])
    session.flush()
    session.add_all([
        ConvertibleSecurityRecord(
            id="acme_safe_1",
            company_id="acme",
            company_investor_id="angel_carol",
            convertible_investment_id="acme_safe_round",
            principal_value_in_cents=50000,
            implied_shares=250,
        ),
        LiquidationScenarioRecord(
            id="acme_exit",
            company_id="acme",
            name="Base case",
            exit_amount_cents=300000,
            valuation_date=date(2025, 1, 1),
        ),
    ])
    session.commit()
    return "acme"
