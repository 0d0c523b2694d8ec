"""SQLAlchemy models for the cap table inputs and the payout output.

The input tables (companies, share classes, holdings, option pools,
convertibles) belong to the surrounding application; the engine only reads
them. ``liquidation_payouts`` is the one table the engine writes.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from sqlalchemy import (
    BigInteger,
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .database import Base


class ModelMixin:
    """Provides __repr__ for all models."""

    def __repr__(self) -> str:
        pk = getattr(self, "id", None)
        return f"<{self.__class__.__name__}(id={pk})>"


# ── Cap table inputs ──────────────────────────────────────────────────────────


class Company(Base, ModelMixin):
    __tablename__ = "companies"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    fully_diluted_shares: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    # Recorded fully diluted total, checked against the holdings when set


class ShareClassRecord(Base, ModelMixin):
    __tablename__ = "share_classes"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    company_id: Mapped[str] = mapped_column(ForeignKey("companies.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    preferred: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    original_issue_price_in_dollars: Mapped[Decimal | None] = mapped_column(nullable=True)
    liquidation_preference_multiple: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("1"))
    participating: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    participation_cap_multiple: Mapped[Decimal | None] = mapped_column(nullable=True)
    seniority_rank: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, server_default=func.now())


class ShareHoldingRecord(Base, ModelMixin):
    __tablename__ = "share_holdings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    company_id: Mapped[str] = mapped_column(ForeignKey("companies.id"), nullable=False, index=True)
    company_investor_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    share_class_id: Mapped[str] = mapped_column(ForeignKey("share_classes.id"), nullable=False)
    number_of_shares: Mapped[int] = mapped_column(BigInteger, nullable=False)


class OptionPoolRecord(Base, ModelMixin):
    __tablename__ = "option_pools"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    company_id: Mapped[str] = mapped_column(ForeignKey("companies.id"), nullable=False, index=True)
    share_class_id: Mapped[str] = mapped_column(ForeignKey("share_classes.id"), nullable=False)
    authorized_shares: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    issued_shares: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)


class ConvertibleInvestmentRecord(Base, ModelMixin):
    __tablename__ = "convertible_investments"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    company_id: Mapped[str] = mapped_column(ForeignKey("companies.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    valuation_cap_cents: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    issued_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    securities: Mapped[list[ConvertibleSecurityRecord]] = relationship(
        back_populates="convertible_investment"
    )


class ConvertibleSecurityRecord(Base, ModelMixin):
    __tablename__ = "convertible_securities"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    company_id: Mapped[str] = mapped_column(ForeignKey("companies.id"), nullable=False, index=True)
    company_investor_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    convertible_investment_id: Mapped[str | None] = mapped_column(
        ForeignKey("convertible_investments.id"), nullable=True
    )
    principal_value_in_cents: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    implied_shares: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    valuation_cap_cents: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    discount_rate_percent: Mapped[Decimal | None] = mapped_column(nullable=True)
    interest_rate_percent: Mapped[Decimal | None] = mapped_column(nullable=True)
    issued_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    maturity_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    convertible_investment: Mapped[ConvertibleInvestmentRecord | None] = relationship(
        back_populates="securities"
    )


# ── Scenarios and payouts ─────────────────────────────────────────────────────


class LiquidationScenarioRecord(Base, ModelMixin):
    __tablename__ = "liquidation_scenarios"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    company_id: Mapped[str] = mapped_column(ForeignKey("companies.id"), nullable=False, index=True)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    exit_amount_cents: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    valuation_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    payouts: Mapped[list[LiquidationPayoutRecord]] = relationship(
        back_populates="liquidation_scenario",
        order_by="LiquidationPayoutRecord.id",
    )


class LiquidationPayoutRecord(Base, ModelMixin):
    __tablename__ = "liquidation_payouts"
    __table_args__ = (
        UniqueConstraint(
            "liquidation_scenario_id",
            "company_investor_id",
            "security_type",
            "security_id",
            name="uq_liquidation_payouts_claim",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    liquidation_scenario_id: Mapped[str] = mapped_column(
        ForeignKey("liquidation_scenarios.id"), nullable=False, index=True
    )
    company_investor_id: Mapped[str] = mapped_column(String(64), nullable=False)
    security_type: Mapped[str] = mapped_column(String(20), nullable=False)
    # equity, convertible
    security_id: Mapped[str] = mapped_column(String(64), nullable=False)
    share_class: Mapped[str | None] = mapped_column(String(255), nullable=True)
    number_of_shares: Mapped[int | None] = mapped_column(BigInteger, nullable=True)

    payout_amount_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    liquidation_preference_amount: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    participation_amount: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    common_proceeds_amount: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    liquidation_scenario: Mapped[LiquidationScenarioRecord] = relationship(back_populates="payouts")
