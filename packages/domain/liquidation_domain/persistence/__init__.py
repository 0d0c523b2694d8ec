"""SQLAlchemy persistence for cap table inputs and liquidation payouts.

Usage:
    from liquidation_domain.persistence import (
        create_db_engine, create_session_factory, load_cap_table_snapshot, PayoutRecorder
    )
"""

from .database import Base, create_db_engine, create_schema, create_session_factory
from .models import (
    Company,
    ShareClassRecord,
    ShareHoldingRecord,
    OptionPoolRecord,
    ConvertibleInvestmentRecord,
    ConvertibleSecurityRecord,
    LiquidationScenarioRecord,
    LiquidationPayoutRecord,
)
from .loader import load_cap_table_snapshot, load_scenario
from .recorder import PayoutRecorder

__all__ = [
    # Database
    "Base",
    "create_db_engine",
    "create_schema",
    "create_session_factory",
    # Models
    "Company",
    "ShareClassRecord",
    "ShareHoldingRecord",
    "OptionPoolRecord",
    "ConvertibleInvestmentRecord",
    "ConvertibleSecurityRecord",
    "LiquidationScenarioRecord",
    "LiquidationPayoutRecord",
    # Loading and recording
    "load_cap_table_snapshot",
    "load_scenario",
    "PayoutRecorder",
]
