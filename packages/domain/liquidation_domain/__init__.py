"""Liquidation waterfall engine.

Computes how an exit amount is distributed across a company's cap table:
liquidation preferences by seniority, residual proceeds pro rata to common,
as-converted convertibles and participating preferred (with caps), and the
convert-vs-redeem decision for every convertible.

Layers:
- schemas: Pydantic domain models (share classes, holdings, convertibles,
  snapshots, scenarios, claims, payouts)
- blocks: pure computation blocks run by a dependency-ordered executor
- persistence: SQLAlchemy tables, snapshot loading, payout recording
- service: LiquidationScenarioCalculation, one transaction per scenario
"""

from .config import EngineSettings, get_settings
from .errors import DataInconsistencyError, InvalidScenarioError, LiquidationError
from .service import LiquidationScenarioCalculation, validate_snapshot

__version__ = "0.1.0"

__all__ = [
    "EngineSettings",
    "get_settings",
    "LiquidationError",
    "InvalidScenarioError",
    "DataInconsistencyError",
    "LiquidationScenarioCalculation",
    "validate_snapshot",
]
