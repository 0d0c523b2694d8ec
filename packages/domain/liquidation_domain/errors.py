"""Exception taxonomy for the liquidation engine.

- InvalidScenarioError: bad input, rejected before any computation starts.
  Surfaced to the caller as a validation failure and never retried.
- DataInconsistencyError: the loaded capital structure contradicts itself.
  Raised at computation time; the surrounding transaction rolls back.
"""


class LiquidationError(Exception):
    """Base class for all liquidation engine errors."""
    pass


class InvalidScenarioError(LiquidationError, ValueError):
    """Raised when a scenario or its financial terms are invalid."""
    pass


class DataInconsistencyError(LiquidationError):
    """Raised when cap table data is internally inconsistent."""
    pass
