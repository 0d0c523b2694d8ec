"""End-to-end liquidation scenario calculation.

Loads a scenario and its company's cap table, runs the block pipeline
(conversion → seniority → waterfall) and replaces the scenario's stored
payouts, all in one transaction.

Usage:
    calculation = LiquidationScenarioCalculation(session)
    records = calculation.process("acme_exit_50m")

    # What-if, nothing persisted
    distribution = calculation.calculate(snapshot, scenario)
"""

from contextlib import contextmanager
from typing import Iterator, List, Optional

import structlog
from sqlalchemy.orm import Session

from .blocks import BlockContext, BlockExecutor, ConversionBlock, SeniorityBlock, WaterfallBlock
from .config import EngineSettings, get_settings
from .errors import DataInconsistencyError, InvalidScenarioError
from .persistence import LiquidationPayoutRecord, PayoutRecorder, load_cap_table_snapshot, load_scenario
from .schemas import CapTableSnapshot, LiquidationScenario, WaterfallDistribution

logger = structlog.get_logger()


def validate_snapshot(snapshot: CapTableSnapshot) -> None:
    """Cross-checks the loaded holdings against the company's recorded totals.

    Raises:
        DataInconsistencyError: If more shares are outstanding than the
            recorded fully diluted total allows
    """
    recorded = snapshot.recorded_fully_diluted_shares
    if recorded is not None and snapshot.outstanding_shares > recorded:
        raise DataInconsistencyError(
            f"Company '{snapshot.company_id}' has {snapshot.outstanding_shares} outstanding shares, "
            f"more than its recorded fully diluted total of {recorded}"
        )


class LiquidationScenarioCalculation:
    def __init__(self, session: Session, settings: Optional[EngineSettings] = None):
        self.session = session
        self.settings = settings or get_settings()

    def build_executor(self) -> BlockExecutor:
        return BlockExecutor([
            ConversionBlock(settings=self.settings),
            SeniorityBlock(settings=self.settings),
            WaterfallBlock(),
        ])

    def run_blocks(self, snapshot: CapTableSnapshot, scenario: LiquidationScenario) -> BlockContext:
        """Run the pipeline and return the full context (DataFrames included)."""
        if scenario.company_id != snapshot.company_id:
            raise InvalidScenarioError(
                f"Scenario '{scenario.id}' belongs to company '{scenario.company_id}', "
                f"not '{snapshot.company_id}'"
            )
        validate_snapshot(snapshot)

        context = BlockContext()
        context.set("cap_table_snapshot", snapshot)
        context.set("liquidation_scenario", scenario)
        self.build_executor().execute(context)
        return context

    def calculate(self, snapshot: CapTableSnapshot, scenario: LiquidationScenario) -> WaterfallDistribution:
        """Compute payouts without touching the database.

        Raises:
            InvalidScenarioError: If the scenario does not match the snapshot
            DataInconsistencyError: If the cap table contradicts itself or the
                payouts would exceed the exit amount
        """
        distribution: WaterfallDistribution = self.run_blocks(snapshot, scenario).get("waterfall_distribution")

        if distribution.total_distributed_cents > scenario.exit_amount_cents:
            raise DataInconsistencyError(
                f"Total payouts ({distribution.total_distributed_cents}) exceed "
                f"exit amount ({scenario.exit_amount_cents})"
            )
        return distribution

    def process(self, scenario_id: str) -> List[LiquidationPayoutRecord]:
        """Compute and persist the payouts of a stored scenario.

        Re-running a scenario replaces its payout set. Any failure rolls the
        whole run back, leaving the previous payouts untouched.

        Raises:
            InvalidScenarioError: If the scenario is missing or invalid
            DataInconsistencyError: If the cap table contradicts itself
        """
        with self._transaction():
            scenario = load_scenario(self.session, scenario_id)
            snapshot = load_cap_table_snapshot(self.session, scenario.company_id)
            distribution = self.calculate(snapshot, scenario)
            records = PayoutRecorder(self.session).record(scenario.id, distribution.payouts)

        logger.info(
            "liquidation_scenario_processed",
            scenario_id=scenario.id,
            company_id=scenario.company_id,
            exit_amount_cents=scenario.exit_amount_cents,
            payouts=len(records),
            distributed_cents=distribution.total_distributed_cents,
            undistributed_cents=distribution.undistributed_cents,
        )
        return records

    @contextmanager
    def _transaction(self) -> Iterator[None]:
        # Nest under a caller's open transaction so only this run rolls back
        if self.session.in_transaction():
            with self.session.begin_nested():
                yield
        else:
            with self.session.begin():
                yield
