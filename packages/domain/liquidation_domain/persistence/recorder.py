from typing import Iterable, List

import structlog
from sqlalchemy import delete
from sqlalchemy.orm import Session

from ..schemas import LiquidationPayout
from .models import LiquidationPayoutRecord

logger = structlog.get_logger()


class PayoutRecorder:
    """Replaces the stored payout set of a scenario.

    Runs inside the caller's transaction and never commits; a failure after
    record() leaves the previous payout set in place once the caller rolls
    back.
    """

    def __init__(self, session: Session):
        self.session = session

    def clear(self, scenario_id: str) -> int:
        result = self.session.execute(
            delete(LiquidationPayoutRecord)
            .where(LiquidationPayoutRecord.liquidation_scenario_id == scenario_id)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount or 0

    def record(self, scenario_id: str, payouts: Iterable[LiquidationPayout]) -> List[LiquidationPayoutRecord]:
        cleared = self.clear(scenario_id)

        records = [
            LiquidationPayoutRecord(
                liquidation_scenario_id=scenario_id,
                company_investor_id=payout.company_investor_id,
                security_type=payout.security_type,
                security_id=payout.security_id,
                share_class=payout.share_class_name,
                number_of_shares=payout.number_of_shares,
                payout_amount_cents=payout.payout_amount_cents,
                liquidation_preference_amount=payout.liquidation_preference_amount,
                participation_amount=payout.participation_amount,
                common_proceeds_amount=payout.common_proceeds_amount,
            )
            for payout in payouts
        ]
        self.session.add_all(records)
        self.session.flush()

        logger.info(
            "liquidation_payouts_recorded",
            scenario_id=scenario_id,
            cleared=cleared,
            created=len(records),
            total_cents=sum(r.payout_amount_cents for r in records),
        )
        return records
