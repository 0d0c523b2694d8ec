"""Seniority stack computation block.

Turns a cap table snapshot (plus the convertible decisions) into claims and
orders them into seniority tiers:

    [redeemed convertibles]        (default: most senior)
    ranked preferred tiers         (seniority_rank ascending, pari passu per rank)
    unranked preferred tiers       (default stacking)
    residual tier                  (common, as-converted, participating preferred,
                                    and claims with nothing to collect)
"""

from typing import Dict, List, Mapping, Optional, Tuple
from decimal import Decimal

from .base import Block, BlockContext
from ..config import EngineSettings, get_settings
from ..errors import DataInconsistencyError
from ..schemas import (
    CapTableSnapshot,
    Claim,
    ConvertibleResolution,
    ConvertibleSecurity,
    SeniorityTier,
    ShareClass,
)


# =============================================================================
# Claim Construction
# =============================================================================

def build_equity_claims(snapshot: CapTableSnapshot) -> List[Claim]:
    """One claim per (investor, share class), holdings aggregated.

    Raises:
        DataInconsistencyError: If a participation cap sits below the
            preference it is supposed to include
    """
    claims = []
    for (investor_id, share_class_id), shares in snapshot.aggregated_holdings().items():
        share_class = snapshot.share_classes[share_class_id]

        preference = share_class.preference_per_share_cents * shares
        cap = share_class.participation_cap_cents(shares)
        if cap is not None and cap < preference:
            raise DataInconsistencyError(
                f"Share class '{share_class.id}' has participation cap "
                f"{share_class.participation_cap_multiple}x below its "
                f"{share_class.liquidation_preference_multiple}x liquidation preference"
            )

        participates = not share_class.is_preferred or share_class.is_participating

        claims.append(Claim(
            investor_id=investor_id,
            security_id=share_class.id,
            security_type="equity",
            share_class_id=share_class.id,
            share_class_name=share_class.name,
            number_of_shares=shares,
            is_preferred=share_class.is_preferred,
            preference_cents=preference,
            participating_shares=Decimal(shares) if participates else Decimal("0"),
            participation_cap_cents=cap,
        ))
    return claims


def build_convertible_claim(
    security: ConvertibleSecurity,
    converts: bool,
    converted_shares: Decimal,
    redemption_value_cents: Decimal,
) -> Claim:
    """Claim for a convertible: shares if it converts, cash preference if not."""
    if converts:
        return Claim(
            investor_id=security.investor_id,
            security_id=security.id,
            security_type="convertible",
            number_of_shares=security.implied_shares,
            participating_shares=converted_shares,
        )

    return Claim(
        investor_id=security.investor_id,
        security_id=security.id,
        security_type="convertible",
        number_of_shares=security.implied_shares,
        preference_cents=redemption_value_cents,
    )


def build_claims(
    snapshot: CapTableSnapshot,
    resolutions: Mapping[str, ConvertibleResolution],
) -> List[Claim]:
    """All claims of a snapshot given each convertible's resolution.

    Raises:
        KeyError: If a convertible in the snapshot has no resolution
    """
    claims = build_equity_claims(snapshot)
    for security in snapshot.convertible_securities:
        resolution = resolutions[security.id]
        claims.append(build_convertible_claim(
            security,
            converts=resolution.converts,
            converted_shares=resolution.converted_shares,
            redemption_value_cents=resolution.redemption_value_cents,
        ))
    return claims


# =============================================================================
# Stack Ordering
# =============================================================================

def _creation_order(share_classes: Mapping[str, ShareClass]) -> Dict[str, Tuple]:
    """Sort key per class: created_at (unknown first), then position in the mapping."""
    order = {}
    for position, share_class in enumerate(share_classes.values()):
        created = share_class.created_at
        order[share_class.id] = (created is not None, created, position)
    return order


def build_seniority_stack(
    claims: List[Claim],
    share_classes: Mapping[str, ShareClass],
    settings: Optional[EngineSettings] = None,
) -> List[SeniorityTier]:
    """Order claims into seniority tiers, most senior first.

    The last tier returned is always the residual tier (possibly empty).
    Claims within every tier are sorted by investor id, then security id.

    Args:
        claims: Equity and convertible claims
        share_classes: Share class definitions, in creation order
        settings: Stacking configuration (defaults to get_settings())

    Returns:
        Ordered list of SeniorityTier

    Example:
        Series B (rank 0), Series A (rank 1), Seed (unranked), Common
        → [Series B] [Series A] [Seed] [residual: Common + participants]
    """
    settings = settings or get_settings()
    creation_order = _creation_order(share_classes)

    ranked: Dict[int, List[Claim]] = {}
    ranked_classes: Dict[int, List[str]] = {}
    unranked: Dict[str, List[Claim]] = {}
    redeemed: List[Claim] = []

    for claim in claims:
        if claim.preference_cents <= 0:
            continue

        if claim.security_type == "convertible":
            rank = settings.convertible_seniority_rank
            if rank is None:
                redeemed.append(claim)
            else:
                ranked.setdefault(rank, []).append(claim)
                ranked_classes.setdefault(rank, [])
            continue

        share_class = share_classes[claim.share_class_id]
        if share_class.seniority_rank is None:
            unranked.setdefault(share_class.id, []).append(claim)
        else:
            rank = share_class.seniority_rank
            ranked.setdefault(rank, []).append(claim)
            class_ids = ranked_classes.setdefault(rank, [])
            if share_class.id not in class_ids:
                class_ids.append(share_class.id)

    tiers: List[SeniorityTier] = []

    if redeemed:
        tiers.append(_tier("Convertible Redemptions", None, redeemed))

    for rank in sorted(ranked):
        class_ids = sorted(ranked_classes[rank], key=lambda cid: creation_order[cid])
        names = [share_classes[cid].name for cid in class_ids]
        if any(c.security_type == "convertible" for c in ranked[rank]):
            names.append("Convertible Redemptions")
        tiers.append(_tier(" / ".join(names), rank, ranked[rank]))

    if unranked:
        class_ids = sorted(unranked, key=lambda cid: creation_order[cid])
        if settings.default_stacking == "pari_passu":
            pooled = [claim for cid in class_ids for claim in unranked[cid]]
            names = [share_classes[cid].name for cid in class_ids]
            tiers.append(_tier(" / ".join(names), None, pooled))
        else:
            # Reverse issuance: the newest class is the most senior
            for cid in reversed(class_ids):
                tiers.append(_tier(share_classes[cid].name, None, unranked[cid]))

    # Claims with neither a preference nor shares still get a (zero) payout row
    participants = [
        claim for claim in claims
        if claim.participating_shares > 0 or claim.preference_cents <= 0
    ]
    tiers.append(_tier("Residual (As-Converted)", None, participants, is_residual=True))

    return tiers


def _tier(label: str, rank: Optional[int], claims: List[Claim], is_residual: bool = False) -> SeniorityTier:
    return SeniorityTier(
        label=label,
        rank=rank,
        is_residual=is_residual,
        claims=sorted(claims, key=lambda c: c.sort_key),
    )


# =============================================================================
# Seniority Block
# =============================================================================

class SeniorityBlock(Block):
    """Builds the seniority stack for a scenario.

    Inputs (from context):
        - cap_table_snapshot: CapTableSnapshot
        - convertible_resolutions: Dict[security_id, ConvertibleResolution]

    Outputs (to context):
        - seniority_stack: List[SeniorityTier], most senior first, residual last
    """

    def __init__(
        self,
        snapshot_key: str = "cap_table_snapshot",
        resolutions_key: str = "convertible_resolutions",
        settings: Optional[EngineSettings] = None,
    ):
        self.snapshot_key = snapshot_key
        self.resolutions_key = resolutions_key
        self.settings = settings

    def inputs(self) -> List[str]:
        return [self.snapshot_key, self.resolutions_key]

    def outputs(self) -> List[str]:
        return ["seniority_stack"]

    def execute(self, context: BlockContext) -> None:
        snapshot: CapTableSnapshot = context.get(self.snapshot_key)
        resolutions: Dict[str, ConvertibleResolution] = context.get(self.resolutions_key)

        claims = build_claims(snapshot, resolutions)
        stack = build_seniority_stack(claims, snapshot.share_classes, self.settings)
        context.set("seniority_stack", stack)
