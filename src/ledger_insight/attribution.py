# Ledger Insight - Financial KPI & client analysis for marketing-services businesses
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Cost-center → client attribution.

Every ledger entry is booked on a cost center, and client-level reports need
to know which business (client) owns that cost center. Cost centers that
carry an explicit business link are mapped directly. Cost centers without a
link ("orphans") are still attributed so that no entry is ever dropped:

1. Map every cost center that has a business link to that business.
2. Collect the cost-center ids seen in the entries but absent from (1).
3. If there is no business at all, attribute every orphan to a synthesized
   placeholder business ("GENERIC CLIENT").
4. Otherwise distribute orphans round-robin over the active businesses, in
   stable order: orphan ``i`` goes to business ``i % len(businesses)``.

Step 4 is an approximation: there is no way to know the real owner of an
orphaned cost center. Attributions produced by steps 3-4 are therefore
flagged with ``is_heuristic=True`` so that callers can tell them apart from
real links.
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Optional

import structlog

logger = structlog.get_logger(__name__)

GENERIC_BUSINESS_ID = "default"
GENERIC_BUSINESS_NAME = "GENERIC CLIENT"
GENERIC_BUSINESS_LEGAL_NAME = "Generic Client"


@dataclass(frozen=True)
class Business:
    """A client of the agency."""

    id: str
    commercial_name: str
    legal_name: str = ""
    active: bool = True


@dataclass(frozen=True)
class CostCenter:
    """An operational unit on which ledger entries are booked.

    ``business`` is the optional joined Business row; ``business_id`` alone
    is enough to establish the link when the business is in the active list.
    """

    id: str
    code: str
    name: str
    active: bool = True
    business_id: Optional[str] = None
    business: Optional[Business] = None


@dataclass(frozen=True)
class CostCenterAttribution:
    """Resolved owner of a cost center."""

    cost_center_id: str
    business_id: str
    business_name: str
    cost_center_name: str
    cost_center_code: str
    is_heuristic: bool = False


def placeholder_business() -> Business:
    """Business used when no real business exists at all."""
    return Business(
        id=GENERIC_BUSINESS_ID,
        commercial_name=GENERIC_BUSINESS_NAME,
        legal_name=GENERIC_BUSINESS_LEGAL_NAME,
    )


def orphan_display_name(cost_center_id: str) -> str:
    return f"Center {str(cost_center_id)[:8]}"


def orphan_display_code(cost_center_id: str) -> str:
    return f"CC-{str(cost_center_id)[:6]}"


def _resolve_business(
    cost_center: CostCenter, businesses_by_id: dict[str, Business]
) -> Optional[Business]:
    """Return the business a cost center is explicitly linked to, if any."""
    if cost_center.business_id is None:
        return None
    if cost_center.business is not None:
        return cost_center.business
    return businesses_by_id.get(cost_center.business_id)


def _unique_in_order(ids: Iterable[str]) -> list[str]:
    seen: dict[str, None] = {}
    for cid in ids:
        seen.setdefault(str(cid), None)
    return list(seen)


def attribute_cost_centers(
    cost_centers: Sequence[CostCenter],
    businesses: Sequence[Business],
    seen_ids: Iterable[str],
) -> dict[str, CostCenterAttribution]:
    """Build a total mapping cost-center id → attribution.

    Args:
        cost_centers: Cost centers from the reference source. Inactive ones
            are ignored for direct mapping (their ids become orphans if seen).
        businesses: Active businesses, in the stable order used for the
            round-robin distribution of orphans.
        seen_ids: Cost-center ids present in the entries of the query window,
            in first-seen order.

    Returns:
        A dictionary covering every directly linked cost center plus every
        id in ``seen_ids``.
    """
    active_businesses = [b for b in businesses if b.active]
    businesses_by_id = {b.id: b for b in active_businesses}

    mapping: dict[str, CostCenterAttribution] = {}

    # 1) Direct links.
    for cc in cost_centers:
        if not cc.active:
            continue
        business = _resolve_business(cc, businesses_by_id)
        if business is None:
            continue
        mapping[str(cc.id)] = CostCenterAttribution(
            cost_center_id=str(cc.id),
            business_id=business.id,
            business_name=business.commercial_name,
            cost_center_name=cc.name,
            cost_center_code=cc.code,
        )

    # 2) Orphans: seen in the entries, no direct link.
    orphans = [cid for cid in _unique_in_order(seen_ids) if cid not in mapping]
    if not orphans:
        return mapping

    # 3) / 4) Placeholder or round-robin distribution.
    targets = active_businesses or [placeholder_business()]
    for index, cid in enumerate(orphans):
        business = targets[index % len(targets)]
        mapping[cid] = CostCenterAttribution(
            cost_center_id=cid,
            business_id=business.id,
            business_name=business.commercial_name,
            cost_center_name=orphan_display_name(cid),
            cost_center_code=orphan_display_code(cid),
            is_heuristic=True,
        )

    logger.warning(
        "orphan_cost_centers_attributed",
        orphans=len(orphans),
        businesses=len(active_businesses),
        placeholder=not active_businesses,
    )
    return mapping


def heuristic_cost_centers(
    mapping: dict[str, CostCenterAttribution],
) -> list[CostCenterAttribution]:
    """Return the attributions that were assigned heuristically."""
    return [a for a in mapping.values() if a.is_heuristic]
