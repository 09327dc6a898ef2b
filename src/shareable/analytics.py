"""Aggregate share analytics derived from a list of shares.

Used by the dispatcher when storage does not declare the ANALYTICS
capability, and by storages that aggregate in process.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable

from .types import RankedShare, Share, ShareAnalyticsData, TypeBreakdown

TOP_SHARES_LIMIT = 10
RECENT_ACTIVITY_LIMIT = 10

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def derive_analytics(shares: Iterable[Share]) -> ShareAnalyticsData:
    """Totals, per-type breakdown, top shares by views, most recent shares.

    Sorting is stable, so ties keep the order of ``shares``.
    """
    shares = list(shares)

    by_type: dict[str, list[int]] = {}
    total_views = 0
    for share in shares:
        total_views += share.view_count
        counts = by_type.setdefault(share.type, [0, 0])
        counts[0] += 1
        counts[1] += share.view_count

    top = sorted(shares, key=lambda s: s.view_count, reverse=True)[:TOP_SHARES_LIMIT]
    recent = sorted(
        shares,
        key=lambda s: s.created_at or _EPOCH,
        reverse=True,
    )[:RECENT_ACTIVITY_LIMIT]

    return ShareAnalyticsData(
        total_shares=len(shares),
        total_views=total_views,
        shares_by_type=[
            TypeBreakdown(type=t, count=count, views=views)
            for t, (count, views) in by_type.items()
        ],
        top_shares=[RankedShare(share=s, rank=i) for i, s in enumerate(top, start=1)],
        recent_activity=recent,
    )
