"""Storage-only maintenance jobs for items.

Neither job touches match links or conversations.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Dict

from sqlalchemy import case, func

from ...extensions import db
from ...models.item import Item
from ...models.types import utcnow

logger = logging.getLogger(__name__)

ARCHIVE_NOTE = "Archived due to age"


def archive_old_resolved_items(max_age_days: int = 365, now: datetime | None = None) -> int:
    """Hide resolved items whose resolution is older than ``max_age_days``.

    Items are archived, never deleted. Returns how many rows changed.
    """
    cutoff = (now or utcnow()) - timedelta(days=max_age_days)
    updated = (
        Item.query.filter(
            Item.status == "resolved",
            Item.resolution_date.isnot(None),
            Item.resolution_date < cutoff,
            Item.is_public.is_(True),
        )
        .update({"is_public": False, "admin_notes": ARCHIVE_NOTE}, synchronize_session=False)
    )
    db.session.commit()
    if updated:
        logger.info("archived %d old resolved items", updated)
    return int(updated or 0)


def item_stats() -> Dict[str, int]:
    row = db.session.query(
        func.count(Item.id),
        func.sum(case((Item.type == "lost", 1), else_=0)),
        func.sum(case((Item.type == "found", 1), else_=0)),
        func.sum(case((Item.status == "active", 1), else_=0)),
        func.sum(case((Item.status == "resolved", 1), else_=0)),
    ).one()
    total, lost, found, active, resolved = (int(v or 0) for v in row)
    return {
        "total": total,
        "totalLost": lost,
        "totalFound": found,
        "totalActive": active,
        "totalResolved": resolved,
    }
