from __future__ import annotations

import logging

from flask import current_app

from lostfound.modules.items.housekeeping import archive_old_resolved_items, item_stats
from lostfound.tasks.celery_app import celery_app, run_in_app_context

logger = logging.getLogger(__name__)


def _archive() -> int:
    return archive_old_resolved_items(int(current_app.config.get("ARCHIVE_AFTER_DAYS", 365)))


def _stats() -> dict:
    stats = item_stats()
    logger.info("item statistics: %s", stats)
    return stats


@celery_app.task
def archive_old_items() -> int:
    return run_in_app_context(_archive)


@celery_app.task
def log_item_stats() -> dict:
    return run_in_app_context(_stats)
