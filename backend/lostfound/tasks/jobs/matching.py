from __future__ import annotations

import logging

from flask import current_app

from lostfound.modules.matches.service import get_matching_service
from lostfound.tasks.celery_app import celery_app, run_in_app_context

logger = logging.getLogger(__name__)


def _process(item_id: int) -> int:
    return len(get_matching_service().process_matches(item_id))


def _sweep() -> int:
    return get_matching_service().run_global_matching()


@celery_app.task
def process_item_matches(item_id: int) -> int:
    return run_in_app_context(_process, int(item_id))


@celery_app.task
def run_matching_sweep() -> int:
    return run_in_app_context(_sweep)


def enqueue_item_matching(item_id: int) -> None:
    """Entry point for the item collaborator once a new item is committed.

    Runs decoupled from the creating request after a short delay. If the
    broker cannot be reached, matching runs inline instead.
    """
    delay = int(current_app.config.get("MATCH_TRIGGER_DELAY_SECONDS", 1))
    try:
        process_item_matches.apply_async(args=[int(item_id)], countdown=delay)
    except Exception:
        logger.warning("could not enqueue matching for item %s; running inline", item_id, exc_info=True)
        _process(int(item_id))
