import os
from celery import Celery
from flask import Flask, has_app_context


def _beat_schedule(sweep_seconds: float, housekeeping_seconds: float, stats_seconds: float) -> dict:
    return {
        "matching-sweep": {
            "task": "lostfound.tasks.jobs.matching.run_matching_sweep",
            "schedule": float(sweep_seconds),
        },
        "archive-old-items": {
            "task": "lostfound.tasks.jobs.housekeeping.archive_old_items",
            "schedule": float(housekeeping_seconds),
        },
        "item-stats": {
            "task": "lostfound.tasks.jobs.housekeeping.log_item_stats",
            "schedule": float(stats_seconds),
        },
    }


def make_celery() -> Celery:
    broker = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/0")
    backend = os.getenv("CELERY_RESULT_BACKEND", broker)
    app = Celery("lostfound", broker=broker, backend=backend, include=[
        "lostfound.tasks.jobs.matching",
        "lostfound.tasks.jobs.housekeeping",
    ])
    app.conf.update(
        task_track_started=True,
        beat_schedule=_beat_schedule(60 * 60, 24 * 60 * 60, 6 * 60 * 60),
    )
    return app

celery_app = make_celery()


def init_celery(app: Flask) -> Celery:
    """Bind the Flask app whose context tasks run in, and apply its settings."""
    celery_app.conf.update(
        broker_url=app.config.get("CELERY_BROKER_URL", celery_app.conf.broker_url),
        task_always_eager=bool(app.config.get("CELERY_TASK_ALWAYS_EAGER")),
        task_eager_propagates=bool(app.config.get("CELERY_TASK_ALWAYS_EAGER")),
        beat_schedule=_beat_schedule(
            app.config.get("MATCH_SWEEP_INTERVAL_SECONDS", 60 * 60),
            app.config.get("HOUSEKEEPING_INTERVAL_SECONDS", 24 * 60 * 60),
            app.config.get("STATS_INTERVAL_SECONDS", 6 * 60 * 60),
        ),
    )
    celery_app.flask_app = app  # type: ignore[attr-defined]
    return celery_app


def flask_app() -> Flask:
    app = getattr(celery_app, "flask_app", None)
    if app is None:
        # Worker process: build the app lazily to avoid an import cycle
        from lostfound import create_app
        app = create_app()
    return app


def run_in_app_context(fn, *args):
    if has_app_context():
        return fn(*args)
    with flask_app().app_context():
        return fn(*args)
