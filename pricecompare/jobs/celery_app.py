"""Celery configuration for scheduled jobs."""

from __future__ import annotations

import os

from celery import Celery
from celery.schedules import crontab

from pricecompare.utils.dates import timezone_name

broker_url = os.environ.get("REDIS_URL", "redis://redis:6379/0")
backend_url = os.environ.get("REDIS_URL", "redis://redis:6379/0")

celery_app = Celery(
    "pricecompare",
    broker=broker_url,
    backend=backend_url,
    include=["pricecompare.jobs.ingest", "pricecompare.jobs.alerts"],
)
celery_app.conf.timezone = timezone_name()
celery_app.conf.beat_schedule = {
    "hourly-csv-ingestion": {
        "task": "pricecompare.jobs.ingest.run_ingestion",
        "schedule": crontab(minute=int(os.environ.get("INGEST_CRON_MINUTE", "0"))),
    },
    "daily-price-alert-check": {
        "task": "pricecompare.jobs.alerts.run_alert_check",
        "schedule": crontab(
            hour=int(os.environ.get("ALERT_CHECK_HOUR", "2")),
            minute=int(os.environ.get("ALERT_CHECK_MINUTE", "0")),
        ),
    },
}


@celery_app.task(name="pricecompare.jobs.ingest.run_ingestion")
def run_ingestion_task() -> dict[str, int]:  # pragma: no cover - executed by worker
    from pricecompare.jobs.ingest import run_ingestion

    report = run_ingestion()
    counts: dict[str, int] = {}
    for outcome in report.files:
        counts[outcome.state.value] = counts.get(outcome.state.value, 0) + 1
    return counts


@celery_app.task(name="pricecompare.jobs.alerts.run_alert_check")
def run_alert_check_task() -> list[int]:  # pragma: no cover - executed by worker
    from pricecompare.jobs.alerts import run_alert_check

    return [alert.id for alert in run_alert_check()]
