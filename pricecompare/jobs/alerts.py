"""Scheduled price-alert check."""

from __future__ import annotations

import logging
import os
from datetime import date

from dotenv import load_dotenv

from pricecompare.db.session import create_engine_from_env, transaction_scope
from pricecompare.logic.alerts import PriceAlert, check_alerts
from pricecompare.utils.dates import today_in_tz

logger = logging.getLogger(__name__)


def run_alert_check(as_of: date | None = None) -> list[PriceAlert]:
    load_dotenv()
    engine = create_engine_from_env()
    target_date = as_of or today_in_tz()
    with transaction_scope(engine) as conn:
        triggered = check_alerts(conn, target_date)
    for alert in triggered:
        logger.info(
            "User %s: product %s reached %s (target %s)",
            alert.user_id,
            alert.product_id,
            alert.triggered_price,
            alert.target_price,
        )
    return triggered


if __name__ == "__main__":
    logging.basicConfig(level=os.environ.get("LOG_LEVEL", "INFO"))
    run_alert_check()
