"""Scheduled CSV ingestion job."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from dotenv import load_dotenv

from pricecompare.db.session import create_engine_from_env
from pricecompare.ingest.pipeline import CsvIngestor, IngestionReport

logger = logging.getLogger(__name__)

DEFAULT_INPUT_DIR = "data/inbox"
DEFAULT_PROCESSED_DIR = "data/processed"


def run_ingestion(input_dir: Path | None = None, processed_dir: Path | None = None) -> IngestionReport:
    load_dotenv()
    engine = create_engine_from_env()
    input_dir = input_dir or Path(os.environ.get("CSV_INPUT_DIR", DEFAULT_INPUT_DIR))
    if processed_dir is None:
        configured = os.environ.get("CSV_PROCESSED_DIR", DEFAULT_PROCESSED_DIR)
        processed_dir = Path(configured) if configured else None
    if processed_dir is None:
        logger.info("CSV_PROCESSED_DIR is empty; committed files stay in %s", input_dir)
    ingestor = CsvIngestor(engine, input_dir=input_dir, processed_dir=processed_dir)
    return ingestor.ingest_pending()


if __name__ == "__main__":
    logging.basicConfig(level=os.environ.get("LOG_LEVEL", "INFO"))
    run_ingestion()
