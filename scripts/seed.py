"""Create the schema and load the bundled sample extracts."""

from __future__ import annotations

import logging
import os
import shutil
import sys
import tempfile
from pathlib import Path

from dotenv import load_dotenv

from pricecompare.db.migrate import run_migrations
from pricecompare.db.session import create_engine_from_env
from pricecompare.ingest.pipeline import CsvIngestor, FileState

SAMPLE_DIR = Path(__file__).resolve().parent.parent / "data" / "sample"


def main() -> None:
    load_dotenv()
    logging.basicConfig(level=os.environ.get("LOG_LEVEL", "INFO"))
    source = Path(sys.argv[1]) if len(sys.argv) > 1 else SAMPLE_DIR
    engine = create_engine_from_env()
    run_migrations(engine)
    # Ingest copies so the sample directory is never archived away.
    with tempfile.TemporaryDirectory() as workdir:
        inbox = Path(workdir)
        for path in source.glob("*.csv"):
            shutil.copy(path, inbox / path.name)
        report = CsvIngestor(engine, input_dir=inbox).ingest_pending()
    committed = len(report.by_state(FileState.COMMITTED))
    print(f"Seed complete: {committed} files loaded, {len(report.failed)} failed")
    if report.failed:
        sys.exit(1)


if __name__ == "__main__":
    main()
