"""Move committed extracts out of the inbox."""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

import pendulum

logger = logging.getLogger(__name__)


def move_to_processed(path: Path, processed_dir: Path) -> Path:
    """Move ``path`` into ``processed_dir``; an existing name gets a ``_<epoch millis>`` suffix."""
    processed_dir.mkdir(parents=True, exist_ok=True)
    target = processed_dir / path.name
    if target.exists():
        millis = int(pendulum.now("UTC").timestamp() * 1000)
        target = processed_dir / f"{path.stem}_{millis}{path.suffix}"
        logger.warning("%s already exists in %s; archiving as %s", path.name, processed_dir, target.name)
    moved = Path(shutil.move(str(path), str(target)))
    logger.info("Archived %s to %s", path.name, moved)
    return moved
