"""Processed-file marking."""

import logging
import os
from pathlib import Path

from core.errors.exceptions import classify_os_error

logger = logging.getLogger(__name__)

PROCESSED_MARKER = "."


def processed_path(path: Path, marker: str = PROCESSED_MARKER) -> Path:
    """``dir/name`` -> ``dir/<marker>name``."""
    return path.with_name(f"{marker}{path.name}")


def mark_processed(path: Path, marker: str = PROCESSED_MARKER) -> Path | None:
    """
    Rename a fully drained file so discovery no longer matches it.

    The rename stays within the same directory, so it is atomic. On failure
    the file keeps its name and is picked up again next run; rewriting the
    same keys is harmless.

    Returns:
        The new path, or None if the rename failed
    """
    target = processed_path(path, marker)
    try:
        os.rename(path, target)
    except OSError as e:
        logger.error(
            "Cannot rename processed file",
            extra={
                "file_path": str(path),
                "renamed_to": str(target),
                "error_category": classify_os_error(e).value,
                "error_message": str(e)[:500],
            },
        )
        return None

    logger.info("Renamed processed file", extra={"file_path": str(path), "renamed_to": str(target)})
    return target
