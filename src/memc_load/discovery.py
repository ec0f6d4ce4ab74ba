"""Input file discovery."""

import glob
import logging
from pathlib import Path

from core.errors.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


def _pattern_error(pattern: str) -> str | None:
    """Why ``pattern`` is malformed, or None.

    Rejects what glob would otherwise match literally or misread: an
    unclosed ``[``, an empty class ``[]``, a class range missing an end
    (``[-a]``, ``[a-]``) and a trailing backslash.
    """
    i = 0
    while i < len(pattern):
        char = pattern[i]
        if char == "\\" and i == len(pattern) - 1:
            return "trailing '\\'"
        if char == "[":
            start = i + 1
            if start < len(pattern) and pattern[start] in "!^":
                start += 1
            end = pattern.find("]", start)
            if end == -1:
                return "unbalanced '['"
            members = pattern[start:end]
            if not members:
                return "empty character class"
            if members.startswith("-") or members.endswith("-"):
                return "incomplete range in character class"
            i = end
        i += 1
    return None


def _validate_pattern(pattern: str) -> None:
    if not pattern or not pattern.strip():
        raise ConfigurationError("Input pattern must not be empty")

    problem = _pattern_error(pattern)
    if problem:
        raise ConfigurationError(
            f"Invalid input pattern '{pattern}': {problem}",
            context={"pattern": pattern},
        )


def discover_files(pattern: str) -> list[Path]:
    """
    Resolve a glob pattern to the regular files it matches.

    Hidden files never match (glob skips dotfiles unless the pattern starts
    with a dot), so files already renamed with the processed marker are not
    picked up again. The result is sorted; an empty result is valid.

    Raises:
        ConfigurationError: If the pattern is empty or malformed
    """
    _validate_pattern(pattern)

    matches = sorted(Path(p) for p in glob.glob(pattern))
    files = [path for path in matches if path.is_file()]

    logger.info(
        "Discovered %d input file(s)",
        len(files),
        extra={"pattern": pattern, "files_found": len(files)},
    )
    for path in files:
        logger.debug("Found file", extra={"file_path": str(path)})

    return files
