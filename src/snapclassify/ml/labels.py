"""Label set loading."""

from __future__ import annotations

import logging
from pathlib import Path

from snapclassify.errors import LabelsError

logger = logging.getLogger(__name__)


def load_labels(path: str | Path) -> tuple[str, ...]:
    """Load the ordered class names from a newline-separated UTF-8 file.

    Line position is the index contract with the model output, so a blank
    line in the middle of the file is rejected rather than skipped.
    Trailing blank lines are ignored.

    Raises:
        LabelsError: If the file is missing, unreadable, not UTF-8, empty,
            or has an interior blank line.
    """
    label_path = Path(path)
    try:
        text = label_path.read_text(encoding="utf-8-sig")
    except (OSError, UnicodeDecodeError) as exc:
        raise LabelsError(f"Error loading labels from {label_path}: {exc}") from exc

    lines = [line.rstrip() for line in text.splitlines()]
    while lines and not lines[-1]:
        lines.pop()

    if not lines:
        raise LabelsError(f"Labels file is empty: {label_path}")

    for lineno, line in enumerate(lines, start=1):
        if not line:
            raise LabelsError(f"Blank label at line {lineno} of {label_path}")

    logger.info("Labels loaded: %d labels", len(lines))
    return tuple(lines)
