"""
Rebuilds logical text lines from positioned glyph runs.

PDF text extraction yields fragments with coordinates but no line breaks.
Fragments whose baselines stay within a vertical tolerance belong to the same
printed line; a horizontal gap between fragments on one line means a space,
otherwise the fragments are pieces of one word split by the extractor.
"""
from typing import Iterable, Optional

from config import ReflowConfig
from models import GlyphRun


def _is_noise(run: GlyphRun, config: ReflowConfig) -> bool:
    return not run.text.strip() and run.width < config.noise_width


def reflow_page(runs: Iterable[GlyphRun], config: Optional[ReflowConfig] = None) -> list[str]:
    """
    Turn one page's glyph runs into ordered logical lines.

    Args:
        runs: Glyph runs in extraction order
        config: Geometry tolerances (defaults from ReflowConfig)

    Returns:
        Stripped, non-empty lines in reading order
    """
    config = config or ReflowConfig()
    lines: list[str] = []
    current: list[str] = []
    last_y: Optional[float] = None
    last_x: Optional[float] = None
    last_width = 0.0

    for run in runs:
        if _is_noise(run, config):
            continue

        if last_y is not None and abs(run.y - last_y) > config.vertical_tolerance:
            lines.append("".join(current))
            current = []
            last_x = None

        if last_x is not None and current:
            gap = run.x - (last_x + last_width)
            if gap > config.horizontal_gap and not current[-1].endswith(" ") and not run.text.startswith(" "):
                current.append(" ")

        current.append(run.text)
        last_y = run.y
        last_x = run.x
        last_width = run.width

    if current:
        lines.append("".join(current))

    return [line.strip() for line in lines if line.strip()]


def reflow_pages(
    pages: Iterable[Iterable[GlyphRun]],
    config: Optional[ReflowConfig] = None
) -> list[str]:
    """Reflow each page independently and concatenate the lines in page order."""
    lines: list[str] = []
    for runs in pages:
        lines.extend(reflow_page(runs, config))
    return lines
