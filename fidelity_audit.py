"""
Compares the raw text layer with a parsed script to estimate how much dialogue
the parser kept.
"""
import logging
import re
from dataclasses import dataclass, field
from typing import Literal

from models import ParsedScript
from script_segmenter import match_cue

logger = logging.getLogger(__name__)

_FUZZY_RE = re.compile(r"[^a-z0-9à-ÿœ]")
_LABEL_RE = re.compile(r"^[A-ZÀ-ÖØ-ÞŒŸ\s]{3,20}$")
_DIRECTION_RE = re.compile(r"\(.*\)|\[.*\]")


@dataclass
class FidelityReport:
    raw_chars: int
    parsed_chars: int
    coverage: float                        # percent
    missing_blocks: list[str] = field(default_factory=list)
    rating: Literal["high", "moderate", "low"] = "low"


def _fuzzy(text: str, length: int = 30) -> str:
    return _FUZZY_RE.sub("", text.lower())[:length]


def _paragraphs(lines: list[str]) -> list[str]:
    """Group lines into blocks ending at sentence-final punctuation."""
    blocks: list[str] = []
    current: list[str] = []
    for line in lines:
        current.append(line.strip())
        if line.rstrip().endswith((".", "!", "?", "…")):
            blocks.append(" ".join(current))
            current = []
    if current:
        blocks.append(" ".join(current))
    return blocks


def audit_fidelity(raw_lines: list[str], script: ParsedScript, min_block_chars: int = 30) -> FidelityReport:
    """
    Measure dialogue coverage of a parsed script against its source text.

    Long raw blocks whose normalized opening (after any speaker cue) is not
    found in any parsed line are reported as possibly missing, unless they
    look like stage directions or short uppercase labels.
    """
    parsed_fuzzy = "|".join(_fuzzy(line.text, 10_000) for line in script.lines)

    missing: list[str] = []
    for block in _paragraphs(raw_lines):
        if len(block) <= min_block_chars or _LABEL_RE.match(block):
            continue
        cue = match_cue(block)
        probe = _fuzzy(cue[1] if cue and cue[1] else block)
        if len(probe) < 15 or probe in parsed_fuzzy:
            continue
        if _DIRECTION_RE.search(block) or block.startswith("("):
            continue
        missing.append(block[:60])

    raw_chars = sum(len(re.sub(r"\s+", "", line)) for line in raw_lines)
    parsed_chars = sum(len(re.sub(r"\s+", "", line.text)) for line in script.dialogue_lines())
    coverage = round(parsed_chars / raw_chars * 100, 2) if raw_chars else 0.0

    if coverage > 80:
        rating = "high"
    elif coverage > 50:
        rating = "moderate"
    else:
        rating = "low"

    logger.debug("Fidelity audit: %.2f%% coverage, %d missing blocks", coverage, len(missing))
    return FidelityReport(
        raw_chars=raw_chars,
        parsed_chars=parsed_chars,
        coverage=coverage,
        missing_blocks=missing,
        rating=rating
    )
