"""
Heuristic play script segmenter.

Classifies reflowed text lines into speaker cues, scene headings, dialogue and
stage directions, following the conventions of printed French theatre:

    SCÈNE PREMIÈRE
    JOURDAIN : Bonjour
    à vous. (Il salue.)
"""
import logging
import re
from typing import Iterable, Optional

from character_names import is_collective, merge_similar_characters, normalize_voice, resolve_collective
from config import SegmenterConfig
from models import ExtractionResult, ParsedScript, Scene, ScriptLine

logger = logging.getLogger(__name__)

_UPPER = "A-ZÀ-ÖØ-ÞŒŸ"

_NAME = rf"(?:(?:M|MM|MME|MLLE|ST|STE)\.\s*)?[{_UPPER}][{_UPPER}\s\-'’]*?"

# "JOURDAIN: text", "JEAN-CLAUDE. text", "M. JOURDAIN : text", "D'ARTAGNAN."
# and "JOURDAIN.Bonjour" (no gap after reflow; "S.N.C.F." is not a cue)
CUE_PATTERN = re.compile(rf"^({_NAME})\s*(?::\s*|\.(?:\s+|$|(?=[{_UPPER}][a-zà-ÿœ])))(.*)$")
# "JULIE, ajustant son corset." optionally followed by the speech
COMMA_CUE_PATTERN = re.compile(rf"^({_NAME}),\s+([a-zà-ÿœ].*)$")
_DIRECTION_END = re.compile(r"^(.*?[.!?…])(?:\s+(.*))?$")
PAGE_NUMBER_PATTERN = re.compile(r"^\d+$")
_WHITESPACE = re.compile(r"\s+")

RECENT_SPEAKERS = 5


def match_cue(line: str, max_length: int = 35) -> Optional[tuple[str, str, str]]:
    """
    Match a speaker cue at the start of a line.

    Returns:
        (name, trailing text, stage direction) or None. Trailing text may be
        empty; the direction is only set for "NAME, direction." cues.
    """
    direction = ""
    m = CUE_PATTERN.match(line)
    if m:
        name, rest = m.group(1), m.group(2)
    else:
        m = COMMA_CUE_PATTERN.match(line)
        if not m:
            return None
        name = m.group(1)
        tail = _DIRECTION_END.match(m.group(2))
        if tail:
            direction, rest = tail.group(1), tail.group(2) or ""
        else:
            direction, rest = m.group(2), ""

    name = name.strip()
    if not 1 <= len(name) <= max_length:
        return None
    return name, rest.strip(), direction.strip()


def is_heading_line(line: str, max_length: int = 80) -> bool:
    """Fully uppercase, bounded line with at least one letter."""
    return (
        len(line) <= max_length
        and any(ch.isalpha() for ch in line)
        and line == line.upper()
    )


def _contains_label(text: str, labels: Iterable[str]) -> bool:
    upper = text.upper()
    return any(re.search(rf"(?<!\w){re.escape(label)}(?!\w)", upper) for label in labels)


def split_stage_directions(text: str, depth: int = 0) -> tuple[list[tuple[str, str]], int]:
    """
    Split text into spoken and parenthesized pieces.

    Parenthesis depth carries across lines: pass the depth returned for the
    previous line. Pieces are ("speech", s), ("direction", s) for a closed
    span, or ("open", s) for a span still open at the end of the text.

    Returns:
        (pieces in order, depth at end of text)
    """
    pieces: list[tuple[str, str]] = []
    buf: list[str] = []

    def flush(kind: str) -> None:
        chunk = "".join(buf).strip()
        if chunk:
            pieces.append((kind, chunk))
        buf.clear()

    for ch in text:
        if ch == "(":
            if depth == 0:
                flush("speech")
            else:
                buf.append(ch)
            depth += 1
        elif ch == ")":
            if depth == 0:
                continue  # stray closing paren
            depth -= 1
            if depth == 0:
                flush("direction")
            else:
                buf.append(ch)
        else:
            buf.append(ch)

    flush("open" if depth > 0 else "speech")
    return pieces, depth


class _Segmenter:
    """Single-pass line classifier; one instance per document."""

    def __init__(self, title: str, config: SegmenterConfig):
        self.config = config
        self.script = ParsedScript(title=title)
        self.speaker: Optional[str] = None
        self.open_line: Optional[ScriptLine] = None
        self.depth = 0
        self.pending_direction = ""
        self.recent_speakers: list[str] = []
        self.dropped = 0

    def feed(self, raw: str) -> None:
        line = _WHITESPACE.sub(" ", raw).strip()
        if not line or PAGE_NUMBER_PATTERN.match(line):
            return

        # A cue or heading ends a stage direction whose ")" never came
        if self.depth > 0:
            if not self._interrupts_direction(line):
                self._text(line)
                return
            logger.debug("Unclosed stage direction ended by: %s", line)
            self.depth = 0
            self._direction(self.pending_direction)
            self.pending_direction = ""

        cue = match_cue(line, self.config.max_cue_length)
        if cue:
            name, rest, direction = cue
            if is_collective(name, self.config.collective_labels):
                joint = resolve_collective(self.recent_speakers, self.config.collective_joiner)
                self._cue(joint or name, rest, direction, record=False)
            elif _contains_label(name, self.config.scene_keywords):
                self._scene(line.rstrip(" .:"))
            elif _contains_label(name, self.config.ignored_labels):
                logger.debug("Skipping label: %s", line)
            else:
                self._cue(normalize_voice(name), rest, direction)
            return

        if is_heading_line(line, self.config.max_heading_length):
            if line in self.script.characters:
                self._cue(line, "", "")
            elif _contains_label(line, self.config.ignored_labels):
                logger.debug("Skipping label: %s", line)
            else:
                self._scene(line)
            return

        self._text(line)

    def _interrupts_direction(self, line: str) -> bool:
        return (
            match_cue(line, self.config.max_cue_length) is not None
            or is_heading_line(line, self.config.max_heading_length)
        )

    def finish(self) -> ParsedScript:
        if self.pending_direction:
            self._direction(self.pending_direction)
            self.pending_direction = ""
        if self.dropped:
            logger.debug("Dropped %d text fragments with no active speaker", self.dropped)
        if self.config.merge_similar_characters:
            merge_similar_characters(
                self.script,
                threshold=self.config.merge_similarity,
                joiner=self.config.collective_joiner
            )
        return self.script

    def _cue(self, name: str, rest: str, direction: str, record: bool = True) -> None:
        self.speaker = name
        self.open_line = None
        self.script.add_character(name)
        if record:
            self.recent_speakers.append(name)
            del self.recent_speakers[:-RECENT_SPEAKERS]
        if direction:
            self._direction(direction)
        if rest:
            self._text(rest)

    def _scene(self, title: str) -> None:
        self.script.scenes.append(Scene(index=len(self.script.lines), title=title))
        self.speaker = None
        self.open_line = None

    def _text(self, text: str) -> None:
        pieces, self.depth = split_stage_directions(text, self.depth)
        for kind, chunk in pieces:
            if kind == "speech":
                self._speech(chunk)
            elif kind == "direction":
                self._direction(f"{self.pending_direction} {chunk}".strip())
                self.pending_direction = ""
            else:
                self.pending_direction = f"{self.pending_direction} {chunk}".strip()

    def _speech(self, text: str) -> None:
        if self.speaker is None:
            self.dropped += 1
            return
        if self.open_line is not None:
            self.open_line.text = f"{self.open_line.text} {text}"
        else:
            self.open_line = self.script.add_line(self.speaker, text, "dialogue")

    def _direction(self, text: str) -> None:
        if not self.config.emit_stage_directions or len(text) < self.config.min_stage_direction_length:
            return
        self.script.add_line(self.speaker or "", text, "stage_direction")
        self.open_line = None


def segment_lines(
    lines: Iterable[str],
    title: str = "Script",
    config: Optional[SegmenterConfig] = None
) -> ParsedScript:
    """
    Build a ParsedScript from logical text lines.

    Args:
        lines: Reflowed lines in reading order
        title: Title to store on the script
        config: Segmenter settings

    Returns:
        ParsedScript, possibly without any dialogue
    """
    segmenter = _Segmenter(title, config or SegmenterConfig())
    for line in lines:
        segmenter.feed(line)
    return segmenter.finish()


def segment_script(
    lines: Iterable[str],
    title: str = "Script",
    config: Optional[SegmenterConfig] = None,
    total_pages: int = 0
) -> ExtractionResult:
    """
    Segment lines and tag the outcome.

    A pass that finds no dialogue returns status "no_dialogue" so the caller
    can try the vision extractor instead.
    """
    script = segment_lines(lines, title=title, config=config)
    dialogue_count = len(script.dialogue_lines())

    if dialogue_count == 0:
        logger.info("No dialogue detected (%d scenes, %d characters)",
                    len(script.scenes), len(script.characters))
        return ExtractionResult(
            status="no_dialogue",
            strategy="heuristic",
            pages_processed=total_pages,
            total_pages=total_pages,
            error="Could not detect any dialogue lines. Ensure the script uses "
                  "standard formatting (CHARACTER NAMES in CAPS)."
        )

    logger.info("Segmented %d dialogue lines, %d characters, %d scenes",
                dialogue_count, len(script.characters), len(script.scenes))
    return ExtractionResult(
        status="ok",
        script=script,
        strategy="heuristic",
        pages_processed=total_pages,
        total_pages=total_pages
    )
