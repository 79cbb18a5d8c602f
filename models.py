"""
Data models for PDF play script extraction.
"""
from dataclasses import dataclass, field
from typing import Any, Literal, Optional

LineType = Literal["dialogue", "scene_heading", "stage_direction"]
LINE_TYPES = ("dialogue", "scene_heading", "stage_direction")

ExtractionStatus = Literal["ok", "partial", "no_dialogue", "extraction_error", "input_error"]


class InputError(Exception):
    """The PDF could not be opened or holds no pages."""


class BatchError(Exception):
    """A vision batch returned nothing usable."""


@dataclass
class GlyphRun:
    """One positioned text fragment from a PDF page."""
    text: str
    x: float                  # Left edge
    y: float                  # Baseline
    width: float


@dataclass
class ScriptLine:
    """A typed line of the script."""
    id: str                   # Position in ParsedScript.lines
    character: str
    text: str
    type: LineType = "dialogue"


@dataclass
class Scene:
    """A scene opening at an offset into ParsedScript.lines."""
    index: int
    title: str


@dataclass
class ParsedScript:
    """Normalized output shared by both extraction strategies."""
    title: str = "Script"
    characters: list[str] = field(default_factory=list)
    scenes: list[Scene] = field(default_factory=list)
    lines: list[ScriptLine] = field(default_factory=list)

    def add_character(self, name: str) -> None:
        """Record a speaker, keeping first-seen order."""
        if name and name not in self.characters:
            self.characters.append(name)

    def add_line(self, character: str, text: str, line_type: LineType = "dialogue") -> ScriptLine:
        line = ScriptLine(id=str(len(self.lines)), character=character, text=text, type=line_type)
        self.lines.append(line)
        return line

    def dialogue_lines(self) -> list[ScriptLine]:
        return [line for line in self.lines if line.type == "dialogue"]

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "characters": list(self.characters),
            "scenes": [{"index": s.index, "title": s.title} for s in self.scenes],
            "lines": [
                {"id": l.id, "character": l.character, "text": l.text, "type": l.type}
                for l in self.lines
            ],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ParsedScript":
        script = cls(title=data.get("title") or "Script")
        for name in data.get("characters", []):
            script.add_character(name)
        for scene in data.get("scenes", []):
            script.scenes.append(Scene(index=int(scene["index"]), title=scene["title"]))
        for line in data.get("lines", []):
            line_type = line.get("type") if line.get("type") in LINE_TYPES else "dialogue"
            script.add_line(line.get("character", ""), line.get("text", ""), line_type)
        return script


@dataclass
class PageWindow:
    """A slice of consecutive pages sent in one vision request."""
    batch_index: int
    start_page: int           # 0-indexed, inclusive
    end_page: int             # 0-indexed, exclusive

    def pages(self) -> range:
        return range(self.start_page, self.end_page)


@dataclass
class CharacterDiscovery:
    """Result of vision Stage 1: title and roster to be validated by the caller."""
    title: Optional[str]
    characters: list[str]
    sampled_pages: list[int]
    total_pages: int
    error: Optional[str] = None


@dataclass
class VisionState:
    """Accumulator threaded through the Stage 2 batch loop."""
    lines: list[ScriptLine] = field(default_factory=list)
    scenes: list[Scene] = field(default_factory=list)
    context: list[tuple[str, str]] = field(default_factory=list)    # (character, text)
    processed_pages: set[int] = field(default_factory=set)
    skipped_windows: list[PageWindow] = field(default_factory=list)
    completed_batches: int = 0


@dataclass
class ExtractionResult:
    """Tagged outcome of an extraction request."""
    status: ExtractionStatus
    script: Optional[ParsedScript] = None
    strategy: Literal["heuristic", "vision"] = "heuristic"
    pages_processed: int = 0
    total_pages: int = 0
    error: Optional[str] = None
    cancelled: bool = False
    warnings: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.status in ("ok", "partial")

    @property
    def completeness(self) -> float:
        """Share of the document's pages that were processed."""
        if not self.total_pages:
            return 0.0
        return round(self.pages_processed / self.total_pages, 3)
