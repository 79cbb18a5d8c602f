"""
Script Extractor - structured play scripts from PDF files.

Two strategies, chosen explicitly by the caller:
- heuristic: glyph reflow + cue/heading segmentation, fast and deterministic
- vision: page images sent to a multimodal model in guided batches

A heuristic result with status "no_dialogue" is the signal to try vision.
The two are never merged within one call.
"""
import json
import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Union

from config import ExtractorConfig
from line_reflow import reflow_pages
from models import ExtractionResult, InputError, ParsedScript
from pdf_extractor import extract_glyph_runs, get_title, open_pdf
from script_segmenter import segment_script
from vision_client import JsonVisionClient
from vision_extractor import extract_with_vision

logger = logging.getLogger(__name__)


@dataclass
class HeuristicStrategy:
    """Deterministic extraction from the PDF text layer."""
    config: ExtractorConfig = field(default_factory=ExtractorConfig)


@dataclass
class VisionStrategy:
    """Guided multimodal extraction with a roster validated by the caller."""
    characters: list[str]
    config: ExtractorConfig = field(default_factory=ExtractorConfig)
    client: Optional[JsonVisionClient] = None
    cancel_event: Optional[threading.Event] = None
    progress: bool = False


ScriptExtractor = Union[HeuristicStrategy, VisionStrategy]


def extract_script(
    pdf_bytes: bytes,
    strategy: Optional[ScriptExtractor] = None,
    *,
    title: Optional[str] = None
) -> ExtractionResult:
    """
    Extract a structured script from a PDF.

    Args:
        pdf_bytes: PDF file content
        strategy: HeuristicStrategy (default) or VisionStrategy
        title: Script title; defaults to the PDF metadata title, then "Script"

    Returns:
        ExtractionResult tagged ok / partial / no_dialogue /
        extraction_error / input_error
    """
    strategy = strategy or HeuristicStrategy()

    if isinstance(strategy, HeuristicStrategy):
        return _extract_heuristic(pdf_bytes, strategy.config, title)
    if isinstance(strategy, VisionStrategy):
        if title is None:
            title = _metadata_title(pdf_bytes)
        return extract_with_vision(
            pdf_bytes,
            strategy.characters,
            title=title,
            config=strategy.config.vision,
            client=strategy.client,
            cancel_event=strategy.cancel_event,
            progress=strategy.progress
        )
    raise TypeError(f"Unknown extraction strategy: {type(strategy).__name__}")


def extract_text_lines(pdf_bytes: bytes, config: Optional[ExtractorConfig] = None) -> tuple[list[str], int, Optional[str]]:
    """
    Reflow a PDF's text layer into logical lines.

    Returns:
        (lines, total pages, metadata title)

    Raises:
        InputError: if the PDF cannot be read
    """
    config = config or ExtractorConfig()
    doc = open_pdf(pdf_bytes)
    try:
        pages = extract_glyph_runs(doc)
        metadata_title = get_title(doc)
    finally:
        doc.close()
    return reflow_pages(pages, config.reflow), len(pages), metadata_title


def _extract_heuristic(pdf_bytes: bytes, config: ExtractorConfig, title: Optional[str]) -> ExtractionResult:
    try:
        lines, total_pages, metadata_title = extract_text_lines(pdf_bytes, config)
    except InputError as e:
        logger.error("PDF extraction failed: %s", e)
        return ExtractionResult(status="input_error", strategy="heuristic", error=str(e))

    logger.info("Reflowed %d lines from %d pages", len(lines), total_pages)
    if not lines:
        result = ExtractionResult(
            status="no_dialogue",
            strategy="heuristic",
            pages_processed=total_pages,
            total_pages=total_pages,
            error="PDF has no text layer (image-only?)"
        )
        result.warnings.append("PDF appears to be empty or image-only")
        return result

    return segment_script(
        lines,
        title=title or metadata_title or "Script",
        config=config.segmenter,
        total_pages=total_pages
    )


def _metadata_title(pdf_bytes: bytes) -> Optional[str]:
    try:
        doc = open_pdf(pdf_bytes)
    except InputError:
        return None  # extract_with_vision reports it
    try:
        return get_title(doc)
    finally:
        doc.close()


def write_script_json(script: ParsedScript, output_path: str) -> str:
    """
    Write a ParsedScript as JSON.

    Returns:
        Path to the written file
    """
    path = Path(output_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(script.to_dict(), f, ensure_ascii=False, indent=2)
    return str(path)


def load_script_json(path: str) -> ParsedScript:
    with open(path, 'r', encoding='utf-8') as f:
        return ParsedScript.from_dict(json.load(f))


def write_summary(
    result: ExtractionResult,
    output_dir: str,
    source_pdf: str
) -> str:
    """
    Write a human-readable summary file.

    Args:
        result: ExtractionResult from extract_script()
        output_dir: Directory for output
        source_pdf: Original PDF path

    Returns:
        Path to summary file
    """
    Path(output_dir).mkdir(parents=True, exist_ok=True)
    summary_path = Path(output_dir) / "extraction_summary.txt"

    lines = [
        "Script Extraction Summary",
        "=" * 50,
        f"Source: {source_pdf}",
        f"Strategy: {result.strategy}",
        f"Status: {result.status}",
        f"Pages processed: {result.pages_processed}/{result.total_pages} ({result.completeness:.0%})",
    ]
    if result.error:
        lines.append(f"Error: {result.error}")

    script = result.script
    if script is not None:
        lines.extend([
            f"Title: {script.title}",
            f"Characters: {len(script.characters)}",
            f"Scenes: {len(script.scenes)}",
            f"Dialogue lines: {len(script.dialogue_lines())}",
            f"Total lines: {len(script.lines)}",
        ])
    lines.append("")

    if result.warnings:
        lines.append("Warnings:")
        for w in result.warnings:
            lines.append(f"  - {w}")
        lines.append("")

    if script is not None:
        lines.append("Characters:")
        lines.append("-" * 50)
        counts = {name: 0 for name in script.characters}
        for line in script.dialogue_lines():
            counts[line.character] = counts.get(line.character, 0) + 1
        for name, count in counts.items():
            lines.append(f"  {name}: {count} lines")

        lines.append("")
        lines.append("Scenes:")
        lines.append("-" * 50)
        for scene in script.scenes[:20]:
            title_preview = scene.title[:60] + "..." if len(scene.title) > 60 else scene.title
            lines.append(f"  [{scene.index}] {title_preview}")
        if len(script.scenes) > 20:
            lines.append(f"  ... and {len(script.scenes) - 20} more")

    with open(summary_path, 'w', encoding='utf-8') as f:
        f.write('\n'.join(lines))

    return str(summary_path)
