"""
Vision-based script extraction for layouts the heuristics cannot parse.

Stage 1 samples a few pages and asks the model for the title and the cast.
The caller checks that roster, then Stage 2 walks the document in overlapping
page windows. Each window's request carries the closed roster and the last
accepted lines, so the model neither invents speakers nor repeats what the
previous window already produced.
"""
import logging
import threading
import time
from typing import Any, Iterable, Optional

import fitz  # PyMuPDF
from tqdm import tqdm

from config import VisionConfig
from models import (
    BatchError, CharacterDiscovery, ExtractionResult, InputError, PageWindow,
    ParsedScript, Scene, ScriptLine, VisionState,
)
from page_sampler import batch_windows, sample_pages
from pdf_extractor import open_pdf, render_pages
from vision_client import JsonVisionClient, VisionClient, parse_json_payload

logger = logging.getLogger(__name__)

CHARACTER_DETECTION_PROMPT = """Tu es un expert en analyse de scripts de théâtre français.
ANALYSE ces pages de script et identifie UNIQUEMENT :
1. Le titre de la pièce
2. La liste complète des personnages présents dans ces pages.

RÈGLES :
- Un personnage est une personne qui parle ou qui est mentionnée dans les "Personnages" au début.
- Retourne les noms en MAJUSCULES.
- N'invente pas de personnages.

FORMAT JSON STRICT :
{
  "title": "Titre",
  "characters": ["NOM1", "NOM2"]
}"""

GUIDED_PROMPT = """Tu es un expert en analyse de scripts de théâtre français.
ANALYSE ces pages et extrais les répliques UNIQUEMENT pour les personnages suivants : {characters}.

FORMAT JSON STRICT :
{{
  "lines": [
    {{"character": "NOM", "text": "texte", "type": "dialogue"}},
    {{"character": "SCENE", "text": "Titre Scène", "type": "scene_heading"}}
  ],
  "scenes": [{{"index": 0, "title": "Titre Scène"}}]
}}

"index" d'une scène = position dans "lines" de ce lot où la scène commence.

RÈGLES :
1. N'utilise QUE les noms de personnages fournis.
2. Si un personnage n'est pas dans la liste, ignore sa réplique ou rattache-la si c'est une variante évidente.
3. Ne pas inclure de didascalies (parenthèses).
4. Retourne UNIQUEMENT le JSON.{context}"""

CONTEXT_BLOCK = """

CONTEXTE : les répliques suivantes ont déjà été extraites du lot précédent. NE LES RÉPÈTE PAS :
{items}"""


def normalize_roster(names: Any) -> list[str]:
    """Upper-case, trim and de-duplicate names, keeping order."""
    roster: list[str] = []
    if not isinstance(names, (list, tuple)):
        return roster
    for name in names:
        if not isinstance(name, str):
            continue
        clean = " ".join(name.split()).upper()
        if clean and clean not in roster:
            roster.append(clean)
    return roster


def build_guided_prompt(characters: Iterable[str], context: Iterable[tuple[str, str]]) -> str:
    items = [f'- {character} : "{text}"' for character, text in context]
    block = CONTEXT_BLOCK.format(items="\n".join(items)) if items else ""
    return GUIDED_PROMPT.format(characters=", ".join(characters), context=block)


def detect_characters(
    pdf_bytes: bytes,
    config: Optional[VisionConfig] = None,
    client: Optional[JsonVisionClient] = None
) -> CharacterDiscovery:
    """
    Stage 1: find the title and cast from a bounded sample of pages.

    All sampled pages go out in a single request. The roster returned still
    needs checking by the caller before guided extraction.

    Args:
        pdf_bytes: PDF file content
        config: Vision settings
        client: Model client (built from config when omitted)

    Returns:
        CharacterDiscovery; `error` is set when the request or the PDF failed
    """
    config = config or VisionConfig()

    try:
        doc = open_pdf(pdf_bytes)
    except InputError as e:
        return CharacterDiscovery(title=None, characters=[], sampled_pages=[], total_pages=0, error=str(e))

    try:
        total_pages = len(doc)
        sampled = sample_pages(total_pages, config.head_pages, config.sample_stride, config.tail_pages)
        logger.info("Sampling %d pages for characters: %s", len(sampled), ", ".join(map(str, sampled)))
        images = render_pages(doc, sampled, config.render_scale)
    finally:
        doc.close()

    try:
        client = client or VisionClient.from_config(config)
        payload = parse_json_payload(
            client.complete_json(CHARACTER_DETECTION_PROMPT, images, detail=config.discovery_detail)
        )
    except (BatchError, ValueError) as e:
        logger.error("Character detection failed: %s", e)
        return CharacterDiscovery(
            title=None, characters=[], sampled_pages=sampled, total_pages=total_pages, error=str(e)
        )

    title = payload.get("title")
    characters = normalize_roster(payload.get("characters"))
    logger.info("Detected %d characters", len(characters))
    return CharacterDiscovery(
        title=title.strip() if isinstance(title, str) and title.strip() else None,
        characters=characters,
        sampled_pages=sampled,
        total_pages=total_pages
    )


def _local_index(value: Any) -> int:
    try:
        return max(0, int(value))
    except (TypeError, ValueError):
        return 0


def merge_batch(
    state: VisionState,
    payload: dict[str, Any],
    window: PageWindow,
    roster: list[str],
    config: Optional[VisionConfig] = None
) -> VisionState:
    """
    Fold one batch response into the accumulator.

    - lines matching a carried-over context line exactly (speaker and trimmed
      text) are dropped; near matches are kept
    - dialogue speakers outside the roster become the unknown speaker
    - scenes with an already accepted title are dropped; the others are
      rebased onto the accepted lines: the position the model reports
      counts its own lines, some of which may have been dropped
    - the last accepted lines become the context for the next batch

    Raises:
        BatchError: if the payload has no usable "lines" list; the state is
        left untouched in that case
    """
    config = config or VisionConfig()
    raw_lines = payload.get("lines")
    if not isinstance(raw_lines, list):
        raise BatchError("Response has no 'lines' list")
    raw_scenes = payload.get("scenes") or []
    if not isinstance(raw_scenes, list):
        raw_scenes = []

    offset = len(state.lines)
    seen = {(character, text.strip()) for character, text in state.context}
    by_upper = {name.upper(): name for name in roster}
    duplicates = 0
    # raw position in this batch -> lines accepted before it
    accepted_before: list[int] = []

    for item in raw_lines:
        accepted_before.append(len(state.lines) - offset)
        if not isinstance(item, dict):
            continue
        text = str(item.get("text") or "").strip()
        if not text:
            continue
        line_type = item.get("type") if item.get("type") in ("scene_heading", "stage_direction") else "dialogue"
        character = " ".join(str(item.get("character") or "").split())
        if line_type == "dialogue":
            character = by_upper.get(character.upper(), config.unknown_speaker)

        if (character, text) in seen:
            duplicates += 1
            continue

        state.lines.append(ScriptLine(
            id=str(len(state.lines)),
            character=character,
            text=text,
            type=line_type
        ))

    accepted_before.append(len(state.lines) - offset)

    accepted_titles = {scene.title for scene in state.scenes}
    for item in raw_scenes:
        if not isinstance(item, dict):
            continue
        title = str(item.get("title") or "").strip()
        if not title or title in accepted_titles:
            continue
        local = _local_index(item.get("index"))
        index = offset + accepted_before[min(local, len(accepted_before) - 1)]
        index = min(index, len(state.lines))
        if state.scenes:
            index = max(index, state.scenes[-1].index)
        state.scenes.append(Scene(index=index, title=title))
        accepted_titles.add(title)

    state.context = [(line.character, line.text) for line in state.lines[-config.context_size:]]
    state.processed_pages.update(window.pages())
    state.completed_batches += 1

    if duplicates:
        logger.debug("Batch %d: dropped %d repeated lines", window.batch_index, duplicates)
    return state


def run_batch(
    state: VisionState,
    window: PageWindow,
    doc: fitz.Document,
    roster: list[str],
    client: JsonVisionClient,
    config: Optional[VisionConfig] = None
) -> VisionState:
    """
    Render, request and merge one page window.

    A failed request or an unusable response marks the window as skipped;
    the run goes on with the next one.
    """
    config = config or VisionConfig()
    logger.info("Processing batch %d: pages %d to %d",
                window.batch_index, window.start_page, window.end_page - 1)

    try:
        images = render_pages(doc, window.pages(), config.render_scale)
        prompt = build_guided_prompt(roster, state.context)
        payload = parse_json_payload(client.complete_json(prompt, images, detail=config.batch_detail))
        return merge_batch(state, payload, window, roster, config)
    except (BatchError, RuntimeError) as e:
        logger.warning("Skipping batch %d (pages %d-%d): %s",
                       window.batch_index, window.start_page, window.end_page - 1, e)
        state.skipped_windows.append(window)
        return state


def extract_with_vision(
    pdf_bytes: bytes,
    characters: list[str],
    title: Optional[str] = None,
    config: Optional[VisionConfig] = None,
    client: Optional[JsonVisionClient] = None,
    cancel_event: Optional[threading.Event] = None,
    progress: bool = False
) -> ExtractionResult:
    """
    Stage 2: guided extraction over overlapping page windows.

    Batches run one after another because each prompt depends on the lines
    accepted from the previous one. Setting `cancel_event` stops the run
    between batches and returns what was accumulated so far.

    Args:
        pdf_bytes: PDF file content
        characters: Roster validated by the caller
        title: Title for the resulting script
        config: Vision settings
        client: Model client (built from config when omitted)
        cancel_event: Signal to stop between batches
        progress: Show a tqdm progress bar

    Returns:
        ExtractionResult with pages processed against total pages
    """
    config = config or VisionConfig()
    roster = normalize_roster(characters)
    if not roster:
        return ExtractionResult(status="input_error", strategy="vision",
                                error="No validated characters supplied")

    try:
        doc = open_pdf(pdf_bytes)
    except InputError as e:
        return ExtractionResult(status="input_error", strategy="vision", error=str(e))

    total_pages = len(doc)
    try:
        client = client or VisionClient.from_config(config)
    except ValueError as e:
        doc.close()
        return ExtractionResult(status="extraction_error", strategy="vision",
                                total_pages=total_pages, error=str(e))

    windows = batch_windows(total_pages, config.batch_size, config.batch_overlap, config.max_pages)
    logger.info("Starting guided extraction: %d pages in %d batches for %s",
                total_pages, len(windows), ", ".join(roster))

    state = VisionState()
    cancelled = False
    try:
        for window in tqdm(windows, desc="Vision batches", disable=not progress):
            if cancel_event is not None and cancel_event.is_set():
                cancelled = True
                break
            state = run_batch(state, window, doc, roster, client, config)

            if window is not windows[-1] and config.batch_delay > 0:
                logger.debug("Batch complete, waiting %.1fs before next batch", config.batch_delay)
                if cancel_event is not None:
                    cancel_event.wait(config.batch_delay)
                else:
                    time.sleep(config.batch_delay)
    finally:
        doc.close()

    return _build_result(state, roster, title, total_pages, windows, cancelled, config)


def _build_result(
    state: VisionState,
    roster: list[str],
    title: Optional[str],
    total_pages: int,
    windows: list[PageWindow],
    cancelled: bool,
    config: VisionConfig
) -> ExtractionResult:
    script = ParsedScript(title=title or "Script", scenes=state.scenes, lines=state.lines)
    for name in roster:
        script.add_character(name)

    warnings = [
        f"Skipped batch {w.batch_index} (pages {w.start_page + 1}-{w.end_page})"
        for w in state.skipped_windows
    ]
    if total_pages > config.max_pages:
        warnings.append(f"Only the first {config.max_pages} of {total_pages} pages were processed")
    if cancelled:
        warnings.append(f"Cancelled after {state.completed_batches + len(state.skipped_windows)} "
                        f"of {len(windows)} batches")

    pages_processed = len(state.processed_pages)
    usable = state.completed_batches > 0 or cancelled
    if not usable:
        status = "extraction_error"
    elif pages_processed < total_pages or cancelled:
        status = "partial"
    else:
        status = "ok"

    logger.info("Vision extraction %s: %d lines, %d scenes, %d/%d pages",
                status, len(state.lines), len(state.scenes), pages_processed, total_pages)
    return ExtractionResult(
        status=status,
        script=script if usable else None,
        strategy="vision",
        pages_processed=pages_processed,
        total_pages=total_pages,
        error="No batch produced a usable response" if status == "extraction_error" else None,
        cancelled=cancelled,
        warnings=warnings
    )
