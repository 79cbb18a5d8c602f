"""
Play Script Extractor - CLI Interface

Turn a theatre script PDF into structured JSON (characters, scenes, lines).

Usage:
    python main.py input.pdf [-o OUTPUT] [--audit]
    python main.py input.pdf --detect-characters
    python main.py input.pdf --vision --characters "JOURDAIN,NICOLE"
"""
import argparse
import logging
import sys
import threading
from pathlib import Path

from config import load_config
from fidelity_audit import audit_fidelity
from models import InputError
from script_extractor import (
    HeuristicStrategy, VisionStrategy, extract_script, extract_text_lines,
    write_script_json, write_summary,
)
from vision_extractor import detect_characters


def _run_cancellable(target, cancel_event: threading.Event):
    """Run target in a worker thread; Ctrl-C asks it to stop between batches."""
    outcome = {}

    def worker():
        outcome["result"] = target()

    thread = threading.Thread(target=worker, daemon=True)
    thread.start()
    while thread.is_alive():
        try:
            thread.join(0.5)
        except KeyboardInterrupt:
            print("\nCancelling after the current batch...")
            cancel_event.set()
    return outcome.get("result")


def main():
    parser = argparse.ArgumentParser(
        description="Extract characters, scenes and lines from play script PDFs",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python main.py script.pdf                              # Heuristic extraction
    python main.py script.pdf --audit                      # Also report dialogue coverage
    python main.py script.pdf --detect-characters          # Vision stage 1: find the cast
    python main.py script.pdf --vision --characters "A,B"  # Vision stage 2 with a checked cast
        """
    )
    parser.add_argument(
        "input",
        help="Input PDF file"
    )
    parser.add_argument(
        "-o", "--output",
        help="Output JSON file (default: <input>.json)"
    )
    parser.add_argument(
        "--config",
        help="JSON configuration file"
    )
    parser.add_argument(
        "--title",
        help="Script title (default: PDF metadata title)"
    )
    parser.add_argument(
        "--vision",
        action="store_true",
        help="Use the vision extractor instead of the text heuristics"
    )
    parser.add_argument(
        "--characters",
        type=str,
        help="Comma-separated validated cast for --vision"
    )
    parser.add_argument(
        "--detect-characters",
        action="store_true",
        help="Only detect title and cast from sampled pages"
    )
    parser.add_argument(
        "--audit",
        action="store_true",
        help="Compare parsed dialogue with the raw text layer"
    )
    parser.add_argument(
        "--no-progress",
        action="store_true",
        help="Hide the batch progress bar"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Show detailed output"
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )

    # Validate input file
    input_path = Path(args.input)
    if not input_path.exists():
        print(f"Error: File not found: {args.input}")
        sys.exit(1)
    if not input_path.suffix.lower() == '.pdf':
        print(f"Error: Not a PDF file: {args.input}")
        sys.exit(1)

    config = load_config(args.config)
    pdf_bytes = input_path.read_bytes()

    if args.detect_characters:
        print(f"\nDetecting characters: {input_path.name}")
        discovery = detect_characters(pdf_bytes, config.vision)
        if discovery.error:
            print(f"Error: {discovery.error}")
            sys.exit(1)
        print(f"Sampled pages: {', '.join(str(p + 1) for p in discovery.sampled_pages)} "
              f"of {discovery.total_pages}")
        print(f"Title: {discovery.title or '(unknown)'}")
        print("Characters:")
        for name in discovery.characters:
            print(f"  - {name}")
        print(f'\nCheck the list, then run: python main.py {args.input} --vision '
              f'--characters "{",".join(discovery.characters)}"')
        return

    output_path = Path(args.output) if args.output else input_path.with_suffix(".json")

    if args.vision:
        if not args.characters:
            print("Error: --vision needs --characters (run --detect-characters first)")
            sys.exit(1)
        characters = [c.strip() for c in args.characters.split(",") if c.strip()]
        cancel_event = threading.Event()
        strategy = VisionStrategy(
            characters=characters,
            config=config,
            cancel_event=cancel_event,
            progress=not args.no_progress and sys.stdout.isatty()
        )
        print(f"\nProcessing: {input_path.name} (vision, {len(characters)} characters)")
        result = _run_cancellable(lambda: extract_script(pdf_bytes, strategy, title=args.title), cancel_event)
    else:
        print(f"\nProcessing: {input_path.name} (heuristic)")
        result = extract_script(pdf_bytes, HeuristicStrategy(config), title=args.title)

    # Show warnings
    if result.warnings and args.verbose:
        print("\nWarnings:")
        for w in result.warnings:
            print(f"  - {w}")

    if result.status == "input_error":
        print(f"Error: {result.error}")
        sys.exit(1)
    if result.status == "no_dialogue":
        print(f"\n{result.error}")
        print("Try the vision extractor: --detect-characters, then --vision --characters ...")
        sys.exit(2)
    if result.script is None:
        print(f"Error: {result.error}")
        sys.exit(1)

    script = result.script

    # Summary
    print(f"\n{'='*50}")
    print(f"Title: {script.title}")
    print(f"Status: {result.status}")
    print(f"Pages processed: {result.pages_processed}/{result.total_pages} ({result.completeness:.0%})")
    print(f"Characters: {len(script.characters)}")
    print(f"Scenes: {len(script.scenes)}")
    print(f"Dialogue lines: {len(script.dialogue_lines())}")
    if result.cancelled:
        print("(Cancelled: partial script)")
    print(f"{'='*50}")

    if args.audit:
        try:
            raw_lines, _, _ = extract_text_lines(pdf_bytes, config)
        except InputError as e:
            print(f"Audit skipped: {e}")
        else:
            report = audit_fidelity(raw_lines, script)
            print("\nFidelity audit:")
            print(f"  Raw content (chars): {report.raw_chars}")
            print(f"  Parsed dialogue (chars): {report.parsed_chars}")
            print(f"  Coverage: {report.coverage:.2f}% ({report.rating})")
            print(f"  Unmatched blocks: {len(report.missing_blocks)}")
            for block in report.missing_blocks[:8]:
                print(f'    - "{block}..."')

    json_path = write_script_json(script, str(output_path))
    summary_path = write_summary(result, str(output_path.parent), str(input_path))
    print(f"\nScript: {json_path}")
    print(f"Summary: {summary_path}")
    print("\nDone!")


if __name__ == "__main__":
    main()
