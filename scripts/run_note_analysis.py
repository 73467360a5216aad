"""
Run the multi-agent analysis on one stored note.

Loads a note document (camelCase JSON as exported by the note app), runs the
analysis pipeline while printing progress, and writes the report back onto
the note as ``aiAnalysis``.

Usage:
    python scripts/run_note_analysis.py notes/quadratic.json
    python scripts/run_note_analysis.py notes/quadratic.json --category category.json --curve curve.json
    python scripts/run_note_analysis.py notes/quadratic.json --provider openrouter --no-save
"""

import argparse
import asyncio
import json
import logging
import sys
import time
from pathlib import Path
from typing import Any, Dict, Optional

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from note_analyzer.agents.workflow import run_note_analysis
from note_analyzer.notes import (
    Category,
    CurveProfile,
    JsonNoteStore,
    attach_analysis,
    build_analysis_context,
    load_note,
    save_note,
)
from note_analyzer.utils.config import (
    load_provider_profile,
    load_settings,
    merge_remote_key,
    parse_provider,
)
from note_analyzer.utils.errors import NoteAnalyzerError
from note_analyzer.utils.logger import setup_root_logger

logger = logging.getLogger(__name__)


def _read_json(path: Optional[str]) -> Optional[Dict[str, Any]]:
    if not path:
        return None
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


class ProgressPrinter:
    """Print status lines and a one-line marker when each agent starts streaming."""

    def __init__(self):
        self.started = set()

    def on_progress(self, message: str) -> None:
        print(f"  {message}")

    def on_agent_stream(self, agent_id: str, partial_text: str) -> None:
        if agent_id not in self.started:
            self.started.add(agent_id)
            print(f"    ↳ {agent_id} agent streaming...")


def main():
    """Main execution function."""
    parser = argparse.ArgumentParser(description="Run the multi-agent note analysis")
    parser.add_argument("note", help="Path to the note JSON document")
    parser.add_argument("--category", help="Path to the category JSON document")
    parser.add_argument("--curve", help="Path to the review curve JSON document")
    parser.add_argument("--provider", help="Provider override (deepseek, openai, openrouter, dashscope)")
    parser.add_argument("--key-file", help="JSON key record overriding api_key/base_url")
    parser.add_argument("--no-save", action="store_true", help="Do not write the report back")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")

    args = parser.parse_args()
    setup_root_logger(logging.DEBUG if args.verbose else logging.WARNING)

    note_path = Path(args.note)
    store = JsonNoteStore(note_path.parent)
    key = note_path.stem

    try:
        note = load_note(store, key)
        category_doc = _read_json(args.category)
        curve_doc = _read_json(args.curve)
        category = Category.model_validate(category_doc) if category_doc else None
        curve = CurveProfile.model_validate(curve_doc) if curve_doc else None

        settings = load_settings()
        kind = parse_provider(args.provider) if args.provider else settings.provider
        profile = merge_remote_key(load_provider_profile(kind), _read_json(args.key_file))
    except KeyError:
        print(f"Error: note file not found: {note_path}")
        sys.exit(1)
    except (NoteAnalyzerError, ValueError, OSError) as exc:
        print(f"Error: {exc}")
        sys.exit(1)

    print("\n" + "=" * 70)
    print("Note Analysis")
    print("=" * 70)
    print(f"Note: {note.title}")
    print(f"Provider: {profile.kind.value} ({profile.model})")
    print("=" * 70)

    printer = ProgressPrinter()
    start_time = time.time()

    try:
        result = asyncio.run(
            run_note_analysis(
                profile,
                build_analysis_context(note, category, curve),
                on_progress=printer.on_progress,
                on_agent_stream=printer.on_agent_stream,
                settings=settings,
            )
        )
    except Exception as exc:
        logger.exception("Note analysis failed: %s", exc)
        print(f"\n{'=' * 70}")
        print("ERROR: Analysis failed")
        print(f"{'=' * 70}")
        print(f"Error: {exc}")
        sys.exit(1)

    execution_time = time.time() - start_time
    report = result.summary if result.review_passed else result.original

    print(f"\n{'=' * 70}")
    print("REPORT")
    print(f"{'=' * 70}")
    print(report)

    if not args.no_save:
        save_note(store, key, attach_analysis(note, report))
        print(f"\n✓ Report saved to {note_path}")

    print(f"\n{'=' * 70}")
    print("Execution Summary")
    print(f"{'=' * 70}")
    print(f"Review passed: {result.review_passed}")
    print(f"Execution Time: {execution_time:.2f} seconds")
    print(f"Report Length: {len(report)} characters")
    print(f"{'=' * 70}\n")


if __name__ == "__main__":
    main()
