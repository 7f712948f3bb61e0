#!/usr/bin/env python3
"""
Run sample CSV files through the liftlog importer and print a summary per file.
Uses the liftlog package directly (no MCP server needed). Usage: python scripts/try_import.py [sample_dir] [kg|lbs]
"""
from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

# Project root = parent of scripts/
ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from liftlog.catalog import get_default_matcher
from liftlog.ingest import CsvImportError, parse_workout_csv
from liftlog.models import ParseOptions

SAMPLES_DIR = ROOT / "samples"


def main() -> int:
    samples_dir = Path(sys.argv[1]) if len(sys.argv) > 1 else SAMPLES_DIR
    unit = sys.argv[2] if len(sys.argv) > 2 else "kg"
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    options = ParseOptions(user_weight_unit=unit, resolver=get_default_matcher())
    failures = 0
    for path in sorted(samples_dir.glob("*.csv")):
        print(f"=== {path.name} ===")
        try:
            result = parse_workout_csv(path.read_text(encoding="utf-8"), options)
        except CsvImportError as e:
            failures += 1
            print(f"  rejected: {e}")
            continue
        print(json.dumps(result.meta.model_dump(), indent=2))
        for s in result.sets[:5]:
            print(f"  {s.start_time} | {s.title} | {s.exercise_title} #{s.set_index} {s.set_type} "
                  f"{s.weight_kg:.2f}kg x {s.reps}")
        if len(result.sets) > 5:
            print(f"  ... {len(result.sets) - 5} more")
    print(f"\n{failures} file(s) rejected")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
