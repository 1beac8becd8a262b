#!/usr/bin/env python3
"""
Cycle-Time History Extractor — Entry Point.

Reads a workflow config file, pulls every status change of the matching work
items from the tracker's history feed, reconstructs one date per workflow
stage for each item and writes the result as CSV or JSON.

Usage:
    python run.py                         # config.yaml -> data.csv
    python run.py -i team.yaml -o out.json
    python run.py --show-query            # Print the query URLs too
    python run.py --debug                 # Verbose output
    python run.py --version               # Show version
    python run.py --env /path             # Use alternate .env file
"""

import sys
import argparse
import logging
from pathlib import Path

from core import HistoryOrchestrator

# Read version from the repo-root VERSION file (e.g., "1.0.0").
VERSION_FILE = Path(__file__).resolve().parent / "VERSION"
VERSION = VERSION_FILE.read_text().strip() if VERSION_FILE.exists() else "unknown"


def main():
    """Parse CLI arguments and run the extraction pipeline."""
    parser = argparse.ArgumentParser(
        description="Cycle-Time History Extractor - Export per-stage dates of work items"
    )
    parser.add_argument("--env", "-e", default="./.env", help="Path to .env file")
    parser.add_argument("--input", "-i", help="Workflow config file (default: CONFIG_FILE or config.yaml)")
    parser.add_argument("--output", "-o", help="Output file name, .csv or .json (default: OUTPUT_FILE or data.csv)")
    parser.add_argument("--show-query", "-q", action="store_true", help="Display the query used")
    parser.add_argument("--debug", action="store_true", help="Enable debug output")
    parser.add_argument("--version", "-v", action="store_true", help="Show version and exit")

    args = parser.parse_args()

    if args.version:
        print(VERSION)
        sys.exit(0)

    if args.debug:
        logging.basicConfig(
            level=logging.DEBUG,
            format='%(name)s - %(levelname)s - %(message)s'
        )

    orchestrator = HistoryOrchestrator(env_file=args.env)

    # Apply CLI overrides on top of .env values
    if args.input:
        orchestrator.config_file = args.input
    if args.output:
        orchestrator.output_file = args.output
    if args.show_query:
        orchestrator.show_query = True
    if args.debug:
        orchestrator.debug = True

    print(f"\n{'='*60}")
    print(f"CYCLE-TIME HISTORY EXTRACTOR v{VERSION}")
    print("="*60)
    print(f"Config: {orchestrator.config_file}")
    print(f"Output: {orchestrator.output_file}")

    # Config problems are reported before any network call
    if not orchestrator.validate_config():
        sys.exit(1)

    results = orchestrator.run()
    orchestrator.print_summary(results)

    if not results.get("success"):
        sys.exit(1)


if __name__ == "__main__":
    main()
