"""
History Orchestrator — Pipeline coordination for cycle-time extraction.

This module ties the other modules together into a sequential 3-step run:

  Step 1: QUERY
      Builds the history query for the first window from the workflow config
      (query_builder.build_query) and prints it.

  Step 2: FETCH HISTORY
      RetryDriver walks the feed window by window. Each window is fetched by
      HistoryClient and grouped into reconciled items by BatchAssembler.
      Failed windows are retried with increasing waits; running out of
      attempts fails the whole run.

  Step 3: WRITE OUTPUT
      Items with at least one stage date are written as CSV or JSON,
      depending on the output file extension. Nothing is written when
      Step 2 failed.

Configuration:
    Runtime settings come from environment variables (typically via .env file),
    falling back to config/settings.py. The workflow itself (connection,
    criteria, stages, attributes) comes from CONFIG_FILE.
    A password missing from CONFIG_FILE is read from HISTORY_PASSWORD, or
    prompted for when running in a terminal.

Typical usage:
    orchestrator = HistoryOrchestrator(env_file="./.env")
    if orchestrator.validate_config():
        results = orchestrator.run()
        orchestrator.print_summary(results)
"""

import getpass
import os
import sys
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv

from .batch_assembler import BatchAssembler
from .exporter import export_items
from .history_client import HistoryClient
from .query_builder import build_query
from .retry_driver import RetryDriver
from .workflow_config import ConfigError, WorkflowConfig, load_config_from_file

from config import DEFAULT_SETTINGS, OUTPUT_EXTENSIONS


class HistoryOrchestrator:
    """Orchestrates the history extraction pipeline.

    Attributes:
        config_file: Path of the workflow config file.
        output_file: Path of the CSV or JSON export.
        batch_size: Rows per page window.
        max_tries: Attempts per window.
        retry_delay: Seconds per retry step.
        request_timeout: Seconds per HTTP request.
        debug: Whether to enable verbose output.
        show_query: Whether to print the escaped and unescaped query URLs.
        workflow: The parsed WorkflowConfig (None until validate_config()).
    """

    def __init__(self, env_file: str = "./.env"):
        """Initialize the orchestrator by loading configuration from environment.

        Args:
            env_file: Path to a .env file. If the file exists, it is loaded via
                      python-dotenv. Otherwise, falls back to system environment.
        """
        env_path = Path(env_file)
        if env_path.exists():
            load_dotenv(env_path)
            print(f"Loaded configuration from: {env_file}")
        else:
            print(f"Warning: {env_file} not found, using defaults/environment")

        self._setting_errors: List[str] = []

        self.config_file = os.getenv("CONFIG_FILE", DEFAULT_SETTINGS["CONFIG_FILE"])
        self.output_file = os.getenv("OUTPUT_FILE", DEFAULT_SETTINGS["OUTPUT_FILE"])

        # Paging and retry behaviour
        self.batch_size = self._int_setting("BATCH_SIZE")
        self.max_tries = self._int_setting("MAX_TRIES")
        self.retry_delay = self._int_setting("RETRY_DELAY")
        self.request_timeout = self._int_setting("REQUEST_TIMEOUT")

        self.debug = os.getenv("DEBUG", str(DEFAULT_SETTINGS["DEBUG"])).lower() == "true"
        self.show_query = False

        # Only used when the config file has no password
        self.password = os.getenv("HISTORY_PASSWORD", "")

        self.workflow: Optional[WorkflowConfig] = None

    def _int_setting(self, name: str) -> int:
        default = DEFAULT_SETTINGS[name]
        raw = os.getenv(name, str(default))
        try:
            return int(raw)
        except ValueError:
            self._setting_errors.append(f"{name} must be an integer, got {raw!r}")
            return default

    def validate_config(self) -> bool:
        """Validate settings and load the workflow config file.

        Checks:
            - OUTPUT_FILE ends with .csv or .json
            - BATCH_SIZE and MAX_TRIES are positive, RETRY_DELAY is not negative
            - CONFIG_FILE exists and parses
            - a password is available

        Returns:
            True if everything needed for a run is present, False otherwise.
            Prints specific error messages for each problem.
        """
        errors = list(self._setting_errors)

        if not self.output_file.lower().endswith(OUTPUT_EXTENSIONS):
            errors.append("Output file name must end with .csv or .json")
        if self.batch_size <= 0:
            errors.append("BATCH_SIZE must be positive")
        if self.max_tries <= 0:
            errors.append("MAX_TRIES must be positive")
        if self.retry_delay < 0:
            errors.append("RETRY_DELAY must not be negative")

        print(f"Reading config file {self.config_file}")
        try:
            self.workflow = load_config_from_file(self.config_file)
        except ConfigError as e:
            errors.append(str(e))
        except OSError as e:
            errors.append(f"Cannot read config file: {e}")

        if self.workflow is not None and not self.workflow.password:
            self.workflow.password = self.password or self._prompt_password()
            if not self.workflow.password:
                errors.append("Missing password (set Password in the config file or HISTORY_PASSWORD)")

        if errors:
            print("\nConfiguration Errors:")
            for err in errors:
                print(f"  - {err}")
            return False
        return True

    def _prompt_password(self) -> str:
        if not sys.stdin.isatty():
            return ""
        return getpass.getpass(f"Password for {self.workflow.username}: ")

    def run(self) -> Dict[str, Any]:
        """Execute the full 3-step extraction pipeline.

        Returns:
            A dict containing:
                - started_at/completed_at: ISO timestamps
                - config: Config file, output file and batch settings
                - success: True if all steps completed without error
                - summary: Item counts (fetched, written, skipped) and windows
                - output_path: Path of the written export (if success=True)
                - elapsed_seconds: Wall-clock time of the run
                - error: Error message (if success=False)
        """
        if self.workflow is None:
            raise RuntimeError("Workflow config not loaded. Call validate_config() first.")

        start = time.monotonic()
        results: Dict[str, Any] = {
            "started_at": datetime.now(timezone.utc).isoformat(),
            "config": {
                "config_file": self.config_file,
                "output_file": self.output_file,
                "batch_size": self.batch_size,
                "max_tries": self.max_tries,
            },
            "success": False,
        }

        try:
            # Step 1: Build the query for the first window
            print(f"\n{'='*60}")
            print("STEP 1: QUERY")
            print("="*60)
            first_query = build_query(self.workflow, 0, self.batch_size)
            print(f"  Stages: {', '.join(self.workflow.stages.names)}")
            if self.show_query or self.debug:
                print(f"  unescaped url: {first_query.url}")
                print(f"  escaped url: {first_query.escaped_url}")

            # Step 2: Fetch and assemble every window
            print(f"\n{'='*60}")
            print("STEP 2: FETCH HISTORY")
            print("="*60)
            client = HistoryClient(
                self.workflow.get_credentials(), timeout=self.request_timeout, debug=self.debug
            )
            assembler = BatchAssembler(self.workflow.stages, self.workflow.attributes, self.debug)
            driver = RetryDriver(
                fetch=lambda offset, size: client.fetch_page(build_query(self.workflow, offset, size)),
                assembler=assembler,
                batch_size=self.batch_size,
                max_tries=self.max_tries,
                retry_delay=self.retry_delay,
                debug=self.debug,
            )
            outcome = driver.run()
            results["summary"] = {
                "windows": outcome.windows,
                "attempts": outcome.attempts,
                "items": len(outcome.items),
            }
            if not outcome.succeeded:
                raise RuntimeError(f"History fetch failed after {self.max_tries} tries: {outcome.error}")
            print(f"  Fetched {len(outcome.items)} work items")

            # Step 3: Export
            print(f"\n{'='*60}")
            print("STEP 3: WRITE OUTPUT")
            print("="*60)
            print(f"  Writing {self.output_file}")
            stats = export_items(outcome.items, self.workflow, self.output_file)
            if stats.skipped > 0:
                print(f"  {stats.skipped} empty work items omitted")
            print(f"  {stats.written} work items written")

            results["success"] = True
            results["output_path"] = stats.path
            results["summary"].update({"written": stats.written, "skipped": stats.skipped})

        except Exception as e:
            results["error"] = str(e)
            print(f"\n  ERROR: {e}")
            if self.debug:
                import traceback
                traceback.print_exc()

        results["elapsed_seconds"] = round(time.monotonic() - start, 3)
        results["completed_at"] = datetime.now(timezone.utc).isoformat()
        return results

    def print_summary(self, results: Dict):
        """Print a human-readable execution summary.

        Args:
            results: The dict returned by run().
        """
        print(f"\n{'='*60}")
        print("EXTRACTION COMPLETE")
        print("="*60)
        print(f"Status: {'SUCCESS' if results.get('success') else 'FAILED'}")

        summary = results.get("summary", {})
        if summary:
            print(f"Windows: {summary.get('windows', 0)}")
            print(f"Work items: {summary.get('items', 0)}")
            if "written" in summary:
                print(f"Written: {summary['written']}")
                print(f"Skipped: {summary['skipped']}")

        if results.get("output_path"):
            print(f"Output: {results['output_path']}")
        if results.get("error"):
            print(f"Error: {results['error']}")
        print(f"Total Time: {results.get('elapsed_seconds', 0)}s")
