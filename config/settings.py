"""
Settings — Default configuration values for the cycle-time history extractor.

This module provides the DEFAULT_SETTINGS dict that the orchestrator uses as
fallback values when environment variables are not set. The actual configuration
is loaded from .env at runtime; these defaults ensure the extractor works out of
the box against a typical history feed.

Configuration precedence (highest to lowest):
  1. CLI flags (--input, --output, --debug)
  2. Environment variables (from .env file)
  3. DEFAULT_SETTINGS (this file)

Settings reference:
  CONFIG_FILE        Workflow config file (Connection/Criteria/Workflow/Attributes)
  OUTPUT_FILE        Output path, must end with .csv or .json
  BATCH_SIZE         Rows requested per page window
  MAX_TRIES          Attempts per window before the run is aborted
  RETRY_DELAY        Seconds per retry step (wait = attempt * (RETRY_DELAY + 1))
  REQUEST_TIMEOUT    Seconds before a single page request is abandoned
  HISTORY_PASSWORD   Password used when the config file has none
  DEBUG              Whether to print verbose output (default: False)
"""

DEFAULT_SETTINGS = {
    "CONFIG_FILE": "config.yaml",
    "OUTPUT_FILE": "data.csv",
    "BATCH_SIZE": 1000,
    "MAX_TRIES": 5,
    "RETRY_DELAY": 5,
    "REQUEST_TIMEOUT": 60,
    "DEBUG": False,
}

OUTPUT_EXTENSIONS = (".csv", ".json")
