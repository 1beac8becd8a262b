"""
Core package — The history extraction pipeline modules.

This package contains all the modules that implement the extraction pipeline.
Each module handles one concern:

  orchestrator.py     Pipeline coordination (Steps 1-3)
  workflow_config.py  Parse the Connection/Criteria/Workflow/Attributes file
  query_builder.py    Build the history query for a page window
  history_client.py   HTTP communication with the history feed
  batch_assembler.py  Group page rows into work items across page boundaries
  stage_reconciler.py Pick one monotonic date per stage
  retry_driver.py     Walk the feed window by window with retries
  exporter.py         Write CSV or JSON output
"""

from .orchestrator import HistoryOrchestrator
from .workflow_config import ConfigError, WorkflowConfig, load_config_from_file, load_config_from_lines
from .query_builder import HistoryQuery, build_query
from .history_client import HistoryClient
from .batch_assembler import AssembledBatch, BatchAssembler, ItemAccumulator
from .stage_reconciler import reconcile_stage_dates
from .retry_driver import DriverResult, DriverState, RetryDriver
from .exporter import ExportStats, export_items
