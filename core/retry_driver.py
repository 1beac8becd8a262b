"""
Retry Driver — Walks the whole history feed window by window.

The driver is a small state machine over windows [index, index + size):

    FETCHING ──ok──────────────> FETCHING (next window) ──size 0──> SUCCEEDED
        │
        └─failure─> RETRY_WAIT ──sleep──> FETCHING (same window, attempt + 1)
                        │
                        └─ attempt ceiling reached ──> FAILED

  - On success the window start moves forward by the consumed row count and
    the next size is min(batch_size, remaining). The run ends when that size
    is zero.
  - If a page consumes nothing but rows remain (one item is longer than the
    window), the next window is doubled so the item can be completed.
  - A page with no rows while rows remain counts as a failure. So does a
    page that consumes nothing when the window cannot grow: the server
    returned fewer rows than asked for, or the window already spans every
    remaining row.
  - RETRY_WAIT sleeps attempt * (retry_delay + 1) seconds, where attempt
    counts from zero, so the first retry is immediate.
  - FAILED drops everything collected so far. Callers never see a partial
    item set.

Windows are fetched strictly in order: where each window starts depends on
how many rows the previous one consumed.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional

from .batch_assembler import AssembledBatch, BatchAssembler
from .models import CompletedItem, FetchOutcome


class DriverState(Enum):
    FETCHING = "fetching"
    SUCCEEDED = "succeeded"
    RETRY_WAIT = "retry_wait"
    FAILED = "failed"


@dataclass
class DriverResult:
    """Final state of a driver run.

    Attributes:
        state: SUCCEEDED or FAILED.
        items: Every completed item, in feed order (empty when FAILED).
        windows: Windows fetched successfully.
        attempts: Fetch attempts made, including failed ones.
        error: Last failure message, if any.
    """

    state: DriverState
    items: List[CompletedItem] = field(default_factory=list)
    windows: int = 0
    attempts: int = 0
    error: str = ""

    @property
    def succeeded(self) -> bool:
        return self.state is DriverState.SUCCEEDED


class RetryDriver:
    """Runs fetch + assemble across the whole feed with retries.

    Attributes:
        fetch: Callable (offset, size) -> FetchOutcome for one window.
        assembler: BatchAssembler that turns each page into items.
        batch_size: Largest window requested.
        max_tries: Attempts per window before the run fails.
        retry_delay: Seconds per retry step.
        sleep: Blocking wait, replaceable in tests.
    """

    def __init__(
        self,
        fetch: Callable[[int, int], FetchOutcome],
        assembler: BatchAssembler,
        batch_size: int = 1000,
        max_tries: int = 5,
        retry_delay: int = 5,
        sleep: Callable[[float], None] = time.sleep,
        debug: bool = False,
    ):
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")
        if max_tries <= 0:
            raise ValueError("max_tries must be positive")
        self.fetch = fetch
        self.assembler = assembler
        self.batch_size = batch_size
        self.max_tries = max_tries
        self.retry_delay = retry_delay
        self.sleep = sleep
        self.debug = debug

    def backoff(self, attempt: int) -> int:
        """Seconds to wait after the zero-based attempt failed."""
        return attempt * (self.retry_delay + 1)

    def run(self) -> DriverResult:
        """Fetch every window and return all completed items."""
        state = DriverState.FETCHING
        index = 0
        size = self.batch_size
        attempt = 0
        attempts = 0
        windows = 0
        error = ""
        items: List[CompletedItem] = []

        while True:
            if state is DriverState.FETCHING:
                if size <= 0:
                    state = DriverState.SUCCEEDED
                    continue

                label = "Retrying" if attempt else "Loading"
                print(f"  {label} rows {index + 1}-{index + size}: ", end="", flush=True)
                attempts += 1
                batch, error = self._fetch_window(index, size)

                if batch is None:
                    print("failed")
                    if self.debug:
                        print(f"    {error}")
                    if attempt + 1 < self.max_tries:
                        state = DriverState.RETRY_WAIT
                    else:
                        state = DriverState.FAILED
                    continue

                print("ok")
                windows += 1
                items.extend(batch.items)
                size = self._next_size(size, batch)
                index += batch.consumed
                attempt = 0

            elif state is DriverState.RETRY_WAIT:
                delay = self.backoff(attempt)
                if delay > 0:
                    if self.debug:
                        print(f"  Waiting {delay}s before retrying")
                    self.sleep(delay)
                attempt += 1
                state = DriverState.FETCHING

            elif state is DriverState.SUCCEEDED:
                return DriverResult(
                    state=state, items=items, windows=windows, attempts=attempts,
                )

            else:
                print(f"  Error: rows {index + 1}-{index + size} failed to load")
                return DriverResult(
                    state=DriverState.FAILED, windows=windows, attempts=attempts, error=error,
                )

    def _fetch_window(self, index: int, size: int):
        """One attempt at a window. Returns (batch, "") or (None, error)."""
        outcome = self.fetch(index, size)
        if not outcome.ok or outcome.page is None:
            return None, outcome.error or "fetch failed"

        page = outcome.page
        batch = self.assembler.assemble(page.rows, page.total, index)
        if not page.rows and batch.remaining > 0:
            return None, f"empty page at row {index + 1} of {page.total}"
        # Nothing consumed and no room to widen the window
        if batch.consumed == 0 and batch.remaining > 0:
            if len(page.rows) < size or size >= batch.remaining:
                return None, f"no progress at row {index + 1}"
        return batch, ""

    def _next_size(self, size: int, batch: AssembledBatch) -> int:
        next_size = min(self.batch_size, batch.remaining)
        if batch.consumed == 0 and batch.remaining > 0:
            next_size = min(size * 2, batch.remaining)
            if self.debug:
                print(f"  Widening window to {next_size} rows")
        return next_size
