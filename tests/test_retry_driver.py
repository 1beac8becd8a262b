"""Tests for core.retry_driver.RetryDriver."""

from unittest.mock import MagicMock

import pytest

from core.batch_assembler import BatchAssembler
from core.models import AttributeSchema, FetchOutcome, PageResult, RawEvent, StageSchema
from core.retry_driver import DriverState, RetryDriver

STAGES = StageSchema(names=("Open", "Done"), label_map={"Open": 0, "Done": 1})


def _rows(ids):
    return [
        RawEvent(item_id=item_id, status="Open" if n % 2 == 0 else "Done",
                 change_date=f"2024-01-{n + 1:02d}")
        for n, item_id in enumerate(ids)
    ]


class FakeFeed:
    """Serves windows of a fixed row list, failing the first N calls.

    cap limits how many rows a single call returns, like a server-side page cap.
    """

    def __init__(self, rows, failures=0, cap=None):
        self.rows = rows
        self.failures = failures
        self.cap = cap
        self.calls = []

    def __call__(self, offset, size):
        self.calls.append((offset, size))
        if self.failures > 0:
            self.failures -= 1
            return FetchOutcome(ok=False, error="HTTP 503")
        if self.cap is not None:
            size = min(size, self.cap)
        page = PageResult(rows=self.rows[offset:offset + size], total=len(self.rows), offset=offset)
        return FetchOutcome(ok=True, page=page)


def _driver(feed, **kwargs):
    kwargs.setdefault("sleep", MagicMock())
    return RetryDriver(fetch=feed, assembler=BatchAssembler(STAGES, AttributeSchema()), **kwargs)


def test_single_window_feed():
    feed = FakeFeed(_rows(["A", "A", "B"]))
    result = _driver(feed, batch_size=10).run()
    assert result.state is DriverState.SUCCEEDED
    assert result.succeeded is True
    assert [i.item_id for i in result.items] == ["A", "B"]
    assert feed.calls == [(0, 10)]
    assert result.windows == 1


def test_windows_advance_by_consumed_rows():
    feed = FakeFeed(_rows(["A", "A", "B", "B", "B"]))
    result = _driver(feed, batch_size=3).run()
    assert [i.item_id for i in result.items] == ["A", "B"]
    # [A,A,B] consumes 2; the tail window [B,B,B] starts at B's first row
    assert feed.calls == [(0, 3), (2, 3)]


def test_final_window_shrinks_to_remaining():
    feed = FakeFeed(_rows(["A", "B", "C", "D", "E"]))
    result = _driver(feed, batch_size=4).run()
    assert [i.item_id for i in result.items] == ["A", "B", "C", "D", "E"]
    assert feed.calls == [(0, 4), (3, 2)]


def test_window_widens_when_nothing_consumed():
    feed = FakeFeed(_rows(["A", "A", "A", "A", "A", "B"]))
    result = _driver(feed, batch_size=2).run()
    assert [i.item_id for i in result.items] == ["A", "B"]
    assert feed.calls == [(0, 2), (0, 4), (0, 6)]


def test_empty_feed():
    feed = FakeFeed([])
    result = _driver(feed, batch_size=5).run()
    assert result.succeeded is True
    assert result.items == []


def test_retries_then_succeeds_with_backoff():
    sleep = MagicMock()
    feed = FakeFeed(_rows(["A", "B"]), failures=3)
    result = _driver(feed, batch_size=5, max_tries=5, retry_delay=5, sleep=sleep).run()
    assert result.succeeded is True
    assert result.attempts == 4
    assert feed.calls == [(0, 5)] * 4
    # First retry is immediate, then 6s, 12s
    assert [c.args[0] for c in sleep.call_args_list] == [6, 12]


def test_exhausted_retries_fail_without_items():
    sleep = MagicMock()
    feed = FakeFeed(_rows(["A", "B"]), failures=10)
    result = _driver(feed, batch_size=5, max_tries=3, retry_delay=1, sleep=sleep).run()
    assert result.state is DriverState.FAILED
    assert result.items == []
    assert result.attempts == 3
    assert result.error == "HTTP 503"
    assert [c.args[0] for c in sleep.call_args_list] == [2]


def test_failure_after_progress_drops_partial_items():
    rows = _rows(["A", "B", "C", "D"])
    calls = []

    def fetch(offset, size):
        calls.append((offset, size))
        if offset > 0:
            return FetchOutcome(ok=False, error="timeout")
        return FetchOutcome(ok=True, page=PageResult(rows[offset:offset + size], len(rows), offset))

    result = _driver(fetch, batch_size=2, max_tries=2).run()
    assert result.state is DriverState.FAILED
    assert result.items == []
    assert result.windows == 1


def test_empty_page_with_rows_remaining_is_a_failure():
    def fetch(offset, size):
        return FetchOutcome(ok=True, page=PageResult(rows=[], total=10, offset=offset))

    result = _driver(fetch, batch_size=5, max_tries=2).run()
    assert result.state is DriverState.FAILED
    assert "empty page" in result.error


def test_backoff():
    driver = _driver(FakeFeed([]), retry_delay=5)
    assert [driver.backoff(a) for a in range(4)] == [0, 6, 12, 18]


@pytest.mark.parametrize("kwargs", [{"batch_size": 0}, {"max_tries": 0}])
def test_invalid_settings_rejected(kwargs):
    with pytest.raises(ValueError):
        _driver(FakeFeed([]), **kwargs)


def test_capped_pages_fail_when_window_cannot_grow():
    feed = FakeFeed(_rows(["A"] * 6 + ["B"]), cap=3)
    result = _driver(feed, batch_size=3, max_tries=3).run()
    assert result.state is DriverState.FAILED
    assert result.items == []
    assert result.error == "no progress at row 1"
    # Widened once, then the short page is retried until the ceiling
    assert feed.calls == [(0, 3), (0, 6), (0, 6), (0, 6)]


def test_capped_pages_still_advance_when_items_fit():
    feed = FakeFeed(_rows(["A", "A", "B", "C", "C", "D", "E"]), cap=3)
    result = _driver(feed, batch_size=5).run()
    assert result.succeeded is True
    assert [i.item_id for i in result.items] == ["A", "B", "C", "D", "E"]
