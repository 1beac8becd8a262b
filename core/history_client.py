"""
History Client — Fetches one page of status-change rows from the history feed.

The feed returns one row per status change of every matching work item:

    {
      "total": 5321,                      # rows in the whole filtered result
      "Assets": [
        {
          "id": "Story:1042:88213",       # Kind:Number:Moment
          "Attributes": {
            "Number":      {"value": "S-01042"},
            "Name":        {"value": "Export report, \"v2\""},
            "Status.Name": {"value": "In Progress"},
            "ChangeDate":  {"value": "2024-01-05T13:22:09.113"},
            "Scope.Name":  {"value": "Team Alpha"},
            "Timebox.Name": {"value": "Sprint 12"},
            "Parent.Now.ParentMeAndUp.Name": {"value": ["Billing", "Invoices"]},
            "Custom_Risk": {"value": "High"}
          }
        }
      ]
    }

Key names are matched case-insensitively, since servers differ on "total"
versus "Total" and similar.

fetch_page() never raises. A network error, a non-200 status and a body that
does not decode into the shape above all come back as
FetchOutcome(ok=False, error=...). The feed gives no way to tell a bad request
from a server hiccup, so the retry driver treats every failure as retryable.
"""

from typing import Any, Dict, Optional

import requests

from .models import (
    CUSTOM_FIELD_PREFIX,
    SCOPE_FIELD,
    THEME_FIELD,
    TIMEBOX_FIELD,
    FetchOutcome,
    PageResult,
    RawEvent,
)
from .query_builder import HistoryQuery


def _lookup(mapping: Dict[str, Any], key: str, default: Any = None) -> Any:
    """Get a key from a JSON object, falling back to a case-insensitive match."""
    if key in mapping:
        return mapping[key]
    lowered = key.lower()
    for candidate, value in mapping.items():
        if candidate.lower() == lowered:
            return value
    return default


def _attribute_value(attributes: Dict[str, Any], name: str) -> Any:
    """Return the "value" of a named attribute, or None when it is absent."""
    attribute = _lookup(attributes, name)
    if not isinstance(attribute, dict):
        return None
    return _lookup(attribute, "value")


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(value)


def extract_link_id(asset_id: str) -> Optional[str]:
    """Extract the link id X from an asset id "Kind:X:Moment".

    Ids that do not split into exactly three parts yield None.
    """
    fields = asset_id.split(":")
    if len(fields) == 3:
        return fields[1]
    return None


def decode_row(asset: Dict[str, Any]) -> RawEvent:
    """Decode one asset into a RawEvent.

    Raises:
        ValueError: If the asset is not a JSON object.
    """
    if not isinstance(asset, dict):
        raise ValueError(f"asset is {type(asset).__name__}, expected object")

    attributes = _lookup(asset, "Attributes") or {}
    if not isinstance(attributes, dict):
        raise ValueError("asset Attributes is not an object")

    themes = _attribute_value(attributes, THEME_FIELD)
    if themes is None:
        themes = []
    elif not isinstance(themes, list):
        themes = [themes]

    custom = {
        name: _text(_attribute_value(attributes, name))
        for name in attributes
        if name.startswith(CUSTOM_FIELD_PREFIX)
    }

    change_date = _text(_attribute_value(attributes, "ChangeDate")) or ""

    return RawEvent(
        item_id=_text(_attribute_value(attributes, "Number")) or "",
        status=_text(_attribute_value(attributes, "Status.Name")) or "",
        change_date=change_date.split("T", 1)[0],
        name=_text(_attribute_value(attributes, "Name")) or "",
        link_id=extract_link_id(str(_lookup(asset, "id", ""))),
        scope=_text(_attribute_value(attributes, SCOPE_FIELD)),
        timebox=_text(_attribute_value(attributes, TIMEBOX_FIELD)),
        themes=tuple(str(t) for t in themes if t is not None),
        custom=custom,
    )


def decode_page(body: Any, offset: int) -> PageResult:
    """Decode a history response body.

    Raises:
        ValueError: If the body is missing the total or the asset list.
    """
    if not isinstance(body, dict):
        raise ValueError("response body is not an object")

    total = _lookup(body, "total")
    if isinstance(total, bool) or not isinstance(total, int):
        raise ValueError(f"response total is {total!r}, expected an integer")

    assets = _lookup(body, "Assets")
    if not isinstance(assets, list):
        raise ValueError("response has no Assets list")

    return PageResult(rows=[decode_row(asset) for asset in assets], total=total, offset=offset)


class HistoryClient:
    """Client for the history feed.

    Uses a requests.Session with a Basic Authorization header built from the
    config credentials. One fetch_page() call is one HTTP GET.

    Attributes:
        timeout: Seconds before a request is abandoned.
        debug: If True, print each requested window.
    """

    def __init__(
        self,
        credentials: str,
        timeout: int = 60,
        debug: bool = False,
        session: Optional[requests.Session] = None,
    ):
        """Initialize the client.

        Args:
            credentials: Base64 "username:password" string.
            timeout: Request timeout in seconds.
            debug: Enable verbose output.
            session: Optional pre-built session (used by tests).
        """
        self.timeout = timeout
        self.debug = debug
        self._session = session or requests.Session()
        self._session.headers.update({
            "Accept": "application/json",
            "Authorization": f"Basic {credentials}",
        })

    def fetch_page(self, query: HistoryQuery) -> FetchOutcome:
        """Fetch the rows for one window.

        Args:
            query: The request descriptor for the window.

        Returns:
            FetchOutcome with ok=True and the decoded page, or ok=False and a
            short error description.
        """
        if self.debug:
            print(f"  GET rows {query.offset + 1}-{query.offset + query.page_size}")
            print(f"  URL: {query.url}")

        try:
            response = self._session.get(query.escaped_url, timeout=self.timeout)
        except requests.RequestException as e:
            return FetchOutcome(ok=False, error=f"Request failed: {e}")

        if response.status_code != 200:
            if self.debug:
                print(f"  Response body: {response.text[:500]}")
            return FetchOutcome(ok=False, error=f"HTTP {response.status_code}")

        try:
            page = decode_page(response.json(), query.offset)
        except ValueError as e:
            return FetchOutcome(ok=False, error=f"Malformed response: {e}")

        if self.debug:
            print(f"  Decoded {len(page.rows)} rows (total {page.total})")
        return FetchOutcome(ok=True, page=page)
