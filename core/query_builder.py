"""
Query Builder — Turns config criteria into a history-feed request.

The history endpoint takes three query parameters:

    GET {domain}/rest-1.v1/Hist/Story
        ?sel=Name,Number,Status.Name,ChangeDate,Parent.Now.ParentMeAndUp.Name[,Scope.Name][,Timebox.Name]
        &where=(Scope.Name='A'|Scope.Name='B');Timebox.Name='Sprint 1'
        &page={size},{offset}

Filters are OR'ed within a category ("|") and AND'ed across categories (";").
A category with several values is wrapped in parentheses, and the whole
expression is wrapped only when more than one category is present. With no
criteria the where parameter is omitted.
"""

from dataclasses import dataclass
from typing import Callable, List
from urllib.parse import quote_plus

from .models import SCOPE_FIELD, THEME_FIELD, TIMEBOX_FIELD
from .workflow_config import WorkflowConfig

HISTORY_PATH = "/rest-1.v1/Hist/Story"

BASE_SELECT = ["Name", "Number", "Status.Name", "ChangeDate", THEME_FIELD]


@dataclass
class HistoryQuery:
    """Request descriptor for one page window.

    Attributes:
        endpoint: Full URL of the history resource, without query string.
        select: Fields to select, in request order.
        where: Filter expression, or "" for no filter.
        page_size: Number of rows requested.
        offset: Absolute index of the first requested row.
    """

    endpoint: str
    select: List[str]
    where: str
    page_size: int
    offset: int

    @property
    def page(self) -> str:
        return f"{self.page_size},{self.offset}"

    @property
    def url(self) -> str:
        """Human-readable URL with the where clause left unescaped."""
        return self._build(self.where)

    @property
    def escaped_url(self) -> str:
        """URL with the where clause escaped, as sent on the wire."""
        return self._build(quote_plus(self.where))

    def _build(self, where: str) -> str:
        url = f"{self.endpoint}?sel={','.join(self.select)}"
        if self.where:
            url += f"&where={where}"
        return url + f"&page={self.page}"


def add_where_part(pieces: List[str], clause: Callable[[str], str], where_parts: List[str]) -> List[str]:
    """Append one OR group for a filter category, if it has any values."""
    if not pieces:
        return where_parts
    joined = "|".join(clause(piece) for piece in pieces)
    if len(pieces) > 1:
        joined = f"({joined})"
    return where_parts + [joined]


def build_where(config: WorkflowConfig) -> str:
    where_parts: List[str] = []
    where_parts = add_where_part(config.scope_names, lambda p: f"{SCOPE_FIELD}='{p}'", where_parts)
    where_parts = add_where_part(config.timebox_names, lambda p: f"{TIMEBOX_FIELD}='{p}'", where_parts)
    where_parts = add_where_part(config.themes, lambda p: f"{THEME_FIELD}='{p}'", where_parts)

    where = ";".join(where_parts)
    if len(where_parts) > 1:
        where = f"({where})"
    return where


def build_select(config: WorkflowConfig) -> List[str]:
    select = list(BASE_SELECT)
    for attribute in config.attributes:
        extra = attribute.select_field
        if extra and extra not in select:
            select.append(extra)
    return select


def build_query(config: WorkflowConfig, offset: int, page_size: int) -> HistoryQuery:
    """Build the request descriptor for the window [offset, offset + page_size)."""
    return HistoryQuery(
        endpoint=config.domain + HISTORY_PATH,
        select=build_select(config),
        where=build_where(config),
        page_size=page_size,
        offset=offset,
    )
