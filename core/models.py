"""
Models — Shared record types for the history extraction pipeline.

Every stage of the pipeline passes one of these types to the next:

  StageSchema / AttributeSchema   Read-only configuration, built once by
                                  workflow_config and shared by every module.
  RawEvent                        One decoded status-change row from the feed
                                  (HistoryClient -> BatchAssembler).
  PageResult / FetchOutcome       The value returned by one page request.
  CompletedItem                   One reconciled work item, ready for export
                                  (BatchAssembler -> Exporter).

Dates are kept as ISO calendar-day strings ("2024-01-31") so they compare
correctly as plain strings; an empty string means "no date".
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple


class FieldKind(Enum):
    """Source of an exported attribute column."""

    SCOPE = "Scope"
    TIMEBOX = "Timebox"
    THEME = "Theme"
    CUSTOM = "Custom"

    @classmethod
    def parse(cls, value: str) -> Optional["FieldKind"]:
        """Map a config value to a field kind.

        "Scope", "Timebox" and "Theme" map to their own kind. Anything named
        "Custom_<Name>" is an external field reference. Everything else is
        unknown and returns None.
        """
        for kind in (cls.SCOPE, cls.TIMEBOX, cls.THEME):
            if value == kind.value:
                return kind
        if value.startswith(CUSTOM_FIELD_PREFIX) and len(value) > len(CUSTOM_FIELD_PREFIX):
            return cls.CUSTOM
        return None


CUSTOM_FIELD_PREFIX = "Custom_"

# Feed field names selected for each built-in attribute kind
SCOPE_FIELD = "Scope.Name"
TIMEBOX_FIELD = "Timebox.Name"
THEME_FIELD = "Parent.Now.ParentMeAndUp.Name"


@dataclass(frozen=True)
class StageSchema:
    """Ordered workflow stages and the status labels that map to them.

    Attributes:
        names: Stage names in pipeline order.
        label_map: Raw status label -> stage index.
        created_in_first_stage: Items enter the first stage when created,
            whether or not a status-change row says so.
    """

    names: Tuple[str, ...]
    label_map: Dict[str, int] = field(default_factory=dict)
    created_in_first_stage: bool = False

    def __len__(self) -> int:
        return len(self.names)

    def stage_index(self, label: str) -> Optional[int]:
        return self.label_map.get(label)


@dataclass(frozen=True)
class AttributeSpec:
    """One exported attribute column."""

    column: str
    kind: FieldKind
    field_name: str

    @property
    def select_field(self) -> Optional[str]:
        """The feed field that must be selected for this column, if any.

        Theme is always selected, so it needs no extra field here.
        """
        if self.kind is FieldKind.SCOPE:
            return SCOPE_FIELD
        if self.kind is FieldKind.TIMEBOX:
            return TIMEBOX_FIELD
        if self.kind is FieldKind.CUSTOM:
            return self.field_name
        return None


@dataclass(frozen=True)
class AttributeSchema:
    attributes: Tuple[AttributeSpec, ...] = ()

    def __len__(self) -> int:
        return len(self.attributes)

    def __iter__(self):
        return iter(self.attributes)

    @property
    def columns(self) -> List[str]:
        return [a.column for a in self.attributes]


@dataclass(frozen=True)
class RawEvent:
    """One status-change row decoded from the history feed.

    Optional values are None when the row did not carry the field, so the
    row leaves the matching attribute slot untouched.
    """

    item_id: str
    status: str
    change_date: str
    name: str = ""
    link_id: Optional[str] = None
    scope: Optional[str] = None
    timebox: Optional[str] = None
    themes: Tuple[str, ...] = ()
    custom: Dict[str, Optional[str]] = field(default_factory=dict)


@dataclass(frozen=True)
class CompletedItem:
    """A work item with one resolved date per stage and one value per attribute."""

    item_id: str
    link_id: str
    name: str
    stage_dates: Tuple[str, ...]
    attributes: Tuple[str, ...]

    @property
    def has_date(self) -> bool:
        return any(self.stage_dates)


@dataclass
class PageResult:
    """Rows for one window plus the feed-wide total row count."""

    rows: List[RawEvent]
    total: int
    offset: int


@dataclass
class FetchOutcome:
    """Result of one page request; ok=False means a retryable failure."""

    ok: bool
    page: Optional[PageResult] = None
    error: str = ""
