"""
Batch Assembler — Groups one page of status-change rows into work items.

The history feed has no item-level paging: it returns a flat list of rows,
one per status change, with all rows of one item next to each other. A page
window can therefore end in the middle of an item, and nothing in the page
says whether the last item continues in the next one.

assemble() walks the page once, keeping one open ItemAccumulator:

  1. The first row opens an accumulator for its item id.
  2. When the item id changes, the open accumulator is finalized (stage dates
     reconciled, CompletedItem emitted) and a new one is opened. Every row
     before the change now belongs to a finished item, so the consumed count
     moves up to that row.
  3. Every row updates the open accumulator: name, link id, attribute slots
     (last value wins; theme uses the last element of the hierarchy list) and
     the stage bucket for its status label. Unmapped labels add nothing.
  4. After the last row, the open item is only finalized when the page reaches
     the end of the whole feed. Otherwise it stays unconsumed and the next
     window starts at its first row, so it is rebuilt from scratch there.

    rows:     A A B B B | (page ends, total = 8)
    items:    [A]
    consumed: 2                      B may continue in the next page
    remaining: total - offset - consumed

Nothing is shared between calls; each call builds its own accumulators.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from .models import (
    AttributeSchema,
    CompletedItem,
    FieldKind,
    RawEvent,
    StageSchema,
)
from .stage_reconciler import reconcile_stage_dates

NONE_LABEL = "(None)"

_NAME_STRIP = str.maketrans("", "", "\",\\")


def clean_name(name: str) -> str:
    """Remove quotes, commas and backslashes, which break CSV and JSON output."""
    return name.translate(_NAME_STRIP)


class ItemAccumulator:
    """Collects the rows of one work item until it can be finalized.

    Attributes:
        item_id: The item identifier shared by all its rows.
        link_id: Last link id seen (raw asset number).
        name: Last cleaned name seen.
        events: Observed change dates per stage, in stage order.
        values: Last observed value per attribute, in attribute order.
        first_seen: Earliest change date of any row, used for the
            implicit first stage.
        row_count: Rows added so far.
    """

    def __init__(self, item_id: str, stages: StageSchema, attributes: AttributeSchema):
        self.item_id = item_id
        self.stages = stages
        self.attributes = attributes
        self.link_id = ""
        self.name = ""
        self.events: List[List[str]] = [[] for _ in range(len(stages))]
        self.values: List[str] = [""] * len(attributes)
        self.first_seen = ""
        self.row_count = 0

    def add(self, event: RawEvent):
        """Fold one row into the accumulator."""
        self.row_count += 1

        if event.link_id is not None:
            self.link_id = event.link_id
        self.name = clean_name(event.name)

        date = event.change_date
        if date and (not self.first_seen or date < self.first_seen):
            self.first_seen = date

        label = event.status or NONE_LABEL
        stage_index = self.stages.stage_index(label)
        if stage_index is not None and date:
            self.events[stage_index].append(date)

        for i, attribute in enumerate(self.attributes):
            value = self._attribute_value(attribute.kind, attribute.field_name, event)
            if value is not None:
                self.values[i] = value

    @staticmethod
    def _attribute_value(kind: FieldKind, field_name: str, event: RawEvent) -> Optional[str]:
        if kind is FieldKind.SCOPE:
            return event.scope
        if kind is FieldKind.TIMEBOX:
            return event.timebox
        if kind is FieldKind.THEME:
            return event.themes[-1] if event.themes else None
        return event.custom.get(field_name)

    def finalize(self) -> CompletedItem:
        """Reconcile stage dates and return the finished item."""
        events = [list(dates) for dates in self.events]
        if self.stages.created_in_first_stage and self.first_seen and events:
            events[0].append(self.first_seen)

        return CompletedItem(
            item_id=self.item_id,
            link_id=self.link_id,
            name=self.name,
            stage_dates=tuple(reconcile_stage_dates(events)),
            attributes=tuple(self.values),
        )


@dataclass
class AssembledBatch:
    """Outcome of assembling one page.

    Attributes:
        items: Items whose rows are known to be complete.
        consumed: Rows of this page that belong to those items.
        remaining: Rows of the feed after the consumed ones.
        reached_end: True when the page ran to the end of the feed.
    """

    items: List[CompletedItem] = field(default_factory=list)
    consumed: int = 0
    remaining: int = 0
    reached_end: bool = False


class BatchAssembler:
    """Turns pages of rows into CompletedItems.

    Attributes:
        stages: Stage schema used for bucketing and reconciliation.
        attributes: Attribute schema used for value slots.
        debug: If True, print per-page counts.
    """

    def __init__(self, stages: StageSchema, attributes: AttributeSchema, debug: bool = False):
        self.stages = stages
        self.attributes = attributes
        self.debug = debug

    def assemble(self, rows: Sequence[RawEvent], total: int, offset: int) -> AssembledBatch:
        """Group one page of rows into items.

        Args:
            rows: Rows of the page, in feed order.
            total: Row count of the whole feed, as reported by the server.
            offset: Absolute index of the first row in this page.

        Returns:
            An AssembledBatch. The last item of the page is only included
            (and its rows only counted as consumed) when the page reaches the
            end of the feed.
        """
        batch = AssembledBatch()
        current: Optional[ItemAccumulator] = None

        for i, event in enumerate(rows):
            if current is None or event.item_id != current.item_id:
                if current is not None:
                    batch.items.append(current.finalize())
                    batch.consumed = i
                current = ItemAccumulator(event.item_id, self.stages, self.attributes)
            current.add(event)

        batch.reached_end = offset + len(rows) >= total
        if current is not None and batch.reached_end:
            batch.items.append(current.finalize())
            batch.consumed += current.row_count

        batch.remaining = max(0, total - offset - batch.consumed)

        if self.debug:
            print(f"  Assembled {len(batch.items)} items from {batch.consumed} of {len(rows)} rows")

        return batch
