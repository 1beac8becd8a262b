"""
Exporter — Writes completed items to CSV or JSON.

Both formats share one header: ID, Link, Name, one column per stage in
workflow order, then one column per attribute in config order. Items with no
resolved stage date are skipped and counted.

CSV rows carry the raw link id:

    ID,Link,Name,Backlog,Ready,Done,Project
    S-01042,1042,Export report v2,2024-01-01,2024-01-03,,Team Alpha

JSON is a list of lists, one row per line, with a browsable link:

    [["ID","Link","Name","Backlog","Ready","Done","Project"],
    ["S-01042","https://host/browse/S-01042","Export report v2","2024-01-01","2024-01-03","","Team Alpha"]]

Files are written to a temporary sibling and moved into place only when
complete, so a failed write never leaves a partial export behind.
"""

import csv
import json
import os
from dataclasses import dataclass
from typing import List, Sequence

from .models import CompletedItem
from .workflow_config import WorkflowConfig

HEADER_PREFIX = ["ID", "Link", "Name"]


@dataclass
class ExportStats:
    path: str
    written: int = 0
    skipped: int = 0


def header_row(config: WorkflowConfig) -> List[str]:
    return HEADER_PREFIX + list(config.stages.names) + config.attributes.columns


def browse_link(config: WorkflowConfig, item_id: str) -> str:
    return f"{config.domain}/browse/{item_id}"


def csv_row(item: CompletedItem) -> List[str]:
    return [item.item_id, item.link_id, item.name, *item.stage_dates, *item.attributes]


def json_row(item: CompletedItem, config: WorkflowConfig) -> List[str]:
    item_id = item.item_id.strip()
    return (
        [item_id, browse_link(config, item_id), item.name.strip()]
        + list(item.stage_dates)
        + [value.strip() for value in item.attributes]
    )


def _write_atomic(path: str, write):
    tmp_path = f"{path}.tmp"
    try:
        with open(tmp_path, "w", newline="", encoding="utf-8") as f:
            write(f)
        os.replace(tmp_path, path)
    finally:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)


def write_csv(items: Sequence[CompletedItem], config: WorkflowConfig, path: str) -> ExportStats:
    """Write items with at least one stage date as CSV."""
    stats = ExportStats(path=path)

    def write(f):
        writer = csv.writer(f, lineterminator="\n")
        writer.writerow(header_row(config))
        for item in items:
            if not item.has_date:
                stats.skipped += 1
                continue
            writer.writerow(csv_row(item))
            stats.written += 1

    _write_atomic(path, write)
    return stats


def write_json(items: Sequence[CompletedItem], config: WorkflowConfig, path: str) -> ExportStats:
    """Write items with at least one stage date as a JSON list of rows."""
    stats = ExportStats(path=path)

    def write(f):
        lines = [json.dumps(header_row(config))]
        for item in items:
            if not item.has_date:
                stats.skipped += 1
                continue
            lines.append(json.dumps(json_row(item, config)))
            stats.written += 1
        f.write("[" + ",\n".join(lines) + "]\n")

    _write_atomic(path, write)
    return stats


def export_items(items: Sequence[CompletedItem], config: WorkflowConfig, path: str) -> ExportStats:
    """Write items in the format chosen by the file extension (.json or .csv)."""
    if path.lower().endswith(".json"):
        return write_json(items, config, path)
    return write_csv(items, config, path)
