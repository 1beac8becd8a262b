"""Tests for core.exporter."""

import json
import os
from unittest.mock import patch

import pytest

from core.exporter import export_items, header_row, write_csv, write_json
from core.models import AttributeSchema, AttributeSpec, CompletedItem, FieldKind, StageSchema
from core.workflow_config import WorkflowConfig


@pytest.fixture
def config():
    return WorkflowConfig(
        domain="https://tracker.example.com",
        username="jane",
        stages=StageSchema(names=("Open", "Done"), label_map={"Open": 0, "Done": 1}),
        attributes=AttributeSchema((AttributeSpec("Project", FieldKind.SCOPE, "Scope"),)),
    )


@pytest.fixture
def items():
    return [
        CompletedItem("S-1", "101", "First item", ("2024-01-01", "2024-01-04"), ("Alpha",)),
        CompletedItem("S-2", "102", "Never started", ("", ""), ("Alpha",)),
        CompletedItem("S-3 ", "103", " Third ", ("", "2024-01-09"), (" Beta ",)),
    ]


def test_header_row(config):
    assert header_row(config) == ["ID", "Link", "Name", "Open", "Done", "Project"]


def test_write_csv(tmp_path, config, items):
    path = str(tmp_path / "data.csv")
    stats = write_csv(items, config, path)
    assert stats.written == 2
    assert stats.skipped == 1
    with open(path) as f:
        lines = f.read().splitlines()
    assert lines == [
        "ID,Link,Name,Open,Done,Project",
        "S-1,101,First item,2024-01-01,2024-01-04,Alpha",
        "S-3 ,103, Third ,,2024-01-09, Beta ",
    ]
    assert not os.path.exists(path + ".tmp")


def test_write_json(tmp_path, config, items):
    path = str(tmp_path / "data.json")
    stats = write_json(items, config, path)
    assert (stats.written, stats.skipped) == (2, 1)
    with open(path) as f:
        text = f.read()
    rows = json.loads(text)
    assert rows[0] == ["ID", "Link", "Name", "Open", "Done", "Project"]
    assert rows[1] == [
        "S-1", "https://tracker.example.com/browse/S-1", "First item",
        "2024-01-01", "2024-01-04", "Alpha",
    ]
    assert rows[2] == [
        "S-3", "https://tracker.example.com/browse/S-3", "Third", "", "2024-01-09", "Beta",
    ]
    assert len(text.splitlines()) == 3


def test_export_items_dispatches_on_extension(tmp_path, config, items):
    stats = export_items(items, config, str(tmp_path / "OUT.JSON"))
    with open(stats.path) as f:
        assert json.load(f)[0][0] == "ID"


def test_failed_write_leaves_no_file(tmp_path, config, items):
    path = str(tmp_path / "data.csv")
    with patch("core.exporter.csv.writer", side_effect=OSError("disk full")):
        with pytest.raises(OSError):
            write_csv(items, config, path)
    assert not os.path.exists(path)
    assert not os.path.exists(path + ".tmp")
