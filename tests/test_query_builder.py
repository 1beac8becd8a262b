"""Tests for core.query_builder."""

from core.models import AttributeSchema, AttributeSpec, FieldKind, StageSchema
from core.query_builder import add_where_part, build_query, build_where
from core.workflow_config import WorkflowConfig


def _config(**overrides):
    values = dict(
        domain="https://tracker.example.com",
        username="jane",
        password="pw",
        stages=StageSchema(names=("Open",), label_map={"Open": 0}),
    )
    values.update(overrides)
    return WorkflowConfig(**values)


def test_no_filters_omits_where():
    query = build_query(_config(), 0, 1000)
    assert query.where == ""
    assert "where=" not in query.url
    assert query.url == (
        "https://tracker.example.com/rest-1.v1/Hist/Story"
        "?sel=Name,Number,Status.Name,ChangeDate,Parent.Now.ParentMeAndUp.Name"
        "&page=1000,0"
    )


def test_single_value_single_category_has_no_parentheses():
    where = build_where(_config(scope_names=["Team Alpha"]))
    assert where == "Scope.Name='Team Alpha'"


def test_multi_value_category_is_or_group():
    where = build_where(_config(scope_names=["A", "B"]))
    assert where == "(Scope.Name='A'|Scope.Name='B')"


def test_categories_are_and_joined_and_wrapped():
    where = build_where(_config(scope_names=["A", "B"], timebox_names=["S1"], themes=["Billing"]))
    assert where == (
        "((Scope.Name='A'|Scope.Name='B');Timebox.Name='S1';"
        "Parent.Now.ParentMeAndUp.Name='Billing')"
    )


def test_add_where_part_skips_empty():
    assert add_where_part([], lambda p: p, ["x"]) == ["x"]


def test_select_includes_referenced_attribute_fields():
    attributes = AttributeSchema((
        AttributeSpec("Project", FieldKind.SCOPE, "Scope"),
        AttributeSpec("Sprint", FieldKind.TIMEBOX, "Timebox"),
        AttributeSpec("Epic", FieldKind.THEME, "Theme"),
        AttributeSpec("Risk", FieldKind.CUSTOM, "Custom_Risk"),
        AttributeSpec("Team", FieldKind.SCOPE, "Scope"),
    ))
    query = build_query(_config(attributes=attributes), 0, 10)
    assert query.select == [
        "Name", "Number", "Status.Name", "ChangeDate", "Parent.Now.ParentMeAndUp.Name",
        "Scope.Name", "Timebox.Name", "Custom_Risk",
    ]


def test_page_window_and_escaping():
    query = build_query(_config(scope_names=["Team Alpha"]), 2000, 500)
    assert query.page == "500,2000"
    assert query.url.endswith("&where=Scope.Name='Team Alpha'&page=500,2000")
    assert "&where=Scope.Name%3D%27Team+Alpha%27&page=500,2000" in query.escaped_url
