"""统计载荷规范化测试。"""

from __future__ import annotations

import json

import pytest

from statwidget.models.schemas import ChartModel
from statwidget.utils.payload import (
    Absent,
    Decoded,
    Encoded,
    classify_field,
    normalize_payload,
    parse_field,
    resolve_field,
)


@pytest.mark.parametrize(
    "value",
    [
        ["a", "b"],
        {"filterModel": {"a": {"type": "equals"}}},
        42,
        3.5,
        "Vendite per regione",
        "not json {",
        "",
        "NaN",
        None,
    ],
)
def test_parse_field_is_idempotent(value) -> None:
    once = parse_field(value)
    assert parse_field(once) == once


def test_classify_field_tags() -> None:
    assert classify_field(None) == Absent()
    assert classify_field("[1]") == Encoded("[1]")
    assert classify_field([1]) == Decoded([1])
    assert resolve_field(Encoded("[1, 2]")) == [1, 2]
    assert resolve_field(Decoded({"a": 1})) == {"a": 1}
    assert resolve_field(Absent()) is None


def test_parse_field_keeps_plain_text() -> None:
    assert parse_field("Vendite") == "Vendite"
    assert parse_field("Infinity") == "Infinity"
    assert parse_field('{"a": 1}') == {"a": 1}


def test_normalize_payload_decodes_double_encoded_fields() -> None:
    payload = normalize_payload(
        {
            "title": "",
            "query_name": "Vendite",
            "columns_order": json.dumps(["a", "b", "a"]),
            "json_results": json.dumps([{"a": "1", "b": "x", "extra": 1}, "bad-row"]),
            "grid_state": json.dumps({"pivotMode": True}),
            "config": {"chartType": "line", "cellRange": {"columns": ["a"]}},
        }
    )
    assert payload.columns == ["a", "b"]
    assert payload.rows == [{"a": "1", "b": "x", "extra": 1}]
    assert payload.title == "Vendite"
    assert payload.grid_state == {"pivotMode": True}
    assert payload.required_field_errors == {}
    model = payload.chart_model()
    assert isinstance(model, ChartModel)
    assert model.chart_type == "line"


def test_normalize_payload_empty_lists_are_not_errors() -> None:
    payload = normalize_payload({"columns_order": "[]", "json_results": "[]"})
    assert payload.columns == []
    assert payload.rows == []
    assert payload.required_field_errors == {}
    assert payload.is_empty


def test_normalize_payload_required_field_failure_substitutes_empty_list() -> None:
    payload = normalize_payload({"columns_order": '["a"]', "json_results": "[{broken"})
    assert payload.columns == ["a"]
    assert payload.rows == []
    assert "json_results" in payload.required_field_errors
    assert payload.is_empty


def test_normalize_payload_required_field_wrong_shape() -> None:
    payload = normalize_payload({"columns_order": '{"a": 1}', "json_results": "[]"})
    assert payload.columns == []
    assert "columns_order" in payload.required_field_errors


def test_normalize_payload_non_mapping_is_empty() -> None:
    payload = normalize_payload(["not", "a", "mapping"])
    assert payload.is_empty
    assert payload.title == ""
    assert payload.view_state() is None
    assert payload.chart_model() is None


def test_optional_field_decode_failure_keeps_raw_text() -> None:
    payload = normalize_payload(
        {"columns_order": "[]", "json_results": "[]", "config": "{oops", "grid_state": "{oops"}
    )
    assert payload.config == "{oops"
    assert payload.chart_model() is None
    assert payload.view_state() is None


def test_view_state_grid_state_wins_over_legacy_fields() -> None:
    payload = normalize_payload(
        {
            "columns_order": '["a", "b"]',
            "json_results": '[{"a": 1, "b": "x"}]',
            "grid_state": json.dumps(
                {
                    "filters": {"b": {"filterType": "text", "type": "equals", "filter": "x"}},
                    "columnState": [{"colId": "b"}, {"colId": "a", "sort": "asc"}],
                    "rowGroupCols": ["b"],
                }
            ),
            "filters": json.dumps({"a": {"filterType": "number", "type": "equals", "filter": 1}}),
            "sorting": json.dumps([{"colId": "a", "sort": "desc"}]),
        }
    )
    state = payload.view_state()
    assert state is not None
    assert set(state.filter_model) == {"b"}
    assert state.row_group_cols == ["b"]
    assert [e.col_id for e in state.column_state] == ["b", "a"]
    assert state.column_state[1].sort == "asc"


def test_legacy_filters_and_sorting_without_grid_state() -> None:
    payload = normalize_payload(
        {
            "columns_order": '["a"]',
            "json_results": '[{"a": 1}]',
            "filters": {"a": {"filterType": "number", "type": "greaterThan", "filter": 0}},
        }
    )
    state = payload.view_state()
    assert state is not None
    assert "a" in state.filter_model
    assert state.column_state == []
