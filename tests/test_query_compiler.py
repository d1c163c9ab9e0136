"""查询编译器测试"""

import pytest
from bson import json_util

from mongo_datasource.core.errors import MalformedQuery, MacroExpansionError, UnsupportedOperation
from mongo_datasource.engines.query_compiler import (
    compile_query,
    pipeline_to_json,
    resolve_target,
    split_dsl_target,
)
from mongo_datasource.engines.response_mapper import datetime_to_millis
from mongo_datasource.models.query import QueryDescription, StageTemplate, TimeRange

TIME_RANGE = TimeRange(from_ms=1500000000000, to_ms=1500003600000)


def test_compile_array_target_with_collection():
    compiled = compile_query(
        {"refId": "A", "target": '[{"$match": {"host": "a"}}, {"$sort": {"ts": 1}}]', "collection": "metrics"},
        TIME_RANGE
    )
    assert compiled.collection == "metrics"
    assert compiled.pipeline == [{"$match": {"host": "a"}}, {"$sort": {"ts": 1}}]
    assert compiled.result_kind == "timeserie"


def test_compile_requires_collection():
    with pytest.raises(MalformedQuery):
        compile_query({"target": '[{"$match": {}}]'}, TIME_RANGE)
    with pytest.raises(MalformedQuery):
        compile_query({"target": '[{"$match": {}}]', "collection": "  "}, TIME_RANGE)


def test_compile_dsl_target():
    compiled = compile_query({"target": 'db.metrics.aggregate([{"$match":{}}])'}, TIME_RANGE)
    assert compiled.collection == "metrics"
    assert compiled.pipeline == [{"$match": {}}]


def test_compile_dsl_target_overrides_collection_field():
    compiled = compile_query(
        {"target": '  db.events.aggregate([{"$limit": 1}])  ', "collection": "metrics"},
        TIME_RANGE
    )
    assert compiled.collection == "events"


def test_compile_dsl_other_method_is_unsupported():
    with pytest.raises(UnsupportedOperation) as exc:
        compile_query({"target": 'db.metrics.find({"a": 1})'}, TIME_RANGE)
    assert exc.value.method == "find"
    # UnsupportedOperation 也属于 MalformedQuery
    assert isinstance(exc.value, MalformedQuery)


@pytest.mark.parametrize("target", [
    'db.metrics.aggregate([{"$match": {}}]',
    "db.aggregate([])",
    'db..aggregate([])',
])
def test_split_dsl_target_malformed(target):
    with pytest.raises(MalformedQuery):
        split_dsl_target(target)


def test_resolve_target_array_shape():
    desc = QueryDescription(target='[{"$limit": 1}]', collection="c")
    assert resolve_target(desc) == ("c", '[{"$limit": 1}]')


@pytest.mark.parametrize("supplied, expected", [(None, 1), (0, 1), (500, 500)])
def test_max_data_points_defaults(supplied, expected):
    raw = {"target": '[{"$limit": "$maxDataPoints"}]', "collection": "c"}
    if supplied is not None:
        raw["maxDataPoints"] = supplied
    compiled = compile_query(raw, TIME_RANGE)
    assert compiled.pipeline == [{"$limit": expected}]


def test_negative_max_data_points_is_malformed():
    with pytest.raises(MalformedQuery):
        compile_query({"target": "[]", "collection": "c", "maxDataPoints": -5}, TIME_RANGE)


def test_compile_substitutes_time_window():
    compiled = compile_query(
        {"target": '[{"$match": {"ts": {"$gte": "$from", "$lt": "$to"}}}]', "collection": "c"},
        TIME_RANGE
    )
    window = compiled.pipeline[0]["$match"]["ts"]
    assert datetime_to_millis(window["$gte"]) == TIME_RANGE.from_ms
    assert datetime_to_millis(window["$lt"]) == TIME_RANGE.to_ms


@pytest.mark.parametrize("target", ['[{"$match": ', '{"$match": {}}', "", "not json"])
def test_compile_unparsable_target(target):
    with pytest.raises(MalformedQuery):
        compile_query({"target": target, "collection": "c"}, TIME_RANGE)


def test_compile_result_kind():
    compiled = compile_query({"target": "[]", "collection": "c", "type": "table"}, TIME_RANGE)
    assert compiled.result_kind == "table"

    with pytest.raises(MalformedQuery):
        compile_query({"target": "[]", "collection": "c", "type": "graph"}, TIME_RANGE)


def test_compile_expands_macros():
    templates = [StageTemplate(name="host", stage='{"$match": {"host": "$QUERY"}}, {"$limit": "$maxDataPoints"}')]
    compiled = compile_query(
        {"target": '[{"$host": "web-1"}, {"$project": {"_id": 0}}]', "collection": "c", "maxDataPoints": 20},
        TIME_RANGE,
        templates
    )
    assert compiled.pipeline == [
        {"$match": {"host": "web-1"}},
        {"$limit": 20},
        {"$project": {"_id": 0}},
    ]


def test_compile_propagates_macro_failure():
    templates = [StageTemplate(name="bad", stage='{"$match": $QUERY')]
    with pytest.raises(MacroExpansionError):
        compile_query({"target": '[{"$bad": {"a": 1}}]', "collection": "c"}, TIME_RANGE, templates)


def test_compile_round_trip_without_macros():
    target = '[{"$match": {"host": {"$in": ["a", "b"]}}}, {"$group": {"_id": "$host", "n": {"$sum": 1}}}]'
    compiled = compile_query({"target": target, "collection": "c"}, TIME_RANGE)
    assert json_util.loads(pipeline_to_json(compiled.pipeline)) == json_util.loads(target)


def test_compile_accepts_description_model():
    desc = QueryDescription(ref_id="Z", target="[]", collection="c")
    assert compile_query(desc, TIME_RANGE).pipeline == []
