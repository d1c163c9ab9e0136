"""Response Mapper - 结果文档 → 时间序列 / 表格"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional

from bson.datetime_ms import DatetimeMS

from mongo_datasource.core.constants import (
    RESULT_KIND_TIMESERIE,
    TIMESERIES_NAME_FIELD,
    TIMESERIES_TS_FIELD,
    TIMESERIES_VALUE_FIELD,
)
from mongo_datasource.core.errors import DecodeError, UnsupportedType
from mongo_datasource.models.response import CellValue, Point, QueryResult, Series, Table

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_ONE_MS = timedelta(milliseconds=1)


def datetime_to_millis(value: datetime) -> int:
    """datetime 转毫秒时间戳，无时区视为 UTC"""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return (value - EPOCH) // _ONE_MS


def _timestamp_millis(value: Any) -> Optional[int]:
    if isinstance(value, datetime):
        return datetime_to_millis(value)
    if isinstance(value, DatetimeMS):
        return int(value)
    return None


def _require(document: Mapping[str, Any], field: str) -> Any:
    if field not in document:
        raise DecodeError(f"时间序列文档缺少字段: {field}", {"field": field})
    return document[field]


def decode_point(document: Mapping[str, Any]) -> tuple[str, Point]:
    """解析单个时间序列文档为 (序列名, 数据点)"""
    name = _require(document, TIMESERIES_NAME_FIELD)
    if not isinstance(name, str):
        raise DecodeError(
            f"字段 name 必须是字符串: {type(name).__name__}",
            {"field": TIMESERIES_NAME_FIELD, "type": type(name).__name__}
        )

    value = _require(document, TIMESERIES_VALUE_FIELD)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise DecodeError(
            f"字段 value 必须是数值: {type(value).__name__}",
            {"field": TIMESERIES_VALUE_FIELD, "type": type(value).__name__}
        )

    ts = _timestamp_millis(_require(document, TIMESERIES_TS_FIELD))
    if ts is None:
        raise DecodeError(
            f"字段 ts 必须是日期: {type(document[TIMESERIES_TS_FIELD]).__name__}",
            {"field": TIMESERIES_TS_FIELD, "type": type(document[TIMESERIES_TS_FIELD]).__name__}
        )

    return name, Point(timestamp_ms=ts, value=float(value))


def map_timeseries(documents: Iterable[Mapping[str, Any]]) -> List[Series]:
    """
    按 name 分组为时间序列

    Args:
        documents: 结果文档（游标，单次遍历）

    Returns:
        序列列表（按名称首次出现顺序），点按到达顺序
    """
    series: Dict[str, Series] = {}
    for document in documents:
        name, point = decode_point(document)
        entry = series.get(name)
        if entry is None:
            entry = series[name] = Series(name=name)
        entry.points.append(point)
    return list(series.values())


def classify_value(field: str, value: Any) -> CellValue:
    """把字段值归类为带类型标签的单元格"""
    # bool 是 int 的子类，必须先判断
    if isinstance(value, bool):
        return CellValue.boolean(value)
    if isinstance(value, int):
        return CellValue.int64(value)
    if isinstance(value, float):
        return CellValue.double(value)
    if isinstance(value, str):
        return CellValue.string(value)
    millis = _timestamp_millis(value)
    if millis is not None:
        return CellValue.time(millis)
    raise UnsupportedType(field, type(value).__name__)


def map_table(documents: Iterable[Mapping[str, Any]]) -> Table:
    """
    把任意文档映射为表格

    列按所有文档中的首次出现顺序排列；每行宽度等于处理该行后的列数，
    缺失的列为 None，新列不会回填之前的行。
    """
    table = Table()
    column_index: Dict[str, int] = {}

    for document in documents:
        cells: Dict[int, CellValue] = {}
        for key, value in document.items():
            idx = column_index.get(key)
            if idx is None:
                idx = column_index[key] = len(table.columns)
                table.columns.append(key)
            cells[idx] = classify_value(key, value)

        table.rows.append([cells.get(i) for i in range(len(table.columns))])

    return table


def map_documents(documents: Iterable[Mapping[str, Any]], result_kind: str, ref_id: str) -> QueryResult:
    """按结果类型映射结果文档"""
    if result_kind == RESULT_KIND_TIMESERIE:
        return QueryResult(ref_id=ref_id, series=map_timeseries(documents))
    return QueryResult(ref_id=ref_id, table=map_table(documents))
