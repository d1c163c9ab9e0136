"""Query Compiler - 查询编译器（查询描述 → 聚合管道）"""

from typing import Any, Dict, Iterable, List, Tuple

from bson import json_util
from pydantic import ValidationError

from mongo_datasource.core.constants import DSL_METHOD_AGGREGATE, DSL_PREFIX
from mongo_datasource.core.errors import MalformedQuery, UnsupportedOperation
from mongo_datasource.engines.macros import expand_stages, parse_stage_list, substitute_placeholders
from mongo_datasource.models.query import CompiledPipeline, QueryDescription, StageTemplate, TimeRange
from mongo_datasource.utils.logger import log


def parse_description(raw: Dict[str, Any] | QueryDescription) -> QueryDescription:
    """校验原始查询描述"""
    if isinstance(raw, QueryDescription):
        return raw
    try:
        return QueryDescription.model_validate(raw)
    except ValidationError as e:
        raise MalformedQuery(f"查询描述无效: {e.errors()[0]['msg']}", {"errors": e.errors()}) from e


def split_dsl_target(target: str) -> Tuple[str, str]:
    """
    拆分 db.<collection>.aggregate(<array>) 形式的目标

    Args:
        target: DSL 目标文本

    Returns:
        (集合名, 数组文本)
    """
    text = target.strip()
    open_idx = text.find("(")
    if open_idx == -1 or not text.endswith(")"):
        raise MalformedQuery(f"无法解析目标: {target}")

    parts = [p.strip() for p in text[:open_idx].split(".")]
    if len(parts) < 3 or not parts[1]:
        raise MalformedQuery(f"目标缺少集合或方法: {target}")

    method = parts[-1]
    if method != DSL_METHOD_AGGREGATE:
        raise UnsupportedOperation(method)

    return parts[1], text[open_idx + 1:-1]


def resolve_target(description: QueryDescription) -> Tuple[str, str]:
    """返回 (集合名, 管道文本)"""
    target = description.target.strip()
    if target.startswith(DSL_PREFIX):
        return split_dsl_target(target)

    collection = (description.collection or "").strip()
    if not collection:
        raise MalformedQuery("No collection specified")
    return collection, target


def compile_query(
    raw: Dict[str, Any] | QueryDescription,
    time_range: TimeRange,
    stage_templates: Iterable[StageTemplate] = ()
) -> CompiledPipeline:
    """
    编译查询

    Args:
        raw: 查询描述
        time_range: 时间窗口
        stage_templates: 阶段宏模板

    Returns:
        CompiledPipeline: 目标集合、管道与结果类型
    """
    description = parse_description(raw)
    collection, pipeline_text = resolve_target(description)
    max_data_points = description.max_data_points

    pipeline_text = substitute_placeholders(
        pipeline_text, time_range.from_ms, time_range.to_ms, max_data_points
    )
    log.debug(f"Target [{description.ref_id}]: {pipeline_text}")

    try:
        stages = parse_stage_list(pipeline_text)
    except ValueError as e:
        log.error(f"管道解析失败 [{description.ref_id}]: {e}")
        raise MalformedQuery(f"无法解析管道: {e}") from e

    stages = expand_stages(
        stages, stage_templates, time_range.from_ms, time_range.to_ms, max_data_points
    )

    compiled = CompiledPipeline(
        collection=collection,
        pipeline=stages,
        result_kind=description.type
    )
    log.debug(f"编译完成 [{description.ref_id}]: db.{collection}.aggregate({pipeline_to_json(stages)})")
    return compiled


def pipeline_to_json(pipeline: List[Any]) -> str:
    """把管道序列化为扩展 JSON 文本"""
    return json_util.dumps(pipeline)
