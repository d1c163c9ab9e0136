"""Macros - 占位符替换与阶段宏展开

两个纯文本步骤，均在解析之前作用于管道文本：

1. 占位符替换：把 "$from" / "$to" / "$maxDataPoints" 替换为字面值
2. 阶段宏展开：形如 {"$<name>": arg} 的顶层阶段，若 <name> 是已配置的宏，
   把 arg 渲染后代入模板的 $QUERY，解析为一个或多个阶段并原位替换
"""

from typing import Any, Dict, Iterable, List

from bson import json_util
from bson.errors import BSONError

from mongo_datasource.core.constants import (
    DATE_LITERAL_TEMPLATE,
    FROM_PLACEHOLDER,
    MAX_DATA_POINTS_PLACEHOLDER,
    QUERY_TOKEN,
    TO_PLACEHOLDER,
)
from mongo_datasource.core.errors import MacroExpansionError
from mongo_datasource.models.query import StageTemplate
from mongo_datasource.utils.logger import log


def substitute_placeholders(text: str, from_ms: int, to_ms: int, max_data_points: int) -> str:
    """
    替换时间窗口与数据点占位符

    Args:
        text: 管道文本
        from_ms: 起始时间（毫秒）
        to_ms: 结束时间（毫秒）
        max_data_points: 最大数据点数

    Returns:
        替换后的文本
    """
    text = text.replace(FROM_PLACEHOLDER, DATE_LITERAL_TEMPLATE.format(millis=int(from_ms)))
    text = text.replace(TO_PLACEHOLDER, DATE_LITERAL_TEMPLATE.format(millis=int(to_ms)))
    # 数值上下文，不带引号
    text = text.replace(MAX_DATA_POINTS_PLACEHOLDER, str(int(max_data_points)))
    return text


def render_stage_argument(arg: Any) -> str:
    """
    把宏阶段的参数渲染为可嵌入模板的文本

    字符串原样使用；文档只保留成员（去掉外层花括号）；数组只保留元素
    （去掉外层方括号）；其余标量使用完整的扩展 JSON 文本。
    """
    if isinstance(arg, str):
        return arg
    if isinstance(arg, dict):
        return ", ".join(f"{json_util.dumps(str(k))}: {json_util.dumps(v)}" for k, v in arg.items())
    if isinstance(arg, (list, tuple)):
        return ", ".join(json_util.dumps(v) for v in arg)
    return json_util.dumps(arg)


def render_stage_template(template_text: str, argument_text: str) -> str:
    """把参数文本代入模板中所有 $QUERY"""
    return template_text.replace(QUERY_TOKEN, argument_text)


def parse_stage_list(text: str) -> List[Any]:
    """解析扩展 JSON 文本为阶段列表，失败时抛出 ValueError"""
    try:
        parsed = json_util.loads(text)
    except (ValueError, TypeError, BSONError) as e:
        raise ValueError(str(e)) from e
    if not isinstance(parsed, list):
        raise ValueError(f"管道必须是数组，实际为 {type(parsed).__name__}")
    return parsed


def build_template_index(templates: Iterable[StageTemplate]) -> Dict[str, StageTemplate]:
    """按操作符建立模板索引，重名时先定义者优先"""
    index: Dict[str, StageTemplate] = {}
    for template in templates:
        index.setdefault(template.operator, template)
    return index


def expand_stages(
    stages: List[Any],
    templates: Iterable[StageTemplate],
    from_ms: int,
    to_ms: int,
    max_data_points: int
) -> List[Any]:
    """
    展开顶层阶段中的宏

    单次从左到右遍历，不递归进入嵌套阶段，也不再次展开展开结果。

    Args:
        stages: 已解析的管道阶段
        templates: 阶段宏模板
        from_ms: 起始时间（毫秒）
        to_ms: 结束时间（毫秒）
        max_data_points: 最大数据点数

    Returns:
        展开后的管道阶段
    """
    index = build_template_index(templates)
    if not index:
        return list(stages)

    expanded: List[Any] = []
    for stage in stages:
        template = None
        if isinstance(stage, dict) and len(stage) == 1:
            operator, arg = next(iter(stage.items()))
            template = index.get(operator)

        if template is None:
            expanded.append(stage)
            continue

        rendered = render_stage_template(template.stage, render_stage_argument(arg))
        rendered = substitute_placeholders(rendered, from_ms, to_ms, max_data_points)
        log.debug(f"展开阶段宏 {template.name}: {rendered}")

        try:
            replacement = parse_stage_list("[" + rendered + "]")
        except ValueError as e:
            log.error(f"阶段宏解析失败: {template.name} - {e}")
            raise MacroExpansionError(template.name, e) from e

        expanded.extend(replacement)

    return expanded
