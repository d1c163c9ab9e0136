"""数据源错误定义"""

from typing import Any, Dict


class DataSourceError(Exception):
    """数据源错误基类（结构化）"""

    code = "DATASOURCE_ERROR"

    def __init__(self, message: str, detail: Dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.detail = detail or {}

    def __str__(self) -> str:
        return self.message


class ConfigError(DataSourceError):
    """连接 URI 或数据库名配置错误"""

    code = "CONFIG_ERROR"


class MalformedQuery(DataSourceError):
    """查询描述无法编译（目标无法解析、缺少集合等）"""

    code = "MALFORMED_QUERY"


class UnsupportedOperation(MalformedQuery):
    """DSL 目标调用了 aggregate 以外的方法"""

    code = "UNSUPPORTED_OPERATION"

    def __init__(self, method: str):
        super().__init__(f"Unsupported operation: {method} (only aggregate is supported)", {"method": method})
        self.method = method


class MacroExpansionError(DataSourceError):
    """阶段宏展开后不是合法的管道语法"""

    code = "MACRO_EXPANSION_ERROR"

    def __init__(self, template_name: str, cause: Exception | str):
        super().__init__(
            f"Failed to parse stage macro '{template_name}': {cause}",
            {"template": template_name}
        )
        self.template_name = template_name


class DecodeError(DataSourceError):
    """时间序列文档缺少必需字段或字段类型错误"""

    code = "DECODE_ERROR"


class UnsupportedType(DataSourceError):
    """表格模式下遇到无法识别的字段值类型"""

    code = "UNSUPPORTED_TYPE"

    def __init__(self, field: str, type_name: str):
        super().__init__(
            f"Could not handle type {type_name} of {field}",
            {"field": field, "type": type_name}
        )
        self.field = field
        self.type_name = type_name


class DataSourceConnectionError(DataSourceError):
    """连接、ping 或断开连接失败"""

    code = "CONNECTION_ERROR"


class ExecutionError(DataSourceError):
    """aggregate 调用或游标迭代失败"""

    code = "EXECUTION_ERROR"


# 仅影响单个查询的错误；其余错误中止整个批次
QUERY_LEVEL_ERRORS = (MalformedQuery, MacroExpansionError, DecodeError, UnsupportedType, ExecutionError)
BATCH_LEVEL_ERRORS = (ConfigError, DataSourceConnectionError)
