"""系统常量定义"""

from typing import Set

# 占位符（带引号，位于 JSON 字符串字面量中）
FROM_PLACEHOLDER = '"$from"'
TO_PLACEHOLDER = '"$to"'
MAX_DATA_POINTS_PLACEHOLDER = '"$maxDataPoints"'

# 日期占位符替换模板（扩展 JSON，64 位毫秒时间戳）
DATE_LITERAL_TEMPLATE = '{{"$date": {{"$numberLong": "{millis}"}}}}'

# 阶段宏模板中的参数插入点
QUERY_TOKEN = "$QUERY"

# 默认连接配置
DEFAULT_MONGODB_URL = "mongodb://localhost:27017"
DEFAULT_MONGODB_DB = "test"
MONGODB_URL_SCHEMES = ("mongodb://", "mongodb+srv://")

# 结果类型
RESULT_KIND_TIMESERIE = "timeserie"
RESULT_KIND_TABLE = "table"
RESULT_KINDS: Set[str] = {RESULT_KIND_TIMESERIE, RESULT_KIND_TABLE}

# 查询类型
QUERY_TYPE_TIMESERIES = "timeSeriesQuery"
QUERY_TYPE_METRICS = "metricsQuery"
QUERY_TYPE_TEST_CONNECTION = "testConnection"

# 元数据查询目标
METRIC_PING = "ping"
METRIC_LIST_COLLECTIONS = "list_collections"
METRIC_TARGETS: Set[str] = {METRIC_PING, METRIC_LIST_COLLECTIONS}
METRIC_COLUMN = "value"

# DSL 形式目标: db.<collection>.aggregate([...])
DSL_PREFIX = "db."
DSL_METHOD_AGGREGATE = "aggregate"

# 批次级错误使用的固定 refId
FALLBACK_REF_ID = "A"

# 单元格类型
CELL_KIND_DOUBLE = "double"
CELL_KIND_INT64 = "int64"
CELL_KIND_STRING = "string"
CELL_KIND_BOOL = "bool"
CELL_KIND_TIME = "time"

# 时间序列文档必需字段
TIMESERIES_NAME_FIELD = "name"
TIMESERIES_VALUE_FIELD = "value"
TIMESERIES_TS_FIELD = "ts"
