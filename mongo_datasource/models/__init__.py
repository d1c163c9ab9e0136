"""数据模型包"""

from mongo_datasource.models.query import (
    TimeRange,
    StageTemplate,
    DataSourceSettings,
    QueryDescription,
    CompiledPipeline
)
from mongo_datasource.models.response import (
    CellValue,
    Point,
    Series,
    Table,
    QueryResult,
    QueryResponse,
    TestConnectionResult
)

__all__ = [
    # Query
    "TimeRange",
    "StageTemplate",
    "DataSourceSettings",
    "QueryDescription",
    "CompiledPipeline",
    # Response
    "CellValue",
    "Point",
    "Series",
    "Table",
    "QueryResult",
    "QueryResponse",
    "TestConnectionResult",
]
