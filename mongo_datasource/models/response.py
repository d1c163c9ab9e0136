"""API 响应模型"""

from typing import List, Any, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field, model_validator

from mongo_datasource.core.constants import (
    CELL_KIND_BOOL,
    CELL_KIND_DOUBLE,
    CELL_KIND_INT64,
    CELL_KIND_STRING,
    CELL_KIND_TIME,
)


class CellValue(BaseModel):
    """表格单元格（带类型标签）"""
    model_config = ConfigDict(frozen=True, ser_json_inf_nan="null")

    kind: Literal["double", "int64", "string", "bool", "time"] = Field(..., description="值类型")
    value: Union[bool, int, float, str] = Field(..., description="值")

    @classmethod
    def double(cls, value: float) -> "CellValue":
        return cls(kind=CELL_KIND_DOUBLE, value=float(value))

    @classmethod
    def int64(cls, value: int) -> "CellValue":
        return cls(kind=CELL_KIND_INT64, value=int(value))

    @classmethod
    def string(cls, value: str) -> "CellValue":
        return cls(kind=CELL_KIND_STRING, value=value)

    @classmethod
    def boolean(cls, value: bool) -> "CellValue":
        return cls(kind=CELL_KIND_BOOL, value=value)

    @classmethod
    def time(cls, millis: int) -> "CellValue":
        return cls(kind=CELL_KIND_TIME, value=int(millis))


class Point(BaseModel):
    """时间序列数据点"""
    # NaN / Infinity 输出为 null
    model_config = ConfigDict(ser_json_inf_nan="null")

    timestamp_ms: int = Field(..., description="时间戳（毫秒）")
    value: float = Field(..., description="数值")


class Series(BaseModel):
    """命名时间序列"""
    name: str = Field(..., description="序列名称")
    points: List[Point] = Field(default_factory=list, description="数据点（到达顺序）")


class Table(BaseModel):
    """表格结果，None 表示该列无值"""
    columns: List[str] = Field(default_factory=list, description="列名（首次出现顺序）")
    rows: List[List[Optional[CellValue]]] = Field(default_factory=list, description="数据行")


class QueryResult(BaseModel):
    """单个查询结果：series、table、error 三者之一"""
    model_config = ConfigDict(populate_by_name=True)

    ref_id: str = Field(..., alias="refId", description="关联ID")
    series: Optional[List[Series]] = Field(None, description="时间序列结果")
    table: Optional[Table] = Field(None, description="表格结果")
    error: Optional[str] = Field(None, description="错误信息")

    @model_validator(mode="after")
    def check_single_payload(self) -> "QueryResult":
        payloads = [p for p in (self.series, self.table, self.error) if p is not None]
        if len(payloads) != 1:
            raise ValueError("QueryResult 必须且只能包含 series、table、error 之一")
        return self

    @property
    def is_error(self) -> bool:
        return self.error is not None


class QueryResponse(BaseModel):
    """批次响应（与输入查询顺序一致）"""
    model_config = ConfigDict(ser_json_inf_nan="null")

    results: List[QueryResult] = Field(default_factory=list, description="查询结果")

    def to_wire(self) -> dict[str, Any]:
        """转为宿主使用的 JSON 结构"""
        return self.model_dump(by_alias=True, exclude_none=True)

    def to_json(self) -> str:
        """转为 JSON 文本（非有限浮点数输出为 null）"""
        return self.model_dump_json(by_alias=True, exclude_none=True)


class TestConnectionResult(BaseModel):
    """连接测试结果"""
    __test__ = False

    status: Literal["success", "error"] = Field(..., description="状态")
    message: str = Field(..., description="说明")
    display_status: str = Field(..., description="展示标题")
