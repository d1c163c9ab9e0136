"""查询相关模型"""

from typing import List, Optional, Any, Literal
from pydantic import BaseModel, ConfigDict, Field, field_validator

from mongo_datasource.core.constants import (
    DEFAULT_MONGODB_DB,
    DEFAULT_MONGODB_URL,
    FALLBACK_REF_ID,
    QUERY_TYPE_TIMESERIES,
    RESULT_KIND_TIMESERIE,
)


class TimeRange(BaseModel):
    """查询时间窗口（毫秒时间戳），同一批次内所有查询共享"""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    from_ms: int = Field(..., alias="from", description="起始时间（毫秒）")
    to_ms: int = Field(..., alias="to", description="结束时间（毫秒）")


class StageTemplate(BaseModel):
    """阶段宏模板"""
    name: str = Field(..., min_length=1, description="宏名称，匹配管道阶段操作符 $<name>")
    stage: str = Field(..., description="管道片段模板，$QUERY 为参数插入点")

    @property
    def operator(self) -> str:
        return "$" + self.name


class DataSourceSettings(BaseModel):
    """数据源配置（jsonData）"""
    mongodb_url: Optional[str] = Field(None, description="MongoDB 连接 URI")
    mongodb_db: Optional[str] = Field(None, description="数据库名")
    stages: List[StageTemplate] = Field(default_factory=list, description="阶段宏模板")

    @field_validator("stages", mode="before")
    @classmethod
    def drop_incomplete_stages(cls, v: Any) -> Any:
        # 配置界面允许存在尚未填写的空行
        if isinstance(v, list):
            return [s for s in v if not (isinstance(s, dict) and not s.get("name"))]
        return v

    @property
    def url(self) -> str:
        return (self.mongodb_url or "").strip() or DEFAULT_MONGODB_URL

    @property
    def database(self) -> str:
        return (self.mongodb_db or "").strip() or DEFAULT_MONGODB_DB


class QueryDescription(BaseModel):
    """单个查询描述（来自仪表盘的 JSON）"""
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    ref_id: str = Field(FALLBACK_REF_ID, alias="refId", description="结果关联ID")
    target: str = Field("", description="管道 JSON 数组或 db.<collection>.aggregate([...])")
    type: Literal["timeserie", "table"] = Field(RESULT_KIND_TIMESERIE, description="结果类型")
    collection: Optional[str] = Field(None, description="目标集合")
    max_data_points: int = Field(1, alias="maxDataPoints", description="最大数据点数")
    query_type: str = Field(QUERY_TYPE_TIMESERIES, alias="queryType", description="查询类型")

    @field_validator("target", mode="before")
    @classmethod
    def default_target(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("type", mode="before")
    @classmethod
    def default_type(cls, v: Any) -> Any:
        return v or RESULT_KIND_TIMESERIE

    @field_validator("max_data_points", mode="before")
    @classmethod
    def coerce_max_data_points(cls, v: Any) -> Any:
        if v is None or v == 0:
            return 1
        return v

    @field_validator("max_data_points")
    @classmethod
    def validate_max_data_points(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"maxDataPoints 必须大于等于 1: {v}")
        return v

    @field_validator("query_type", mode="before")
    @classmethod
    def default_query_type(cls, v: Any) -> Any:
        return v or QUERY_TYPE_TIMESERIES


class CompiledPipeline(BaseModel):
    """编译后的聚合管道"""
    collection: str = Field(..., description="目标集合")
    pipeline: List[Any] = Field(default_factory=list, description="管道阶段")
    result_kind: Literal["timeserie", "table"] = Field(RESULT_KIND_TIMESERIE, description="结果类型")
