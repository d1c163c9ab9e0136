"""FastAPI 主应用（宿主插件传输层）"""

from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Response
from pydantic import BaseModel, ConfigDict, Field

from mongo_datasource.core.config import settings
from mongo_datasource.core.constants import FALLBACK_REF_ID, QUERY_TYPE_TEST_CONNECTION
from mongo_datasource.core.errors import ConfigError
from mongo_datasource.engines.connection_manager import resolve_settings
from mongo_datasource.engines.query_service import get_query_service
from mongo_datasource.models.query import DataSourceSettings, TimeRange
from mongo_datasource.models.response import QueryResponse, QueryResult, TestConnectionResult
from mongo_datasource.utils.logger import log


# 创建应用
app = FastAPI(
    title="MongoDB Grafana Datasource",
    description="MongoDB 聚合管道时间序列/表格数据源后端",
    version="0.1.0",
    debug=settings.debug
)


# 请求模型
class QueryRequest(BaseModel):
    """批次查询请求"""
    model_config = ConfigDict(populate_by_name=True)

    from_ms: int = Field(..., alias="from", description="起始时间（毫秒）")
    to_ms: int = Field(..., alias="to", description="结束时间（毫秒）")
    queries: List[Dict[str, Any]] = Field(default_factory=list, description="查询描述")
    json_data: Optional[Dict[str, Any]] = Field(None, alias="jsonData", description="数据源配置（覆盖默认配置）")


class TestConnectionRequest(BaseModel):
    """连接测试请求"""
    __test__ = False

    model_config = ConfigDict(populate_by_name=True)

    json_data: Optional[Dict[str, Any]] = Field(None, alias="jsonData", description="数据源配置（覆盖默认配置）")


def _json_response(response: QueryResponse) -> Response:
    # 由 pydantic 序列化，NaN / Infinity 输出为 null
    return Response(content=response.to_json(), media_type="application/json")


def _datasource(json_data: Optional[Dict[str, Any]]) -> DataSourceSettings:
    if json_data is None:
        return settings.datasource()
    return resolve_settings(json_data)


@app.get("/")
def root():
    """根路径"""
    return {
        "name": "MongoDB Grafana Datasource",
        "version": "0.1.0",
        "status": "running"
    }


@app.get("/health")
def health():
    """健康检查"""
    return {"status": "healthy"}


@app.post("/query")
def query(request: QueryRequest):
    """
    执行批次查询

    数据层面的错误总是以结果中的 error 字段返回，HTTP 状态为 200
    """
    log.info(f"收到查询请求: {len(request.queries)} 个查询")

    try:
        datasource = _datasource(request.json_data)
    except ConfigError as e:
        log.error(f"数据源配置无效: {e}")
        return _json_response(QueryResponse(results=[QueryResult(ref_id=FALLBACK_REF_ID, error=str(e))]))

    service = get_query_service(datasource)

    if any(q.get("queryType") == QUERY_TYPE_TEST_CONNECTION for q in request.queries):
        return service.test_connection().model_dump()

    time_range = TimeRange(from_ms=request.from_ms, to_ms=request.to_ms)
    return _json_response(service.query(request.queries, time_range))


@app.post("/test", response_model=TestConnectionResult)
def test_connection(request: Optional[TestConnectionRequest] = None):
    """连接测试"""
    json_data = request.json_data if request else None
    try:
        datasource = _datasource(json_data)
    except ConfigError as e:
        return TestConnectionResult(status="error", message=str(e), display_status="Failure")
    return get_query_service(datasource).test_connection()


if __name__ == "__main__":
    import uvicorn

    log.info(f"启动服务: {settings.api_host}:{settings.api_port}")

    uvicorn.run(
        "mongo_datasource.api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug
    )
