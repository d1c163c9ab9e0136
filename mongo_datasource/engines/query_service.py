"""Query Service - 批次查询调度（编译 → 执行 → 映射）"""

import time
from datetime import datetime
from typing import Any, Dict, List, Optional

from bson.errors import BSONError
from pymongo import MongoClient
from pymongo.errors import ConnectionFailure, PyMongoError

from mongo_datasource.core.config import settings
from mongo_datasource.core.constants import (
    FALLBACK_REF_ID,
    METRIC_COLUMN,
    METRIC_LIST_COLLECTIONS,
    METRIC_PING,
    QUERY_TYPE_METRICS,
)
from mongo_datasource.core.errors import (
    BATCH_LEVEL_ERRORS,
    QUERY_LEVEL_ERRORS,
    DataSourceConnectionError,
    DataSourceError,
    DecodeError,
    ExecutionError,
    MalformedQuery,
)
from mongo_datasource.engines.connection_manager import ClientFactory, MongoConnection
from mongo_datasource.engines.query_compiler import compile_query, parse_description
from mongo_datasource.engines.response_mapper import map_documents
from mongo_datasource.models.query import DataSourceSettings, QueryDescription, TimeRange
from mongo_datasource.models.response import (
    CellValue,
    QueryResponse,
    QueryResult,
    Table,
    TestConnectionResult,
)
from mongo_datasource.utils.logger import log
from mongo_datasource.utils.trace import StepLog, TraceContext


class QueryService:
    """单个数据源的查询服务"""

    def __init__(self, datasource: DataSourceSettings, client_factory: ClientFactory = MongoClient):
        self.datasource = datasource
        self.client_factory = client_factory

    def _connection(self) -> MongoConnection:
        return MongoConnection(self.datasource, client_factory=self.client_factory)

    def query(
        self,
        queries: List[Dict[str, Any]],
        time_range: TimeRange,
        **aggregate_options
    ) -> QueryResponse:
        """
        执行一批查询

        Args:
            queries: 查询描述列表（按顺序处理）
            time_range: 共享时间窗口
            **aggregate_options: 原样传递给 aggregate 的选项

        Returns:
            QueryResponse: 与输入顺序一致的结果；批次级错误时只含一个 refId 为 A 的错误结果
        """
        trace = TraceContext()
        log.info(f"执行查询批次: {len(queries)} 个查询, trace={trace.trace_id}")

        try:
            with self._connection() as conn:
                results = [
                    self._run_one(conn, raw, time_range, trace, aggregate_options)
                    for raw in queries
                ]
        except BATCH_LEVEL_ERRORS as e:
            log.error(f"查询批次失败: {e} (trace={trace.trace_id})")
            return QueryResponse(results=[QueryResult(ref_id=FALLBACK_REF_ID, error=str(e))])

        summary = trace.to_dict()
        log.info(
            f"查询批次完成: {summary['total_steps']} 个查询, {summary['error_count']} 个失败 "
            f"({summary['duration_ms']:.2f}ms, trace={trace.trace_id})"
        )
        return QueryResponse(results=results)

    def _run_one(
        self,
        conn: MongoConnection,
        raw: Dict[str, Any],
        time_range: TimeRange,
        trace: TraceContext,
        aggregate_options: Dict[str, Any]
    ) -> QueryResult:
        """执行单个查询，查询级错误写入该查询的结果槽位"""
        start_time = time.time()
        step = StepLog(ref_id=_ref_id_of(raw), timestamp=datetime.now())

        try:
            description = parse_description(raw)
            step.ref_id = description.ref_id
            if description.query_type == QUERY_TYPE_METRICS:
                result = self._run_metric(conn, description)
            else:
                result = self._run_pipeline(conn, description, time_range, step, aggregate_options)
        except QUERY_LEVEL_ERRORS as e:
            step.error = str(e)
            log.error(f"查询失败 [{step.ref_id}]: {e}")
            result = QueryResult(ref_id=step.ref_id, error=str(e))
        finally:
            step.latency_ms = round((time.time() - start_time) * 1000, 2)
            trace.add_step(step)

        return result

    def _run_pipeline(
        self,
        conn: MongoConnection,
        description: QueryDescription,
        time_range: TimeRange,
        step: StepLog,
        aggregate_options: Dict[str, Any]
    ) -> QueryResult:
        compiled = compile_query(description, time_range, self.datasource.stages)
        step.collection = compiled.collection
        step.stage_count = len(compiled.pipeline)
        step.result_kind = compiled.result_kind

        cursor = conn.aggregate(compiled.collection, compiled.pipeline, **aggregate_options)
        with cursor:
            try:
                return map_documents(cursor, compiled.result_kind, description.ref_id)
            except ConnectionFailure as e:
                raise DataSourceConnectionError(f"MongoDB 连接中断: {e}") from e
            except PyMongoError as e:
                raise ExecutionError(f"读取游标失败: {e}") from e
            except BSONError as e:
                raise DecodeError(f"无法解码结果文档: {e}") from e

    def _run_metric(self, conn: MongoConnection, description: QueryDescription) -> QueryResult:
        """元数据查询：ping / list_collections"""
        target = description.target.strip()
        log.debug(f"Got Metrics Target: {target}")
        table = Table(columns=[METRIC_COLUMN])

        if target == METRIC_PING:
            conn.ping()
        elif target == METRIC_LIST_COLLECTIONS:
            names = sorted(conn.list_collection_names())
            log.debug(f"List Collections: ({conn.database_name}) -> {names}")
            table.rows = [[CellValue.string(name)] for name in names]
        else:
            raise MalformedQuery(f"Unsupported Metric: {target}")

        return QueryResult(ref_id=description.ref_id, table=table)

    def test_connection(self) -> TestConnectionResult:
        """连接测试：connect → ping → disconnect"""
        try:
            with self._connection():
                pass
        except DataSourceError as e:
            log.warning(f"连接测试失败: {e}")
            return TestConnectionResult(
                status="error",
                message=f"MongoDB Connection Error: {e}",
                display_status="Failure"
            )

        return TestConnectionResult(
            status="success",
            message=f"MongoDB Connection test OK (db: {self.datasource.database})",
            display_status="Success"
        )


def _ref_id_of(raw: Any) -> str:
    if isinstance(raw, QueryDescription):
        return raw.ref_id
    if isinstance(raw, dict) and isinstance(raw.get("refId"), str):
        return raw["refId"]
    return FALLBACK_REF_ID


def get_query_service(datasource: Optional[DataSourceSettings] = None, client_factory: ClientFactory = MongoClient) -> QueryService:
    """按数据源配置创建 QueryService（不缓存）"""
    if datasource is None:
        datasource = settings.datasource()
    return QueryService(datasource, client_factory=client_factory)
