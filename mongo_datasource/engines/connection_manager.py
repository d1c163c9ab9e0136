"""Connection Manager - MongoDB 连接管理（每批次一个连接）"""

from typing import Any, Callable, Dict, List, Optional

from bson.codec_options import DatetimeConversion
from bson.errors import BSONError
from pymongo import MongoClient
from pymongo.command_cursor import CommandCursor
from pymongo.errors import ConfigurationError, ConnectionFailure, PyMongoError

from mongo_datasource.core.constants import MONGODB_URL_SCHEMES
from mongo_datasource.core.errors import ConfigError, DataSourceConnectionError, DecodeError, ExecutionError
from mongo_datasource.models.query import DataSourceSettings
from mongo_datasource.utils.logger import log

ClientFactory = Callable[..., Any]


def resolve_settings(json_data: Optional[Dict[str, Any]]) -> DataSourceSettings:
    """解析数据源配置（jsonData），缺省值由 DataSourceSettings 提供"""
    try:
        return DataSourceSettings.model_validate(json_data or {})
    except ValueError as e:
        raise ConfigError(f"数据源配置无效: {e}") from e


class MongoConnection:
    """单批次使用的 MongoDB 连接，退出上下文时总是断开"""

    def __init__(self, datasource: DataSourceSettings, client_factory: ClientFactory = MongoClient):
        self.datasource = datasource
        self.client_factory = client_factory
        self.client = None

    @property
    def database_name(self) -> str:
        return self.datasource.database

    def connect(self) -> "MongoConnection":
        """创建客户端并 ping"""
        uri = self.datasource.url
        if not uri.startswith(MONGODB_URL_SCHEMES):
            raise ConfigError(f"无效的 MongoDB URI: {uri}")

        try:
            # 超出 datetime 范围的日期解码为 DatetimeMS
            self.client = self.client_factory(uri, datetime_conversion=DatetimeConversion.DATETIME_AUTO)
        except ConfigurationError as e:
            raise ConfigError(f"MongoDB 配置错误: {e}") from e

        self.ping()
        log.debug(f"Connected to MongoDB: db={self.database_name}")
        return self

    def ping(self) -> None:
        try:
            self._require_client().admin.command("ping")
        except PyMongoError as e:
            log.error(f"MongoDB ping 失败: {e}")
            raise DataSourceConnectionError(f"MongoDB ping 失败: {e}") from e

    def aggregate(self, collection: str, pipeline: List[Any], **options) -> CommandCursor:
        """
        执行聚合管道

        Args:
            collection: 集合名
            pipeline: 管道阶段
            **options: 原样传递给 aggregate（如 maxTimeMS、session）

        Returns:
            游标
        """
        database = self._require_client()[self.database_name]
        try:
            return database[collection].aggregate(pipeline, **options)
        except ConnectionFailure as e:
            raise DataSourceConnectionError(f"MongoDB 连接中断: {e}") from e
        except PyMongoError as e:
            raise ExecutionError(f"聚合执行失败: {e}") from e
        except BSONError as e:
            raise DecodeError(f"无法解码结果文档: {e}") from e

    def list_collection_names(self) -> List[str]:
        try:
            return self._require_client()[self.database_name].list_collection_names()
        except ConnectionFailure as e:
            raise DataSourceConnectionError(f"MongoDB 连接中断: {e}") from e
        except PyMongoError as e:
            raise ExecutionError(f"获取集合列表失败: {e}") from e

    def close(self) -> None:
        """断开连接"""
        if self.client is None:
            return
        client, self.client = self.client, None
        try:
            client.close()
        except PyMongoError as e:
            raise DataSourceConnectionError(f"断开 MongoDB 连接失败: {e}") from e
        log.debug("Connection to MongoDB closed.")

    def _require_client(self):
        if self.client is None:
            raise DataSourceConnectionError("MongoDB client not initialized. Call connect() first.")
        return self.client

    def __enter__(self) -> "MongoConnection":
        try:
            return self.connect()
        except Exception:
            self.close()
            raise

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
