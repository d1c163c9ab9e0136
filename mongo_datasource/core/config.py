"""系统配置管理"""

from pathlib import Path
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from mongo_datasource.core.constants import DEFAULT_MONGODB_DB, DEFAULT_MONGODB_URL
from mongo_datasource.models.query import DataSourceSettings, StageTemplate


class Settings(BaseSettings):
    """系统配置"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False
    )

    # MongoDB 数据源配置
    mongodb_url: str = DEFAULT_MONGODB_URL
    mongodb_db: str = DEFAULT_MONGODB_DB
    # 阶段宏模板（环境变量中为 JSON 数组）
    stages: List[StageTemplate] = Field(default_factory=list)

    # 服务器配置
    api_host: str = "0.0.0.0"
    api_port: int = 3333
    debug: bool = False

    # 日志配置
    log_level: str = "INFO"
    log_file: Path = Path("./logs/datasource.log")

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        # 确保日志目录存在
        self.log_file.parent.mkdir(parents=True, exist_ok=True)

    def datasource(self) -> DataSourceSettings:
        """当前进程默认的数据源配置"""
        return DataSourceSettings(
            mongodb_url=self.mongodb_url,
            mongodb_db=self.mongodb_db,
            stages=list(self.stages)
        )


# 全局配置实例
settings = Settings()
