"""启动脚本"""

import uvicorn
from mongo_datasource.core.config import settings
from mongo_datasource.utils.logger import log


if __name__ == "__main__":
    log.info("="*60)
    log.info("MongoDB Grafana Datasource - 启动中")
    log.info("="*60)
    log.info(f"服务地址: http://{settings.api_host}:{settings.api_port}")
    log.info(f"API 文档: http://{settings.api_host}:{settings.api_port}/docs")
    log.info(f"调试模式: {settings.debug}")
    log.info(f"MongoDB: {settings.mongodb_url} / {settings.mongodb_db}")
    log.info(f"阶段宏: {len(settings.stages)} 个")
    log.info("="*60)

    uvicorn.run(
        "mongo_datasource.api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
        log_level="info"
    )
