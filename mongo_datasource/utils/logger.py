"""日志配置（基于 loguru）"""

import sys

from loguru import logger

from mongo_datasource.core.config import settings

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}:{function}:{line}</cyan> - "
    "<level>{message}</level>"
)


def setup_logger():
    """配置控制台与文件输出"""
    logger.remove()
    logger.add(sys.stderr, level=settings.log_level.upper(), format=LOG_FORMAT)
    logger.add(
        settings.log_file,
        level=settings.log_level.upper(),
        format=LOG_FORMAT,
        rotation="10 MB",
        retention=5,
        encoding="utf-8"
    )
    return logger


log = setup_logger()
