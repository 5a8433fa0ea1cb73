#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
日志配置

控制台输出 + 按天滚动命名的日志文件，所有模块通过 logging.getLogger(__name__) 取得日志器。
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

_HANDLER_MARK = '_inboxsort_handler'


def _parse_level(level) -> int:
    if isinstance(level, int):
        return level
    value = logging.getLevelName(str(level).upper())
    return value if isinstance(value, int) else logging.INFO


def setup_logging(level="info", log_dir: Optional[str] = None) -> Optional[Path]:
    """
    初始化日志，重复调用时替换之前添加的处理器

    Args:
        level: 日志级别（"debug"/"info"/... 或 logging 常量）
        log_dir: 日志目录，为 None 时只输出到控制台

    Returns:
        日志文件路径（未启用文件日志时为 None）
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(_parse_level(level))

    # 避免重复添加handler
    for handler in list(root_logger.handlers):
        if getattr(handler, _HANDLER_MARK, False):
            root_logger.removeHandler(handler)
            handler.close()

    formatter = logging.Formatter(LOG_FORMAT)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    setattr(console_handler, _HANDLER_MARK, True)
    root_logger.addHandler(console_handler)

    log_path = None
    if log_dir:
        log_directory = Path(log_dir)
        try:
            log_directory.mkdir(parents=True, exist_ok=True)
            log_path = log_directory / f"inboxsort_{datetime.now().strftime('%Y%m%d')}.log"
            file_handler = logging.FileHandler(log_path, encoding='utf-8')
            file_handler.setFormatter(formatter)
            setattr(file_handler, _HANDLER_MARK, True)
            root_logger.addHandler(file_handler)
        except OSError as e:
            logging.getLogger(__name__).error(f"创建日志文件失败，仅输出到控制台: {e}")
            log_path = None

    return log_path


def shutdown_logging() -> None:
    """刷新并关闭 setup_logging 添加的处理器（进程退出前调用）"""
    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        if getattr(handler, _HANDLER_MARK, False):
            handler.flush()
            root_logger.removeHandler(handler)
            handler.close()
