#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
异常定义
"""


class InboxSortError(Exception):
    """项目异常基类"""


class ConfigError(InboxSortError):
    pass


class ScanError(InboxSortError):
    """扫描分类库或待分类目录失败，整次任务无法继续"""


class FileMoveError(InboxSortError):
    """单个文件移动失败（重试耗尽等）"""

    def __init__(self, message: str, source: str = None, cause: BaseException = None):
        super().__init__(message)
        self.source = source
        self.cause = cause


class CopyVerificationError(FileMoveError):
    """跨设备复制后校验失败"""


class ClassificationError(InboxSortError):
    """AI批量分类调用失败，只影响当前批次"""


class AIClientError(InboxSortError):
    """AI客户端异常"""


class RunLockedError(InboxSortError):
    """已有其他任务正在运行"""
