#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
inboxsort - 待分类文件自动归档系统

先用文件名相似度匹配已有文件，匹配不上的再交给AI批量分类，
最后把文件可靠地移动到分类库的目标目录中。
"""

__version__ = "1.0.0"
__description__ = "基于文件名相似度与AI批量分类的待分类文件自动归档系统"

# 延迟导入，避免循环依赖

__all__ = [
    "__version__",
    "__description__",
]
