#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
工具模块

包含路径处理、日志初始化等辅助功能。
"""

# 延迟导入，避免循环依赖

__all__ = [
    "path_utils",
    "log_setup",
]
