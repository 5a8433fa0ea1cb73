#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
路径标准化工具

提供统一的路径处理规则，确保扫描、登记目录和处理AI返回路径时使用相同的格式：
    1. 标准化路径分隔符（\\、/、\\\\）
    2. 去掉Windows盘符、"."和".."
    3. 已知目录统一为 "a/b/" 形式（POSIX分隔符，末尾带一个 "/"）
    4. 目录末段误含文件名时剥离
"""

import os
from pathlib import Path
from typing import List, Optional

# AI有时会把路径包在引号或代码块里
_WRAPPING_CHARS = "\"'`“”‘’「」 \t\r\n"


def normalize_and_split_path(path: str) -> List[str]:
    """
    标准化并分割路径，支持多种路径分隔符

    Args:
        path: 原始路径字符串

    Returns:
        分割后的路径部分列表（不含盘符、空段、"."和".."）
    """
    if not path or not isinstance(path, str):
        return []

    # 将反斜杠统一为正斜杠
    normalized_path = path.replace('\\', '/')

    parts = normalized_path.split('/')

    filtered_parts = []
    for index, part in enumerate(parts):
        part = part.strip()
        if not part or part in ('.', '..'):
            continue
        # 盘符（如 E:）
        if index == 0 and len(part) == 2 and part[1] == ':':
            continue
        filtered_parts.append(part)

    return filtered_parts


def to_known_dir(relative_path: str) -> str:
    """把相对路径转换为已知目录格式 "a/b/"，根目录返回空字符串"""
    parts = normalize_and_split_path(relative_path)
    if not parts:
        return ""
    return '/'.join(parts) + '/'


def sanitize_relative_dir(raw_path: Optional[str]) -> str:
    """
    清理AI返回的目录路径，只做基本的格式清理，不校验语义

    Returns:
        "a/b" 形式的相对路径；清理后为空时返回空字符串
    """
    if not raw_path:
        return ""
    cleaned = raw_path.strip(_WRAPPING_CHARS)
    return '/'.join(normalize_and_split_path(cleaned))


def relative_posix(path: str, root: str) -> Optional[str]:
    """
    计算 path 相对 root 的POSIX风格路径

    Returns:
        相对路径；path 等于 root 时返回 "."；不在 root 之下时返回 None
    """
    try:
        rel = os.path.relpath(os.path.abspath(path), os.path.abspath(root))
    except ValueError:
        # Windows下跨盘符
        return None
    if rel == os.curdir:
        return "."
    if rel == os.pardir or rel.startswith(os.pardir + os.sep):
        return None
    return Path(rel).as_posix()


def strip_file_segment(target_dir: str, file_name: str) -> str:
    """目标目录末段等于文件名时剥离末段，避免出现 dir/file.txt/file.txt"""
    target = Path(target_dir)
    if target.name == file_name:
        return str(target.parent)
    return str(target)
