#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
目录扫描

按深度限制遍历分类库，得到已知目录集合与已知文件集合（均为相对分类库根目录的POSIX路径），
并列出待分类目录中的文件。

深度限制是唯一的防循环手段，符号链接成环时只会在深度上限处停止。
遍历顺序不做保证，调用方不要依赖。
"""

import logging
import os
from pathlib import Path
from typing import Callable, List, NamedTuple, Set

from ..errors import ScanError

logger = logging.getLogger(__name__)


class FileEntry(NamedTuple):
    """待分类目录中发现的文件"""
    name: str
    absolute_path: str


def _walk(root: str, max_depth: int, visit: Callable[[os.DirEntry, str, bool], None]) -> None:
    """
    深度受限遍历

    max_depth = 0 时只访问根目录的直接子项。
    visit(entry, rel_path, is_dir) 对每个子项调用一次。
    """
    if not os.path.isdir(root):
        return

    pending = [(root, "", 0)]
    while pending:
        current, base, depth = pending.pop()
        try:
            with os.scandir(current) as entries:
                children = list(entries)
        except OSError as e:
            raise ScanError(f"扫描目录失败: {current}: {e}") from e

        for entry in children:
            rel_path = f"{base}/{entry.name}" if base else entry.name
            try:
                is_dir = entry.is_dir()
            except OSError as e:
                raise ScanError(f"读取目录项失败: {entry.path}: {e}") from e
            visit(entry, rel_path, is_dir)
            if is_dir and depth < max_depth:
                pending.append((entry.path, rel_path, depth + 1))


def scan_directories(root: str, max_depth: int) -> Set[str]:
    """
    扫描已知目录

    Returns:
        {"a/", "a/b/", ...}；根目录不存在时返回空集合
    """
    result: Set[str] = set()

    def visit(entry: os.DirEntry, rel_path: str, is_dir: bool) -> None:
        if is_dir:
            result.add(rel_path + "/")

    _walk(root, max_depth, visit)
    logger.debug(f"扫描到 {len(result)} 个已知目录: {root}")
    return result


def scan_files(root: str, max_depth: int) -> Set[str]:
    """
    扫描已知文件

    Returns:
        {"a/报告.docx", "readme.txt", ...}；根目录不存在时返回空集合
    """
    result: Set[str] = set()

    def visit(entry: os.DirEntry, rel_path: str, is_dir: bool) -> None:
        if not is_dir and entry.is_file():
            result.add(rel_path)

    _walk(root, max_depth, visit)
    logger.debug(f"扫描到 {len(result)} 个已知文件: {root}")
    return result


def list_incoming_files(incoming_dir: str) -> List[FileEntry]:
    """列出待分类目录中的文件（不递归，只取普通文件，按文件名排序）"""
    incoming_path = Path(incoming_dir)
    if not incoming_path.is_dir():
        logger.warning(f"待分类目录不存在: {incoming_dir}")
        return []

    try:
        files = [
            FileEntry(name=item.name, absolute_path=str(item.resolve()))
            for item in incoming_path.iterdir()
            if item.is_file()
        ]
    except OSError as e:
        raise ScanError(f"读取待分类目录失败: {incoming_dir}: {e}") from e

    files.sort(key=lambda f: f.name)
    return files
