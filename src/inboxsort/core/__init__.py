#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
核心模块

包含目录扫描、相似度匹配、目录登记、文件移动、文件描述、归档记录、运行锁和任务编排。
"""

from .directory_registry import DirectoryRegistry
from .file_info import FileInfoService
from .file_mover import FileMover, MoveOutcome
from .run_lock import RunLock
from .run_orchestrator import RunOrchestrator, RunReport
from .similarity_matcher import MatchResult, find_best_match
from .transfer_log_manager import TransferLogManager
from .tree_scanner import FileEntry, list_incoming_files, scan_directories, scan_files

__all__ = [
    "DirectoryRegistry",
    "FileInfoService",
    "FileMover",
    "MoveOutcome",
    "RunLock",
    "RunOrchestrator",
    "RunReport",
    "MatchResult",
    "find_best_match",
    "TransferLogManager",
    "FileEntry",
    "list_incoming_files",
    "scan_directories",
    "scan_files",
]
