#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
已知目录登记表

一次任务内有效、只增不减的已知目录列表。任务开始时用扫描结果初始化，
之后每次移动创建了新目录都登记进来，使后续批次的AI分类能看到本次任务中新建的目录，
复用它们而不是再造一个近义目录。不做持久化，每次任务重新扫描。
"""

import logging
import os
from typing import Iterable, List, Set

from ..utils.path_utils import relative_posix, to_known_dir

logger = logging.getLogger(__name__)


class DirectoryRegistry:
    """已知目录登记表，目录统一为 "a/b/" 形式"""

    def __init__(self, root_dir: str):
        self.root_dir = os.path.abspath(root_dir)
        self._dirs: List[str] = []
        self._seen: Set[str] = set()

    def initialize(self, seed_dirs: Iterable[str]) -> None:
        """用扫描结果重置登记表，按路径排序以保证提示词稳定"""
        self._dirs = []
        self._seen = set()
        for directory in sorted(seed_dirs):
            self._add(to_known_dir(directory))
        logger.info(f"初始化已知目录列表，共 {len(self._dirs)} 个目录")

    def record_if_new(self, directory: str) -> bool:
        """
        登记目录（连同其各级上级目录）

        Args:
            directory: 分类库下的绝对路径，或相对分类库根目录的路径

        Returns:
            是否有新目录被登记
        """
        if os.path.isabs(directory):
            rel_path = relative_posix(directory, self.root_dir)
            if rel_path is None:
                logger.warning(f"目录不在分类库中，忽略登记: {directory}")
                return False
        else:
            rel_path = directory

        known_dir = to_known_dir(rel_path)
        if not known_dir:
            return False

        added = False
        parts = known_dir.rstrip('/').split('/')
        for depth in range(1, len(parts) + 1):
            candidate = '/'.join(parts[:depth]) + '/'
            if self._add(candidate):
                added = True
                logger.info(f"添加新目录到已知目录列表: {candidate}")
        return added

    def snapshot(self) -> List[str]:
        """当前已知目录的副本，按登记顺序"""
        return list(self._dirs)

    def __contains__(self, directory: str) -> bool:
        return to_known_dir(directory) in self._seen

    def __len__(self) -> int:
        return len(self._dirs)

    def _add(self, known_dir: str) -> bool:
        if not known_dir or known_dir in self._seen:
            return False
        self._seen.add(known_dir)
        self._dirs.append(known_dir)
        return True
