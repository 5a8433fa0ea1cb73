#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
文件名相似度匹配

相似度 = 1 - 编辑距离(小写a, 小写b) / max(len(a), len(b))，两个名字都为空时分母取1。
只比较文件名，不读取文件内容。每个待分类文件都要与全部已知文件比较一次，
已知文件很多时是 O(n·m) 的开销。

平分时取遍历顺序中第一个得到最高分的已知文件。
"""

import posixpath
from typing import Iterable, NamedTuple, Optional

from rapidfuzz.distance import Levenshtein


class MatchResult(NamedTuple):
    candidate_dir: Optional[str]
    candidate_file: Optional[str]
    score: float


NO_MATCH = MatchResult(candidate_dir=None, candidate_file=None, score=float('-inf'))


def compute_similarity(a: str, b: str) -> float:
    """计算两个文件名的相似度，完全相同（忽略大小写）时为 1.0"""
    distance = Levenshtein.distance(a.lower(), b.lower())
    max_len = max(len(a), len(b)) or 1
    return 1 - distance / max_len


def find_best_match(file_name: str, known_files: Iterable[str]) -> MatchResult:
    """
    在已知文件中查找与 file_name 最相似的文件

    Args:
        file_name: 待分类文件名
        known_files: 已知文件的相对路径（POSIX分隔符）

    Returns:
        MatchResult；没有已知文件时 score 为 -inf，目录和文件均为 None
    """
    best = NO_MATCH
    for rel_path in known_files:
        score = compute_similarity(file_name, posixpath.basename(rel_path))
        if score > best.score:
            best = MatchResult(
                candidate_dir=posixpath.dirname(rel_path) or ".",
                candidate_file=rel_path,
                score=score,
            )
    return best


def is_hit(result: MatchResult, threshold: float) -> bool:
    """相似度达到阈值才算命中，否则交给AI分类"""
    return result.candidate_dir is not None and result.score >= threshold
