#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""文件名相似度匹配测试"""

import math

import pytest

from inboxsort.core.similarity_matcher import compute_similarity, find_best_match, is_hit


def test_identical_names_ignore_case():
    assert compute_similarity("Report.PDF", "report.pdf") == 1.0


def test_empty_names_are_identical():
    assert compute_similarity("", "") == 1.0


def test_similarity_is_normalized_edit_distance():
    # 一次替换，长度为4
    assert compute_similarity("abcd", "abce") == pytest.approx(0.75)


def test_best_match_uses_containing_directory():
    result = find_best_match("报告2025.docx", ["工作/报告2024.docx", "个人/照片.jpg"])

    assert result.candidate_dir == "工作"
    assert result.candidate_file == "工作/报告2024.docx"
    assert result.score > 0.65
    assert is_hit(result, 0.65)


def test_root_level_file_matches_root_directory():
    result = find_best_match("readme.txt", ["readme.txt"])

    assert result.candidate_dir == "."
    assert result.score == 1.0


def test_no_known_files_is_never_a_hit():
    result = find_best_match("x.txt", [])

    assert result.candidate_dir is None
    assert math.isinf(result.score) and result.score < 0
    assert not is_hit(result, 0.0)


def test_below_threshold_is_not_a_hit():
    result = find_best_match("invoice.pdf", ["旅行/照片001.jpg"])

    assert not is_hit(result, 0.65)


def test_tie_keeps_first_candidate():
    result = find_best_match("ab.txt", ["x/ab.txt", "y/ab.txt"])

    assert result.candidate_dir == "x"
