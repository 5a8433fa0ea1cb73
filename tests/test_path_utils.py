#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""路径标准化测试"""

import os

import pytest

from inboxsort.utils.path_utils import (
    normalize_and_split_path,
    relative_posix,
    sanitize_relative_dir,
    strip_file_segment,
    to_known_dir,
)


@pytest.mark.parametrize("raw, expected", [
    ("工作\\报告", ["工作", "报告"]),
    ("E:/资料/文档", ["资料", "文档"]),
    ("./a//b/../c", ["a", "b", "c"]),
    ("", []),
])
def test_normalize_and_split_path(raw, expected):
    assert normalize_and_split_path(raw) == expected


def test_to_known_dir():
    assert to_known_dir("a/b") == "a/b/"
    assert to_known_dir("a\\b\\") == "a/b/"
    assert to_known_dir(".") == ""


def test_sanitize_relative_dir_strips_wrapping():
    assert sanitize_relative_dir('  "技术文档/Python/"  ') == "技术文档/Python"
    assert sanitize_relative_dir("``") == ""
    assert sanitize_relative_dir(None) == ""


def test_relative_posix(tmp_path):
    root = str(tmp_path)
    assert relative_posix(root, root) == "."
    assert relative_posix(os.path.join(root, "a", "b"), root) == "a/b"
    assert relative_posix(str(tmp_path.parent), root) is None


def test_strip_file_segment():
    target = os.path.join("lib", "docs", "a.txt")
    assert strip_file_segment(target, "a.txt") == os.path.join("lib", "docs")
    assert strip_file_segment(os.path.join("lib", "docs"), "a.txt") == os.path.join("lib", "docs")
