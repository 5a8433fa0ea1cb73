#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""测试公共夹具"""

import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'src'))


class RecordingSleep:
    """替代 time.sleep，只记录等待时长"""

    def __init__(self):
        self.calls = []

    def __call__(self, seconds):
        self.calls.append(seconds)


@pytest.fixture
def fake_sleep():
    return RecordingSleep()


@pytest.fixture
def library(tmp_path):
    """分类库根目录与待分类目录"""
    root = tmp_path / "分类库"
    incoming = tmp_path / "待分类"
    root.mkdir()
    incoming.mkdir()
    return root, incoming


def write_file(path, content="content"):
    path.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(content, bytes):
        path.write_bytes(content)
    else:
        path.write_text(content, encoding="utf-8")
    return path
