#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""归档记录管理器测试"""

import json

import pytest

from inboxsort.core.transfer_log_manager import TransferLogManager


def test_session_records_operations(tmp_path):
    manager = TransferLogManager(str(tmp_path / "transfer_logs"))
    log_file = manager.start_session()

    manager.log_operation("/in/a.txt", "/lib/docs/a.txt", "similarity", details={"score": 0.9})
    manager.log_operation("/in/b.txt", None, "ai", success=False, error_message="AI分类失败")
    session_info = manager.end_session()

    data = json.loads(open(log_file, encoding="utf-8").read())
    assert session_info["total_operations"] == 2
    assert data["session_info"]["successful_operations"] == 1
    assert data["session_info"]["failed_operations"] == 1
    assert data["session_info"]["methods"] == {"similarity": 1}
    assert data["session_info"]["end_time"] is not None
    assert data["operations"][0]["details"] == {"score": 0.9}
    assert data["operations"][1]["error_message"] == "AI分类失败"
    assert manager.current_log_file is None


def test_session_names_do_not_collide(tmp_path):
    manager = TransferLogManager(str(tmp_path))
    first = manager.start_session("organize_fixed")
    manager.end_session()
    second = manager.start_session("organize_fixed")

    assert first != second
    assert second.endswith("organize_fixed_1.json")


def test_log_without_session_raises(tmp_path):
    with pytest.raises(ValueError):
        TransferLogManager(str(tmp_path)).log_operation("/a", "/b", "ai")
