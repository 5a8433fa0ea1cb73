#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""运行锁测试"""

import json
import os
import time

import pytest

from inboxsort.core.run_lock import LOCK_FILE_NAME, RunLock
from inboxsort.errors import RunLockedError


def test_second_acquire_is_rejected(tmp_path):
    with RunLock(str(tmp_path)):
        assert (tmp_path / LOCK_FILE_NAME).exists()
        with pytest.raises(RunLockedError):
            RunLock(str(tmp_path)).acquire()
    assert not (tmp_path / LOCK_FILE_NAME).exists()


def test_expired_lock_is_taken_over(tmp_path):
    (tmp_path / LOCK_FILE_NAME).write_text(
        json.dumps({"pid": os.getpid(), "created_at": time.time() - 3600}), encoding="utf-8")

    lock = RunLock(str(tmp_path), stale_after_seconds=60)
    lock.acquire()

    owner = json.loads((tmp_path / LOCK_FILE_NAME).read_text(encoding="utf-8"))
    assert owner["created_at"] > time.time() - 60
    lock.release()


def test_lock_of_dead_process_is_taken_over(tmp_path):
    (tmp_path / LOCK_FILE_NAME).write_text(
        json.dumps({"pid": -1, "created_at": time.time()}), encoding="utf-8")

    with RunLock(str(tmp_path)):
        pass


def test_release_without_acquire_keeps_foreign_lock(tmp_path):
    (tmp_path / LOCK_FILE_NAME).write_text("{}", encoding="utf-8")

    RunLock(str(tmp_path)).release()

    assert (tmp_path / LOCK_FILE_NAME).exists()
