#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
运行锁

防止两次任务同时处理同一批待分类文件。锁文件用 O_CREAT | O_EXCL 原子创建，
内容为持有者的 pid 和加锁时间。持有进程已退出或锁超过 stale_after_seconds 时视为失效并接管。
"""

import json
import logging
import os
import time
from pathlib import Path
from typing import Optional

from ..errors import RunLockedError

logger = logging.getLogger(__name__)

LOCK_FILE_NAME = "inboxsort.lock"


def _pid_alive(pid: int) -> bool:
    if pid <= 0:
        return False
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        # 进程存在但属于其他用户
        return True
    except OSError:
        return False
    return True


class RunLock:
    """基于锁文件的运行锁，可用作上下文管理器"""

    def __init__(self, lock_dir: str, stale_after_seconds: float = 6 * 3600):
        self.lock_path = Path(lock_dir) / LOCK_FILE_NAME
        self.stale_after_seconds = stale_after_seconds
        self._held = False

    def acquire(self) -> None:
        """加锁，已被其他有效任务持有时抛出 RunLockedError"""
        self.lock_path.parent.mkdir(parents=True, exist_ok=True)
        if self._create():
            return
        if self._is_stale():
            logger.warning(f"发现失效的运行锁，接管: {self.lock_path}")
            try:
                self.lock_path.unlink()
            except FileNotFoundError:
                pass
            if self._create():
                return
        raise RunLockedError(f"已有任务正在运行（锁文件: {self.lock_path}）")

    def release(self) -> None:
        if not self._held:
            return
        try:
            self.lock_path.unlink()
        except FileNotFoundError:
            pass
        self._held = False

    def __enter__(self) -> "RunLock":
        self.acquire()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()

    def _create(self) -> bool:
        try:
            fd = os.open(self.lock_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError:
            return False
        with os.fdopen(fd, 'w', encoding='utf-8') as f:
            json.dump({"pid": os.getpid(), "created_at": time.time()}, f)
        self._held = True
        return True

    def _read_owner(self) -> Optional[dict]:
        try:
            return json.loads(self.lock_path.read_text(encoding='utf-8'))
        except FileNotFoundError:
            return None
        except (OSError, ValueError):
            return {}

    def _is_stale(self) -> bool:
        owner = self._read_owner()
        if owner is None:
            return True
        created_at = owner.get("created_at")
        if not isinstance(created_at, (int, float)):
            try:
                created_at = self.lock_path.stat().st_mtime
            except FileNotFoundError:
                return True
        if time.time() - created_at > self.stale_after_seconds:
            return True
        pid = owner.get("pid")
        return isinstance(pid, int) and not _pid_alive(pid)
