#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
文件移动

把单个文件可靠地移动到目标目录，保证文件最终只出现在一个位置：
1. 优先在同一文件系统内直接重命名（不覆盖已有文件）
2. 目标已存在：文件名追加秒级时间戳，仍冲突再追加递增序号
3. 跨设备（EXDEV）：复制到目标目录下的临时文件 → 校验大小 → 原子重命名为最终名 → 删除源文件
4. 文件被占用（EBUSY/EACCES/EPERM）：指数退避重试，超过次数后报错
5. 源文件已不存在：视为已处理，返回跳过标记
6. 其他错误直接抛出
7. 试运行模式只记录日志，不改动文件系统

复制在删除之前完成，进程中途被杀最多留下两份文件，不会丢数据。
"""

import errno
import logging
import os
import shutil
import time
import uuid
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

from ..errors import CopyVerificationError, FileMoveError
from ..utils.path_utils import strip_file_segment
from .directory_registry import DirectoryRegistry

logger = logging.getLogger(__name__)

# 占用/权限类错误，按退避策略重试
TRANSIENT_ERRNOS = frozenset({errno.EBUSY, errno.EACCES, errno.EPERM})

METHOD_SIMILARITY = "similarity"
METHOD_AI = "ai"
METHOD_DRY_RUN = "dry-run"


class MoveOutcome:
    """单个文件的移动结果"""

    def __init__(self, final_path: str, method: str, skipped: bool = False):
        self.final_path = final_path
        self.method = method
        self.skipped = skipped

    def __repr__(self) -> str:
        return f"MoveOutcome(final_path={self.final_path!r}, method={self.method!r}, skipped={self.skipped})"


def is_transient_error(error: OSError) -> bool:
    return error.errno in TRANSIENT_ERRNOS or isinstance(error, PermissionError)


class FileMover:
    """带冲突处理、跨设备回退和占用重试的文件移动器"""

    def __init__(self, max_retries: int = 3, retry_delay_base: float = 1.0, dry_run: bool = False,
                 registry: Optional[DirectoryRegistry] = None,
                 sleep: Callable[[float], None] = time.sleep):
        """
        Args:
            max_retries: 占用类错误的最大尝试次数
            retry_delay_base: 退避基数（秒），第 n 次重试前等待 base * 2^(n-1)
            dry_run: 试运行，只记录不移动
            registry: 已知目录登记表，创建目录后登记
            sleep: 等待函数，测试时可替换
        """
        self.max_retries = max(1, max_retries)
        self.retry_delay_base = retry_delay_base
        self.dry_run = dry_run
        self.registry = registry
        self._sleep = sleep

    # ------------------------------------------------------------------
    # 对外接口
    # ------------------------------------------------------------------

    def move_file(self, source: str, target_dir: str, method: str = METHOD_AI) -> MoveOutcome:
        """
        移动文件到目标目录

        Args:
            source: 源文件路径
            target_dir: 目标目录（绝对路径）
            method: 分类方式，写入结果中

        Returns:
            MoveOutcome

        Raises:
            FileMoveError: 重试耗尽或跨设备复制校验失败
            OSError: 其他无法处理的文件系统错误
        """
        file_name = os.path.basename(source)
        if self.registry is not None and os.path.abspath(target_dir) == self.registry.root_dir:
            # 分类库根目录本身不剥离，否则会移出分类库
            normalized_target_dir = target_dir
        else:
            normalized_target_dir = strip_file_segment(target_dir, file_name)
        desired_path = os.path.join(normalized_target_dir, file_name)

        if self.dry_run:
            logger.info(f"[dry-run] {source} -> {target_dir}")
            self._record_dir(normalized_target_dir)
            return MoveOutcome(final_path=desired_path, method=METHOD_DRY_RUN)

        if not os.path.lexists(source):
            logger.warning(f"源文件不存在，跳过移动: {source}")
            return MoveOutcome(final_path=source, method=method, skipped=True)

        self.ensure_dir(normalized_target_dir)
        self._record_dir(normalized_target_dir)
        return self._attempt_move(source, normalized_target_dir, desired_path, method)

    def ensure_dir(self, directory: str) -> bool:
        """确保目录存在，返回是否新建"""
        if os.path.isdir(directory):
            return False
        os.makedirs(directory, exist_ok=True)
        logger.info(f"创建目录: {directory}")
        return True

    # ------------------------------------------------------------------
    # 移动流程
    # ------------------------------------------------------------------

    def _attempt_move(self, source: str, target_dir: str, desired_path: str, method: str) -> MoveOutcome:
        """rename 优先，冲突换名、跨设备回退、占用退避重试、源文件消失视为已处理"""
        target_path = desired_path
        attempt = 1

        while True:
            try:
                self._rename_no_replace(source, target_path)
                logger.info(f"文件已移动: {source} -> {target_path}")
                return MoveOutcome(final_path=target_path, method=method)
            except FileExistsError:
                new_path = self.generate_unique_target_path(target_dir, source)
                logger.info(f"目标文件已存在，重命名为: {os.path.basename(new_path)}")
                target_path = new_path
                continue
            except FileNotFoundError:
                if not os.path.lexists(source):
                    logger.warning(f"源文件不存在，跳过移动: {source}")
                    return MoveOutcome(final_path=source, method=method, skipped=True)
                raise
            except OSError as e:
                if e.errno == errno.EXDEV:
                    final_path = self._copy_then_unlink(source, target_dir, target_path)
                    if final_path is None:
                        return MoveOutcome(final_path=source, method=method, skipped=True)
                    logger.info(f"文件已移动（跨设备回退复制）: {source} -> {final_path}")
                    return MoveOutcome(final_path=final_path, method=method)
                if is_transient_error(e):
                    if attempt < self.max_retries:
                        self._backoff(attempt, f"文件被占用，等待重试: {source}", e)
                        attempt += 1
                        continue
                    logger.error(f"文件移动失败，已达到最大重试次数 {self.max_retries}: {source} ({e})")
                    raise FileMoveError(f"文件移动失败，已重试 {self.max_retries} 次: {e}", source=source, cause=e) from e
                logger.error(f"文件移动失败: {source} -> {target_path} ({e})")
                raise

    def _copy_then_unlink(self, source: str, target_dir: str, desired_path: str) -> Optional[str]:
        """
        跨设备回退：复制到目标目录下的临时文件 → 校验 → 原子重命名为最终名 → 删除源文件

        Returns:
            最终路径；复制前源文件已消失时返回 None
        """
        src = Path(source)
        unique_suffix = f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:6]}"
        temp_path = os.path.join(target_dir, f"{src.stem}.tmp-{unique_suffix}{src.suffix}")

        try:
            shutil.copy2(source, temp_path)
        except FileNotFoundError:
            self._remove_quietly(temp_path)
            if not os.path.lexists(source):
                logger.warning(f"源文件不存在，跳过移动: {source}")
                return None
            raise
        except Exception:
            self._remove_quietly(temp_path)
            raise

        try:
            source_size = os.stat(source).st_size
            temp_size = os.stat(temp_path).st_size
        except FileNotFoundError:
            self._remove_quietly(temp_path)
            if not os.path.lexists(source):
                logger.warning(f"源文件在复制后消失，跳过移动: {source}")
                return None
            raise
        except Exception:
            self._remove_quietly(temp_path)
            raise

        if source_size != temp_size:
            self._remove_quietly(temp_path)
            logger.error(f"复制校验失败，大小不一致: {source} ({source_size} != {temp_size})")
            raise CopyVerificationError(
                f"copy-verify-failed: size-mismatch ({source_size} != {temp_size})", source=source)

        final_path = desired_path
        if os.path.lexists(final_path):
            final_path = self.generate_unique_target_path(target_dir, source)

        attempt = 1
        while True:
            try:
                self._rename_no_replace(temp_path, final_path)
                break
            except FileExistsError:
                final_path = self.generate_unique_target_path(target_dir, source)
            except OSError as e:
                if is_transient_error(e) and attempt < self.max_retries:
                    self._backoff(attempt, f"临时文件被占用，等待重命名重试: {temp_path}", e)
                    attempt += 1
                    continue
                self._remove_quietly(temp_path)
                if is_transient_error(e):
                    raise FileMoveError(
                        f"临时文件重命名失败，已重试 {self.max_retries} 次: {e}", source=source, cause=e) from e
                raise

        self._unlink_with_retry(source, final_path)
        return final_path

    def _unlink_with_retry(self, source: str, final_path: str) -> None:
        """删除已复制完成的源文件，占用类错误按退避策略重试"""
        attempt = 1
        while True:
            try:
                os.unlink(source)
                return
            except FileNotFoundError:
                return
            except OSError as e:
                if is_transient_error(e):
                    if attempt < self.max_retries:
                        self._backoff(attempt, f"源文件占用，等待删除重试: {source} (已复制到 {final_path})", e)
                        attempt += 1
                        continue
                    raise FileMoveError(
                        f"源文件删除失败，目标已存在副本 {final_path}: {e}", source=source, cause=e) from e
                raise

    # ------------------------------------------------------------------
    # 辅助方法
    # ------------------------------------------------------------------

    def generate_unique_target_path(self, target_dir: str, original_file_path: str) -> str:
        """生成不与现有文件冲突的目标路径：name_时间戳.ext，仍冲突时 name_时间戳_序号.ext"""
        original = Path(original_file_path)
        timestamp = datetime.now().strftime('%Y-%m-%dT%H-%M-%S')
        candidate = os.path.join(target_dir, f"{original.stem}_{timestamp}{original.suffix}")
        if not os.path.lexists(candidate):
            return candidate
        counter = 1
        while True:
            candidate = os.path.join(target_dir, f"{original.stem}_{timestamp}_{counter}{original.suffix}")
            if not os.path.lexists(candidate):
                return candidate
            counter += 1

    def _rename_no_replace(self, source: str, target: str) -> None:
        """
        重命名但不覆盖已有文件

        POSIX 的 rename 会静默覆盖目标，这里先检查目标是否存在。
        检查与重命名之间仍有极短的竞争窗口。
        """
        if os.path.lexists(target):
            raise FileExistsError(errno.EEXIST, os.strerror(errno.EEXIST), target)
        os.rename(source, target)

    def _backoff(self, attempt: int, message: str, error: OSError) -> None:
        delay = self.retry_delay_base * (2 ** (attempt - 1))
        logger.warning(f"{message} (第{attempt}/{self.max_retries}次, 等待{delay:.2f}秒): {error}")
        self._sleep(delay)

    def _record_dir(self, directory: str) -> None:
        if self.registry is not None:
            self.registry.record_if_new(directory)

    @staticmethod
    def _remove_quietly(path: str) -> None:
        try:
            os.unlink(path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"清理临时文件失败: {path}: {e}")
