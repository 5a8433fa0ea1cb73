#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
分类任务编排

一次完整的分类任务依次经过：
    扫描 → 相似度匹配 → 移动相似文件 → 分批 → AI批量分类 → 移动AI结果 → 汇总

- 单个文件移动失败只记录错误，不影响其他文件
- 某个批次AI调用失败只影响该批次，继续处理下一批次
- 第 k+1 批次的已知目录在第 k 批次的移动全部完成后才生成
- 只有扫描阶段失败会中止整个任务
"""

import logging
import os
import time
from typing import Any, Callable, Dict, List, Optional, Sequence

from ..ai.classifier_adapter import ClassificationRequest, ClassifierAdapter
from ..errors import ClassificationError
from .directory_registry import DirectoryRegistry
from .file_info import FileInfoService
from .file_mover import METHOD_AI, METHOD_DRY_RUN, METHOD_SIMILARITY, FileMover, MoveOutcome
from .similarity_matcher import find_best_match, is_hit
from .transfer_log_manager import TransferLogManager
from .tree_scanner import FileEntry, list_incoming_files, scan_directories, scan_files

logger = logging.getLogger(__name__)

STATUS_MOVED = "moved"
STATUS_SKIPPED = "skipped"
STATUS_DRY_RUN = "dry-run"
STATUS_FAILED = "failed"


class FileRecord:
    """单个待分类文件在本次任务中的处理结果"""

    def __init__(self, entry: FileEntry, method: str, status: str, final_path: Optional[str] = None,
                 error: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        self.entry = entry
        self.method = method
        self.status = status
        self.final_path = final_path
        self.error = error
        self.details = details or {}

    @property
    def failed(self) -> bool:
        return self.status == STATUS_FAILED


class RunReport:
    """一次任务的汇总"""

    def __init__(self, dry_run: bool = False):
        self.dry_run = dry_run
        self.records: List[FileRecord] = []
        self.total_files = 0
        self.transfer_log_file: Optional[str] = None
        self.start_time = time.time()
        self.end_time: Optional[float] = None

    def add(self, record: FileRecord) -> None:
        self.records.append(record)

    def _count(self, method: str = None, status: str = None) -> int:
        return sum(
            1 for record in self.records
            if (method is None or record.method == method) and (status is None or record.status == status)
        )

    @property
    def similarity_count(self) -> int:
        return sum(1 for r in self.records if r.method == METHOD_SIMILARITY and not r.failed)

    @property
    def ai_count(self) -> int:
        return sum(1 for r in self.records if r.method == METHOD_AI and not r.failed)

    @property
    def failed_count(self) -> int:
        return self._count(status=STATUS_FAILED)

    @property
    def skipped_count(self) -> int:
        return self._count(status=STATUS_SKIPPED)

    @property
    def succeeded(self) -> bool:
        return self.failed_count == 0

    def summary(self) -> Dict[str, Any]:
        return {
            'total_files': self.total_files,
            'similarity': self.similarity_count,
            'ai': self.ai_count,
            'failed': self.failed_count,
            'skipped': self.skipped_count,
            'dry_run': self.dry_run,
            'transfer_log_file': self.transfer_log_file,
            'duration_seconds': round((self.end_time or time.time()) - self.start_time, 3),
        }


def chunk_list(items: Sequence, chunk_size: int) -> List[list]:
    """分批处理工具函数"""
    return [list(items[i:i + chunk_size]) for i in range(0, len(items), chunk_size)]


class RunOrchestrator:
    """分类任务编排器"""

    def __init__(self, root_dir: str, incoming_dir: str, classifier: ClassifierAdapter,
                 mover: FileMover = None, file_info: FileInfoService = None,
                 transfer_log: TransferLogManager = None, max_scan_depth: int = 3,
                 similarity_threshold: float = 0.65, batch_size: int = 5, batch_delay: float = 1.0,
                 dry_run: bool = False, sleep: Callable[[float], None] = time.sleep):
        self.root_dir = os.path.abspath(root_dir)
        self.incoming_dir = os.path.abspath(incoming_dir)
        self.classifier = classifier
        self.registry = DirectoryRegistry(self.root_dir)
        self.mover = mover or FileMover(dry_run=dry_run)
        self.mover.registry = self.registry
        self.mover.dry_run = dry_run
        self.file_info = file_info or FileInfoService()
        self.transfer_log = transfer_log
        self.max_scan_depth = max_scan_depth
        self.similarity_threshold = similarity_threshold
        self.batch_size = max(1, batch_size)
        self.batch_delay = batch_delay
        self.dry_run = dry_run
        self._sleep = sleep

    @classmethod
    def from_config(cls, config) -> "RunOrchestrator":
        """根据 AppConfig 组装编排器及其依赖"""
        from ..ai.client_manager import AIClientManager

        ai_manager = AIClientManager(
            config.models,
            max_retries_per_model=config.ai_max_retries_per_model,
            timeout=config.ai_timeout,
        )
        mover = FileMover(
            max_retries=config.file_max_retries,
            retry_delay_base=config.file_retry_delay_base,
            dry_run=config.dry_run,
        )
        transfer_log = None
        if config.log_dir:
            transfer_log = TransferLogManager(os.path.join(config.log_dir, "transfer_logs"))
        return cls(
            root_dir=config.root_dir,
            incoming_dir=config.incoming_dir,
            classifier=ClassifierAdapter(ai_manager, default_bucket=config.default_bucket),
            mover=mover,
            transfer_log=transfer_log,
            max_scan_depth=config.max_scan_depth,
            similarity_threshold=config.similarity_threshold,
            batch_size=config.ai_batch_size,
            batch_delay=config.ai_batch_delay,
            dry_run=config.dry_run,
        )

    # ------------------------------------------------------------------
    # 主流程
    # ------------------------------------------------------------------

    def run_once(self) -> RunReport:
        """
        执行一次完整的分类任务

        Returns:
            RunReport

        Raises:
            ScanError: 扫描分类库或待分类目录失败
        """
        report = RunReport(dry_run=self.dry_run)
        logger.info(f"开始分类任务...{'(dry-run)' if self.dry_run else ''}")

        # 扫描
        self.registry.initialize(scan_directories(self.root_dir, self.max_scan_depth))
        known_files = sorted(scan_files(self.root_dir, self.max_scan_depth))
        incoming = list_incoming_files(self.incoming_dir)
        report.total_files = len(incoming)

        if not incoming:
            logger.info("没有需要分类的文件")
            report.end_time = time.time()
            return report

        self._start_transfer_session(report)
        try:
            # 相似度匹配
            similarity_hits, need_ai = self._partition(incoming, known_files)

            # 移动相似文件
            for entry, match in similarity_hits:
                target_dir = os.path.normpath(os.path.join(self.root_dir, match.candidate_dir))
                details = {
                    'score': round(match.score, 4),
                    'similar_file': match.candidate_file,
                }
                self._move_and_record(report, entry, target_dir, METHOD_SIMILARITY, details)

            # 分批AI分类
            if need_ai:
                self._classify_in_batches(report, need_ai)
        finally:
            report.end_time = time.time()
            self._end_transfer_session()

        summary = report.summary()
        logger.info(
            f"分类任务完成 - 相似度匹配: {summary['similarity']} 个, AI分类: {summary['ai']} 个, "
            f"失败: {summary['failed']} 个, 跳过: {summary['skipped']} 个"
        )
        return report

    def _partition(self, incoming: List[FileEntry], known_files: List[str]):
        """按相似度把待分类文件分成直接归档和需要AI分类两组"""
        similarity_hits = []
        need_ai = []
        logger.info(f"开始相似度匹配，处理 {len(incoming)} 个文件")

        for entry in incoming:
            match = find_best_match(entry.name, known_files)
            if is_hit(match, self.similarity_threshold):
                similarity_hits.append((entry, match))
                logger.info(
                    f"找到相似文件，使用相似度分类: {entry.name} ~ {os.path.basename(match.candidate_file)} "
                    f"(相似度 {match.score:.4f}, 目录 {match.candidate_dir})"
                )
            else:
                if match.candidate_dir is not None and match.score > 0:
                    logger.info(
                        f"相似度不足，将使用 AI 分类: {entry.name} ~ {os.path.basename(match.candidate_file)} "
                        f"(相似度 {match.score:.4f} < {self.similarity_threshold})"
                    )
                description = self.file_info.get_file_description(entry.absolute_path)
                need_ai.append((entry, description))

        return similarity_hits, need_ai

    def _classify_in_batches(self, report: RunReport, need_ai: list) -> None:
        batches = chunk_list(need_ai, self.batch_size)
        logger.info(f"开始AI分批分类，总计 {len(need_ai)} 个文件，批次大小: {self.batch_size}")

        for batch_index, batch in enumerate(batches, 1):
            batch_label = f"{batch_index}/{len(batches)}"
            logger.info(f"处理第 {batch_label} 批次，包含 {len(batch)} 个文件")
            requests = [ClassificationRequest(entry.name, description) for entry, description in batch]

            try:
                # 已知目录在上一批次移动完成后才取快照
                results = self.classifier.classify_batch(requests, self.registry.snapshot())
            except ClassificationError as e:
                logger.error(f"第 {batch_label} 批次AI分类失败: {e}")
                self._fail_batch(report, batch, str(e), batch_label)
            except Exception as e:
                logger.exception(f"第 {batch_label} 批次AI分类出现未预期的错误: {e}")
                self._fail_batch(report, batch, str(e), batch_label)
            else:
                for (entry, _description), result in zip(batch, results):
                    details = {'batch': batch_label}
                    if not result.classified:
                        self._record_failure(report, entry, METHOD_AI, "AI未返回该文件的分类结果", details)
                        continue
                    details.update({
                        'suggested_path': result.path,
                        'confidence': result.confidence,
                        'reasoning': result.reasoning,
                        'default_bucket': result.used_default,
                    })
                    target_dir = os.path.normpath(os.path.join(self.root_dir, result.path))
                    self._move_and_record(report, entry, target_dir, METHOD_AI, details)

            # 批次间稍作延迟，避免API请求过于频繁
            if batch_index < len(batches) and self.batch_delay > 0:
                logger.info(f"批次间等待 {self.batch_delay} 秒...")
                self._sleep(self.batch_delay)

        processed = sum(1 for r in report.records if r.method == METHOD_AI and not r.failed)
        logger.info(f"AI分批分类完成，总计处理 {processed}/{len(need_ai)} 个文件")

    # ------------------------------------------------------------------
    # 记录
    # ------------------------------------------------------------------

    def _move_and_record(self, report: RunReport, entry: FileEntry, target_dir: str, method: str,
                         details: Dict[str, Any]) -> None:
        try:
            outcome: MoveOutcome = self.mover.move_file(entry.absolute_path, target_dir, method=method)
        except Exception as e:
            logger.error(f"文件移动失败 ({method}): {entry.name}: {e}")
            self._record_failure(report, entry, method, str(e), details)
            return

        if outcome.method == METHOD_DRY_RUN:
            status = STATUS_DRY_RUN
        elif outcome.skipped:
            status = STATUS_SKIPPED
        else:
            status = STATUS_MOVED

        report.add(FileRecord(entry, method, status, final_path=outcome.final_path, details=details))
        if status != STATUS_DRY_RUN:
            logger.info(f"文件已归档 ({method}): {entry.absolute_path} -> {outcome.final_path}")
            self._log_transfer(entry, outcome.final_path, method, True, None, details)

    def _record_failure(self, report: RunReport, entry: FileEntry, method: str, error: str,
                        details: Dict[str, Any]) -> None:
        report.add(FileRecord(entry, method, STATUS_FAILED, error=error, details=details))
        self._log_transfer(entry, None, method, False, error, details)

    def _fail_batch(self, report: RunReport, batch: list, error: str, batch_label: str) -> None:
        for entry, _description in batch:
            self._record_failure(report, entry, METHOD_AI, f"AI分类失败: {error}", {'batch': batch_label})

    def _start_transfer_session(self, report: RunReport) -> None:
        if self.dry_run or self.transfer_log is None:
            return
        try:
            report.transfer_log_file = self.transfer_log.start_session()
        except OSError as e:
            logger.warning(f"启动归档记录会话失败: {e}")
            report.transfer_log_file = None

    def _log_transfer(self, entry: FileEntry, target_path: Optional[str], method: str, success: bool,
                      error: Optional[str], details: Dict[str, Any]) -> None:
        if self.transfer_log is None or self.transfer_log.current_log_file is None:
            return
        try:
            self.transfer_log.log_operation(entry.absolute_path, target_path, method, success, error, details)
        except (OSError, ValueError) as e:
            logger.warning(f"写入归档记录失败: {e}")

    def _end_transfer_session(self) -> None:
        if self.transfer_log is None or self.transfer_log.current_log_file is None:
            return
        try:
            self.transfer_log.end_session()
        except (OSError, ValueError) as e:
            logger.warning(f"结束归档记录会话失败: {e}")
