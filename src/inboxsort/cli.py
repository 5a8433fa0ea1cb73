#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
命令行入口

默认按 schedule.interval_minutes 周期运行，--once 只运行一次后退出。
收到 SIGINT/SIGTERM 时在当前任务结束后退出，不会打断正在进行的文件移动。

退出码：
    0  正常结束
    1  --once 模式下任务失败或有文件处理失败；配置错误
    2  已有任务正在运行
"""

import argparse
import logging
import signal
import sys
import threading
from typing import List, Optional

from . import __version__
from .config import DEFAULT_CONFIG_FILE, AppConfig, load_config, write_default_config
from .core.run_lock import RunLock
from .core.run_orchestrator import RunOrchestrator, RunReport
from .errors import ConfigError, InboxSortError, RunLockedError
from .utils.log_setup import setup_logging, shutdown_logging

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_LOCKED = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="inboxsort",
        description="待分类文件自动归档工具",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
使用示例:
    inboxsort --init-config              # 生成默认配置文件
    inboxsort --once                     # 运行一次
    inboxsort --once --dry-run           # 试运行，只输出计划不移动文件
    inboxsort --check-ai                 # 测试AI模型连接
    inboxsort                            # 按配置的间隔周期运行
        """
    )
    parser.add_argument("--config", "-c", default=DEFAULT_CONFIG_FILE,
                        help=f"配置文件路径 (默认: {DEFAULT_CONFIG_FILE})")
    parser.add_argument("--dry-run", "-d", action="store_true",
                        help="试运行模式，不移动文件也不创建目录")
    parser.add_argument("--once", action="store_true",
                        help="只运行一次后退出")
    parser.add_argument("--init-config", action="store_true",
                        help="写出默认配置文件后退出")
    parser.add_argument("--check-ai", action="store_true",
                        help="测试所有已启用AI模型的连接后退出")
    parser.add_argument("--log-level", choices=["debug", "info", "warning", "error"],
                        help="覆盖配置中的日志级别")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def run_single(config: AppConfig) -> Optional[RunReport]:
    """
    加锁后执行一次分类任务

    Returns:
        RunReport；扫描失败时返回 None

    Raises:
        RunLockedError: 已有任务正在运行
    """
    lock = RunLock(config.log_dir or ".", config.lock_stale_after_seconds) if config.lock_enabled else None
    if lock:
        lock.acquire()
    try:
        orchestrator = RunOrchestrator.from_config(config)
        return orchestrator.run_once()
    except InboxSortError as e:
        logger.error(f"分类任务失败: {e}")
        return None
    finally:
        if lock:
            lock.release()


def check_ai(config: AppConfig) -> int:
    from .ai.client_manager import AIClientManager

    manager = AIClientManager(config.models, config.ai_max_retries_per_model, config.ai_timeout)
    results = manager.test_all_connections()
    all_ok = bool(results)
    for name, result in results.items():
        if result.get('success'):
            logger.info(f"模型连接正常: {name} (响应时间 {result.get('response_time')}s)")
        else:
            all_ok = False
            logger.error(f"模型连接失败: {name} - {result.get('error')}")
    if not results:
        logger.error("没有已启用的AI模型")
    return EXIT_OK if all_ok else EXIT_FAILED


def run_periodic(config: AppConfig, stop_event: threading.Event) -> int:
    """周期运行，直到 stop_event 被设置"""
    interval = max(config.interval_minutes, 0) * 60
    logger.info(f"定时模式启动，每 {config.interval_minutes:g} 分钟运行一次")
    while not stop_event.is_set():
        try:
            run_single(config)
        except RunLockedError as e:
            logger.warning(f"跳过本次运行: {e}")
        if stop_event.wait(interval):
            break
    logger.info("定时模式已停止")
    return EXIT_OK


def _install_signal_handlers(stop_event: threading.Event) -> None:
    def handle_signal(signum, frame):
        logger.info(f"收到信号 {signum}，当前任务结束后退出")
        stop_event.set()

    signal.signal(signal.SIGINT, handle_signal)
    if hasattr(signal, "SIGTERM"):
        signal.signal(signal.SIGTERM, handle_signal)


def main(argv: Optional[List[str]] = None) -> int:
    """主函数"""
    args = build_parser().parse_args(argv)

    if args.init_config:
        setup_logging(args.log_level or "info")
        try:
            path = write_default_config(args.config)
        except ConfigError as e:
            logger.error(str(e))
            return EXIT_FAILED
        print(f"已生成配置文件: {path}")
        return EXIT_OK

    try:
        config = load_config(args.config, dry_run=args.dry_run, run_once=args.once)
    except ConfigError as e:
        setup_logging(args.log_level or "info")
        logger.error(f"配置无效: {e}")
        return EXIT_FAILED

    setup_logging(args.log_level or config.log_level, config.log_dir)
    try:
        if args.check_ai:
            return check_ai(config)

        if config.run_once:
            try:
                report = run_single(config)
            except RunLockedError as e:
                logger.error(str(e))
                return EXIT_LOCKED
            if report is None or not report.succeeded:
                return EXIT_FAILED
            return EXIT_OK

        stop_event = threading.Event()
        _install_signal_handlers(stop_event)
        return run_periodic(config, stop_event)
    finally:
        shutdown_logging()


if __name__ == "__main__":
    sys.exit(main())
