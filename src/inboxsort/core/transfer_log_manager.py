#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
归档记录管理器

每次真实运行生成一个JSON记录文件，逐条记录每个文件的处理结果：
源路径、最终路径、分类方式、是否成功、错误信息以及相似度/批次/AI理由等细节。
每记录一条就写回一次文件，进程中途退出时已处理的记录仍然保留。
"""

import json
import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class TransferLogManager:
    """归档记录管理器"""

    def __init__(self, log_directory: str):
        """
        Args:
            log_directory: 记录文件存储目录
        """
        self.log_directory = Path(log_directory)
        self.current_log_file: Optional[Path] = None

    def start_session(self, session_name: str = None) -> str:
        """
        开始一个新的会话，创建对应的记录文件

        Args:
            session_name: 会话名称，如果为None则使用时间戳

        Returns:
            记录文件路径
        """
        if session_name is None:
            session_name = f"organize_{datetime.now().strftime('%Y%m%d_%H%M%S')}"

        self.log_directory.mkdir(parents=True, exist_ok=True)
        log_file = self.log_directory / f"{session_name}.json"
        counter = 1
        while log_file.exists():
            log_file = self.log_directory / f"{session_name}_{counter}.json"
            counter += 1
        self.current_log_file = log_file

        initial_log = {
            "session_info": {
                "session_name": session_name,
                "start_time": datetime.now().isoformat(),
                "end_time": None,
                "total_operations": 0,
                "successful_operations": 0,
                "failed_operations": 0,
                "methods": {},
            },
            "operations": [],
        }
        self._write(initial_log)
        logger.info(f"开始归档会话: {self.current_log_file}")
        return str(self.current_log_file)

    def log_operation(self,
                      source_path: str,
                      target_path: Optional[str],
                      method: str,
                      success: bool = True,
                      error_message: str = None,
                      details: Dict[str, Any] = None) -> None:
        """
        记录单个文件的处理结果

        Args:
            source_path: 源文件路径
            target_path: 最终路径（失败时可为 None）
            method: 分类方式（similarity/ai）
            success: 是否成功
            error_message: 错误信息（如果失败）
            details: 附加信息（相似度、批次、AI理由等）
        """
        if not self.current_log_file:
            raise ValueError("请先调用 start_session() 开始会话")

        log_data = self._read()

        operation_record = {
            "operation_id": len(log_data["operations"]) + 1,
            "timestamp": datetime.now().isoformat(),
            "method": method,
            "source_path": source_path,
            "target_path": target_path,
            "success": success,
            "error_message": error_message,
        }
        if details:
            operation_record["details"] = details
        log_data["operations"].append(operation_record)

        session_info = log_data["session_info"]
        session_info["total_operations"] += 1
        if success:
            session_info["successful_operations"] += 1
            session_info["methods"][method] = session_info["methods"].get(method, 0) + 1
        else:
            session_info["failed_operations"] += 1

        self._write(log_data)

    def end_session(self) -> Dict[str, Any]:
        """
        结束当前会话

        Returns:
            会话统计信息
        """
        if not self.current_log_file:
            raise ValueError("没有活动的归档会话")

        log_data = self._read()
        log_data["session_info"]["end_time"] = datetime.now().isoformat()
        self._write(log_data)

        session_info = log_data["session_info"]
        logger.info(
            f"结束归档会话: {session_info['session_name']} - 总操作数: {session_info['total_operations']}, "
            f"成功: {session_info['successful_operations']}, 失败: {session_info['failed_operations']}"
        )
        self.current_log_file = None
        return session_info

    def _read(self) -> Dict[str, Any]:
        with open(self.current_log_file, 'r', encoding='utf-8') as f:
            return json.load(f)

    def _write(self, log_data: Dict[str, Any]) -> None:
        # 先写临时文件再替换，避免中途退出留下半个JSON
        temp_file = self.current_log_file.with_suffix('.json.tmp')
        with open(temp_file, 'w', encoding='utf-8') as f:
            json.dump(log_data, f, ensure_ascii=False, indent=2)
        os.replace(temp_file, self.current_log_file)
