#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
文件描述提取

为AI分类提供一句简短的文件内容描述：
1. 文本文件：读取前几行非空内容（JSON优先取 name/title/description 字段）
2. PDF：读取文档信息中的标题、作者、主题
3. Word(.docx)：读取文档核心属性
4. 其他类型或读取失败：返回空字符串，由AI根据文件名推断

任何异常都不会抛给调用方。
"""

import json
import logging
import os
import re
from pathlib import Path
from typing import List

from PyPDF2 import PdfReader
from docx import Document

logger = logging.getLogger(__name__)

MAX_PREVIEW_LINES = 3
MAX_PREVIEW_CHARS = 300
MAX_DESCRIPTION_CHARS = 200
MAX_FILE_SIZE = 2 * 1024 * 1024 * 1024  # 2GB
SAMPLE_SIZE = 1024

TEXT_FILE_EXTENSIONS = {
    ".txt", ".log", ".md", ".json", ".xml", ".html", ".htm", ".css", ".js", ".ts",
    ".py", ".java", ".c", ".cpp", ".h", ".hpp", ".cs", ".php", ".rb", ".go", ".rs",
    ".kt", ".swift", ".sql", ".sh", ".bat", ".cmd", ".ps1", ".yaml", ".yml", ".ini",
    ".conf", ".config", ".properties", ".env", ".gitignore", ".dockerfile", ".csv",
    ".tsv", ".rtf", ".tex", ".latex",
}

# 二进制文件特征字节
BINARY_SIGNATURES = [
    b"\x89PNG",
    b"\xff\xd8\xff",  # JPEG
    b"GIF",
    b"%PDF",
    b"PK\x03\x04",  # ZIP / docx / xlsx
    b"Rar!",
    b"\x7fELF",
    b"MZ",  # PE/EXE
]

_JSON_FIELDS = ("name", "title", "description")


class FileInfoService:
    """文件描述提取服务"""

    def get_file_description(self, file_path: str) -> str:
        """
        获取文件描述信息

        Args:
            file_path: 文件绝对路径

        Returns:
            简短描述，无可用信息或出错时为空字符串
        """
        file_name = os.path.basename(file_path)
        try:
            reason = self._validate_file(file_path)
            if reason:
                logger.warning(f"文件预检查失败，不提取描述: {file_name} ({reason})")
                return ""

            ext = Path(file_path).suffix.lower()
            if ext == ".pdf":
                description = self._describe_pdf(file_path)
            elif ext == ".docx":
                description = self._describe_docx(file_path)
            elif self.is_text_file(file_path):
                description = self._describe_text(file_path)
            else:
                description = ""

            if description:
                logger.info(f"获取文件描述信息成功: {file_name} - {description}")
            else:
                logger.debug(f"文件无可用描述信息: {file_name}")
            return description
        except Exception as e:
            logger.error(f"读取文件信息失败: {file_name}: {e}")
            return ""

    # ------------------------------------------------------------------
    # 文本文件
    # ------------------------------------------------------------------

    def is_text_file(self, file_path: str) -> bool:
        """按扩展名判断，未知扩展名时采样前1024字节判断"""
        if Path(file_path).suffix.lower() in TEXT_FILE_EXTENSIONS:
            return True

        try:
            with open(file_path, 'rb') as f:
                sample = f.read(SAMPLE_SIZE)
        except OSError as e:
            logger.warning(f"文本文件检测失败，按二进制处理: {os.path.basename(file_path)}: {e}")
            return False

        if not sample:
            return False
        if any(sample.startswith(signature) for signature in BINARY_SIGNATURES):
            return False

        null_bytes = sample.count(0)
        non_printable = sum(1 for byte in sample if byte < 9 or 13 < byte < 32 or byte == 127)
        return null_bytes / len(sample) < 0.01 and non_printable / len(sample) < 0.3

    def read_text_lines(self, file_path: str, max_lines: int = MAX_PREVIEW_LINES,
                        max_chars: int = MAX_PREVIEW_CHARS) -> List[str]:
        """读取前几行非空文本，总长度不超过 max_chars"""
        result = []
        total_chars = 0
        with open(file_path, 'r', encoding='utf-8', errors='replace') as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                if total_chars + len(line) > max_chars:
                    remaining = max_chars - total_chars
                    if remaining <= 10:
                        break
                    line = line[:remaining] + "..."
                result.append(line)
                total_chars += len(line)
                if len(result) >= max_lines or total_chars >= max_chars:
                    break
        return result

    def _describe_text(self, file_path: str) -> str:
        if Path(file_path).suffix.lower() == ".json":
            value = self._describe_json(file_path)
            if value:
                return value

        lines = self.read_text_lines(file_path)
        preview = " ".join(lines)[:MAX_DESCRIPTION_CHARS].strip()
        if not preview:
            return ""
        return preview + ("..." if len(preview) >= MAX_DESCRIPTION_CHARS else "")

    def _describe_json(self, file_path: str) -> str:
        with open(file_path, 'r', encoding='utf-8', errors='replace') as f:
            content = f.read(8192)
        try:
            data = json.loads(content)
        except json.JSONDecodeError:
            # 文件被截断或格式不完整时用正则取关键字段
            for field in _JSON_FIELDS:
                match = re.search(r'"%s"\s*:\s*"([^"]+)"' % field, content)
                if match:
                    return match.group(1)
            return ""
        if isinstance(data, dict):
            for field in _JSON_FIELDS:
                value = data.get(field)
                if isinstance(value, str) and value.strip():
                    return value.strip()
        return ""

    # ------------------------------------------------------------------
    # 文档元数据
    # ------------------------------------------------------------------

    def _describe_pdf(self, file_path: str) -> str:
        with open(file_path, 'rb') as f:
            reader = PdfReader(f)
            metadata = reader.metadata
            if not metadata:
                return ""
            parts = [metadata.title, metadata.author, metadata.subject]
        return self._join_parts(parts)

    def _describe_docx(self, file_path: str) -> str:
        properties = Document(file_path).core_properties
        return self._join_parts([properties.title, properties.subject, properties.author])

    @staticmethod
    def _join_parts(parts) -> str:
        cleaned = [str(part).strip() for part in parts if part and str(part).strip()]
        return " ".join(cleaned)[:MAX_DESCRIPTION_CHARS]

    # ------------------------------------------------------------------
    # 预检查
    # ------------------------------------------------------------------

    @staticmethod
    def _validate_file(file_path: str) -> str:
        """返回不可读取的原因，可以读取时返回空字符串"""
        if not os.path.exists(file_path):
            return "文件不存在"
        if not os.path.isfile(file_path):
            return "不是有效的文件"
        size = os.path.getsize(file_path)
        if size == 0:
            return "文件为空"
        if size > MAX_FILE_SIZE:
            return f"文件过大 ({size / 1024 / 1024:.2f}MB)"
        if not os.access(file_path, os.R_OK):
            return "文件读取权限不足"
        return ""
