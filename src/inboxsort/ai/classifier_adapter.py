#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
AI批量分类适配器

把一批 (文件名, 简短描述) 连同当前已知目录发给AI，返回每个文件的建议目录。
保证返回结果与请求一一对应（按文件名关联）：
- AI 漏掉或写错名字的文件标记为未分类（path 为 None），并记录警告
- AI 返回空路径时使用默认目录（如 "未分类"）
- 整个批次调用失败时抛出 ClassificationError，由调用方跳过该批次
"""

import logging
from typing import Dict, List, NamedTuple, Optional, Sequence

from ..errors import AIClientError, ClassificationError
from ..utils.path_utils import sanitize_relative_dir

logger = logging.getLogger(__name__)

DEFAULT_BUCKET = "未分类"

BATCH_SYSTEM_PROMPT = """你是一个专业的文件批量分类专家，擅长根据文件信息智能分类。

## 核心能力
1. **语义理解**：深度理解文件名和描述的含义
2. **模式识别**：识别文件类型和分类规律
3. **一致性分类**：为相似文件保持一致的分类逻辑
4. **智能决策**：提供高质量的分类决策和理由

## 分类原则
- **一致性优先**：优先使用现有目录结构
- **语义分类**：基于文件实际用途而非仅仅文件名
- **层级合理**：保持适当的目录层级深度
- **中文命名**：使用简洁直观的中文目录名

## 分类策略
- 安装包按软件类型分类（开发工具、效率工具、系统工具等）
- 文档按内容性质分类（技术文档、工作文档、个人资料等）
- 媒体文件按格式和用途分类
- 压缩包按内容推测进行分类

## 决策流程
1. 查看现有目录列表
2. 判断文件类型和用途
3. 寻找最合适的现有目录
4. 如没有合适的现有目录则创建新目录

directory_path 只填写相对分类库根目录的目录路径，不要包含文件名。
批量处理时要保持分类的一致性和逻辑性。"""


class ClassificationRequest(NamedTuple):
    file_name: str
    description: str = ""


class ClassificationResult:
    """单个文件的分类结果，path 为 None 表示AI未给出该文件的结果"""

    def __init__(self, file_name: str, path: Optional[str], confidence: Optional[float] = None,
                 reasoning: Optional[str] = None, used_default: bool = False):
        self.file_name = file_name
        self.path = path
        self.confidence = confidence
        self.reasoning = reasoning
        self.used_default = used_default

    @property
    def classified(self) -> bool:
        return self.path is not None

    def __repr__(self) -> str:
        return f"ClassificationResult(file_name={self.file_name!r}, path={self.path!r})"


def build_user_prompt(items: Sequence[ClassificationRequest], known_dirs: Sequence[str]) -> str:
    """构建批量分类的上下文"""
    files_list = "\n".join(
        f"{index}. {item.file_name}" + (f" - {item.description}" if item.description else "")
        for index, item in enumerate(items, 1)
    )
    if known_dirs:
        dirs_text = "\n".join(f"  {directory}" for directory in known_dirs)
    else:
        dirs_text = "暂无，需要创建新目录"
    return f"现有目录结构:\n{dirs_text}\n待分类文件列表:\n{files_list}"


def _parse_confidence(value) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


class ClassifierAdapter:
    """AI批量分类适配器"""

    def __init__(self, ai_manager, default_bucket: str = DEFAULT_BUCKET):
        """
        Args:
            ai_manager: 提供 classify_with_priority(system_prompt, user_prompt) 的对象
            default_bucket: AI返回空路径时使用的目录
        """
        self.ai_manager = ai_manager
        self.default_bucket = sanitize_relative_dir(default_bucket) or DEFAULT_BUCKET

    def classify_batch(self, items: Sequence[ClassificationRequest],
                       known_dirs: Sequence[str]) -> List[ClassificationResult]:
        """
        批量分类

        Args:
            items: 本批次的待分类文件
            known_dirs: 当前已知目录

        Returns:
            与 items 顺序一致、一一对应的结果列表

        Raises:
            ClassificationError: AI调用失败或返回格式无法解析
        """
        if not items:
            return []

        logger.info(f"批量AI分类请求 - 文件数量: {len(items)}, 已知目录数量: {len(known_dirs)}")
        user_prompt = build_user_prompt(items, known_dirs)
        logger.debug(f"批量分类上下文:\n{user_prompt}")

        try:
            raw_items = self.ai_manager.classify_with_priority(BATCH_SYSTEM_PROMPT, user_prompt)
        except AIClientError as e:
            raise ClassificationError(f"批量分类失败: {e}") from e

        return self._correlate(items, raw_items)

    def _correlate(self, items: Sequence[ClassificationRequest], raw_items: List[dict]) -> List[ClassificationResult]:
        requested = {item.file_name for item in items}
        by_name: Dict[str, ClassificationResult] = {}

        for raw in raw_items:
            file_name = raw.get("file_name") or raw.get("fileName")
            if not isinstance(file_name, str) or file_name not in requested:
                logger.warning(f"AI返回了未请求的文件，已忽略: {file_name}")
                continue
            if file_name in by_name:
                logger.warning(f"AI重复返回同一文件，保留第一条: {file_name}")
                continue
            by_name[file_name] = self._to_result(file_name, raw)

        results = []
        for item in items:
            result = by_name.get(item.file_name)
            if result is None:
                logger.warning(f"AI未返回该文件的分类结果，标记为未分类: {item.file_name}")
                result = ClassificationResult(item.file_name, None)
            results.append(result)
        return results

    def _to_result(self, file_name: str, raw: dict) -> ClassificationResult:
        raw_path = raw.get("directory_path", raw.get("path"))
        path = sanitize_relative_dir(raw_path if isinstance(raw_path, str) else None)
        used_default = False
        if not path:
            logger.warning(f"AI返回空路径，使用默认目录 {self.default_bucket}: {file_name}")
            path = self.default_bucket
            used_default = True
        reasoning = raw.get("reasoning")
        return ClassificationResult(
            file_name=file_name,
            path=path,
            confidence=_parse_confidence(raw.get("confidence")),
            reasoning=reasoning if isinstance(reasoning, str) else None,
            used_default=used_default,
        )
