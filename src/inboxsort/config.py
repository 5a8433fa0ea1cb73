#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
配置加载

从 config.yaml 读取配置，按分区与默认配置合并，再应用环境变量和命令行覆盖。
配置只在任务开始时读取一次，不支持热加载。

配置文件示例见 write_default_config()。
"""

import copy
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "config.yaml"

DEFAULT_CONFIG: Dict[str, Dict[str, Any]] = {
    "openai": {
        "api_key": "",
        "model": "gpt-5-nano",
        "base_url": "",
    },
    "ai": {
        # 为空时根据 openai 分区生成一个 OpenAI 兼容模型
        "models": [],
        "batch_size": 5,
        "batch_delay": 1.0,
        "max_retries_per_model": 2,
        "timeout": 60,
    },
    "directories": {
        "root_dir": "./分类库",
        "incoming_dir": "./待分类",
    },
    "schedule": {
        "interval_minutes": 60,
    },
    "logging": {
        "level": "info",
        "dir": "./logs",
    },
    "scan": {
        "max_depth": 3,
        "similarity_threshold": 0.65,
    },
    "file_operations": {
        "max_retries": 3,
        # 秒
        "retry_delay_base": 1.0,
    },
    "classification": {
        "default_bucket": "未分类",
    },
    "lock": {
        "enabled": True,
        "stale_after_seconds": 6 * 3600,
    },
}

# 环境变量 -> (分区, 键)
ENV_OVERRIDES = {
    "INBOXSORT_OPENAI_API_KEY": ("openai", "api_key"),
    "INBOXSORT_OPENAI_BASE_URL": ("openai", "base_url"),
    "INBOXSORT_OPENAI_MODEL": ("openai", "model"),
    "INBOXSORT_ROOT_DIR": ("directories", "root_dir"),
    "INBOXSORT_INCOMING_DIR": ("directories", "incoming_dir"),
    "INBOXSORT_LOG_LEVEL": ("logging", "level"),
}


def _convert(data: Dict[str, Dict[str, Any]], section: str, key: str, cast):
    value = data[section][key]
    try:
        return cast(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{section}.{key} 的值无效: {value!r}") from e


class ModelConfig:
    """AI模型配置"""

    def __init__(self, id: str, name: str, base_url: str, model_name: str, model_type: str,
                 api_key: str = "", priority: int = 1, enabled: bool = True):
        self.id = id
        self.name = name
        self.base_url = base_url
        self.model_name = model_name
        self.model_type = model_type
        self.api_key = api_key
        self.priority = priority
        self.enabled = enabled

    @classmethod
    def from_dict(cls, data: Dict[str, Any], index: int = 0) -> "ModelConfig":
        model_type = data.get('model_type', '')
        if not model_type:
            # 根据base_url推断模型类型
            base_url = str(data.get('base_url', '')).lower()
            if ':11434' in base_url or 'ollama' in str(data.get('name', '')).lower():
                model_type = 'ollama'
            else:
                model_type = 'openai_compatible'
        model_name = data.get('model_name', '')
        return cls(
            id=data.get('id') or f"model-{index + 1}",
            name=data.get('name') or model_name or f"model-{index + 1}",
            base_url=data.get('base_url', ''),
            model_name=model_name,
            model_type=model_type,
            api_key=data.get('api_key', ''),
            priority=int(data.get('priority', index + 1)),
            enabled=bool(data.get('enabled', True)),
        )

    def __repr__(self) -> str:
        return f"ModelConfig(id={self.id!r}, type={self.model_type!r}, model={self.model_name!r})"


class AppConfig:
    """运行配置（只读视图）"""

    def __init__(self, data: Dict[str, Dict[str, Any]], dry_run: bool = False, run_once: bool = False,
                 config_path: Optional[str] = None):
        self.raw = data
        self.config_path = config_path

        self.openai_api_key = data["openai"]["api_key"]
        self.openai_model = data["openai"]["model"]
        self.openai_base_url = data["openai"]["base_url"]

        self.root_dir = str(data["directories"]["root_dir"])
        self.incoming_dir = str(data["directories"]["incoming_dir"])

        self.interval_minutes = _convert(data, "schedule", "interval_minutes", float)

        self.log_level = str(data["logging"]["level"])
        self.log_dir = data["logging"]["dir"]

        self.max_scan_depth = _convert(data, "scan", "max_depth", int)
        self.similarity_threshold = _convert(data, "scan", "similarity_threshold", float)

        self.ai_batch_size = _convert(data, "ai", "batch_size", int)
        self.ai_batch_delay = _convert(data, "ai", "batch_delay", float)
        self.ai_max_retries_per_model = _convert(data, "ai", "max_retries_per_model", int)
        self.ai_timeout = _convert(data, "ai", "timeout", float)

        self.file_max_retries = _convert(data, "file_operations", "max_retries", int)
        self.file_retry_delay_base = _convert(data, "file_operations", "retry_delay_base", float)

        self.default_bucket = str(data["classification"]["default_bucket"])

        self.lock_enabled = bool(data["lock"]["enabled"])
        self.lock_stale_after_seconds = _convert(data, "lock", "stale_after_seconds", float)

        self.dry_run = dry_run
        self.run_once = run_once

        self._validate()
        self.models = self._build_models(data["ai"].get("models") or [])

    def _validate(self) -> None:
        if self.ai_batch_size < 1:
            raise ConfigError(f"ai.batch_size 必须大于0: {self.ai_batch_size}")
        if self.max_scan_depth < 0:
            raise ConfigError(f"scan.max_depth 不能为负数: {self.max_scan_depth}")
        if self.file_max_retries < 1:
            raise ConfigError(f"file_operations.max_retries 必须大于0: {self.file_max_retries}")
        if not 0 <= self.similarity_threshold <= 1:
            raise ConfigError(f"scan.similarity_threshold 必须在0到1之间: {self.similarity_threshold}")

    def _build_models(self, model_dicts: List[Dict[str, Any]]) -> List[ModelConfig]:
        if not isinstance(model_dicts, list):
            raise ConfigError(f"ai.models 必须是列表: {model_dicts!r}")
        models = []
        for index, item in enumerate(model_dicts):
            if not isinstance(item, dict):
                raise ConfigError(f"ai.models 第{index + 1}项必须是映射: {item!r}")
            try:
                models.append(ModelConfig.from_dict(item, index))
            except (TypeError, ValueError) as e:
                raise ConfigError(f"ai.models 第{index + 1}项无效: {e}") from e
        if not models:
            models.append(ModelConfig(
                id='openai',
                name='OpenAI兼容模型',
                base_url=self.openai_base_url,
                model_name=self.openai_model,
                model_type='openai_compatible',
                api_key=self.openai_api_key,
                priority=1,
            ))
        return models


def merge_config(defaults: Dict[str, Dict[str, Any]], loaded: Optional[Dict[str, Any]]) -> Dict[str, Dict[str, Any]]:
    """按分区浅合并：文件中出现的分区覆盖默认分区里的同名键"""
    merged = copy.deepcopy(defaults)
    if not loaded:
        return merged
    if not isinstance(loaded, dict):
        raise ConfigError("配置文件顶层必须是映射")
    for section, values in loaded.items():
        if section not in merged:
            logger.warning(f"忽略未知配置分区: {section}")
            continue
        if values is None:
            continue
        if not isinstance(values, dict):
            raise ConfigError(f"配置分区 {section} 必须是映射")
        merged[section].update(values)
    return merged


def _apply_env_overrides(data: Dict[str, Dict[str, Any]]) -> Dict[str, Dict[str, Any]]:
    updated = copy.deepcopy(data)
    for env_key, (section, key) in ENV_OVERRIDES.items():
        value = os.environ.get(env_key)
        if value:
            updated[section][key] = value
    if not updated["openai"]["api_key"] and os.environ.get("OPENAI_API_KEY"):
        updated["openai"]["api_key"] = os.environ["OPENAI_API_KEY"]
    return updated


def _read_config_file(config_path: Path) -> Optional[Dict[str, Any]]:
    if not config_path.exists():
        logger.warning(f"配置文件 {config_path} 不存在，使用默认配置")
        return None
    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            return yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        logger.error(f"加载配置文件失败: {e}")
        logger.warning("使用默认配置")
        return None


def load_config(config_path: Optional[str] = None, dry_run: bool = False, run_once: bool = False) -> AppConfig:
    """
    加载配置

    Args:
        config_path: 配置文件路径，默认为当前目录下的 config.yaml
        dry_run: 命令行 --dry-run
        run_once: 命令行 --once

    Returns:
        AppConfig
    """
    path = Path(config_path) if config_path else Path.cwd() / DEFAULT_CONFIG_FILE
    loaded = _read_config_file(path)
    try:
        merged = merge_config(DEFAULT_CONFIG, loaded)
    except ConfigError as e:
        logger.error(f"配置文件格式错误: {e}，使用默认配置")
        merged = copy.deepcopy(DEFAULT_CONFIG)
    merged = _apply_env_overrides(merged)
    return AppConfig(merged, dry_run=dry_run, run_once=run_once, config_path=str(path))


def write_default_config(config_path: str) -> Path:
    """写出一份默认配置文件，已存在时不覆盖"""
    path = Path(config_path)
    if path.exists():
        raise ConfigError(f"配置文件已存在: {path}")
    path.parent.mkdir(parents=True, exist_ok=True)
    header = (
        "# inboxsort 配置文件\n"
        "# ai.models 为空时使用 openai 分区的配置；model_type 可选 openai_compatible / ollama\n"
        "# retry_delay_base 单位为秒\n"
    )
    body = yaml.safe_dump(DEFAULT_CONFIG, allow_unicode=True, sort_keys=False)
    path.write_text(header + body, encoding='utf-8')
    logger.info(f"已写入默认配置: {path}")
    return path
