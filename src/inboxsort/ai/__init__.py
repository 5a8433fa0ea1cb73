#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
AI模块

包含AI模型客户端管理和批量分类适配。
"""

from .client_manager import AIClient, AIClientManager, OllamaClient, OpenAICompatibleClient
from .classifier_adapter import ClassificationRequest, ClassificationResult, ClassifierAdapter

__all__ = [
    "AIClient",
    "AIClientManager",
    "OllamaClient",
    "OpenAICompatibleClient",
    "ClassificationRequest",
    "ClassificationResult",
    "ClassifierAdapter",
]
