#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
AI客户端管理器

功能：
- 根据配置的模型列表按优先级调用，失败时自动尝试下一个模型
- 支持 OpenAI 兼容接口（函数调用方式返回结构化结果）和本地 Ollama（JSON 输出）
- 每个模型单独重试
- 连接测试

对外只返回原始分类条目列表 [{"file_name", "directory_path", "reasoning", "confidence"}]，
条目与请求的对应关系由 classifier_adapter 负责校验。
"""

import json
import logging
import re
import time
from typing import Any, Callable, Dict, List, Optional

import ollama
import requests

from ..config import ModelConfig
from ..errors import AIClientError

logger = logging.getLogger(__name__)

TOOL_NAME = "classify_files_batch"

CLASSIFY_TOOL = {
    "type": "function",
    "function": {
        "name": TOOL_NAME,
        "description": "批量分类多个文件",
        "parameters": {
            "type": "object",
            "properties": {
                "classifications": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {
                            "file_name": {"type": "string", "description": "文件名"},
                            "directory_path": {"type": "string", "description": "分类目录路径"},
                            "reasoning": {"type": "string", "description": "分类理由"},
                            "confidence": {"type": "number", "description": "分类置信度(0-1)"},
                        },
                        "required": ["file_name", "directory_path", "reasoning"],
                    },
                },
            },
            "required": ["classifications"],
        },
    },
}

# Ollama 不支持函数调用时，在提示词末尾要求按此格式输出
JSON_OUTPUT_INSTRUCTION = (
    "请只输出一个JSON对象，不要任何解释，格式如下：\n"
    '{"classifications": [{"file_name": "文件名", "directory_path": "分类目录路径", '
    '"reasoning": "分类理由", "confidence": 0.9}]}'
)


def clean_ai_response(response: str) -> str:
    """清理AI响应中的思考过程和代码块标记"""
    if not response:
        return response
    response = re.sub(r'<think>.*?</think>', '', response, flags=re.DOTALL)
    response = response.replace('<think>', '').replace('</think>', '')
    response = re.sub(r'^```(?:json)?\s*|\s*```$', '', response.strip())
    return response.strip()


def extract_json_object(text: str) -> Optional[dict]:
    """从文本中取出第一个完整的JSON对象"""
    start = text.find("{")
    if start == -1:
        return None
    depth = 0
    for i in range(start, len(text)):
        if text[i] == "{":
            depth += 1
        elif text[i] == "}":
            depth -= 1
            if depth == 0:
                try:
                    return json.loads(text[start:i + 1])
                except json.JSONDecodeError:
                    return None
    return None


def _classifications_from_payload(payload: Any) -> List[Dict[str, Any]]:
    if isinstance(payload, list):
        items = payload
    elif isinstance(payload, dict):
        items = payload.get("classifications")
    else:
        items = None
    if not isinstance(items, list):
        raise AIClientError("AI返回结果缺少 classifications 列表")
    return [item for item in items if isinstance(item, dict)]


class AIClient:
    """AI客户端基类"""

    def __init__(self, config: ModelConfig, timeout: float = 60,
                 sleep: Callable[[float], None] = time.sleep):
        self.config = config
        self.timeout = timeout
        self.client = None
        self._sleep = sleep
        self._initialize_client()

    def _initialize_client(self):
        """初始化客户端"""
        raise NotImplementedError

    def request_classifications(self, system_prompt: str, user_prompt: str) -> List[Dict[str, Any]]:
        """发起一次分类请求"""
        raise NotImplementedError

    def test_connection(self) -> Dict[str, Any]:
        """测试连接"""
        raise NotImplementedError

    def classify_with_retry(self, system_prompt: str, user_prompt: str, max_retries: int = 2) -> List[Dict[str, Any]]:
        """分类请求，支持重试机制"""
        last_error = None
        for attempt in range(max_retries):
            try:
                logger.info(f"尝试使用模型 {self.config.name} (第{attempt + 1}次)")
                return self.request_classifications(system_prompt, user_prompt)
            except Exception as e:
                last_error = e
                logger.warning(f"模型 {self.config.name} 响应失败 (第{attempt + 1}次): {e}")
                if attempt < max_retries - 1:
                    self._sleep(1)

        error_msg = f"模型 {self.config.name} 所有重试都失败，最后错误: {last_error}"
        logger.error(error_msg)
        raise AIClientError(error_msg)


class OpenAICompatibleClient(AIClient):
    """OpenAI兼容模型客户端，使用函数调用返回结构化分类结果"""

    def _initialize_client(self):
        from openai import OpenAI
        try:
            self.client = OpenAI(
                api_key=self.config.api_key or "not-needed",
                base_url=self.config.base_url or None,
                timeout=self.timeout,
            )
        except Exception as e:
            raise AIClientError(f"初始化OpenAI兼容客户端失败: {e}") from e

    def request_classifications(self, system_prompt: str, user_prompt: str) -> List[Dict[str, Any]]:
        completion = self.client.chat.completions.create(
            model=self.config.model_name,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            tools=[CLASSIFY_TOOL],
            tool_choice={"type": "function", "function": {"name": TOOL_NAME}},
            temperature=0.1,
        )
        logger.debug(f"收到 AI 响应: id={getattr(completion, 'id', None)}, usage={getattr(completion, 'usage', None)}")

        if not completion.choices:
            raise AIClientError("OpenAI兼容模型返回无效响应格式")
        message = completion.choices[0].message

        for tool_call in message.tool_calls or []:
            function = getattr(tool_call, "function", None)
            if function is not None and function.name == TOOL_NAME:
                logger.debug(f"AI 工具调用返回: {function.arguments}")
                try:
                    payload = json.loads(function.arguments)
                except json.JSONDecodeError as e:
                    raise AIClientError(f"批量分类解析失败: {e}") from e
                return _classifications_from_payload(payload)

        # 部分兼容接口忽略 tool_choice，直接在正文里返回JSON
        content = clean_ai_response(message.content or "")
        payload = extract_json_object(content)
        if payload is None:
            raise AIClientError("AI批量分类失败：未返回有效结果")
        return _classifications_from_payload(payload)

    def test_connection(self) -> Dict[str, Any]:
        result = {'success': False, 'error': None, 'response_time': None}
        base_url = (self.config.base_url or "https://api.openai.com/v1").rstrip('/')
        start_time = time.time()
        try:
            headers = {'Authorization': f'Bearer {self.config.api_key}'} if self.config.api_key else {}
            response = requests.get(f"{base_url}/models", headers=headers, timeout=10)
            if response.status_code != 200:
                result['error'] = f"API请求失败，状态码: {response.status_code}"
                return result
            available_models = [m.get('id', '') for m in response.json().get('data', [])]
            if available_models and self.config.model_name not in available_models:
                result['error'] = f"模型 {self.config.model_name} 不存在，可用模型: {available_models[:3]}"
                return result
            result['success'] = True
            result['response_time'] = round(time.time() - start_time, 3)
        except requests.exceptions.ConnectionError:
            result['error'] = f"无法连接到OpenAI兼容接口: {base_url}"
        except requests.exceptions.Timeout:
            result['error'] = "连接超时，请检查服务是否正常运行"
        except (requests.exceptions.RequestException, ValueError) as e:
            result['error'] = f"连接失败: {e}"
        return result


class OllamaClient(AIClient):
    """Ollama模型客户端"""

    def _initialize_client(self):
        base_url = self.config.base_url or "http://localhost:11434"
        if not base_url.startswith(('http://', 'https://')):
            base_url = f"http://{base_url}"
        self.host = base_url.rstrip('/')
        try:
            self.client = ollama.Client(host=self.host, timeout=self.timeout)
        except Exception as e:
            raise AIClientError(f"初始化Ollama客户端失败: {e}") from e

    def request_classifications(self, system_prompt: str, user_prompt: str) -> List[Dict[str, Any]]:
        response = self.client.chat(
            model=self.config.model_name,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": f"{user_prompt}\n\n{JSON_OUTPUT_INSTRUCTION}"},
            ],
            format="json",
            options={"temperature": 0.1},
        )
        content = clean_ai_response(response["message"]["content"] or "")
        if not content:
            raise AIClientError("Ollama模型返回空内容")
        payload = extract_json_object(content)
        if payload is None:
            raise AIClientError(f"Ollama模型返回的不是JSON: {content[:200]}")
        return _classifications_from_payload(payload)

    def test_connection(self) -> Dict[str, Any]:
        result = {'success': False, 'error': None, 'response_time': None}
        start_time = time.time()
        try:
            response = requests.get(f"{self.host}/api/tags", timeout=10)
            if response.status_code != 200:
                result['error'] = f"API请求失败，状态码: {response.status_code}"
                return result
            available_models = [m.get('name', '') for m in response.json().get('models', [])]
            if self.config.model_name not in available_models:
                result['error'] = f"模型 {self.config.model_name} 不存在，可用模型: {available_models[:3]}"
                return result
            result['success'] = True
            result['response_time'] = round(time.time() - start_time, 3)
        except requests.exceptions.ConnectionError:
            result['error'] = "Failed to connect to Ollama. Please check that Ollama is downloaded, running and accessible. https://ollama.com/download"
        except requests.exceptions.Timeout:
            result['error'] = "连接超时，请检查Ollama服务是否正常运行"
        except (requests.exceptions.RequestException, ValueError) as e:
            result['error'] = f"连接失败: {e}"
        return result


CLIENT_TYPES = {
    'openai_compatible': OpenAICompatibleClient,
    'ollama': OllamaClient,
}


class AIClientManager:
    """AI客户端管理器，按优先级调用已启用的模型"""

    def __init__(self, models: List[ModelConfig], max_retries_per_model: int = 2, timeout: float = 60):
        self.models = models
        self.max_retries_per_model = max(1, max_retries_per_model)
        self.timeout = timeout
        self.clients: Dict[str, AIClient] = {}
        self._initialize_clients()

    def _initialize_clients(self):
        self.clients.clear()
        for model in self.get_enabled_models():
            client = self._create_client(model)
            if client:
                self.clients[model.id] = client
                logger.info(f"成功初始化客户端: {model.name} ({model.model_type})")
        if not self.clients:
            logger.warning("没有可用的AI模型，AI分类将无法工作")

    def _create_client(self, model: ModelConfig) -> Optional[AIClient]:
        """根据配置创建客户端"""
        client_class = CLIENT_TYPES.get(model.model_type)
        if client_class is None:
            logger.warning(f"未知的模型类型: {model.model_type}，尝试作为OpenAI兼容接口")
            client_class = OpenAICompatibleClient
        try:
            return client_class(model, timeout=self.timeout)
        except Exception as e:
            logger.error(f"创建客户端失败 {model.name}: {e}")
            return None

    def get_enabled_models(self) -> List[ModelConfig]:
        enabled = [model for model in self.models if model.enabled]
        enabled.sort(key=lambda m: m.priority)
        return enabled

    def has_available_models(self) -> bool:
        return len(self.clients) > 0

    def classify_with_priority(self, system_prompt: str, user_prompt: str) -> List[Dict[str, Any]]:
        """按优先级请求分类，失败时尝试下一个模型"""
        last_error = None
        for model in self.get_enabled_models():
            client = self.clients.get(model.id)
            if client is None:
                logger.warning(f"客户端未初始化，跳过: {model.name}")
                continue
            try:
                logger.info(f"尝试使用模型: {model.name} (优先级: {model.priority})")
                result = client.classify_with_retry(system_prompt, user_prompt, self.max_retries_per_model)
                logger.info(f"模型 {model.name} 响应成功，返回 {len(result)} 条分类")
                return result
            except AIClientError as e:
                last_error = e
                logger.warning(f"模型 {model.name} 调用失败: {e}")

        error_msg = f"所有模型都调用失败，最后错误: {last_error}"
        logger.error(error_msg)
        raise AIClientError(error_msg)

    def test_all_connections(self) -> Dict[str, Dict[str, Any]]:
        """测试所有已启用模型的连接"""
        results = {}
        for model in self.get_enabled_models():
            client = self.clients.get(model.id)
            if client is None:
                results[model.name] = {'success': False, 'error': '客户端未初始化'}
                continue
            results[model.name] = client.test_connection()
        return results
