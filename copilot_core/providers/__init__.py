"""LLM Provider 集成层。

该包下的模块负责：
- 定义 Provider 抽象接口 (base)。
- 维护 Provider 配置 (registry)。
- 提供 OpenAI 兼容协议的具体实现 (openai_client)。
"""

from typing import Optional

from copilot_core.config.settings import settings
from copilot_core.providers.base import ProviderClient
from copilot_core.providers.openai_client import OpenAIClient
from copilot_core.providers.registry import get_provider_config


def create_provider(name: Optional[str] = None) -> ProviderClient:
    """根据名称创建 Provider 实例，默认取配置中的 provider。"""

    provider_name = name or getattr(settings, "default_provider", "openai")
    return OpenAIClient(settings, get_provider_config(provider_name))
