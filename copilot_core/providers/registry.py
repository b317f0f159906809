"""Provider 配置。

集中维护各个兼容 OpenAI chat/completions 协议的 Provider：

- base_url: API 基础地址，请求发往 {base_url}/chat/completions。
- attribution_headers: 非流式请求附带的来源标识头（HTTP-Referer / X-Title），
  仅用于 Provider 侧展示，不影响行为。

模型选择由宿主应用负责，这里不维护模型列表。
"""

from dataclasses import dataclass, field
from typing import Dict, Mapping


APP_REFERER = "https://github.com/logancyang/obsidian-copilot"
APP_TITLE = "Obsidian CoPilot"


@dataclass(frozen=True)
class ProviderConfig:
    """某个 Provider 的整体配置。"""

    name: str
    base_url: str
    attribution_headers: Dict[str, str] = field(default_factory=dict)

    @property
    def completions_url(self) -> str:
        return f"{self.base_url.rstrip('/')}/chat/completions"


OPENAI_CONFIG = ProviderConfig(
    name="openai",
    base_url="https://api.openai.com/v1",
    attribution_headers={"HTTP-Referer": APP_REFERER, "X-Title": APP_TITLE},
)

# OpenRouter 使用同样的协议，X-Title 会显示在 openrouter.ai 的调用记录里
OPENROUTER_CONFIG = ProviderConfig(
    name="openrouter",
    base_url="https://openrouter.ai/api/v1",
    attribution_headers={"HTTP-Referer": APP_REFERER, "X-Title": APP_TITLE},
)


PROVIDER_REGISTRY: Mapping[str, ProviderConfig] = {
    "openai": OPENAI_CONFIG,
    "openrouter": OPENROUTER_CONFIG,
}


def get_provider_config(name: str) -> ProviderConfig:
    """根据名称获取 ProviderConfig，名称不区分大小写。"""

    key = name.lower()
    for k, cfg in PROVIDER_REGISTRY.items():
        if k.lower() == key:
            return cfg
    raise KeyError(f"Unknown provider: {name!r}")
