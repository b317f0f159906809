"""Copilot Core 顶层包。

该包提供笔记应用聊天助手的模型调用层，
包括配置加载、领域模型、Provider 适配、流式回答累积与停止、
以及把回答写回会话历史的交付逻辑。
"""

from copilot_core.api.service import get_ai_response

__all__ = ["get_ai_response"]
