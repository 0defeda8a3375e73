"""Chat Relay 顶层包。

该包实现聊天机器人前端背后的会话核心：
配置加载、按会话持久化的消息记录、远端补全 API 适配，
以及面向聊天前端的字符串接口。
"""

from chat_relay.agents.chat_agent import CompletionClient
from chat_relay.config.store import ConfigStore
from chat_relay.infrastructure.storage.json_store import JsonConversationStore

__all__ = ["CompletionClient", "ConfigStore", "JsonConversationStore"]
