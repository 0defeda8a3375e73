"""远端 API 集成层。

- base: ProviderClient 抽象接口。
- openai_client: OpenAI 兼容 HTTP API 的异步实现。
"""

from chat_relay.config.settings import settings
from chat_relay.providers.base import ProviderClient
from chat_relay.providers.openai_client import OpenAiClient


def create_provider(config=None) -> ProviderClient:
    """根据进程配置创建 Provider 实例，默认取全局 settings。"""

    return OpenAiClient(config or settings)
