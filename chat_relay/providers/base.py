"""Provider 抽象接口。

上层 CompletionClient 不直接依赖具体的 HTTP 实现，而是依赖此协议：
负责把统一请求模型转成具体 API 请求，并把响应 JSON 解析为统一结果。
测试中可以用实现了同名方法的假对象替换。
"""

from typing import List, Protocol

from chat_relay.domain.models import (
    ChatRequest,
    ChatResult,
    CompletionRequest,
    CompletionResult,
    ImageRequest,
    ImageResult,
)


class ProviderClient(Protocol):
    """远端补全 API 客户端协议。"""

    name: str

    async def list_models(self) -> List[str]:
        ...

    async def chat(self, req: ChatRequest) -> ChatResult:
        ...

    async def completion(self, req: CompletionRequest) -> CompletionResult:
        ...

    async def image(self, req: ImageRequest) -> ImageResult:
        ...
