"""OpenAI 兼容 API 的异步适配器。

本模块负责：

1. 接收统一的 ChatRequest / CompletionRequest / ImageRequest。
2. 将其转换为远端 HTTP API 的请求 JSON。
3. 发送请求并把网络错误、非 2xx 状态、无法解析的响应体统一包装为 RemoteError。
4. 将响应 JSON 解析为 ChatResult / CompletionResult / ImageResult。

端点：
- GET  {base}/models
- POST {base}/chat/completions
- POST {base}/completions
- POST {base}/images/generations

认证统一使用 ``Authorization: Bearer <token>``。这里不做重试，失败直接抛给上层。
"""

from typing import Any, Dict, List, Optional

import httpx

from chat_relay.domain.exceptions import ApiError, NetworkError, ResponseFormatError, ValidationError
from chat_relay.domain.models import (
    ChatChoice,
    ChatRequest,
    ChatResult,
    CompletionRequest,
    CompletionResult,
    ImageRequest,
    ImageResult,
    Message,
    ROLES,
)
from chat_relay.infrastructure.logging.logger import logger, redact_content


class OpenAiClient:
    """OpenAI 兼容 Provider 的客户端实现。

    - name: Provider 名称（供日志/调试使用）。
    - 每次调用都新建一个 AsyncClient，超时取自 settings.http_timeout。
    """

    name = "openai"

    def __init__(self, settings):
        # Settings 里包含 open_ai_uri、token、超时等配置
        self._settings = settings

    async def list_models(self) -> List[str]:
        """获取可用模型 ID 列表，仅用于连通性探测。"""

        data = await self._request("GET", "/models")
        items = data.get("data")
        if not isinstance(items, list):
            raise ResponseFormatError(code="BAD_RESPONSE", message="Model list response has no 'data' list")
        ids: List[str] = []
        for item in items:
            if not isinstance(item, dict) or not isinstance(item.get("id"), str):
                raise ResponseFormatError(code="BAD_RESPONSE", message="Model entry has no 'id'")
            ids.append(item["id"])
        return ids

    async def chat(self, req: ChatRequest) -> ChatResult:
        data = await self._request("POST", "/chat/completions", self._build_chat_payload(req))
        return self._parse_chat_response(data, req)

    async def completion(self, req: CompletionRequest) -> CompletionResult:
        payload = {"model": req.model, "prompt": req.prompt, "max_tokens": req.max_tokens}
        data = await self._request("POST", "/completions", payload)
        texts: List[str] = []
        for ch in self._choices(data):
            text = ch.get("text")
            if not isinstance(text, str):
                raise ResponseFormatError(code="BAD_RESPONSE", message="Completion choice has no 'text'")
            texts.append(text)
        return CompletionResult(model=req.model, texts=texts, raw=data)

    async def image(self, req: ImageRequest) -> ImageResult:
        payload = {"prompt": req.prompt, "n": req.n, "size": req.size}
        data = await self._request("POST", "/images/generations", payload)
        items = data.get("data")
        if not isinstance(items, list) or not items:
            raise ResponseFormatError(code="EMPTY_CHOICES", message="Image response contained no results")
        urls: List[str] = []
        for item in items:
            if not isinstance(item, dict) or not isinstance(item.get("url"), str):
                raise ResponseFormatError(code="BAD_RESPONSE", message="Image entry has no 'url'")
            urls.append(item["url"])
        return ImageResult(urls=urls, raw=data)

    async def _request(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """发送请求并返回 JSON 对象，所有失败都转换为 RemoteError 子类。"""

        token = getattr(self._settings, "open_ai_token", None)
        if not token:
            # 配置缺失走 ValidationError，方便上层统一处理
            raise ValidationError(code="MISSING_API_KEY", message="OPEN_AI_TOKEN not set")
        url = f"{self._settings.open_ai_uri}{path}"
        headers = {"Authorization": f"Bearer {token}"}
        if payload is not None:
            headers["Content-Type"] = "application/json"
        try:
            async with httpx.AsyncClient(timeout=self._settings.http_timeout, trust_env=False) as client:
                if method == "GET":
                    resp = await client.get(url, headers=headers)
                else:
                    resp = await client.post(url, json=payload, headers=headers)
        except httpx.RequestError as e:
            # 网络错误：DNS 失败、连接超时、读超时等
            logger.error("Remote request failed", extra={"extra": {"endpoint": path, "error": str(e)}})
            raise NetworkError(code="NETWORK_ERROR", message=str(e) or type(e).__name__, http_status=502)
        if not 200 <= resp.status_code < 300:
            logger.error(
                "Remote API returned error status",
                extra={"extra": {"endpoint": path, "status": resp.status_code}},
            )
            raise ApiError(code="API_ERROR", message=resp.text, http_status=resp.status_code)
        try:
            data = resp.json()
        except ValueError as e:
            raise ResponseFormatError(code="BAD_RESPONSE", message=f"Response is not valid JSON: {e}")
        if not isinstance(data, dict):
            raise ResponseFormatError(code="BAD_RESPONSE", message="Response is not a JSON object")
        logger.debug("Remote response", extra={"extra": {"endpoint": path, "body": redact_content(data)}})
        return data

    @staticmethod
    def _build_chat_payload(req: ChatRequest) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": req.model,
            "messages": [m.to_payload() for m in req.messages],
        }
        if req.max_tokens:
            payload["max_tokens"] = req.max_tokens
        return payload

    def _parse_chat_response(self, data: Dict[str, Any], req: ChatRequest) -> ChatResult:
        choices: List[ChatChoice] = []
        for i, ch in enumerate(self._choices(data)):
            msg = ch.get("message")
            if not isinstance(msg, dict) or not isinstance(msg.get("content"), str):
                raise ResponseFormatError(code="BAD_RESPONSE", message="Chat choice has no message content")
            role = msg.get("role") or "assistant"
            if role not in ROLES:
                raise ResponseFormatError(code="BAD_RESPONSE", message=f"Unexpected message role: {role!r}")
            choices.append(
                ChatChoice(
                    index=ch.get("index", i),
                    message=Message(role=role, content=msg["content"]),
                    finish_reason=ch.get("finish_reason"),
                )
            )
        return ChatResult(model=req.model, choices=choices, raw=data)

    @staticmethod
    def _choices(data: Dict[str, Any]) -> List[Dict[str, Any]]:
        choices = data.get("choices")
        if not isinstance(choices, list):
            raise ResponseFormatError(code="BAD_RESPONSE", message="Response has no 'choices' list")
        if not choices:
            raise ResponseFormatError(code="EMPTY_CHOICES", message="Response contained no choices")
        if not all(isinstance(ch, dict) for ch in choices):
            raise ResponseFormatError(code="BAD_RESPONSE", message="Choice entry is not an object")
        return choices
