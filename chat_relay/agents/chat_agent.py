"""会话补全客户端（CompletionClient）。

把会话记录转换为远端补全请求，再把响应写回会话记录。
同一会话的每一轮都在该会话的锁内完成（包括等待远端响应），
不同会话之间互不阻塞。
"""

import logging
import time
from typing import Any, Dict
from uuid import uuid4

from chat_relay.config.store import ConfigStore
from chat_relay.domain.conversation import ConversationStore
from chat_relay.domain.exceptions import ResponseFormatError
from chat_relay.domain.models import ChatRequest, CompletionRequest, ImageRequest
from chat_relay.infrastructure.logging.logger import logger, redact_content
from chat_relay.providers.base import ProviderClient


CHAT_USAGE = "Prompt is empty, usage: '/chat [PROMPT HERE]'"
TEXT_USAGE = "Prompt is empty, usage: '/text [PROMPT HERE]'"
IMAGE_USAGE = "Prompt is empty, usage: '/image [PROMPT HERE]'"

PURGED_DEFAULT = "Chat history purged."
PURGED_CUSTOM = "Chat history purged with a custom system prompt."


class CompletionClient:
    def __init__(
        self,
        store: ConversationStore,
        provider_client: ProviderClient,
        config_store: ConfigStore,
    ):
        self._store = store
        self._provider_client = provider_client
        self._config_store = config_store

    async def test_connection(self) -> str:
        """请求模型列表以验证地址与凭证，返回可读的摘要。"""

        log_ctx = self._new_ctx("test_connection")
        self._log(logging.INFO, "Test connection started", log_ctx)
        models = await self._provider_client.list_models()
        output = f"Connection opened with {len(models)} models found!"
        self._log(logging.DEBUG, "Connection test output", log_ctx, model_count=len(models))
        return output

    async def converse(self, conversation_id: str, prompt: str) -> str:
        """执行一轮对话。

        远端调用失败时异常原样抛出，会话中保留已写入的 user 消息，
        不会写入任何 assistant 消息。
        """

        log_ctx = self._new_ctx("converse", conversation_id=conversation_id)
        if not prompt:
            self._log(logging.INFO, "No prompt, stopping", log_ctx)
            return CHAT_USAGE

        start_time = time.time()
        config = self._config_store.load()
        async with self._store.lock(conversation_id):
            log = self._store.get_or_create(conversation_id)
            log = self._store.append(log, conversation_id, "user", prompt)
            self._log(logging.DEBUG, "Stored user message", log_ctx, prompt=redact_content(prompt))

            req = ChatRequest(model=config.chat_model, messages=list(log.messages), max_tokens=config.max_tokens)
            self._log(
                logging.INFO,
                "Calling provider",
                log_ctx,
                endpoint="/chat/completions",
                model=req.model,
                message_count=len(req.messages),
            )
            result = await self._provider_client.chat(req)
            if not result.choices:
                raise ResponseFormatError(code="EMPTY_CHOICES", message="Response contained no choices")
            if len(result.choices) > 1:
                # 只采用第一个候选，其余丢弃
                self._log(logging.DEBUG, "Discarding alternative choices", log_ctx, discarded=len(result.choices) - 1)
            output = result.choices[0].message.content
            if not output:
                raise ResponseFormatError(code="BAD_RESPONSE", message="Response choice has empty content")

            self._store.append(log, conversation_id, "assistant", output)

        self._log(
            logging.INFO,
            "Completed chat turn",
            log_ctx,
            elapsed_seconds=round(time.time() - start_time, 2),
            history_length=len(log),
        )
        return output

    async def reset_conversation(self, conversation_id: str, override_prompt: str = "") -> str:
        """清空会话，只保留一条 system 消息；不访问远端 API。"""

        log_ctx = self._new_ctx("reset_conversation", conversation_id=conversation_id)
        self._log(logging.INFO, "Chat purge started", log_ctx, custom_prompt=bool(override_prompt))
        async with self._store.lock(conversation_id):
            log = self._store.get_or_create(conversation_id)
            self._store.reset(log, conversation_id, override_prompt)
        return PURGED_CUSTOM if override_prompt else PURGED_DEFAULT

    async def generate_text(self, prompt: str) -> str:
        log_ctx = self._new_ctx("generate_text")
        if not prompt:
            self._log(logging.INFO, "No prompt, stopping", log_ctx)
            return TEXT_USAGE

        config = self._config_store.load()
        req = CompletionRequest(model=config.completion_model, prompt=prompt, max_tokens=config.max_tokens)
        self._log(logging.INFO, "Calling provider", log_ctx, endpoint="/completions", model=req.model)
        result = await self._provider_client.completion(req)
        if not result.texts:
            raise ResponseFormatError(code="EMPTY_CHOICES", message="Response contained no choices")
        return result.texts[0]

    async def generate_image(self, prompt: str) -> str:
        log_ctx = self._new_ctx("generate_image")
        if not prompt:
            self._log(logging.INFO, "No prompt, stopping", log_ctx)
            return IMAGE_USAGE

        config = self._config_store.load()
        req = ImageRequest(prompt=prompt, size=config.image_size)
        self._log(logging.INFO, "Calling provider", log_ctx, endpoint="/images/generations", size=req.size)
        result = await self._provider_client.image(req)
        if not result.urls:
            raise ResponseFormatError(code="EMPTY_CHOICES", message="Image response contained no results")
        # 多张图片时只返回第一张
        return result.urls[0]

    @staticmethod
    def _new_ctx(operation: str, **fields: Any) -> Dict[str, Any]:
        ctx: Dict[str, Any] = {"trace_id": f"tr-{uuid4().hex}", "operation": operation}
        ctx.update(fields)
        return ctx

    @staticmethod
    def _log(level: int, message: str, log_ctx: Dict[str, Any], **fields: Any) -> None:
        payload = dict(log_ctx)
        payload.update(fields)
        logger.log(level, message, extra={"extra": payload})
