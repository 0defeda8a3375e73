"""对外 API 服务模块。

提供给聊天前端（如 Telegram 机器人）调用的简化接口：
入参与返回值都是普通字符串，业务异常在这里转换为简短的错误提示。
ConfigError 属于致命错误，不做转换，直接向上抛出。
"""

from dataclasses import dataclass
from typing import List, Literal, Optional, Tuple

import httpx

from chat_relay.agents.chat_agent import CompletionClient
from chat_relay.config.settings import settings
from chat_relay.config.store import ConfigStore
from chat_relay.domain.exceptions import RemoteError, StorageError, ValidationError
from chat_relay.infrastructure.logging.logger import logger
from chat_relay.infrastructure.storage.json_store import JsonConversationStore
from chat_relay.providers import create_provider


COMMANDS: Tuple[Tuple[str, str], ...] = (
    ("help", "Display this text."),
    ("source", "Display a link to my source code."),
    ("testapi", "Test API connection by fetching a list of models from OpenAI"),
    ("chat", "Chat with Chat-GPT, chats are persistent for each group/DM"),
    ("chatpurge", "Reset Chat-GPT's conversation. Optionally include a system prompt."),
    ("text", "Send a prompt to the text completion model"),
    ("image", "Send a prompt to generate an image"),
)

_HANDLED_ERRORS = (RemoteError, ValidationError, StorageError)

_client: Optional[CompletionClient] = None


@dataclass
class Reply:
    """发给前端的一条回复。kind="photo" 时 body 为图片 URL。"""

    kind: Literal["text", "photo"]
    body: str


def get_default_client() -> CompletionClient:
    """获取默认的 CompletionClient 实例（单例）。"""
    global _client
    if _client is None:
        config_store = ConfigStore(settings.bot_config_file)
        _client = CompletionClient(
            store=JsonConversationStore(root=settings.history_dir, config_store=config_store),
            provider_client=create_provider(settings),
            config_store=config_store,
        )
    return _client


def help_text() -> str:
    lines = ["These commands are supported:"]
    lines.extend(f"/{name} - {description}" for name, description in COMMANDS)
    return "\n".join(lines)


def source() -> str:
    return f"My source code can be found at: {settings.source_url}"


async def test_api() -> str:
    try:
        return await get_default_client().test_connection()
    except _HANDLED_ERRORS as e:
        return f"Error during API setup: {e.message}"


async def chat(conversation_id: str, prompt: str) -> str:
    try:
        return await get_default_client().converse(conversation_id, prompt)
    except _HANDLED_ERRORS as e:
        _log_failure("chat", e, conversation_id)
        return f"Error during API call: {e.message}"


async def chat_purge(conversation_id: str, prompt: str = "") -> str:
    try:
        return await get_default_client().reset_conversation(conversation_id, prompt)
    except _HANDLED_ERRORS as e:
        _log_failure("chat_purge", e, conversation_id)
        return f"Error during API call: {e.message}"


async def text(prompt: str) -> str:
    try:
        return await get_default_client().generate_text(prompt)
    except _HANDLED_ERRORS as e:
        _log_failure("text", e)
        return f"Error during API call: {e.message}"


async def image(prompt: str) -> str:
    try:
        return await get_default_client().generate_image(prompt)
    except _HANDLED_ERRORS as e:
        _log_failure("image", e)
        return f"Error during API call: {e.message}"


def parse_command(message: str) -> Tuple[Optional[str], str]:
    """解析 ``/command[@botname] args``，返回 (小写命令名, 去空白的参数)。

    非命令文本返回 (None, 原文)。
    """

    stripped = message.strip()
    if not stripped.startswith("/"):
        return None, stripped
    # 命令名与参数之间可以是任意空白（包括换行）
    parts = stripped[1:].split(maxsplit=1)
    head = parts[0] if parts else ""
    args = parts[1] if len(parts) > 1 else ""
    name = head.split("@", 1)[0].lower()
    return name, args.strip()


async def handle_command(conversation_id: str, message: str) -> List[Reply]:
    """把一条聊天消息分发到对应的操作，返回需要发送的回复列表。"""

    name, args = parse_command(message)
    if name == "source":
        return [Reply("text", source())]
    if name == "testapi":
        return [Reply("text", await test_api())]
    if name == "chat":
        return [Reply("text", await chat(conversation_id, args))]
    if name == "chatpurge":
        return [Reply("text", await chat_purge(conversation_id, args))]
    if name == "text":
        return [Reply("text", await text(args))]
    if name == "image":
        result = await image(args)
        # 结果是合法 URL 时按图片发送，并附上原始提示词
        if _is_http_url(result):
            return [Reply("photo", result), Reply("text", args)]
        return [Reply("text", result)]
    return [Reply("text", help_text())]


def _is_http_url(value: str) -> bool:
    try:
        url = httpx.URL(value)
    except httpx.InvalidURL:
        return False
    return url.scheme in ("http", "https") and bool(url.host)


def _log_failure(operation: str, error: Exception, conversation_id: Optional[str] = None) -> None:
    logger.error(f"{operation} failed: {error}", extra={"extra": {
        "conversation_id": conversation_id,
        "error": str(error),
        "code": getattr(error, "code", None),
    }})
