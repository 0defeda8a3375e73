"""会话与远端 API 的统一数据模型。

本模块定义两类结构：

- Message / ConversationLog: 持久化的会话记录，与磁盘上的
  ``{"messages": [{"role": ..., "content": ...}]}`` 一一对应。
- ChatRequest / ChatResult 等: 发给远端补全 API 的请求与解析后的结果。

Provider 适配层只依赖这些模型，负责在 API JSON 与模型之间做转换。
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional, Tuple

from chat_relay.domain.exceptions import ValidationError


# 会话中允许出现的消息角色（封闭集合）
Role = Literal["system", "user", "assistant"]
ROLES: Tuple[str, ...] = ("system", "user", "assistant")


def validate_role(role: Any) -> Role:
    """校验角色取值，非法值直接拒绝，不做任何转换。"""

    if not isinstance(role, str) or role not in ROLES:
        raise ValidationError(code="INVALID_ROLE", message=f"Unsupported role: {role!r}")
    return role  # type: ignore[return-value]


@dataclass
class Message:
    """会话中的一条消息。"""

    role: Role
    content: str

    def to_payload(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass
class ConversationLog:
    """单个会话的完整消息序列。

    顺序即插入顺序，也就是发给远端 API 的原样上下文；
    任何情况下都不做重排或去重。
    """

    messages: List[Message] = field(default_factory=list)

    @classmethod
    def seeded(cls, system_prompt: str) -> "ConversationLog":
        return cls(messages=[Message(role="system", content=system_prompt)])

    def to_record(self) -> Dict[str, Any]:
        return {"messages": [m.to_payload() for m in self.messages]}

    @classmethod
    def from_record(cls, data: Any) -> "ConversationLog":
        """从持久化记录构造会话，结构不符时抛出 ValueError/ValidationError。

        记录必须是非空列表，且第 0 条为 system 消息；只有 system 消息允许空内容。
        """

        if not isinstance(data, dict) or not isinstance(data.get("messages"), list):
            raise ValueError("record has no 'messages' list")
        messages: List[Message] = []
        for item in data["messages"]:
            if not isinstance(item, dict):
                raise ValueError("message entry is not an object")
            content = item.get("content")
            if not isinstance(content, str):
                raise ValueError("message content is not a string")
            role = validate_role(item.get("role"))
            if not content and role != "system":
                raise ValueError(f"empty content for role {role!r}")
            messages.append(Message(role=role, content=content))
        if not messages or messages[0].role != "system":
            raise ValueError("record does not start with a system message")
        return cls(messages=messages)

    def __len__(self) -> int:
        return len(self.messages)


@dataclass
class ChatRequest:
    """一次 /chat/completions 请求。"""

    model: str
    messages: List[Message]
    max_tokens: Optional[int] = None


@dataclass
class ChatChoice:
    """单个候选回答（目前只使用 index=0 的一条）。"""

    index: int
    message: Message
    finish_reason: Optional[str] = None


@dataclass
class ChatResult:
    """/chat/completions 的解析结果。

    - choices: 一个或多个候选回答，解析阶段保证非空。
    - raw: 原始响应 JSON，用于调试或日志记录。
    """

    model: str
    choices: List[ChatChoice]
    raw: Optional[dict] = None


@dataclass
class CompletionRequest:
    """一次 /completions 文本补全请求。"""

    model: str
    prompt: str
    max_tokens: int


@dataclass
class CompletionResult:
    model: str
    texts: List[str]
    raw: Optional[dict] = None


@dataclass
class ImageRequest:
    """一次 /images/generations 请求。"""

    prompt: str
    size: str
    n: int = 1


@dataclass
class ImageResult:
    urls: List[str]
    raw: Optional[dict] = None
