from typing import AsyncContextManager, Protocol

from .models import ConversationLog, Role


class ConversationStore(Protocol):
    def get_or_create(self, conversation_id: str) -> ConversationLog:
        ...

    def append(self, log: ConversationLog, conversation_id: str, role: Role, content: str) -> ConversationLog:
        ...

    def reset(self, log: ConversationLog, conversation_id: str, override_prompt: str = "") -> ConversationLog:
        ...

    def lock(self, conversation_id: str) -> AsyncContextManager[None]:
        ...
