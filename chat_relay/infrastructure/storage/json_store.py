import asyncio
import contextlib
import json
import os
from pathlib import Path
from typing import Optional
from urllib.parse import quote
from uuid import uuid4

from chat_relay.config.settings import settings
from chat_relay.config.store import ConfigStore
from chat_relay.domain.conversation import ConversationStore
from chat_relay.domain.exceptions import StorageError, ValidationError
from chat_relay.domain.models import ConversationLog, Message, Role, validate_role
from chat_relay.infrastructure.logging.logger import logger, redact_content
from chat_relay.infrastructure.storage.locks import KeyedLocks


class JsonConversationStore(ConversationStore):
    """每个会话 ID 对应一个 ``<id>-history.json`` 文件。

    所有写操作都整文件替换（临时文件 + os.replace），成功返回即已落盘。
    读取失败（文件缺失、JSON 损坏、结构不符）时重建默认会话并立即写回。
    """

    def __init__(self, root: str | Path | None = None, config_store: Optional[ConfigStore] = None):
        self._root = Path(root or settings.history_dir).resolve()
        self._root.mkdir(parents=True, exist_ok=True)
        self._config_store = config_store or ConfigStore()
        self._locks = KeyedLocks()

    @property
    def root(self) -> Path:
        return self._root

    def lock(self, conversation_id: str) -> asyncio.Lock:
        """返回该会话的互斥锁；读-改-写序列必须在锁内完成。"""

        return self._locks.get(conversation_id)

    def path_for(self, conversation_id: str) -> Path:
        # 会话 ID 对本模块是不透明字符串，百分号编码后保证落在 root 内且一一对应
        return self._root / f"{quote(conversation_id, safe='')}-history.json"

    def get_or_create(self, conversation_id: str) -> ConversationLog:
        path = self.path_for(conversation_id)
        try:
            return self._read(path)
        except FileNotFoundError:
            logger.info("Creating new conversation", extra={"extra": {"conversation_id": conversation_id}})
        except (OSError, ValueError, ValidationError) as e:
            logger.warning(
                "Using default values due to error in reading history file",
                extra={"extra": {"conversation_id": conversation_id, "error": str(e)}},
            )
        log = ConversationLog.seeded(self._config_store.load().chat_base_prompt)
        self._write(path, log)
        return log

    def append(self, log: ConversationLog, conversation_id: str, role: Role, content: str) -> ConversationLog:
        role = validate_role(role)
        if not isinstance(content, str):
            raise ValidationError(code="INVALID_CONTENT", message="Message content must be a string")
        if not content and role != "system":
            raise ValidationError(code="EMPTY_CONTENT", message=f"Empty content is not allowed for role {role!r}")
        messages = log.messages + [Message(role=role, content=content)]
        self._write(self.path_for(conversation_id), ConversationLog(messages=messages))
        log.messages = messages
        return log

    def reset(self, log: ConversationLog, conversation_id: str, override_prompt: str = "") -> ConversationLog:
        if override_prompt:
            prompt = override_prompt
        else:
            # 每次重置都重新读取配置，默认提示词可能已被修改
            prompt = self._config_store.load().chat_base_prompt
        logger.debug("Init prompt", extra={"extra": {"conversation_id": conversation_id, "prompt": redact_content(prompt)}})
        messages = [Message(role="system", content=prompt)]
        self._write(self.path_for(conversation_id), ConversationLog(messages=messages))
        log.messages = messages
        return log

    def _read(self, path: Path) -> ConversationLog:
        data = json.loads(path.read_text(encoding="utf-8"))
        return ConversationLog.from_record(data)

    def _write(self, path: Path, log: ConversationLog) -> None:
        tmp_path = path.with_name(f"{path.name}.{uuid4().hex}.tmp")
        try:
            with tmp_path.open("w", encoding="utf-8") as f:
                f.write(json.dumps(log.to_record(), ensure_ascii=False, indent=2))
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, path)
        except OSError as e:
            with contextlib.suppress(OSError):
                tmp_path.unlink(missing_ok=True)
            raise StorageError(code="STORE_WRITE_ERROR", message=str(e), http_status=500, path=str(path))
