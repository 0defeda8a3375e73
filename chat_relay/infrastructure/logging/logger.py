import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from chat_relay.config.settings import settings


class JsonFormatter(logging.Formatter):
    def __init__(self, redact_content: bool = False):
        super().__init__()
        self._redact_content = redact_content

    def format(self, record: logging.LogRecord) -> str:
        msg = record.getMessage()
        if self._redact_content:
            msg = (msg or "")[:64]
        payload = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "name": record.name,
            "msg": msg,
        }
        extra = getattr(record, "extra", None)
        if isinstance(extra, dict):
            payload.update(extra)
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def redact_content(value: Any) -> Any:
    """开启 log_redact_content 时，把会话内容截断为 64 个字符再写入 extra。"""

    if not settings.log_redact_content:
        return value
    text = value if isinstance(value, str) else json.dumps(value, ensure_ascii=False)
    return text[:64]


def setup_logger() -> logging.Logger:
    logger = logging.getLogger("chat_relay")
    logger.setLevel(settings.log_level)
    # 重复导入时不重复挂 handler
    if any(getattr(h, "_chat_relay", False) for h in logger.handlers):
        return logger
    log_dir = Path(settings.log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    fh = logging.FileHandler(log_dir / "relay.log", encoding="utf-8")
    fh.setLevel(settings.log_level)
    fh.setFormatter(JsonFormatter(redact_content=settings.log_redact_content))
    fh._chat_relay = True  # type: ignore[attr-defined]
    logger.addHandler(fh)
    return logger


logger = setup_logger()
