"""机器人配置存储（ConfigStore）。

负责读写 config.json 中的机器人配置（模型名、默认系统提示词、
输出长度上限、图片尺寸）。读取失败时使用内置默认值并写回磁盘，
结果以 Loaded / Defaulted 两种标签区分，调用方无需依赖日志判断走了哪条路径。

配置不做长期缓存：每次需要时都通过 load()/reload() 重新读取。
"""

import contextlib
import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, ValidationError as PydanticValidationError

from chat_relay.config.settings import settings
from chat_relay.domain.exceptions import ConfigError
from chat_relay.infrastructure.logging.logger import logger
from chat_relay.prompts import load_system_prompt


class BotConfig(BaseModel):
    """持久化的机器人配置，所有字段均为必填。"""

    model_config = ConfigDict(extra="ignore", frozen=True)

    chat_model: str
    completion_model: str
    chat_base_prompt: str
    max_tokens: int = Field(gt=0)
    image_size: str


def default_bot_config() -> BotConfig:
    return BotConfig(
        chat_model="gpt-4",
        completion_model="gpt-3.5-turbo-instruct",
        chat_base_prompt=load_system_prompt(),
        max_tokens=1024,
        image_size="512x512",
    )


@dataclass(frozen=True)
class Loaded:
    """配置文件读取成功。"""

    config: BotConfig


@dataclass(frozen=True)
class Defaulted:
    """配置文件缺失或损坏，已使用并写回默认配置。"""

    config: BotConfig
    reason: str


LoadResult = Union[Loaded, Defaulted]


class ConfigStore:
    def __init__(self, path: str | Path | None = None):
        self._path = Path(path or settings.bot_config_file)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> BotConfig:
        return self.reload().config

    def reload(self) -> LoadResult:
        """重新读取配置文件。

        读取或解析失败时写回默认配置；写回失败抛出 ConfigError，
        否则后续读取会与本次返回的默认值不一致。
        """

        try:
            return Loaded(self._read())
        except (OSError, ValueError, PydanticValidationError) as e:
            reason = f"{type(e).__name__}: {e}"
            logger.warning(
                "Using default values due to error in reading config file",
                extra={"extra": {"path": str(self._path), "reason": reason}},
            )
        config = default_bot_config()
        self.save(config)
        return Defaulted(config=config, reason=reason)

    def save(self, config: BotConfig) -> None:
        """整文件替换写入：先写临时文件，再 os.replace。"""

        tmp_path = self._path.with_name(f"{self._path.name}.{uuid4().hex}.tmp")
        try:
            if self._path.parent != Path(""):
                self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(
                json.dumps(config.model_dump(), ensure_ascii=False, indent=2),
                encoding="utf-8",
            )
            os.replace(tmp_path, self._path)
        except OSError as e:
            with contextlib.suppress(OSError):
                tmp_path.unlink(missing_ok=True)
            raise ConfigError(code="CONFIG_WRITE_ERROR", message=str(e), http_status=500, path=str(self._path))

    def _read(self) -> BotConfig:
        data = json.loads(self._path.read_text(encoding="utf-8"))
        return BotConfig.model_validate(data)
