import json
import tempfile
from pathlib import Path

import pytest

from chat_relay.config.store import BotConfig, ConfigStore, Defaulted, Loaded, default_bot_config
from chat_relay.domain.exceptions import ConfigError


def test_read_valid_file():
    with tempfile.TemporaryDirectory() as d:
        path = Path(d) / "config.json"
        path.write_text(
            json.dumps(
                {
                    "chat_model": "gpt-3.5-turbo",
                    "completion_model": "gpt-3.5-turbo-instruct",
                    "chat_base_prompt": "Test prompt",
                    "max_tokens": 1024,
                    "image_size": "512x512",
                }
            ),
            encoding="utf-8",
        )
        result = ConfigStore(path).reload()
        assert isinstance(result, Loaded)
        assert result.config.chat_base_prompt == "Test prompt"
        assert result.config.chat_model == "gpt-3.5-turbo"


def test_missing_file_writes_default():
    with tempfile.TemporaryDirectory() as d:
        path = Path(d) / "config.json"
        store = ConfigStore(path)
        result = store.reload()
        assert isinstance(result, Defaulted)
        assert result.config == default_bot_config()
        assert path.exists()
        # 第二次读取应直接命中写回的默认值
        again = store.reload()
        assert isinstance(again, Loaded)
        assert again.config == result.config


def test_malformed_file_is_defaulted():
    with tempfile.TemporaryDirectory() as d:
        path = Path(d) / "config.json"
        path.write_text("invalid json content", encoding="utf-8")
        result = ConfigStore(path).reload()
        assert isinstance(result, Defaulted)
        assert "JSONDecodeError" in result.reason
        assert json.loads(path.read_text(encoding="utf-8"))["max_tokens"] == 1024


def test_incomplete_structure_is_defaulted():
    with tempfile.TemporaryDirectory() as d:
        path = Path(d) / "config.json"
        path.write_text(
            json.dumps({"chat_model": "gpt-3.5-turbo", "max_tokens": 1024, "image_size": "512x512"}),
            encoding="utf-8",
        )
        result = ConfigStore(path).reload()
        assert isinstance(result, Defaulted)
        assert result.config.chat_base_prompt == default_bot_config().chat_base_prompt


def test_save_then_load():
    with tempfile.TemporaryDirectory() as d:
        store = ConfigStore(Path(d) / "nested" / "config.json")
        config = BotConfig(
            chat_model="gpt-4o",
            completion_model="davinci-002",
            chat_base_prompt="Test write",
            max_tokens=256,
            image_size="1024x1024",
        )
        store.save(config)
        assert store.load() == config
        assert list(store.path.parent.glob("*.tmp")) == []


def test_default_write_failure_is_fatal():
    with tempfile.TemporaryDirectory() as d:
        blocker = Path(d) / "not-a-dir"
        blocker.write_text("", encoding="utf-8")
        store = ConfigStore(blocker / "config.json")
        with pytest.raises(ConfigError) as exc:
            store.load()
        assert exc.value.code == "CONFIG_WRITE_ERROR"
