"""测试日志内容截断（log_redact_content）。"""

import logging
import tempfile
from pathlib import Path

import pytest

from chat_relay.agents.chat_agent import CompletionClient
from chat_relay.config.settings import settings
from chat_relay.config.store import ConfigStore
from chat_relay.domain.models import ChatRequest, ChatChoice, ChatResult, Message
from chat_relay.infrastructure.logging.logger import JsonFormatter, redact_content
from chat_relay.infrastructure.storage.json_store import JsonConversationStore
from chat_relay.providers.openai_client import OpenAiClient


LONG_PROMPT = "secret " * 40


class EchoProvider:
    name = "echo"

    async def chat(self, req):
        return ChatResult(
            model=req.model,
            choices=[ChatChoice(index=0, message=Message(role="assistant", content=req.messages[-1].content))],
        )


def _extras(caplog, message):
    return [r.extra for r in caplog.records if r.getMessage() == message]


def test_redact_content_disabled_keeps_value(monkeypatch):
    monkeypatch.setattr(settings, "log_redact_content", False)
    body = {"choices": [1, 2]}
    assert redact_content(LONG_PROMPT) == LONG_PROMPT
    assert redact_content(body) is body


def test_redact_content_truncates(monkeypatch):
    monkeypatch.setattr(settings, "log_redact_content", True)
    assert redact_content(LONG_PROMPT) == LONG_PROMPT[:64]
    out = redact_content({"text": "é" * 200})
    assert isinstance(out, str)
    assert len(out) == 64
    assert out.startswith('{"text": "é')


def test_formatter_truncates_msg():
    record = logging.LogRecord("chat_relay", logging.INFO, __file__, 1, "x" * 100, None, None)
    assert '"msg": "' + "x" * 64 + '"' in JsonFormatter(redact_content=True).format(record)


@pytest.mark.asyncio
async def test_converse_redacts_logged_prompt(monkeypatch, caplog):
    monkeypatch.setattr(settings, "log_redact_content", True)
    caplog.set_level(logging.DEBUG, logger="chat_relay")
    with tempfile.TemporaryDirectory() as d:
        config_store = ConfigStore(Path(d) / "config.json")
        store = JsonConversationStore(root=Path(d) / "chat-history", config_store=config_store)
        client = CompletionClient(store=store, provider_client=EchoProvider(), config_store=config_store)
        await client.converse("42", LONG_PROMPT)

    extras = _extras(caplog, "Stored user message")
    assert extras
    assert all(len(e["prompt"]) <= 64 for e in extras)


def test_reset_redacts_logged_prompt(monkeypatch, caplog):
    monkeypatch.setattr(settings, "log_redact_content", True)
    caplog.set_level(logging.DEBUG, logger="chat_relay")
    with tempfile.TemporaryDirectory() as d:
        config_store = ConfigStore(Path(d) / "config.json")
        store = JsonConversationStore(root=Path(d) / "chat-history", config_store=config_store)
        log = store.get_or_create("42")
        store.reset(log, "42", LONG_PROMPT)

    extras = _extras(caplog, "Init prompt")
    assert extras
    assert all(len(e["prompt"]) <= 64 for e in extras)


@pytest.mark.asyncio
async def test_remote_response_body_is_redacted(monkeypatch, caplog):
    monkeypatch.setattr(settings, "log_redact_content", True)
    caplog.set_level(logging.DEBUG, logger="chat_relay")

    class SettingsStub:
        open_ai_token = "t"
        open_ai_uri = "https://api.example.test/v1"
        http_timeout = 1.0

    class Resp:
        status_code = 200
        text = ""

        def json(self):
            return {"choices": [{"index": 0, "message": {"role": "assistant", "content": LONG_PROMPT}}]}

    class Client:
        def __init__(self, *a, **kw):
            pass

        async def __aenter__(self):
            return self

        async def __aexit__(self, *a):
            return False

        async def post(self, url, json=None, headers=None, **_):
            return Resp()

    monkeypatch.setattr("httpx.AsyncClient", Client)
    req = ChatRequest(model="gpt-4", messages=[Message(role="user", content="hi")])
    res = await OpenAiClient(SettingsStub()).chat(req)
    assert res.choices[0].message.content == LONG_PROMPT

    extras = _extras(caplog, "Remote response")
    assert extras
    assert all(isinstance(e["body"], str) and len(e["body"]) <= 64 for e in extras)
