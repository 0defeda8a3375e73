import tempfile
from pathlib import Path

import pytest

from chat_relay.agents.chat_agent import CHAT_USAGE, PURGED_DEFAULT, CompletionClient
from chat_relay.api import service
from chat_relay.config.store import ConfigStore
from chat_relay.domain.exceptions import ApiError
from chat_relay.domain.models import ChatChoice, ChatResult, ImageResult, Message
from chat_relay.infrastructure.storage.json_store import JsonConversationStore


class FakeProvider:
    name = "fake"

    def __init__(self, image_url="https://img.test/cat.png", fail=False):
        self.image_url = image_url
        self.fail = fail

    async def list_models(self):
        if self.fail:
            raise ApiError(code="API_ERROR", message="unauthorized", http_status=401)
        return ["gpt-4"]

    async def chat(self, req):
        if self.fail:
            raise ApiError(code="API_ERROR", message="server error", http_status=500)
        return ChatResult(
            model=req.model,
            choices=[ChatChoice(index=0, message=Message(role="assistant", content=f"echo {req.messages[-1].content}"))],
        )

    async def completion(self, req):
        raise AssertionError("completion should not be called")

    async def image(self, req):
        return ImageResult(urls=[self.image_url])


@pytest.fixture
def client(monkeypatch):
    with tempfile.TemporaryDirectory() as d:
        config_store = ConfigStore(Path(d) / "config.json")
        store = JsonConversationStore(root=Path(d) / "chat-history", config_store=config_store)
        c = CompletionClient(store=store, provider_client=FakeProvider(), config_store=config_store)
        monkeypatch.setattr(service, "_client", c)
        yield c


@pytest.mark.parametrize(
    "message, expected",
    [
        ("/chat hello there", ("chat", "hello there")),
        ("/Chat@relay_bot   spaced  ", ("chat", "spaced")),
        ("/chatpurge", ("chatpurge", "")),
        ("/chat\nWrite a poem", ("chat", "Write a poem")),
        ("/chat\tline one\nline two", ("chat", "line one\nline two")),
        ("/", ("", "")),
        ("just text", (None, "just text")),
    ],
)
def test_parse_command(message, expected):
    assert service.parse_command(message) == expected


@pytest.mark.asyncio
async def test_chat_command(client):
    replies = await service.handle_command("7", "/chat hello")
    assert replies == [service.Reply("text", "echo hello")]


@pytest.mark.asyncio
async def test_chat_command_with_newline_separator(client):
    replies = await service.handle_command("7", "/chat\nWrite a poem")
    assert replies == [service.Reply("text", "echo Write a poem")]


@pytest.mark.asyncio
async def test_chat_command_without_prompt(client):
    assert await service.handle_command("7", "/chat") == [service.Reply("text", CHAT_USAGE)]


@pytest.mark.asyncio
async def test_chatpurge_command(client):
    await service.handle_command("7", "/chat hello")
    assert await service.handle_command("7", "/chatpurge") == [service.Reply("text", PURGED_DEFAULT)]


@pytest.mark.asyncio
async def test_remote_failure_becomes_message(client, monkeypatch):
    monkeypatch.setattr(client, "_provider_client", FakeProvider(fail=True))
    replies = await service.handle_command("7", "/chat hello")
    assert replies == [service.Reply("text", "Error during API call: server error")]
    assert await service.test_api() == "Error during API setup: unauthorized"


@pytest.mark.asyncio
async def test_image_command_sends_photo(client):
    replies = await service.handle_command("7", "/image a cat")
    assert replies == [service.Reply("photo", "https://img.test/cat.png"), service.Reply("text", "a cat")]


@pytest.mark.asyncio
async def test_image_command_non_url_result(client, monkeypatch):
    monkeypatch.setattr(client, "_provider_client", FakeProvider(image_url="not a url"))
    assert await service.handle_command("7", "/image a cat") == [service.Reply("text", "not a url")]


@pytest.mark.asyncio
async def test_help_and_source(client):
    replies = await service.handle_command("7", "/unknown")
    assert replies[0].body.startswith("These commands are supported:")
    assert "/chatpurge" in replies[0].body
    source = await service.handle_command("7", "/source")
    assert source[0].body.startswith("My source code can be found at: ")
