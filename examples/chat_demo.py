"""Minimal demonstration of the command surface."""

import asyncio

from chat_relay.api.service import handle_command

if __name__ == "__main__":
    question = "/chat Explain what a context manager is in one sentence."
    replies = asyncio.run(handle_command("demo", question))
    print("User:", question)
    for reply in replies:
        print(f"Bot ({reply.kind}):", reply.body)
