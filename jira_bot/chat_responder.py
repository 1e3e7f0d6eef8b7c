"""
Chat Responder

Produces general-chat replies with an OpenAI-compatible chat model.

Two modes:
- complete(): one non-streamed completion (group conversations)
- stream(): async iterator of content deltas (one-to-one conversations)

Both append the user turn before the call and the assistant turn after it,
so the caller only has to save the conversation afterwards.
"""

import logging
from pathlib import Path
from typing import AsyncIterator, Dict, List, Optional

from openai import AsyncOpenAI

from .config import ModelConfig
from .conversation_store import Conversation

logger = logging.getLogger(__name__)


def load_instructions(path: str) -> str:
    """Read the system instructions file once at startup."""
    return Path(path).read_text(encoding="utf-8").strip()


class ChatResponder:
    """
    Chat model wrapper.

    Usage:
        responder = ChatResponder(ModelConfig(), instructions)
        reply = await responder.complete(conversation, "Hello")

        async for chunk in responder.stream(conversation, "Hello"):
            ...
    """

    def __init__(
        self,
        config: ModelConfig,
        instructions: str,
        client: Optional[AsyncOpenAI] = None,
    ):
        self.config = config
        self.instructions = instructions
        self._client = client

    @property
    def client(self) -> AsyncOpenAI:
        """Lazy-load OpenAI client."""
        if self._client is None:
            if not self.config.api_key:
                raise ValueError("OPENAI_API_KEY not set")
            self._client = AsyncOpenAI(
                api_key=self.config.api_key,
                base_url=self.config.base_url,
                max_retries=0,
            )
        return self._client

    def _build_messages(self, conversation: Conversation) -> List[Dict[str, str]]:
        messages = []
        if self.instructions:
            messages.append({"role": "system", "content": self.instructions})
        messages.extend(conversation.messages_for_llm())
        return messages

    async def complete(self, conversation: Conversation, text: str) -> str:
        """Request a complete reply and record both turns."""
        conversation.add_user_turn(text)
        response = await self.client.chat.completions.create(
            model=self.config.model_name,
            messages=self._build_messages(conversation),
        )
        content = response.choices[0].message.content or ""
        conversation.add_assistant_turn(content)
        logger.debug(f"Chat completion for {conversation.key}: {len(content)} chars")
        return content

    async def stream(self, conversation: Conversation, text: str) -> AsyncIterator[str]:
        """Yield reply chunks as they arrive; the full reply is recorded at the end."""
        conversation.add_user_turn(text)
        stream = await self.client.chat.completions.create(
            model=self.config.model_name,
            messages=self._build_messages(conversation),
            stream=True,
        )

        parts: List[str] = []
        async for chunk in stream:
            if not chunk.choices:
                continue
            delta = chunk.choices[0].delta.content
            if delta:
                parts.append(delta)
                yield delta

        content = "".join(parts)
        conversation.add_assistant_turn(content)
        logger.debug(f"Streamed chat reply for {conversation.key}: {len(parts)} chunks, {len(content)} chars")

    async def close(self):
        """Close HTTP client."""
        if self._client:
            await self._client.close()
