"""
Reply Delivery

How a reply reaches Slack, chosen once per inbound message:

- BatchDelivery: group conversations. One complete message, threaded under
  the triggering message.
- StreamingDelivery: one-to-one conversations. The first chunk posts a
  message, later chunks update it in place, and close() attaches the
  AI-generated marker.

Both attach an "AI-generated" context block and feedback buttons to the final
reply. Feedback buttons use action ids starting with ``feedback_``.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from slack_sdk.web.async_client import AsyncWebClient

from .chat_responder import ChatResponder
from .conversation_store import Conversation

logger = logging.getLogger(__name__)

AI_GENERATED_LABEL = "AI-generated"
FEEDBACK_ACTION_PREFIX = "feedback_"
FEEDBACK_POSITIVE = "feedback_positive"
FEEDBACK_NEGATIVE = "feedback_negative"

# Minimum new characters before a streamed message is updated again
STREAM_UPDATE_MIN_CHARS = 80

# Slack section block text limit is ~3000 characters
SLACK_TEXT_LIMIT = 3000


def truncate_for_slack(text: str, max_length: int = SLACK_TEXT_LIMIT) -> str:
    """Truncate text to fit Slack's block text limit."""
    if len(text) <= max_length:
        return text

    truncated = text[:max_length - 50]
    last_newline = truncated.rfind('\n')
    if last_newline > max_length - 500:
        truncated = truncated[:last_newline]

    return truncated + "\n\n... _(response truncated)_"


def ai_generated_blocks(text: str) -> List[Dict[str, Any]]:
    """Build reply blocks: optional text, AI-generated marker, feedback buttons."""
    blocks: List[Dict[str, Any]] = []
    if text:
        blocks.append({
            "type": "section",
            "text": {"type": "mrkdwn", "text": truncate_for_slack(text)},
        })
    blocks.append({
        "type": "context",
        "elements": [
            {"type": "mrkdwn", "text": f"🤖 _{AI_GENERATED_LABEL}_"}
        ]
    })
    blocks.append({
        "type": "actions",
        "block_id": "feedback",
        "elements": [
            {
                "type": "button",
                "action_id": FEEDBACK_POSITIVE,
                "text": {"type": "plain_text", "text": "👍", "emoji": True},
                "value": "positive",
            },
            {
                "type": "button",
                "action_id": FEEDBACK_NEGATIVE,
                "text": {"type": "plain_text", "text": "👎", "emoji": True},
                "value": "negative",
            },
        ]
    })
    return blocks


class Delivery(ABC):
    """Outbound channel for one inbound message."""

    def __init__(self, client: AsyncWebClient, channel: str, thread_ts: Optional[str] = None):
        self.client = client
        self.channel = channel
        self.thread_ts = thread_ts

    async def send_notice(self, text: str):
        """Post a plain message (no AI-generated marker)."""
        await self.client.chat_postMessage(
            channel=self.channel,
            thread_ts=self.thread_ts,
            text=text,
        )

    @abstractmethod
    async def deliver(self, text: str):
        """Deliver an already complete reply."""

    @abstractmethod
    async def relay_chat(self, responder: ChatResponder, conversation: Conversation, text: str):
        """Ask the chat model for a reply and deliver it."""


class BatchDelivery(Delivery):
    """Single-message delivery for group conversations."""

    async def deliver(self, text: str):
        await self.client.chat_postMessage(
            channel=self.channel,
            thread_ts=self.thread_ts,
            text=truncate_for_slack(text),
            blocks=ai_generated_blocks(text),
        )

    async def relay_chat(self, responder: ChatResponder, conversation: Conversation, text: str):
        reply = await responder.complete(conversation, text)
        await self.deliver(reply)


class StreamingDelivery(Delivery):
    """Incremental delivery for one-to-one conversations."""

    def __init__(
        self,
        client: AsyncWebClient,
        channel: str,
        thread_ts: Optional[str] = None,
        min_update_chars: int = STREAM_UPDATE_MIN_CHARS,
    ):
        super().__init__(client, channel, thread_ts)
        self.min_update_chars = min_update_chars
        self._buffer = ""
        self._flushed_len = 0
        self._message_ts: Optional[str] = None

    @property
    def text(self) -> str:
        """Everything emitted so far."""
        return self._buffer

    async def emit(self, chunk: str):
        """Forward one chunk to the streamed message."""
        if not chunk:
            return
        self._buffer += chunk

        if self._message_ts is None:
            result = await self.client.chat_postMessage(
                channel=self.channel,
                thread_ts=self.thread_ts,
                text=truncate_for_slack(self._buffer),
            )
            self._message_ts = result["ts"]
            self._flushed_len = len(self._buffer)
        elif len(self._buffer) - self._flushed_len >= self.min_update_chars:
            await self.client.chat_update(
                channel=self.channel,
                ts=self._message_ts,
                text=truncate_for_slack(self._buffer),
            )
            self._flushed_len = len(self._buffer)

    async def close(self):
        """Flush remaining text and attach the AI-generated marker with feedback buttons."""
        if self._message_ts is None:
            # Nothing was streamed; the marker goes out on its own
            await self.client.chat_postMessage(
                channel=self.channel,
                thread_ts=self.thread_ts,
                text=AI_GENERATED_LABEL,
                blocks=ai_generated_blocks(""),
            )
            return

        await self.client.chat_update(
            channel=self.channel,
            ts=self._message_ts,
            text=truncate_for_slack(self._buffer),
            blocks=ai_generated_blocks(self._buffer),
        )
        self._flushed_len = len(self._buffer)
        logger.debug(f"Closed stream {self.channel}/{self._message_ts} ({len(self._buffer)} chars)")

    async def deliver(self, text: str):
        await self.emit(text)
        await self.close()

    async def relay_chat(self, responder: ChatResponder, conversation: Conversation, text: str):
        async for chunk in responder.stream(conversation, text):
            await self.emit(chunk)
        await self.close()


def delivery_for(message, client: AsyncWebClient) -> Delivery:
    """Pick the delivery mode for an inbound message."""
    if message.is_group:
        return BatchDelivery(client, message.conversation_id, message.thread_ts)
    return StreamingDelivery(client, message.conversation_id, message.thread_ts)
