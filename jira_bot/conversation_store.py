"""
Conversation Storage

In-memory conversation history per Slack conversation participant.

Features:
- Conversation key format: {conversation_id}/{sender_id}
- History is an ordered list of user/assistant turns
- Lives for the process lifetime (no eviction, no persistence)

Concurrency: get() hands out a working copy and save() replaces the stored
turns wholesale. Two messages for the same key processed at once will race;
the last save wins.
"""

import logging
import asyncio
from datetime import datetime
from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any

logger = logging.getLogger(__name__)


def conversation_key(conversation_id: str, sender_id: str) -> str:
    """Composite key scoping history to one participant within one conversation."""
    return f"{conversation_id}/{sender_id}"


@dataclass
class ChatTurn:
    """A single turn in a conversation."""
    role: str  # "user" or "assistant"
    content: str
    timestamp: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "role": self.role,
            "content": self.content,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ChatTurn":
        return cls(
            role=d.get("role", "user"),
            content=d.get("content", ""),
            timestamp=d.get("timestamp", ""),
        )


@dataclass
class Conversation:
    """Conversation history for one participant in one Slack conversation."""

    conversation_id: str
    sender_id: str
    turns: List[ChatTurn] = field(default_factory=list)

    @property
    def key(self) -> str:
        return conversation_key(self.conversation_id, self.sender_id)

    def add_user_turn(self, content: str) -> ChatTurn:
        """Append a user turn."""
        turn = ChatTurn(role="user", content=content, timestamp=datetime.utcnow().isoformat())
        self.turns.append(turn)
        return turn

    def add_assistant_turn(self, content: Optional[str]) -> ChatTurn:
        """Append an assistant turn."""
        turn = ChatTurn(role="assistant", content=content or "", timestamp=datetime.utcnow().isoformat())
        self.turns.append(turn)
        return turn

    def messages_for_llm(self) -> List[Dict[str, str]]:
        """Full history formatted for the chat completions API."""
        return [{"role": t.role, "content": t.content} for t in self.turns]


class ConversationStore:
    """
    Process-local conversation history store.

    Usage:
        store = ConversationStore()

        conversation = await store.get(channel_id, user_id)
        conversation.add_assistant_turn("Found 3 boards")
        await store.save(conversation)
    """

    def __init__(self):
        self._histories: Dict[str, List[Dict[str, Any]]] = {}
        self._lock = asyncio.Lock()

    async def get(self, conversation_id: str, sender_id: str) -> Conversation:
        """
        Load the history for a key, or an empty conversation on first contact.

        The returned Conversation is a copy; changes are only visible to other
        readers after save().
        """
        key = conversation_key(conversation_id, sender_id)
        async with self._lock:
            stored = self._histories.get(key, [])
            turns = [ChatTurn.from_dict(t) for t in stored]
        return Conversation(conversation_id=conversation_id, sender_id=sender_id, turns=turns)

    async def save(self, conversation: Conversation):
        """Replace the stored history for the conversation's key."""
        async with self._lock:
            self._histories[conversation.key] = [t.to_dict() for t in conversation.turns]
        logger.debug(f"Saved conversation: {conversation.key} ({len(conversation.turns)} turns)")

    async def get_stats(self) -> Dict[str, Any]:
        """Get store statistics."""
        async with self._lock:
            total_turns = sum(len(turns) for turns in self._histories.values())
            return {
                "total_conversations": len(self._histories),
                "total_turns": total_turns,
            }
