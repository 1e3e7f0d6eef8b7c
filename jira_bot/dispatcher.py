"""
Message Dispatcher

Wires an inbound message to the router, then to the Jira handler or the chat
model, then to the delivery channel, and finally persists the history.

Flow:
1. Load conversation history for {conversation_id}/{sender_id}
2. Jira keywords -> JiraQueryHandler, reply stored as an assistant turn
3. Otherwise -> ChatResponder with the full history
4. Save history

Any uncaught error is logged, two diagnostic lines are sent to the user, and
the history for that turn is dropped.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Optional

from .chat_responder import ChatResponder
from .conversation_store import ConversationStore, conversation_key
from .delivery import Delivery
from .jira_handler import JiraQueryHandler
from .router import is_jira_query

logger = logging.getLogger(__name__)

ERROR_NOTICES = (
    "The agent encountered an error or bug.",
    "To continue to run this agent, please fix the agent source code.",
)


@dataclass
class InboundMessage:
    """A user message received from Slack."""
    conversation_id: str  # Slack channel ID
    sender_id: str  # Slack user ID
    text: str
    is_group: bool
    thread_ts: Optional[str] = None


@dataclass
class FeedbackSubmission:
    """A feedback button click on an AI-generated reply."""
    sender_id: str
    conversation_id: Optional[str]
    value: Any


class MessageDispatcher:
    """Top-level handler for inbound messages and feedback."""

    def __init__(
        self,
        store: ConversationStore,
        jira_handler: JiraQueryHandler,
        responder: ChatResponder,
    ):
        self.store = store
        self.jira_handler = jira_handler
        self.responder = responder

    async def handle_message(self, message: InboundMessage, delivery: Delivery):
        """
        Process one inbound message end to end.

        Args:
            message: The inbound message
            delivery: Batch or streaming delivery selected for this message
        """
        key = conversation_key(message.conversation_id, message.sender_id)

        try:
            conversation = await self.store.get(message.conversation_id, message.sender_id)

            if is_jira_query(message.text):
                logger.info(f"Routing message in {conversation.key} to JIRA")
                reply = await self.jira_handler.handle(message.text)
                conversation.add_assistant_turn(reply)
                await delivery.deliver(reply)
                await self.store.save(conversation)
                return

            logger.info(f"Routing message in {conversation.key} to chat model")
            await delivery.relay_chat(self.responder, conversation, message.text)
            await self.store.save(conversation)

        except Exception as e:
            logger.error(f"Error processing message in {key}: {e}", exc_info=True)
            for notice in ERROR_NOTICES:
                try:
                    await delivery.send_notice(notice)
                except Exception as send_error:
                    logger.error(f"Failed to send error notice: {send_error}")
                    break

    async def handle_feedback(self, submission: FeedbackSubmission):
        """Log a feedback submission."""
        logger.info(
            f"Feedback from {submission.sender_id} in {submission.conversation_id}: "
            f"{json.dumps(submission.value, default=str)}"
        )
