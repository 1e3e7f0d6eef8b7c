"""
Jira Chat Bot

Slack Bolt AsyncApp relaying messages to Jira or to a chat model.

Features:
- Direct messages answered with streamed replies
- @mentions in channels answered in-thread with a single reply
- Jira keywords (jira, story, sprint, task) routed to the Jira query handler
- Per-conversation history kept in memory
- Feedback buttons on every AI-generated reply

Usage:
    python -m jira_bot.app

    # HTTP mode instead of Socket Mode:
    APP_MODE=http PORT=3000 python -m jira_bot.app
"""

import os
import re
import asyncio
import logging
from typing import Awaitable, Callable, Optional

from aiohttp import web
from dotenv import load_dotenv
from slack_bolt.async_app import AsyncApp
from slack_bolt.authorization import AuthorizeResult
from slack_bolt.adapter.socket_mode.async_handler import AsyncSocketModeHandler
from slack_sdk.web.async_client import AsyncWebClient

from .chat_responder import ChatResponder, load_instructions
from .config import Settings, load_settings, validate_settings
from .conversation_store import ConversationStore
from .delivery import FEEDBACK_ACTION_PREFIX, delivery_for
from .dispatcher import FeedbackSubmission, InboundMessage, MessageDispatcher
from .jira_client import JiraClient
from .jira_handler import JiraQueryHandler

# Load environment variables
load_dotenv()

# Configure logging
logging.basicConfig(
    level=getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

EMPTY_MENTION_REPLY = (
    "Hi! Ask me anything, or ask about JIRA. For example:\n"
    "• `@bot search for issues`\n"
    "• `@bot show sprint information`"
)


# =============================================================================
# Helper Functions
# =============================================================================

def extract_message_text(text: str, bot_user_id: str) -> str:
    """
    Extract message text, removing the bot mention.

    Args:
        text: Raw message text (may include <@BOT_ID>)
        bot_user_id: Bot's user ID

    Returns:
        Clean message text
    """
    if not bot_user_id:
        return text.strip()
    pattern = rf"<@{re.escape(bot_user_id)}>\s*"
    return re.sub(pattern, "", text).strip()


def message_from_event(event: dict, bot_user_id: str = "") -> Optional[InboundMessage]:
    """
    Build an InboundMessage from a Slack message or app_mention event.

    Returns None for bot messages, edits/joins and other subtypes, and
    messages with no text left after removing the mention.
    """
    if event.get("bot_id") or event.get("subtype"):
        return None

    text = extract_message_text(event.get("text") or "", bot_user_id)
    if not text:
        return None

    is_group = event.get("channel_type", "channel") != "im"
    # Group replies go in a thread; DMs reply in the conversation itself
    thread_ts = event.get("thread_ts") or (event.get("ts") if is_group else None)

    return InboundMessage(
        conversation_id=event["channel"],
        sender_id=event["user"],
        text=text,
        is_group=is_group,
        thread_ts=thread_ts,
    )


def feedback_from_body(body: dict) -> FeedbackSubmission:
    """Build a FeedbackSubmission from a block_actions payload."""
    action = (body.get("actions") or [{}])[0]
    return FeedbackSubmission(
        sender_id=(body.get("user") or {}).get("id", ""),
        conversation_id=(body.get("channel") or {}).get("id"),
        value={
            "action_id": action.get("action_id"),
            "value": action.get("value"),
            "message_ts": (body.get("message") or {}).get("ts"),
        },
    )


async def dispatch_event(
    dispatcher: MessageDispatcher,
    event: dict,
    client: AsyncWebClient,
    bot_user_id: str = "",
):
    """Turn a Slack event into an InboundMessage and hand it to the dispatcher."""
    message = message_from_event(event, bot_user_id)
    if message is None:
        return
    await dispatcher.handle_message(message, delivery_for(message, client))


# =============================================================================
# App Factory
# =============================================================================

def build_dispatcher(settings: Settings) -> MessageDispatcher:
    """Create the dispatcher and its collaborators from settings."""
    instructions = load_instructions(settings.bot.instructions_path)
    jira_handler = JiraQueryHandler(JiraClient(settings.jira), settings.jira)
    responder = ChatResponder(settings.model, instructions)
    return MessageDispatcher(ConversationStore(), jira_handler, responder)


def create_app(
    settings: Settings,
    dispatcher: MessageDispatcher,
    authorize: Optional[Callable[..., Awaitable[AuthorizeResult]]] = None,
) -> AsyncApp:
    """
    Create the Bolt app and register event handlers.

    Args:
        settings: Loaded settings
        dispatcher: Message dispatcher the handlers hand off to
        authorize: Optional Bolt authorize function, used instead of the bot token
    """
    app = AsyncApp(
        token=settings.bot.bot_token,
        signing_secret=settings.bot.signing_secret,
        authorize=authorize,
    )

    @app.event("message")
    async def handle_message(event: dict, client: AsyncWebClient, context: dict):
        """
        Handle direct messages.

        Channel messages are ignored here; in channels the bot only answers
        @mentions (see handle_mention).
        """
        if event.get("channel_type") != "im":
            return
        # Process in background to avoid Slack timeout
        asyncio.create_task(
            dispatch_event(dispatcher, event, client, context.get("bot_user_id", ""))
        )

    @app.event("app_mention")
    async def handle_mention(event: dict, client: AsyncWebClient, context: dict):
        """Handle @mentions of the bot in channels."""
        message = message_from_event(event, context.get("bot_user_id", ""))
        if message is None:
            # Only a mention with no text left gets the help reply
            if not (event.get("bot_id") or event.get("subtype")):
                await client.chat_postMessage(
                    channel=event["channel"],
                    thread_ts=event.get("thread_ts") or event["ts"],
                    text=EMPTY_MENTION_REPLY,
                )
            return
        asyncio.create_task(dispatcher.handle_message(message, delivery_for(message, client)))

    @app.action(re.compile(f"^{FEEDBACK_ACTION_PREFIX}"))
    async def handle_feedback(ack, body: dict):
        """Handle feedback button clicks."""
        await ack()
        await dispatcher.handle_feedback(feedback_from_body(body))

    return app


# =============================================================================
# Startup / Main
# =============================================================================

async def startup(settings: Settings, dispatcher: MessageDispatcher):
    """Validate configuration and check Jira connectivity."""
    logger.info("Starting Jira Chat Bot...")

    validate_settings(settings)
    logger.info(f"Chat model: {settings.model.model_name}, app mode: {settings.bot.app_mode}")

    if await dispatcher.jira_handler.check_connection():
        logger.info("JIRA connectivity check passed")
    else:
        logger.warning("JIRA connectivity check failed; JIRA requests will return an error message")

    stats = await dispatcher.store.get_stats()
    logger.info(f"Conversation store ready ({stats['total_conversations']} conversations)")


async def main():
    """Main entry point for running the bot."""
    settings = load_settings()
    logging.getLogger().setLevel(getattr(logging, settings.bot.log_level, logging.INFO))
    dispatcher = build_dispatcher(settings)
    app = create_app(settings, dispatcher)

    await startup(settings, dispatcher)

    try:
        if settings.bot.socket_mode:
            handler = AsyncSocketModeHandler(app, settings.bot.app_token)
            logger.info("Starting Socket Mode handler...")
            await handler.start_async()
        else:
            runner = web.AppRunner(app.web_app(port=settings.bot.port))
            await runner.setup()
            await web.TCPSite(runner, "0.0.0.0", settings.bot.port).start()
            logger.info(f"Listening for Slack events on port {settings.bot.port}")
            try:
                await asyncio.Event().wait()
            finally:
                await runner.cleanup()
    except KeyboardInterrupt:
        logger.info("Received shutdown signal")
    finally:
        await dispatcher.responder.close()
        logger.info("Jira Chat Bot shutdown complete.")


def run():
    """Console script entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run()
