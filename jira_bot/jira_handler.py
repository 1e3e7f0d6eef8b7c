"""
Jira Query Handler

Turns a message already routed to Jira into a human-readable reply.

Flow:
1. Verify connectivity with a "current user" call
2. Search/find -> look up one issue
3. Sprint -> count boards
4. Anything else -> help text

Remote errors are caught and summarized for the user. Nothing is retried.
"""

import json
import logging
from typing import Any, List, Optional

from .config import JiraConfig
from .jira_client import JiraClient
from .router import QueryIntent, classify_intent, extract_issue_key

logger = logging.getLogger(__name__)

CONNECTION_FAILED_MESSAGE = "Unable to connect to JIRA. Please check your credentials and try again."

HELP_MESSAGE = (
    "I can help you with JIRA. Try asking me to:\n"
    "- Search for issues\n"
    "- Show sprint information\n"
    "- List your assigned tasks"
)

API_ERROR_PREFIX = "Sorry, I encountered an error while processing your JIRA request: "

GENERIC_ERROR_MESSAGE = (
    "Sorry, I encountered an error while processing your JIRA request. "
    "Please check your JIRA configuration."
)


def format_issue(issue: Any) -> str:
    """Format an issue as "[KEY] summary", its status and assignee."""
    fields = issue.fields
    status = getattr(getattr(fields, "status", None), "name", None) or "Unknown"
    assignee = getattr(getattr(fields, "assignee", None), "displayName", None) or "Unassigned"
    return f"[{issue.key}] {fields.summary}\nStatus: {status}\nAssignee: {assignee}"


def api_error_messages(error: Exception) -> Optional[List[str]]:
    """
    Extract ``errorMessages`` from a Jira REST error response.

    Returns:
        The list of messages (possibly empty) when the error carries an HTTP
        response, None when it does not
    """
    response = getattr(error, "response", None)
    if response is None:
        return None
    try:
        payload = response.json()
    except ValueError:
        return []
    if not isinstance(payload, dict):
        return []
    return [str(m) for m in payload.get("errorMessages") or []]


class JiraQueryHandler:
    """Answers search, sprint, and help requests against one Jira project."""

    def __init__(self, client: JiraClient, config: JiraConfig):
        self.client = client
        self.config = config

    async def check_connection(self) -> bool:
        """Return True if Jira accepts our credentials."""
        try:
            logger.info(
                f"Attempting JIRA connection: host={self.config.server_url}, "
                f"email={self.config.email}, project={self.config.project}, "
                f"has_token={bool(self.config.token)}"
            )
            myself = await self.client.get_current_user()
            name = (myself or {}).get("displayName") or (myself or {}).get("emailAddress")
            logger.info(f"JIRA connection successful (user: {name})")
            return True
        except Exception as e:
            response = getattr(e, "response", None)
            logger.error(
                f"JIRA connection failed: status_code={getattr(e, 'status_code', None)}, "
                f"message={e}, response={getattr(response, 'text', None)}"
            )
            return False

    async def handle(self, query: str) -> str:
        """
        Run a Jira request and format the reply.

        Args:
            query: Message text already routed to Jira

        Returns:
            Reply text for the user (never raises)
        """
        try:
            if not await self.check_connection():
                return CONNECTION_FAILED_MESSAGE

            intent = classify_intent(query)

            if intent == QueryIntent.SEARCH:
                # Without an explicit key we fall back to the project's first issue
                issue_key = extract_issue_key(query, self.config.project) or f"{self.config.project}-1"
                logger.info(f"Executing JIRA search for {issue_key}")
                issue = await self.client.find_issue(issue_key)
                logger.debug(f"JIRA search result: {json.dumps(getattr(issue, 'raw', {}), default=str)}")
                return f"Found issue:\n{format_issue(issue)}"

            if intent == QueryIntent.SPRINT:
                logger.info("Executing JIRA board listing")
                boards = await self.client.list_boards()
                total = getattr(boards, "total", None)
                if total is None:
                    total = len(boards)
                logger.debug(f"JIRA boards: {total}")
                return f"Found {total} boards"

            return HELP_MESSAGE

        except Exception as e:
            logger.error(f"Error processing JIRA query: {e}", exc_info=True)
            messages = api_error_messages(e)
            if messages is not None:
                logger.error(f"JIRA API response: {getattr(e.response, 'text', '')}")
                return API_ERROR_PREFIX + (", ".join(messages) or "Unknown error")
            return GENERIC_ERROR_MESSAGE
