"""
Query Router

Keyword-based classification of incoming messages.

A message is a Jira request when its lowercase text contains any of the Jira
keywords; everything else goes to the chat model. Jira requests are further
split into search / sprint / unknown intents by plain substring checks.
"""

import re
from enum import Enum
from typing import Optional

JIRA_KEYWORDS = ("jira", "story", "sprint", "task")
SEARCH_KEYWORDS = ("search", "find")
SPRINT_KEYWORDS = ("sprint",)


class QueryIntent(str, Enum):
    SEARCH = "search"
    SPRINT = "sprint"
    UNKNOWN = "unknown"


def is_jira_query(text: Optional[str]) -> bool:
    """Return True if the message should be handled by the Jira query handler."""
    if not text:
        return False
    lowered = text.lower()
    return any(keyword in lowered for keyword in JIRA_KEYWORDS)


def classify_intent(text: Optional[str]) -> QueryIntent:
    """Classify a Jira request. Search wins over sprint when both appear."""
    lowered = (text or "").lower()
    if any(keyword in lowered for keyword in SEARCH_KEYWORDS):
        return QueryIntent.SEARCH
    if any(keyword in lowered for keyword in SPRINT_KEYWORDS):
        return QueryIntent.SPRINT
    return QueryIntent.UNKNOWN


def extract_issue_key(text: Optional[str], project: str) -> Optional[str]:
    """
    Find an explicit issue key for the project (e.g. "ABC-42") in the text.

    Args:
        text: Raw message text
        project: Jira project key

    Returns:
        Upper-cased issue key, or None if the text names no issue of the project
    """
    if not text or not project:
        return None
    match = re.search(rf"\b{re.escape(project)}-(\d+)\b", text, re.IGNORECASE)
    if not match:
        return None
    return f"{project.upper()}-{match.group(1)}"
