"""
Jira Client

Async facade over the official ``jira`` client.

The ``jira`` library is synchronous, so each call runs in a worker thread to
keep the Bolt event loop free. The underlying JIRA instance is created on first
use so a missing configuration never breaks startup.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

from jira import JIRA

from .config import JiraConfig

logger = logging.getLogger(__name__)

# Request timeout in seconds for Jira REST calls
JIRA_TIMEOUT_SECONDS = 5


class JiraClient:
    """Exposes the three Jira capabilities the bot needs."""

    def __init__(self, config: JiraConfig, jira: Optional[JIRA] = None):
        self.config = config
        self._jira = jira
        logger.info(
            "Initializing JIRA client with config: "
            f"host={config.server_url or '<unset>'}, email={config.email or '<unset>'}, "
            f"project={config.project or '<unset>'}, has_token={bool(config.token)}"
        )

    @property
    def jira(self) -> JIRA:
        """Lazy-load the JIRA client."""
        if self._jira is None:
            self._jira = JIRA(
                server=self.config.server_url,
                basic_auth=(self.config.email, self.config.token),
                timeout=JIRA_TIMEOUT_SECONDS,
                get_server_info=False,
                max_retries=0,
            )
        return self._jira

    async def get_current_user(self) -> Dict[str, Any]:
        """Return the authenticated account (GET /myself)."""
        return await asyncio.to_thread(lambda: self.jira.myself())

    async def find_issue(self, issue_key: str):
        """Fetch a single issue by key."""
        logger.debug(f"Fetching issue {issue_key}")
        return await asyncio.to_thread(lambda: self.jira.issue(issue_key))

    async def list_boards(self):
        """List agile boards; the result exposes ``total``."""
        logger.debug("Listing boards")
        return await asyncio.to_thread(lambda: self.jira.boards())
