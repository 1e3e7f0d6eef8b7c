"""
Jira Chat Bot

A Slack bot that relays messages either to Jira or to a chat model.

Features:
- Keyword routing: jira / story / sprint / task go to Jira, everything else to the model
- Jira issue lookup and board counts via the jira client library
- Streamed replies in direct messages, single replies in channels
- In-memory conversation history per channel and user
"""

__version__ = "1.0.0"
