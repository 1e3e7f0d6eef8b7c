import types

import pytest

from jira_bot.config import JiraConfig, ModelConfig
from jira_bot.conversation_store import ConversationStore
from jira_bot.chat_responder import ChatResponder
from jira_bot.dispatcher import MessageDispatcher
from jira_bot.jira_handler import JiraQueryHandler


class FakeSlackClient:
    """Records chat.postMessage / chat.update calls."""

    def __init__(self, fail_post: bool = False):
        self.posted = []
        self.updated = []
        self.fail_post = fail_post
        self._ts = 0

    async def chat_postMessage(self, **kwargs):
        if self.fail_post:
            raise RuntimeError("slack down")
        self._ts += 1
        self.posted.append(kwargs)
        return {"ok": True, "ts": f"1700000000.{self._ts:06d}"}

    async def chat_update(self, **kwargs):
        self.updated.append(kwargs)
        return {"ok": True, "ts": kwargs["ts"]}


def make_issue(key="ABC-1", summary="Fix login", status="In Progress", assignee=None):
    return types.SimpleNamespace(
        key=key,
        raw={"key": key},
        fields=types.SimpleNamespace(
            summary=summary,
            status=types.SimpleNamespace(name=status),
            assignee=types.SimpleNamespace(displayName=assignee) if assignee else None,
        ),
    )


class FakeJiraClient:
    """Stands in for jira_bot.jira_client.JiraClient."""

    def __init__(self, connected: bool = True, boards_total: int = 3, issue=None, error=None):
        self.connected = connected
        self.boards_total = boards_total
        self.issue = issue or make_issue()
        self.error = error
        self.calls = []

    async def get_current_user(self):
        self.calls.append(("get_current_user",))
        if not self.connected:
            raise RuntimeError("401 Unauthorized")
        return {"displayName": "Bot User"}

    async def find_issue(self, issue_key):
        self.calls.append(("find_issue", issue_key))
        if self.error:
            raise self.error
        return self.issue

    async def list_boards(self):
        self.calls.append(("list_boards",))
        if self.error:
            raise self.error
        return types.SimpleNamespace(total=self.boards_total)


class FakeStream:
    def __init__(self, parts):
        self.parts = parts

    def __aiter__(self):
        return self._gen()

    async def _gen(self):
        # First chunk mimics the role-only delta the API sends
        yield types.SimpleNamespace(choices=[types.SimpleNamespace(delta=types.SimpleNamespace(content=None))])
        for part in self.parts:
            yield types.SimpleNamespace(choices=[types.SimpleNamespace(delta=types.SimpleNamespace(content=part))])
        # Usage-only chunk with no choices
        yield types.SimpleNamespace(choices=[])


class FakeCompletions:
    def __init__(self, reply="Hello there!", parts=None, error=None):
        self.reply = reply
        self.parts = parts or ["Hello", " there", "!"]
        self.error = error
        self.requests = []

    async def create(self, **kwargs):
        self.requests.append(kwargs)
        if self.error:
            raise self.error
        if kwargs.get("stream"):
            return FakeStream(self.parts)
        message = types.SimpleNamespace(content=self.reply)
        return types.SimpleNamespace(choices=[types.SimpleNamespace(message=message)])


class FakeOpenAI:
    def __init__(self, **kwargs):
        self.completions = FakeCompletions(**kwargs)
        self.chat = types.SimpleNamespace(completions=self.completions)
        self.closed = False

    async def close(self):
        self.closed = True


@pytest.fixture
def jira_config():
    return JiraConfig(base_url="example.atlassian.net", token="t0k3n", email="bot@example.com", project="ABC")


@pytest.fixture
def model_config():
    return ModelConfig(model_name="gpt-test", api_key="sk-test", base_url=None)


@pytest.fixture
def slack_client():
    return FakeSlackClient()


@pytest.fixture
def jira_client():
    return FakeJiraClient()


@pytest.fixture
def openai_client():
    return FakeOpenAI()


@pytest.fixture
def responder(model_config, openai_client):
    return ChatResponder(model_config, "You are helpful.", client=openai_client)


@pytest.fixture
def store():
    return ConversationStore()


@pytest.fixture
def dispatcher(store, jira_client, jira_config, responder):
    return MessageDispatcher(store, JiraQueryHandler(jira_client, jira_config), responder)
