import asyncio

from jira_bot.conversation_store import ChatTurn, ConversationStore, conversation_key


def test_conversation_key():
    assert conversation_key("C123", "U456") == "C123/U456"


def test_get_unknown_key_returns_empty_history():
    store = ConversationStore()
    conversation = asyncio.run(store.get("C1", "U1"))
    assert conversation.turns == []
    assert conversation.key == "C1/U1"


def test_save_then_get_round_trips_turns():
    async def run():
        store = ConversationStore()
        conversation = await store.get("C1", "U1")
        conversation.add_user_turn("hi")
        conversation.add_assistant_turn("hello")
        await store.save(conversation)
        return await store.get("C1", "U1")

    loaded = asyncio.run(run())
    assert [(t.role, t.content) for t in loaded.turns] == [("user", "hi"), ("assistant", "hello")]
    assert loaded.messages_for_llm() == [
        {"role": "user", "content": "hi"},
        {"role": "assistant", "content": "hello"},
    ]


def test_unsaved_changes_are_not_visible():
    async def run():
        store = ConversationStore()
        conversation = await store.get("C1", "U1")
        conversation.add_assistant_turn("draft")
        return await store.get("C1", "U1")

    assert asyncio.run(run()).turns == []


def test_keys_are_isolated_per_sender():
    async def run():
        store = ConversationStore()
        a = await store.get("C1", "U1")
        a.add_assistant_turn("for U1")
        await store.save(a)
        return await store.get("C1", "U2"), await store.get_stats()

    other, stats = asyncio.run(run())
    assert other.turns == []
    assert stats == {"total_conversations": 1, "total_turns": 1}


def test_last_save_wins():
    async def run():
        store = ConversationStore()
        first = await store.get("C1", "U1")
        second = await store.get("C1", "U1")
        first.add_assistant_turn("one")
        second.add_assistant_turn("two")
        await store.save(first)
        await store.save(second)
        return await store.get("C1", "U1")

    assert [t.content for t in asyncio.run(run()).turns] == ["two"]


def test_chat_turn_from_dict_defaults():
    turn = ChatTurn.from_dict({"content": "x"})
    assert turn.role == "user"
    assert turn.to_dict()["content"] == "x"
