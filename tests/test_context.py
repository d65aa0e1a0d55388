"""Tests for the conversation context store."""

from datetime import datetime, timezone

import pytest

from mavens.memory import ContextManager
from mavens.models import ContextEntry, Request
from mavens.utils.config import ContextConfig


def make_entry(context: ContextManager, session: str, message: str, topics=()) -> ContextEntry:
    return ContextEntry(
        turn_index=context.next_turn_index(session),
        request=Request(message, "/tmp/project", session),
        response_summary=f"answer to {message}",
        timestamp=datetime.now(timezone.utc),
        extracted_topics=frozenset(topics),
        agent_ids=("file",),
    )


def test_window_is_bounded_and_fifo(context):
    for i in range(25):
        context.append("s1", make_entry(context, "s1", f"message {i}"))

    history = context.recent("s1")
    assert len(history) == 20
    assert history[0].request.message == "message 5"
    assert history[-1].request.message == "message 24"
    assert context.next_turn_index("s1") == 25


def test_recent_window_and_last_entry(context):
    for i in range(3):
        context.append("s1", make_entry(context, "s1", f"m{i}"))

    assert [e.request.message for e in context.recent("s1", 2)] == ["m1", "m2"]
    assert context.recent("s1", 0) == ()
    assert context.last_entry("s1").request.message == "m2"
    assert context.last_entry("other") is None


def test_sessions_are_isolated(context):
    context.append("a", make_entry(context, "a", "hello"))

    assert context.turn_count("a") == 1
    assert context.recent("b") == ()
    assert context.session_count() == 1


def test_relevant_topics_cover_last_turns(context):
    context.append("s1", make_entry(context, "s1", "one", {"file"}))
    context.append("s1", make_entry(context, "s1", "two", {"git", "git status"}))
    context.append("s1", make_entry(context, "s1", "three", {"command"}))
    context.append("s1", make_entry(context, "s1", "four", {"quality"}))

    assert context.relevant_topics("s1") == {"git", "git status", "command", "quality"}


def test_clear_resets_session(context):
    context.append("s1", make_entry(context, "s1", "one"))
    context.clear("s1")

    assert context.recent("s1") == ()
    assert context.next_turn_index("s1") == 0
    assert context.summary("s1")["turns_in_window"] == 0


def test_clear_all_forgets_every_session(context):
    context.append("s1", make_entry(context, "s1", "one"))
    context.append("s2", make_entry(context, "s2", "two"))
    assert context.session_count() == 2

    context.clear_all()

    assert context.session_count() == 0
    assert context.next_turn_index("s2") == 0


def test_summary_describes_last_turn(context):
    context.append("s1", make_entry(context, "s1", "list files", {"file"}))

    summary = context.summary("s1")
    assert summary["last_message"] == "list files"
    assert summary["last_agents"] == ["file"]
    assert summary["topics"] == ["file"]


def test_window_must_be_positive():
    with pytest.raises(ValueError):
        ContextManager(ContextConfig(window_size=0))


def test_least_recently_active_session_is_forgotten_at_the_limit():
    context = ContextManager(ContextConfig(window_size=20, topic_window=3, max_sessions=2))
    context.append("s1", make_entry(context, "s1", "first"))
    context.append("s2", make_entry(context, "s2", "second"))
    context.append("s1", make_entry(context, "s1", "first again"))

    context.append("s3", make_entry(context, "s3", "third"))

    assert context.session_count() == 2
    assert context.recent("s2") == ()
    assert context.next_turn_index("s2") == 0
    assert [e.request.message for e in context.recent("s1")] == ["first", "first again"]
