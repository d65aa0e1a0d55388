"""Tests for intent routing."""

from datetime import datetime, timezone

import pytest

from mavens.agent.router import IntentRouter, is_followup, topics_from_history
from mavens.memory import LearningSnapshot
from mavens.models import Category, ContextEntry, Request
from mavens.specialists import create_default_agents, normalize_message
from mavens.tools.executor import ToolExecutor
from mavens.utils.config import RouterConfig

CWD = "/tmp/project"


@pytest.fixture
def router(fake_llm):
    return IntentRouter(create_default_agents(ToolExecutor(), fake_llm), RouterConfig())


def entry(message: str, agent_ids: tuple[str, ...], topics=frozenset(), index: int = 0) -> ContextEntry:
    return ContextEntry(
        turn_index=index,
        request=Request(message, CWD, "s1"),
        response_summary="done",
        timestamp=datetime.now(timezone.utc),
        extracted_topics=frozenset(topics),
        agent_ids=agent_ids,
    )


def test_greeting_falls_back_to_conversation(router):
    result = router.classify(Request("hi", CWD))

    assert result.fallback is True
    assert result.agent_ids() == ["conversation"]
    assert result.top.score == 1.0
    assert result.top.pattern_key == "conversation:fallback"


def test_git_status_routes_to_git(router):
    result = router.classify(Request("show git status", CWD))

    assert result.agent_ids() == ["git"]
    assert result.top.category == Category.GIT
    assert result.top.pattern_key == "git:status"
    # "git status" and "status" both hit: 0.85 + 0.1, times the neutral 0.5
    assert result.top.score == pytest.approx(0.475)


def test_classification_is_deterministic(router):
    request = Request("list files and review the code", CWD)
    snapshot = LearningSnapshot({"file:list": 0.7})

    first = router.classify(request, (), snapshot)
    second = router.classify(request, (), snapshot)

    assert first == second


def test_multi_agent_request_keeps_registration_order_on_ties(router):
    result = router.classify(Request("list files and review the code", CWD))

    assert result.agent_ids() == ["file", "quality"]
    assert result.scores()[0][1] == result.scores()[1][1]


def test_learning_confidence_reorders_candidates(router):
    snapshot = LearningSnapshot({"quality:review": 0.9})

    result = router.classify(Request("list files and review the code", CWD), (), snapshot)

    assert result.agent_ids() == ["quality", "file"]


def test_low_confidence_drops_below_threshold(router):
    snapshot = LearningSnapshot({"git:status": 0.1})

    result = router.classify(Request("git status", CWD), (), snapshot)

    assert result.fallback is True
    assert result.agent_ids() == ["conversation"]


def test_pattern_key_lists_every_matched_intent(router):
    result = router.classify(Request("build and test the project", CWD))

    assert result.top.agent_id == "command"
    assert result.top.pattern_key == "command:build+test"
    assert result.top.match.intents == ("build", "test")
    assert result.top.score == pytest.approx(0.45)


def test_topic_boost_favours_recent_category(router):
    request = Request("show the log", CWD)

    plain = router.classify(request, topics=frozenset())
    boosted = router.classify(request, topics=frozenset({"git"}))

    assert plain.top.agent_id == boosted.top.agent_id == "git"
    assert boosted.top.score == pytest.approx(plain.top.score + 0.05)


def test_followup_reselects_previous_agents(router):
    history = (entry("git status", ("git",), {"git"}),)

    result = router.classify(Request("do it again", CWD), history)

    assert result.fallback is False
    assert result.agent_ids() == ["git"]
    assert result.top.pattern_key == "git:status"
    # follow-up strength 0.6 plus the topic boost, times 0.5
    assert result.top.score == pytest.approx(0.35)


def test_followup_without_history_is_conversation(router):
    result = router.classify(Request("do it again", CWD))

    assert result.fallback is True


def test_file_create_needs_a_filename(router):
    assert router.classify(Request("create demo.html with <h1>Hi</h1>", CWD)).agent_ids() == ["file"]
    assert "file" not in router.classify(Request("create a branch called feature", CWD)).agent_ids()


def test_is_followup_markers():
    assert is_followup(normalize_message("Same again, please"))
    assert is_followup(normalize_message("one more time"))
    assert not is_followup(normalize_message("show git status"))


def test_topics_from_history_uses_latest_turns():
    history = [
        entry("a", ("file",), {"file"}, 0),
        entry("b", ("git",), {"git"}, 1),
        entry("c", ("command",), {"command"}, 2),
    ]

    assert topics_from_history(history, 2) == {"git", "command"}
    assert topics_from_history(history, 0) == frozenset()


def test_thanks_again_is_small_talk_not_a_replay(router):
    history = (entry("run `echo x >> log.txt`", ("command",), {"command"}),)

    result = router.classify(Request("thanks again!", CWD), history)

    assert result.fallback is True
    assert result.agent_ids() == ["conversation"]
    assert not is_followup(normalize_message("thanks again!"))
    assert not is_followup(normalize_message("Hi, same here"))


def test_score_equal_to_threshold_is_not_selected(router, learning):
    # One failed build: confidence 0.25, times strength 0.8, lands exactly on 0.2
    learning.observe("command:build", "failure")

    at_threshold = router.classify(Request("build", CWD), (), learning.snapshot())
    just_above = router.classify(Request("build", CWD), (), LearningSnapshot({"command:build": 0.26}))

    assert at_threshold.fallback is True
    assert at_threshold.agent_ids() == ["conversation"]
    assert just_above.agent_ids() == ["command"]
    assert just_above.top.score == pytest.approx(0.208)
