"""Tests for the learning system."""

import json

import pytest

from mavens.memory import LearningSystem, NEUTRAL_CONFIDENCE, Outcome
from mavens.utils.config import LearningConfig


class Clock:
    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_unseen_pattern_is_neutral(learning):
    assert learning.confidence("git:status") == NEUTRAL_CONFIDENCE
    assert learning.snapshot().confidence("git:status") == NEUTRAL_CONFIDENCE


def test_successes_raise_confidence_monotonically(learning):
    previous = learning.confidence("git:status")
    for _ in range(5):
        current = learning.observe("git:status", Outcome.SUCCESS)
        assert current > previous
        previous = current
    assert previous < 1.0


def test_failures_lower_confidence_monotonically(learning):
    previous = learning.confidence("command:build")
    for _ in range(5):
        current = learning.observe("command:build", "failure")
        assert current < previous
        previous = current
    assert previous > 0.0


def test_keys_are_independent(learning):
    learning.observe("git:status", Outcome.FAILURE)

    assert learning.confidence("git:commit") == NEUTRAL_CONFIDENCE


def test_decay_drifts_back_toward_neutral():
    clock = Clock()
    learning = LearningSystem(LearningConfig(decay=0.5, bucket_seconds=60), clock=clock)
    for _ in range(4):
        learning.observe("file:create", Outcome.SUCCESS)
    fresh = learning.confidence("file:create")

    clock.now += 60 * 5
    aged = learning.confidence("file:create")

    assert NEUTRAL_CONFIDENCE < aged < fresh


def test_snapshot_is_frozen(learning):
    snapshot = learning.snapshot()
    learning.observe("git:push", Outcome.SUCCESS)

    assert "git:push" not in snapshot
    assert snapshot.confidence("git:push") == NEUTRAL_CONFIDENCE


def test_invalid_outcome_is_rejected(learning):
    with pytest.raises(ValueError):
        learning.observe("git:status", "maybe")


def test_persistence_round_trip(tmp_path):
    path = tmp_path / "learning.json"
    config = LearningConfig(store_path=path)
    clock = Clock()

    first = LearningSystem(config, clock=clock)
    first.observe("git:status", Outcome.SUCCESS)
    first.observe("git:status", Outcome.SUCCESS)
    first.observe("command:test", Outcome.FAILURE)

    stored = json.loads(path.read_text())
    assert stored["version"] == 1
    assert stored["patterns"]["git:status"]["observations"] == 2

    second = LearningSystem(config, clock=clock)
    assert second.confidence("git:status") == pytest.approx(first.confidence("git:status"))
    assert second.confidence("command:test") == pytest.approx(first.confidence("command:test"))


def test_corrupted_store_starts_fresh(tmp_path):
    path = tmp_path / "learning.json"
    path.write_text("{not json")

    learning = LearningSystem(LearningConfig(store_path=path))

    assert learning.pattern_count() == 0
    learning.observe("git:status", Outcome.SUCCESS)
    assert json.loads(path.read_text())["patterns"]["git:status"]["success_count"] == 1.0


def test_report_lists_patterns(learning):
    assert "No patterns learned yet" in learning.report()

    learning.observe("git:status", Outcome.SUCCESS)
    learning.observe("git:status", Outcome.SUCCESS)
    learning.observe("file:list", Outcome.FAILURE)

    report = learning.report()
    assert "Patterns learned: 2" in report
    assert report.index('"git:status"') < report.index('"file:list"')


def test_invalid_decay_is_rejected():
    with pytest.raises(ValueError):
        LearningSystem(LearningConfig(decay=0.0))


def test_flush_writes_only_pending_changes(tmp_path):
    path = tmp_path / "learning.json"
    learning = LearningSystem(LearningConfig(store_path=path), autosave=False)

    learning.observe("git:status", Outcome.SUCCESS)
    assert not path.exists()

    learning.flush()
    assert "git:status" in json.loads(path.read_text())["patterns"]

    path.unlink()
    learning.flush()
    assert not path.exists()
