"""
Learning System
===============

Outcome-weighted routing confidence. Every routed request produces a
pattern key (an intent signature such as "git:status" or
"command:build+test") and, once the turn completes, a success or failure
observation for that key. The router multiplies match strength by the
key's confidence, so patterns that keep working gain routing priority and
patterns that keep failing fade out.

Confidence formula:
    bucket      = floor(now / bucket_seconds)
    s, f        = success / failure counts, each scaled by
                  decay ** (current_bucket - last_bucket) before use
    confidence  = (s + prior / 2) / (s + f + prior + eps)

    - An unseen key has confidence 0.5 (neutral prior).
    - Repeated successes strictly increase confidence toward 1.
    - Repeated failures strictly decrease it toward 0.
    - With no new observations, decay shrinks s and f and the confidence
      drifts back toward 0.5, so an old failure streak does not lock an
      agent out forever.

Persistence:
    Optional. When a store path is configured the table is loaded at start
    and rewritten as JSON after every observation, or, with autosave off,
    whenever flush() is called (the orchestrator flushes from a worker
    thread once per turn so the event loop never blocks on disk):

    {
      "version": 1,
      "patterns": {
        "git:status": {"success_count": 3.4, "failure_count": 0.0,
                       "last_bucket": 482311, "observations": 4}
      }
    }

    Load and save failures are logged and the system carries on in memory.
"""

import json
import math
import os
import threading
import time
from dataclasses import asdict, dataclass, replace
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Callable, Mapping

from mavens.errors import StoreError
from mavens.utils.config import LearningConfig, get_config
from mavens.utils.logger import Logger

logger = Logger("Learning")

NEUTRAL_CONFIDENCE = 0.5
EPSILON = 1e-9
STORE_VERSION = 1


class Outcome(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"


@dataclass
class LearningPattern:
    """
    Observation counts for one pattern key.

    Counts are floats because decay scales them down between buckets.
    The confidence weight is always derived, never stored.
    """
    pattern_key: str
    success_count: float = 0.0
    failure_count: float = 0.0
    last_bucket: int = 0
    observations: int = 0

    def decayed(self, bucket: int, decay: float) -> "LearningPattern":
        """Copy of this pattern with counts aged to the given bucket."""
        elapsed = max(bucket - self.last_bucket, 0)
        if elapsed == 0:
            return replace(self)
        factor = decay ** elapsed
        return replace(
            self,
            success_count=self.success_count * factor,
            failure_count=self.failure_count * factor,
            last_bucket=bucket,
        )

    def confidence_weight(self, prior_strength: float) -> float:
        total = self.success_count + self.failure_count + prior_strength
        if total <= EPSILON:
            return NEUTRAL_CONFIDENCE
        value = (self.success_count + prior_strength / 2) / (total + EPSILON)
        return min(max(value, 0.0), 1.0)


class LearningSnapshot:
    """
    Read-only view of pattern confidences at one point in time.

    The router reads learning state only through a snapshot, so a
    classification is reproducible from (request, context, snapshot).
    """

    def __init__(self, confidences: Mapping[str, float] | None = None):
        self._confidences = MappingProxyType(dict(confidences or {}))

    def confidence(self, pattern_key: str) -> float:
        return self._confidences.get(pattern_key, NEUTRAL_CONFIDENCE)

    def __contains__(self, pattern_key: str) -> bool:
        return pattern_key in self._confidences

    def __len__(self) -> int:
        return len(self._confidences)

    def items(self):
        return self._confidences.items()

    @classmethod
    def empty(cls) -> "LearningSnapshot":
        return cls()


class LearningSystem:
    """
    Process-wide table of pattern key -> observation counts.

    Example:
        learning = LearningSystem()

        learning.observe("git:status", Outcome.SUCCESS)
        learning.confidence("git:status")     # > 0.5
        learning.confidence("never:seen")     # 0.5

        snapshot = learning.snapshot()        # handed to the router
    """

    def __init__(
        self,
        config: LearningConfig | None = None,
        clock: Callable[[], float] = time.time,
        autosave: bool = True
    ):
        """
        Initialize the learning system.

        Args:
            config: Decay, bucket size, prior strength and optional store path
            clock: Time source in seconds; injectable for tests
            autosave: Write the store after each observation; when False the
                owner calls flush()
        """
        config = config or get_config().learning
        if not 0.0 < config.decay <= 1.0:
            raise ValueError("Learning decay must be in (0, 1]")
        if config.bucket_seconds <= 0:
            raise ValueError("Learning bucket size must be positive")

        self.decay = config.decay
        self.bucket_seconds = config.bucket_seconds
        self.prior_strength = max(config.prior_strength, 0.0)
        self.store_path: Path | None = config.store_path
        self._clock = clock
        self.autosave = autosave

        self._patterns: dict[str, LearningPattern] = {}
        self._dirty = False
        self._lock = threading.Lock()
        self._save_lock = threading.Lock()

        if self.store_path:
            self._load()

    def current_bucket(self) -> int:
        return math.floor(self._clock() / self.bucket_seconds)

    # ==========================================================================
    # Observation
    # ==========================================================================

    def observe(self, pattern_key: str, outcome: Outcome | str) -> float:
        """
        Record one outcome for a pattern.

        Historical counts are decayed to the current bucket first, then the
        new observation is added.

        Args:
            pattern_key: The intent signature that was routed
            outcome: success or failure

        Returns:
            The pattern's confidence after the update
        """
        outcome = Outcome(outcome)
        bucket = self.current_bucket()

        with self._lock:
            existing = self._patterns.get(pattern_key)
            if existing is None:
                pattern = LearningPattern(pattern_key=pattern_key, last_bucket=bucket)
            else:
                pattern = existing.decayed(bucket, self.decay)

            if outcome == Outcome.SUCCESS:
                pattern.success_count += 1.0
            else:
                pattern.failure_count += 1.0
            pattern.observations += 1
            pattern.last_bucket = bucket

            self._patterns[pattern_key] = pattern
            self._dirty = True
            confidence = pattern.confidence_weight(self.prior_strength)

        logger.debug(f"Observed {outcome.value} for {pattern_key} -> {confidence:.3f}")

        if self.autosave:
            self.flush()

        return confidence

    def flush(self) -> None:
        """Write pending observations to the store file; no-op without a path or changes."""
        if not self.store_path:
            return
        with self._lock:
            if not self._dirty:
                return
            self._dirty = False
        self._save()

    # ==========================================================================
    # Queries
    # ==========================================================================

    def confidence(self, pattern_key: str) -> float:
        """
        Current confidence weight for a pattern (0.5 if never observed).
        """
        bucket = self.current_bucket()
        with self._lock:
            pattern = self._patterns.get(pattern_key)
            if pattern is None:
                return NEUTRAL_CONFIDENCE
            return pattern.decayed(bucket, self.decay).confidence_weight(self.prior_strength)

    def snapshot(self) -> LearningSnapshot:
        """Freeze every known pattern's confidence for one routing decision."""
        bucket = self.current_bucket()
        with self._lock:
            confidences = {
                key: pattern.decayed(bucket, self.decay).confidence_weight(self.prior_strength)
                for key, pattern in self._patterns.items()
            }
        return LearningSnapshot(confidences)

    def pattern(self, pattern_key: str) -> LearningPattern | None:
        """A copy of the stored counts for a key, or None."""
        with self._lock:
            pattern = self._patterns.get(pattern_key)
            return replace(pattern) if pattern else None

    def pattern_count(self) -> int:
        with self._lock:
            return len(self._patterns)

    def report(self, top: int = 5) -> str:
        """
        Human-readable learning report.

        Args:
            top: Number of most-observed patterns to list
        """
        snapshot = self.snapshot()
        with self._lock:
            patterns = list(self._patterns.values())

        if not patterns:
            return "Learning Report\n\nNo patterns learned yet."

        average = sum(snapshot.confidence(p.pattern_key) for p in patterns) / len(patterns)
        most_used = sorted(patterns, key=lambda p: (-p.observations, p.pattern_key))[:top]

        lines = [
            "Learning Report",
            "",
            f"- Patterns learned: {len(patterns)}",
            f"- Average confidence: {average * 100:.1f}%",
            "",
            "Top patterns:",
        ]
        for p in most_used:
            lines.append(
                f'- "{p.pattern_key}" ({p.observations} observations, '
                f"{snapshot.confidence(p.pattern_key) * 100:.1f}% confidence)"
            )
        return "\n".join(lines)

    # ==========================================================================
    # Persistence
    # ==========================================================================

    def _load(self) -> None:
        """Load the pattern table; a missing or unreadable file starts fresh."""
        path = self.store_path
        if not path or not path.exists():
            return

        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            if data.get("version") != STORE_VERSION:
                raise StoreError(f"Unsupported learning store version: {data.get('version')}")

            patterns = {}
            for key, raw in data.get("patterns", {}).items():
                patterns[key] = LearningPattern(
                    pattern_key=key,
                    success_count=max(float(raw.get("success_count", 0.0)), 0.0),
                    failure_count=max(float(raw.get("failure_count", 0.0)), 0.0),
                    last_bucket=int(raw.get("last_bucket", 0)),
                    observations=int(raw.get("observations", 0)),
                )
        except (OSError, ValueError, TypeError, AttributeError, StoreError) as e:
            logger.warning(f"Learning store at {path} is unreadable, starting fresh: {e}")
            return

        with self._lock:
            self._patterns = patterns
        logger.info(f"Loaded {len(patterns)} learning patterns from {path}")

    def _save(self) -> None:
        path = self.store_path
        if not path:
            return

        with self._lock:
            patterns = {
                key: {k: v for k, v in asdict(p).items() if k != "pattern_key"}
                for key, p in self._patterns.items()
            }

        payload = {"version": STORE_VERSION, "patterns": patterns}
        tmp_path = path.with_suffix(path.suffix + ".tmp")
        try:
            with self._save_lock:
                path.parent.mkdir(parents=True, exist_ok=True)
                tmp_path.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
                os.replace(tmp_path, path)
        except OSError as e:
            logger.warning(f"Failed to save learning store to {path}: {e}")
            with self._lock:
                self._dirty = True
