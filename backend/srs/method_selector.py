"""Retrieval method selection for review sessions.

Chooses how an item is presented next, based on the item's recent method
history and the learner's accuracy per method.

Strategy:
- Vary methods to avoid monotony (skip methods used in the last few cards)
- Steer practice toward methods the learner is weak at
- Show methods the learner has mastered less often
"""

import logging
import random
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol

from backend.config import Settings, settings
from backend.srs.methods import ALL_METHODS, ReviewMethod

logger = logging.getLogger(__name__)

MIN_ATTEMPTS_FOR_WEIGHTING = 5
WEAKNESS_THRESHOLD = 0.70
MASTERY_THRESHOLD = 0.85

# Methods that need an example sentence for the item
CONTEXT_METHODS = frozenset({ReviewMethod.FILL_BLANK, ReviewMethod.CONTEXT_SELECTION})


@dataclass(frozen=True)
class MethodSelectorConfig:
    """Tuning knobs for method selection."""

    enable_variation: bool = True
    min_history_size: int = 5  # History needed before performance weighting
    weakness_weight: float = 0.7  # Share of probability mass for weak methods
    mastery_weight: float = 0.5  # Relative weight of a mastered vs neutral method
    repetition_window: int = 3  # Recent cards checked for repetition
    disabled_methods: frozenset[ReviewMethod] = frozenset()

    @classmethod
    def from_settings(cls, config: Settings = settings) -> "MethodSelectorConfig":
        return cls(
            enable_variation=config.enable_method_variation,
            min_history_size=config.min_history_size,
            weakness_weight=config.weakness_weight,
            mastery_weight=config.mastery_weight,
            repetition_window=config.repetition_window,
            disabled_methods=frozenset(ReviewMethod.parse(m) for m in config.disabled_methods),
        )


@dataclass
class MethodPerformance:
    """Learner accuracy with one method, for one item or across all items."""

    method: ReviewMethod
    attempts: int = 0
    correct: int = 0
    last_attempt: datetime | None = None

    @property
    def accuracy(self) -> float:
        if self.attempts == 0:
            return 0.0
        return self.correct / self.attempts

    @property
    def is_weak(self) -> bool:
        return self.attempts >= MIN_ATTEMPTS_FOR_WEIGHTING and self.accuracy < WEAKNESS_THRESHOLD

    @property
    def is_mastered(self) -> bool:
        return self.attempts >= MIN_ATTEMPTS_FOR_WEIGHTING and self.accuracy >= MASTERY_THRESHOLD


class MethodAttempt(Protocol):
    """Anything that records one attempt with a method (e.g. a review log entry)."""

    method: ReviewMethod
    correct: bool
    reviewed_at: datetime


@dataclass(frozen=True)
class MethodScore:
    method: ReviewMethod
    score: float


@dataclass(frozen=True)
class MethodSelection:
    """The chosen method plus diagnostics."""

    method: ReviewMethod
    reason: str
    confidence: float  # Sampling probability of the chosen method
    alternatives: list[MethodScore] = field(default_factory=list)


def aggregate_performance(attempts: Iterable[MethodAttempt]) -> dict[ReviewMethod, MethodPerformance]:
    """Aggregate attempts into per-method performance."""
    performance: dict[ReviewMethod, MethodPerformance] = {}
    for attempt in attempts:
        method = ReviewMethod.parse(attempt.method)
        perf = performance.setdefault(method, MethodPerformance(method=method))
        perf.attempts += 1
        if attempt.correct:
            perf.correct += 1
        if perf.last_attempt is None or attempt.reviewed_at > perf.last_attempt:
            perf.last_attempt = attempt.reviewed_at
    return performance


def select_method(
    history: Sequence[ReviewMethod],
    performance: Mapping[ReviewMethod, MethodPerformance] | None = None,
    config: MethodSelectorConfig | None = None,
    rng: random.Random | None = None,
    has_context: bool = True,
) -> MethodSelection:
    """Select the retrieval method for an item's next presentation.

    Args:
        history: Methods previously used for the item, most recent last.
        performance: Per-method performance (item-level or global).
        config: Selector configuration.
        rng: Random source (seed it for reproducible selection).
        has_context: Whether the item has an example sentence, which
            fill-blank and context-selection need.

    Returns:
        A MethodSelection with the chosen method, a reason and the
        other candidates with their sampling weights.
    """
    config = config or MethodSelectorConfig()
    performance = performance or {}
    rng = rng or random.Random()

    candidates = [m for m in ALL_METHODS if m not in config.disabled_methods]
    if not has_context:
        candidates = [m for m in candidates if m not in CONTEXT_METHODS]
    if not candidates:
        logger.warning("No review methods enabled, falling back to traditional")
        return MethodSelection(
            method=ReviewMethod.TRADITIONAL,
            reason="All methods disabled, fallback to traditional",
            confidence=1.0,
        )

    notes: list[str] = []
    candidates = _drop_recent(candidates, history, config.repetition_window, notes)

    if not config.enable_variation:
        weights = _uniform(candidates)
        notes.insert(0, "Method variation disabled (uniform)")
    elif len(history) < config.min_history_size:
        weights = _uniform(candidates)
        notes.insert(
            0, f"Insufficient history ({len(history)} < {config.min_history_size}, uniform)"
        )
    else:
        weights = _performance_weights(candidates, performance, config)

    methods = list(weights)
    method = rng.choices(methods, weights=[weights[m] for m in methods])[0]

    if config.enable_variation and len(history) >= config.min_history_size:
        notes.insert(0, _describe(method, performance.get(method)))

    alternatives = sorted(
        (MethodScore(method=m, score=round(w, 4)) for m, w in weights.items() if m is not method),
        key=lambda s: s.score,
        reverse=True,
    )
    return MethodSelection(
        method=method,
        reason=", ".join(notes),
        confidence=round(weights[method], 4),
        alternatives=alternatives,
    )


def method_selection_report(selection: MethodSelection, label: str = "") -> str:
    """Render a selection as a human-readable diagnostic report."""
    lines = [
        "Method Selection Report",
        "-" * 40,
    ]
    if label:
        lines.append(f"Item: {label}")
    lines.append(
        f"Selected: {selection.method.value} (confidence: {selection.confidence * 100:.1f}%)"
    )
    lines.append(f"Reason: {selection.reason}")
    lines.append("Alternatives:")
    for i, alt in enumerate(selection.alternatives, 1):
        lines.append(f"  {i}. {alt.method.value} (score: {alt.score:.2f})")
    return "\n".join(lines)


def _drop_recent(
    candidates: list[ReviewMethod],
    history: Sequence[ReviewMethod],
    window: int,
    notes: list[str],
) -> list[ReviewMethod]:
    """Remove methods used within the last ``window`` entries, if anything is left."""
    if window <= 0 or not history:
        return candidates
    recent = {ReviewMethod.parse(m) for m in history[-window:]}
    fresh = [m for m in candidates if m not in recent]
    if not fresh:
        notes.append("All candidates used recently (repetition allowed)")
        return candidates
    return fresh


def _uniform(candidates: list[ReviewMethod]) -> dict[ReviewMethod, float]:
    share = 1.0 / len(candidates)
    return {m: share for m in candidates}


def _performance_weights(
    candidates: list[ReviewMethod],
    performance: Mapping[ReviewMethod, MethodPerformance],
    config: MethodSelectorConfig,
) -> dict[ReviewMethod, float]:
    """Sampling weights that steer toward weak methods and away from mastered ones.

    Weak methods share ``weakness_weight`` of the mass. The remainder goes to
    the other candidates, a mastered method counting ``mastery_weight`` of a
    neutral one. Methods with too few attempts are neutral.
    """
    weak = [m for m in candidates if m in performance and performance[m].is_weak]
    others = [m for m in candidates if m not in weak]

    if not weak or not others:
        # Nothing to steer toward (or everything is weak)
        pool = others if not weak else weak
        relative = {m: _relative_weight(m, performance, config) for m in pool}
        return _normalize(relative)

    weights = {m: config.weakness_weight / len(weak) for m in weak}
    relative = _normalize({m: _relative_weight(m, performance, config) for m in others})
    for m, share in relative.items():
        weights[m] = (1.0 - config.weakness_weight) * share
    return weights


def _relative_weight(
    method: ReviewMethod,
    performance: Mapping[ReviewMethod, MethodPerformance],
    config: MethodSelectorConfig,
) -> float:
    perf = performance.get(method)
    if perf is not None and perf.is_mastered:
        return config.mastery_weight
    return 1.0


def _normalize(weights: dict[ReviewMethod, float]) -> dict[ReviewMethod, float]:
    total = sum(weights.values())
    if total <= 0:
        return _uniform(list(weights))
    return {m: w / total for m, w in weights.items()}


def _describe(method: ReviewMethod, perf: MethodPerformance | None) -> str:
    if perf is None or perf.attempts < MIN_ATTEMPTS_FOR_WEIGHTING:
        attempts = perf.attempts if perf else 0
        return f"Not enough attempts with {method.value} ({attempts}), neutral"
    if perf.is_weak:
        return f"Weak method {method.value} (accuracy {perf.accuracy:.0%}), prioritized"
    if perf.is_mastered:
        return f"Mastered method {method.value} (accuracy {perf.accuracy:.0%}), down-weighted"
    return f"Neutral method {method.value} (accuracy {perf.accuracy:.0%})"
