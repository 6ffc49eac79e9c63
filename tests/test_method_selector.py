"""Tests for retrieval method selection."""

import random
from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timedelta

import pytest

from backend.srs.method_selector import (
    CONTEXT_METHODS,
    MethodPerformance,
    MethodSelection,
    MethodSelectorConfig,
    aggregate_performance,
    method_selection_report,
    select_method,
)
from backend.srs.methods import ALL_METHODS, ReviewMethod

NOW = datetime(2024, 3, 1, 9, 0, 0)

TRAD = ReviewMethod.TRADITIONAL
MC = ReviewMethod.MULTIPLE_CHOICE
AUDIO = ReviewMethod.AUDIO_RECOGNITION
FILL = ReviewMethod.FILL_BLANK
CONTEXT = ReviewMethod.CONTEXT_SELECTION


@dataclass
class Attempt:
    method: ReviewMethod
    correct: bool
    reviewed_at: datetime


def _weights(selection: MethodSelection) -> dict[ReviewMethod, float]:
    weights = {alt.method: alt.score for alt in selection.alternatives}
    weights[selection.method] = selection.confidence
    return weights


class TestFallbacks:
    def test_all_methods_disabled_falls_back_to_traditional(self) -> None:
        config = MethodSelectorConfig(disabled_methods=frozenset(ALL_METHODS))
        selection = select_method([], config=config, rng=random.Random(1))
        assert selection.method is TRAD
        assert selection.confidence == 1.0
        assert "fallback" in selection.reason

    def test_no_context_removes_context_methods(self) -> None:
        rng = random.Random(7)
        chosen = {select_method([], rng=rng, has_context=False).method for _ in range(200)}
        assert chosen.isdisjoint(CONTEXT_METHODS)
        assert chosen == {TRAD, MC, AUDIO}

    def test_insufficient_history_is_uniform(self) -> None:
        selection = select_method([TRAD, MC], rng=random.Random(3))
        assert "Insufficient history" in selection.reason
        weights = _weights(selection)
        assert set(weights) == {AUDIO, FILL, CONTEXT}
        assert all(w == pytest.approx(1 / 3, abs=1e-4) for w in weights.values())

    def test_variation_disabled_is_uniform(self) -> None:
        config = MethodSelectorConfig(enable_variation=False, repetition_window=0)
        performance = {AUDIO: MethodPerformance(AUDIO, attempts=10, correct=1)}
        selection = select_method([TRAD] * 10, performance, config, random.Random(3))
        assert selection.reason.startswith("Method variation disabled")
        assert all(w == pytest.approx(0.2) for w in _weights(selection).values())


class TestRepetitionWindow:
    def test_recent_methods_are_skipped(self) -> None:
        history = [FILL, CONTEXT, TRAD, MC, AUDIO]
        for seed in range(50):
            selection = select_method(history, rng=random.Random(seed))
            assert selection.method in {FILL, CONTEXT}

    def test_only_last_window_entries_count(self) -> None:
        config = MethodSelectorConfig(repetition_window=1)
        selection = select_method([MC, AUDIO], config=config, rng=random.Random(0))
        assert AUDIO not in _weights(selection)
        assert MC in _weights(selection)

    def test_repetition_allowed_when_nothing_else_left(self) -> None:
        config = MethodSelectorConfig(disabled_methods=frozenset({MC, AUDIO, FILL, CONTEXT}))
        selection = select_method([TRAD] * 6, config=config, rng=random.Random(0))
        assert selection.method is TRAD
        assert "repetition allowed" in selection.reason


class TestPerformanceWeighting:
    def setup_method(self) -> None:
        self.config = MethodSelectorConfig(repetition_window=0)
        self.history = [TRAD] * 6

    def test_weak_methods_share_weakness_weight(self) -> None:
        performance = {
            AUDIO: MethodPerformance(AUDIO, attempts=10, correct=5),  # weak
            MC: MethodPerformance(MC, attempts=10, correct=10),  # mastered
            FILL: MethodPerformance(FILL, attempts=2, correct=0),  # too few attempts
        }
        selection = select_method(self.history, performance, self.config, random.Random(5))
        weights = _weights(selection)

        assert weights[AUDIO] == pytest.approx(0.7, abs=1e-4)
        # Remaining 0.3 split 1 : 0.5 : 1 : 1 between trad, mc, fill, context
        assert weights[TRAD] == pytest.approx(0.3 / 3.5, abs=1e-4)
        assert weights[MC] == pytest.approx(0.15 / 3.5, abs=1e-4)
        assert weights[FILL] == pytest.approx(0.3 / 3.5, abs=1e-4)
        assert sum(weights.values()) == pytest.approx(1.0, abs=1e-3)

    def test_weak_method_chosen_most_often(self) -> None:
        performance = {AUDIO: MethodPerformance(AUDIO, attempts=8, correct=4)}
        rng = random.Random(11)
        counts = Counter(
            select_method(self.history, performance, self.config, rng).method for _ in range(2000)
        )
        assert 0.64 < counts[AUDIO] / 2000 < 0.76

    def test_all_weak_is_uniform_over_weak(self) -> None:
        performance = {m: MethodPerformance(m, attempts=5, correct=1) for m in ALL_METHODS}
        selection = select_method(self.history, performance, self.config, random.Random(2))
        assert all(w == pytest.approx(0.2) for w in _weights(selection).values())

    def test_mastered_methods_shown_less(self) -> None:
        performance = {MC: MethodPerformance(MC, attempts=20, correct=19)}
        selection = select_method(self.history, performance, self.config, random.Random(2))
        weights = _weights(selection)
        assert weights[MC] == pytest.approx(weights[TRAD] / 2, abs=1e-4)

    def test_reason_describes_chosen_method(self) -> None:
        performance = {m: MethodPerformance(m, attempts=6, correct=2) for m in ALL_METHODS}
        selection = select_method(self.history, performance, self.config, random.Random(2))
        assert selection.reason.startswith(f"Weak method {selection.method.value}")


class TestDeterminism:
    def test_seeded_rng_is_reproducible(self) -> None:
        history = [TRAD, MC, AUDIO, TRAD, FILL, CONTEXT]
        first_rng, second_rng = random.Random(99), random.Random(99)
        first = [select_method(history, rng=first_rng).method for _ in range(20)]
        second = [select_method(history, rng=second_rng).method for _ in range(20)]
        assert first == second


class TestAggregatePerformance:
    def test_counts_attempts_per_method(self) -> None:
        attempts = [
            Attempt(TRAD, True, NOW),
            Attempt(TRAD, False, NOW + timedelta(days=1)),
            Attempt(AUDIO, True, NOW + timedelta(days=2)),
        ]
        performance = aggregate_performance(attempts)
        assert performance[TRAD].attempts == 2
        assert performance[TRAD].correct == 1
        assert performance[TRAD].accuracy == 0.5
        assert performance[TRAD].last_attempt == NOW + timedelta(days=1)
        assert performance[AUDIO].attempts == 1
        assert MC not in performance

    def test_thresholds(self) -> None:
        assert not MethodPerformance(MC, attempts=4, correct=0).is_weak
        assert MethodPerformance(MC, attempts=5, correct=3).is_weak
        assert not MethodPerformance(MC, attempts=10, correct=7).is_weak
        assert MethodPerformance(MC, attempts=20, correct=17).is_mastered
        assert MethodPerformance(MC, attempts=0).accuracy == 0.0


class TestReport:
    def test_report_lists_selection_and_alternatives(self) -> None:
        selection = select_method([], rng=random.Random(4))
        report = method_selection_report(selection, label="perro")
        assert report.startswith("Method Selection Report")
        assert "Item: perro" in report
        assert f"Selected: {selection.method.value} (confidence: 20.0%)" in report
        assert report.count("(score: 0.20)") == 4
