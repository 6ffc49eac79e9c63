"""Tests for item status classification and accuracy helpers."""

from dataclasses import replace

import pytest

from backend.srs.sm2 import Direction, ReviewRecord
from backend.srs.status import ItemStatus, classify_status, directional_accuracy, record_accuracy


def _record(**kwargs: int) -> ReviewRecord:
    return replace(ReviewRecord(item_id="gato"), **kwargs)


class TestRecordAccuracy:
    def test_unreviewed_is_zero(self) -> None:
        assert record_accuracy(_record()) == 0

    def test_rounds_half_up(self) -> None:
        assert record_accuracy(_record(total_reviews=8, correct_count=5)) == 63  # 62.5
        assert record_accuracy(_record(total_reviews=3, correct_count=2)) == 67

    def test_directional(self) -> None:
        record = _record(forward_correct=3, forward_total=4)
        assert directional_accuracy(record, Direction.FORWARD) == 75
        assert directional_accuracy(record, Direction.REVERSE) is None


class TestClassifyStatus:
    @pytest.mark.parametrize("reviews", [0, 1, 2])
    def test_few_reviews_is_new(self, reviews: int) -> None:
        record = _record(total_reviews=reviews, correct_count=reviews, repetition=reviews)
        assert classify_status(record) is ItemStatus.NEW

    def test_mastered(self) -> None:
        record = _record(total_reviews=6, correct_count=5, repetition=5)
        assert classify_status(record) is ItemStatus.MASTERED

    def test_accuracy_boundary(self) -> None:
        # 4/5 = 80% is enough, 7/9 = 78% is not
        assert classify_status(_record(total_reviews=5, correct_count=4, repetition=5)) is ItemStatus.MASTERED
        assert classify_status(_record(total_reviews=9, correct_count=7, repetition=6)) is ItemStatus.LEARNING

    def test_short_streak_is_learning(self) -> None:
        record = _record(total_reviews=10, correct_count=10, repetition=4)
        assert classify_status(record) is ItemStatus.LEARNING

    def test_forgot_drops_mastered_to_learning(self) -> None:
        record = _record(total_reviews=11, correct_count=10, repetition=0)
        assert classify_status(record) is ItemStatus.LEARNING
