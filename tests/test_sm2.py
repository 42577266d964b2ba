from datetime import datetime, timedelta, timezone
import itertools

import pytest

from utils.sm2 import (
    MAX_INTERVAL_DAYS,
    MIN_EASINESS,
    map_quality_to_sm2,
    next_easiness,
    round_half_up,
    update_sm2,
)

T0 = datetime(2024, 4, 1, 9, 0, tzinfo=timezone.utc)


def test_quality_mapping_is_fixed():
    assert [map_quality_to_sm2(q) for q in range(4)] == [0, 2, 4, 5]


@pytest.mark.parametrize("quality", [-1, 4, 5, 2.0, "2", None, True])
def test_invalid_quality_is_rejected(quality):
    with pytest.raises(ValueError):
        update_sm2(0, 2.5, 0, quality, now=T0)


def test_easy_then_easy_then_good_climbs_the_ladder():
    first = update_sm2(0, 2.5, 0, 3, now=T0)
    assert first.repetition_count == 1
    assert first.interval_days == 1
    assert first.easiness_factor == pytest.approx(2.6)
    assert first.next_review_at == T0 + timedelta(days=1)

    second = update_sm2(first.repetition_count, first.easiness_factor, first.interval_days, 3, now=T0)
    assert second.repetition_count == 2
    assert second.interval_days == 6

    third = update_sm2(second.repetition_count, second.easiness_factor, second.interval_days, 2, now=T0)
    assert third.repetition_count == 3
    assert third.easiness_factor <= second.easiness_factor + 1e-9
    assert third.interval_days == round(6 * third.easiness_factor)


def test_failure_resets_and_is_due_immediately():
    result = update_sm2(5, 2.0, 40, 0, now=T0)
    assert result.repetition_count == 0
    assert result.interval_days == 0
    assert result.next_review_at == T0
    assert result.easiness_factor == MIN_EASINESS


def test_hard_also_resets():
    result = update_sm2(3, 2.5, 15, 1, now=T0)
    assert result.repetition_count == 0
    assert result.interval_days == 0
    assert result.easiness_factor == pytest.approx(2.18)


def test_interval_is_capped_at_a_year():
    result = update_sm2(5, 2.5, 300, 3, now=T0)
    assert result.interval_days == MAX_INTERVAL_DAYS
    assert result.next_review_at == T0 + timedelta(days=MAX_INTERVAL_DAYS)


def test_invariants_hold_for_every_short_rating_sequence():
    for sequence in itertools.product(range(4), repeat=6):
        reps, ef, interval = 0, 2.5, 0
        for quality in sequence:
            result = update_sm2(reps, ef, interval, quality, now=T0)
            reps, ef, interval = result.repetition_count, result.easiness_factor, result.interval_days
            assert ef >= MIN_EASINESS
            assert 0 <= interval <= MAX_INTERVAL_DAYS
            if quality < 2:
                assert reps == 0
                assert result.next_review_at <= T0


def test_long_easy_streak_stays_capped():
    reps, ef, interval = 0, 2.5, 0
    for _ in range(30):
        result = update_sm2(reps, ef, interval, 3, now=T0)
        reps, ef, interval = result.repetition_count, result.easiness_factor, result.interval_days
    assert interval == MAX_INTERVAL_DAYS


def test_next_easiness_floor():
    assert next_easiness(1.3, 0) == MIN_EASINESS
    assert next_easiness(2.5, 4) == pytest.approx(2.5)


def test_round_half_up():
    assert round_half_up(2.5) == 3
    assert round_half_up(16.2) == 16
    assert round_half_up(0.0) == 0
