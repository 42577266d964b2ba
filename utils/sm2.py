import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

MIN_EASINESS = 1.3
MAX_INTERVAL_DAYS = 365
PASSING_QUALITY = 3

# Learner-facing 0-3 scale onto the classic 0-5 SM-2 scale.
QUALITY_TO_SM2 = {0: 0, 1: 2, 2: 4, 3: 5}

@dataclass(frozen=True)
class SM2Result:
    repetition_count: int
    easiness_factor: float
    interval_days: int
    next_review_at: datetime

def is_valid_quality(quality: object) -> bool:
    # bool is an int subclass; True must not count as "hard".
    return isinstance(quality, int) and not isinstance(quality, bool) and quality in QUALITY_TO_SM2

def map_quality_to_sm2(quality: int) -> int:
    """Map a 0-3 rating to SM-2 quality (0-5)."""
    if not is_valid_quality(quality):
        raise ValueError(f"Quality must be one of 0, 1, 2, 3 (got {quality!r})")
    return QUALITY_TO_SM2[quality]

def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))

def next_easiness(easiness: float, sm2_quality: int) -> float:
    miss = 5 - sm2_quality
    return max(MIN_EASINESS, easiness + (0.1 - miss * (0.08 + miss * 0.02)))

def update_sm2(
    repetition_count: int,
    easiness_factor: float,
    interval_days: int,
    quality: int,
    now: Optional[datetime] = None,
) -> SM2Result:
    """Apply one 0-3 rating and compute the next review time.

    A remapped quality below 3 resets the repetition ladder and makes the item
    due immediately; otherwise the interval climbs 1, 6, then previous interval
    times the updated easiness, capped at a year.
    """
    sm2_quality = map_quality_to_sm2(quality)
    new_ef = next_easiness(easiness_factor, sm2_quality)
    if sm2_quality < PASSING_QUALITY:
        new_reps = 0
        new_interval = 0
    else:
        new_reps = repetition_count + 1
        if new_reps == 1:
            new_interval = 1
        elif new_reps == 2:
            new_interval = 6
        else:
            new_interval = min(MAX_INTERVAL_DAYS, round_half_up(interval_days * new_ef))
    anchor = now or datetime.now(timezone.utc)
    return SM2Result(
        repetition_count=new_reps,
        easiness_factor=new_ef,
        interval_days=new_interval,
        next_review_at=anchor + timedelta(days=new_interval),
    )
