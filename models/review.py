from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import Field

from db.store import ReviewState
from utils.scheduler import SRSStats, VocabularyProgress
from .common import CamelModel
from .lesson import VocabularyOut

class Skill(str, Enum):
    READING = "reading"
    MEANING = "meaning"

class RateItemRequest(CamelModel):
    owner: str = Field(..., min_length=1)
    item_id: str = Field(..., min_length=1)
    lesson_id: str = Field(..., min_length=1)
    skill: Skill
    # 0 = didn't know, 1 = hard, 2 = good, 3 = easy
    quality: int = Field(..., ge=0, le=3, strict=True)

class ProgressRequest(CamelModel):
    owner: str = Field(..., min_length=1)
    lesson_id: str = Field(..., min_length=1)
    include_all: bool = False

class DueRequest(CamelModel):
    owner: str = Field(..., min_length=1)
    lesson_id: str = Field(..., min_length=1)
    skill: Skill
    fallback: bool = False

class VocabularyStatsRequest(CamelModel):
    owner: str = Field(..., min_length=1)
    lesson_id: str = Field(..., min_length=1)

class ReviewStateOut(CamelModel):
    id: int
    item_id: str
    lesson_id: str
    skill: Skill
    repetition_count: int
    easiness_factor: float
    interval_days: int
    next_review_at: datetime
    last_quality: Optional[int] = None
    total_reviews: int = 0
    last_reviewed_at: Optional[datetime] = None
    vocabulary: Optional[VocabularyOut] = None

    @classmethod
    def from_state(cls, state: ReviewState) -> "ReviewStateOut":
        return cls(
            id=state.id,
            item_id=state.item_id,
            lesson_id=state.lesson_id,
            skill=state.skill,
            repetition_count=state.repetition_count,
            easiness_factor=state.easiness_factor,
            interval_days=state.interval_days,
            next_review_at=state.next_review_at,
            last_quality=state.last_quality,
            total_reviews=state.total_reviews,
            last_reviewed_at=state.last_reviewed_at,
            vocabulary=VocabularyOut.from_item(state.item) if state.item else None,
        )

class RatedRecord(ReviewStateOut):
    needs_re_review: bool

    @classmethod
    def from_rating(cls, state: ReviewState, quality: int) -> "RatedRecord":
        base = ReviewStateOut.from_state(state)
        # Items rated 0 or 1 come back in the same session.
        return cls(**base.model_dump(), needs_re_review=quality < 2)

class RateItemResponse(CamelModel):
    success: bool = True
    record: RatedRecord
    updated_due_items: List[ReviewStateOut]

class StatsOut(CamelModel):
    total_items: int
    due_items: int
    average_easiness: float
    average_reading_quality: float
    average_meaning_quality: float

    @classmethod
    def from_stats(cls, stats: SRSStats) -> "StatsOut":
        return cls(
            total_items=stats.total_items,
            due_items=stats.due_items,
            average_easiness=stats.average_easiness,
            average_reading_quality=stats.average_reading_quality,
            average_meaning_quality=stats.average_meaning_quality,
        )

class ProgressResponse(CamelModel):
    success: bool = True
    reading_items: List[ReviewStateOut]
    meaning_items: List[ReviewStateOut]
    stats: StatsOut

class DueResponse(CamelModel):
    success: bool = True
    skill: Skill
    items: List[ReviewStateOut]
    fell_back: bool = False

class SkillProgressOut(CamelModel):
    last_quality: Optional[int] = None
    repetition_count: int
    next_review_at: datetime
    interval_days: int

    @classmethod
    def from_state(cls, state: Optional[ReviewState]) -> Optional["SkillProgressOut"]:
        if state is None:
            return None
        return cls(
            last_quality=state.last_quality,
            repetition_count=state.repetition_count,
            next_review_at=state.next_review_at,
            interval_days=state.interval_days,
        )

class VocabularyStatsItem(CamelModel):
    id: str
    word: str
    reading: Optional[str] = None
    meaning: str
    reading_progress: Optional[SkillProgressOut] = None
    meaning_progress: Optional[SkillProgressOut] = None

    @classmethod
    def from_progress(cls, progress: VocabularyProgress) -> "VocabularyStatsItem":
        return cls(
            id=progress.item.id,
            word=progress.item.word,
            reading=progress.item.reading,
            meaning=progress.item.meaning,
            reading_progress=SkillProgressOut.from_state(progress.reading),
            meaning_progress=SkillProgressOut.from_state(progress.meaning),
        )

class VocabularyStatsResponse(CamelModel):
    success: bool = True
    vocabulary_stats: List[VocabularyStatsItem]
