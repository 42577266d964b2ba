"""Spaced-repetition scheduler for lesson vocabulary.

Each vocabulary item is tracked separately for the reading skill and the
meaning skill. States are created lazily, updated only by ``submit_rating``,
and live entirely in the record store.
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional

import structlog

from db import store
from db.store import SKILLS, Lesson, ReviewState, VocabItem
from utils.errors import NotFoundError, ValidationError
from utils.sm2 import is_valid_quality, update_sm2

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class SRSStats:
    total_items: int
    due_items: int
    average_easiness: float
    average_reading_quality: float
    average_meaning_quality: float


@dataclass(frozen=True)
class VocabularyProgress:
    item: VocabItem
    reading: Optional[ReviewState]
    meaning: Optional[ReviewState]


def validate_identifier(value: object, name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{name} is required")
    return value.strip()


def validate_skill(skill: object) -> str:
    if skill not in SKILLS:
        raise ValidationError(f"Unknown skill {skill!r}; expected 'reading' or 'meaning'")
    return skill


def validate_quality(quality: object) -> int:
    if not is_valid_quality(quality):
        raise ValidationError(f"Invalid quality rating {quality!r} (must be 0-3)")
    return quality


def require_lesson(conn: sqlite3.Connection, lesson_id: str, owner: Optional[str] = None) -> Lesson:
    lesson = store.get_lesson(conn, lesson_id)
    if lesson is None or (owner is not None and lesson.owner != owner):
        raise NotFoundError(f"Lesson {lesson_id} not found")
    return lesson


def require_item_in_lesson(conn: sqlite3.Connection, item_id: str, lesson_id: str) -> VocabItem:
    item = store.get_vocabulary(conn, item_id)
    if item is None:
        raise NotFoundError(f"Vocabulary item {item_id} not found")
    if item.lesson_id != lesson_id:
        raise NotFoundError(f"Vocabulary item {item_id} is not part of lesson {lesson_id}")
    return item


def get_or_create_review_state(
    conn: sqlite3.Connection,
    owner: str,
    item_id: str,
    lesson_id: str,
    skill: str,
    now: Optional[datetime] = None,
) -> ReviewState:
    state = store.find_review_state(conn, owner, item_id, skill, lesson_id)
    if state is not None:
        return state
    return store.create_review_state(conn, owner, item_id, lesson_id, skill, now=now)


def submit_rating(
    conn: sqlite3.Connection,
    owner: str,
    item_id: str,
    lesson_id: str,
    skill: str,
    quality: int,
    now: Optional[datetime] = None,
) -> ReviewState:
    """Record a 0-3 rating for one item and skill; return the updated state.

    Lookup, computation and write share one BEGIN IMMEDIATE transaction, so two
    ratings for the same key can't interleave.
    """
    owner = validate_identifier(owner, "owner")
    item_id = validate_identifier(item_id, "itemId")
    lesson_id = validate_identifier(lesson_id, "lessonId")
    skill = validate_skill(skill)
    quality = validate_quality(quality)
    now = now or store.utc_now()

    with store.transaction(conn, "submit_rating", immediate=True):
        require_lesson(conn, lesson_id)
        require_item_in_lesson(conn, item_id, lesson_id)
        state = get_or_create_review_state(conn, owner, item_id, lesson_id, skill, now=now)
        result = update_sm2(
            state.repetition_count,
            state.easiness_factor,
            state.interval_days,
            quality,
            now=now,
        )
        updated = store.update_review_state(
            conn,
            state.id,
            {
                "repetition_count": result.repetition_count,
                "easiness_factor": result.easiness_factor,
                "interval_days": result.interval_days,
                "next_review_at": result.next_review_at,
                "last_quality": quality,
                "total_reviews": state.total_reviews + 1,
                "last_reviewed_at": now,
            },
        )
    logger.info(
        "rating_submitted",
        owner=owner,
        item_id=item_id,
        lesson_id=lesson_id,
        skill=skill,
        quality=quality,
        repetition_count=updated.repetition_count,
        interval_days=updated.interval_days,
    )
    return updated


def get_due_items(
    conn: sqlite3.Connection,
    owner: str,
    lesson_id: str,
    skill: str,
    now: Optional[datetime] = None,
) -> List[ReviewState]:
    """States due at ``now``, most overdue first. Missing states stay missing."""
    owner = validate_identifier(owner, "owner")
    lesson_id = validate_identifier(lesson_id, "lessonId")
    skill = validate_skill(skill)
    require_lesson(conn, lesson_id)
    return store.list_review_states(
        conn,
        owner=owner,
        skill=skill,
        lesson_id=lesson_id,
        due_before=now or store.utc_now(),
    )


def get_all_items_for_lesson(
    conn: sqlite3.Connection,
    owner: str,
    lesson_id: str,
    skill: str,
    now: Optional[datetime] = None,
) -> List[ReviewState]:
    """One state per vocabulary item of the lesson, creating missing ones.

    Returned in lesson order regardless of due status.
    """
    owner = validate_identifier(owner, "owner")
    lesson_id = validate_identifier(lesson_id, "lessonId")
    skill = validate_skill(skill)
    now = now or store.utc_now()

    with store.transaction(conn, "get_all_items_for_lesson", immediate=True):
        require_lesson(conn, lesson_id)
        items = store.list_vocabulary_for_lesson(conn, lesson_id)
        existing = {
            state.item_id: state
            for state in store.list_review_states(conn, owner=owner, skill=skill, lesson_id=lesson_id)
        }
        states: List[ReviewState] = []
        created = 0
        for item in items:
            state = existing.get(item.id)
            if state is None:
                state = store.create_review_state(conn, owner, item.id, lesson_id, skill, now=now)
                created += 1
            states.append(state)
    if created:
        logger.info("review_states_created", owner=owner, lesson_id=lesson_id, skill=skill, count=created)
    return states


def _mean(values: List[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def get_stats(
    conn: sqlite3.Connection,
    owner: str,
    lesson_id: str,
    now: Optional[datetime] = None,
) -> SRSStats:
    owner = validate_identifier(owner, "owner")
    lesson_id = validate_identifier(lesson_id, "lessonId")
    now = now or store.utc_now()

    by_skill: Dict[str, List[ReviewState]] = {
        skill: store.list_review_states(conn, owner=owner, skill=skill, lesson_id=lesson_id)
        for skill in SKILLS
    }
    all_states = by_skill["reading"] + by_skill["meaning"]

    def average_quality(states: List[ReviewState]) -> float:
        return _mean([state.last_quality for state in states if state.last_quality is not None])

    return SRSStats(
        # an item can be tracked in one skill but not the other
        total_items=max(len(by_skill["reading"]), len(by_skill["meaning"])),
        due_items=sum(1 for state in all_states if state.next_review_at <= now),
        average_easiness=_mean([state.easiness_factor for state in all_states]),
        average_reading_quality=average_quality(by_skill["reading"]),
        average_meaning_quality=average_quality(by_skill["meaning"]),
    )


def get_vocabulary_progress(
    conn: sqlite3.Connection,
    owner: str,
    lesson_id: str,
) -> List[VocabularyProgress]:
    """Per-item reading and meaning progress for one of the owner's lessons."""
    owner = validate_identifier(owner, "owner")
    lesson_id = validate_identifier(lesson_id, "lessonId")
    require_lesson(conn, lesson_id, owner=owner)
    items = store.list_vocabulary_for_lesson(conn, lesson_id)
    reading = {
        state.item_id: state
        for state in store.list_review_states(conn, owner=owner, skill="reading", lesson_id=lesson_id)
    }
    meaning = {
        state.item_id: state
        for state in store.list_review_states(conn, owner=owner, skill="meaning", lesson_id=lesson_id)
    }
    return [
        VocabularyProgress(item=item, reading=reading.get(item.id), meaning=meaning.get(item.id))
        for item in items
    ]
