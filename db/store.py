"""Record store for lessons, vocabulary and review states.

Functions take an open connection and never commit on their own; callers group
them with ``transaction()`` so a failed request leaves nothing half-written.
"""

from __future__ import annotations

import sqlite3
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Iterator, List, Optional

import structlog

from utils.errors import StorageError

logger = structlog.get_logger(__name__)

SKILLS = ("reading", "meaning")

DEFAULT_EASINESS = 2.5

# Columns update_review_state() may touch.
UPDATABLE_FIELDS = (
    "repetition_count",
    "easiness_factor",
    "interval_days",
    "next_review_at",
    "last_quality",
    "total_reviews",
    "last_reviewed_at",
)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(value: datetime) -> str:
    # Fixed-width UTC text so lexical order in SQLite matches time order.
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def from_iso(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def new_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class Lesson:
    id: str
    owner: str
    title: str
    content: str
    created_at: datetime


@dataclass(frozen=True)
class VocabItem:
    id: str
    lesson_id: str
    word: str
    meaning: str
    reading: Optional[str] = None
    original_form: Optional[str] = None
    conjugation_info: Optional[str] = None
    position: int = 0


@dataclass
class ReviewState:
    id: int
    owner: str
    item_id: str
    lesson_id: str
    skill: str
    next_review_at: datetime
    repetition_count: int = 0
    easiness_factor: float = DEFAULT_EASINESS
    interval_days: int = 0
    last_quality: Optional[int] = None
    total_reviews: int = 0
    last_reviewed_at: Optional[datetime] = None
    item: Optional[VocabItem] = field(default=None, compare=False)


@contextmanager
def storage_errors(operation: str) -> Iterator[None]:
    """Re-raise sqlite failures as StorageError."""
    try:
        yield
    except sqlite3.Error as exc:
        logger.error("storage_failure", operation=operation, error=str(exc))
        raise StorageError(f"Storage failure during {operation}") from exc


@contextmanager
def transaction(conn: sqlite3.Connection, operation: str, immediate: bool = False) -> Iterator[sqlite3.Connection]:
    """Run a unit of work; commit on success, roll back on any error.

    ``immediate`` takes the database write lock up front (BEGIN IMMEDIATE), so
    concurrent read-modify-write cycles on the same rows are serialized.
    Nested inside an open transaction this joins it: the outermost call
    commits or rolls back.
    """
    if conn.in_transaction:
        with storage_errors(operation):
            yield conn
        return
    try:
        with storage_errors(operation):
            if immediate:
                conn.execute("BEGIN IMMEDIATE")
            yield conn
            conn.commit()
    except BaseException:
        if conn.in_transaction:
            conn.rollback()
        raise


# --- lessons ---

def _row_to_lesson(row: sqlite3.Row) -> Lesson:
    return Lesson(
        id=row["id"],
        owner=row["owner"],
        title=row["title"],
        content=row["content"],
        created_at=from_iso(row["created_at"]),
    )


def create_lesson(
    conn: sqlite3.Connection,
    *,
    owner: str,
    title: str,
    content: str = "",
    vocabulary: Iterable[Dict[str, Any]] = (),
    now: Optional[datetime] = None,
) -> Lesson:
    lesson_id = new_id()
    created_at = to_iso(now or utc_now())
    with storage_errors("create_lesson"):
        conn.execute(
            "INSERT INTO lessons (id, owner, title, content, created_at) VALUES (?, ?, ?, ?, ?)",
            (lesson_id, owner, title, content, created_at),
        )
        conn.executemany(
            """
            INSERT INTO vocabulary (
                id, lesson_id, word, reading, meaning, original_form, conjugation_info, position
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            [
                (
                    new_id(),
                    lesson_id,
                    entry["word"],
                    entry.get("reading"),
                    entry["meaning"],
                    entry.get("original_form"),
                    entry.get("conjugation_info"),
                    position,
                )
                for position, entry in enumerate(vocabulary)
            ],
        )
    return Lesson(id=lesson_id, owner=owner, title=title, content=content, created_at=from_iso(created_at))


def get_lesson(conn: sqlite3.Connection, lesson_id: str) -> Optional[Lesson]:
    with storage_errors("get_lesson"):
        row = conn.execute(
            "SELECT id, owner, title, content, created_at FROM lessons WHERE id = ?",
            (lesson_id,),
        ).fetchone()
    return _row_to_lesson(row) if row else None


def list_lessons(conn: sqlite3.Connection, owner: str) -> List[Lesson]:
    with storage_errors("list_lessons"):
        rows = conn.execute(
            """
            SELECT id, owner, title, content, created_at
            FROM lessons
            WHERE owner = ?
            ORDER BY created_at DESC, id
            """,
            (owner,),
        ).fetchall()
    return [_row_to_lesson(row) for row in rows]


def delete_lesson(conn: sqlite3.Connection, lesson_id: str) -> bool:
    """Delete a lesson; its vocabulary and review states go with it."""
    with storage_errors("delete_lesson"):
        cursor = conn.execute("DELETE FROM lessons WHERE id = ?", (lesson_id,))
    return cursor.rowcount > 0


# --- vocabulary ---

_VOCAB_COLUMNS = "id, lesson_id, word, reading, meaning, original_form, conjugation_info, position"


def _row_to_vocab(row: sqlite3.Row) -> VocabItem:
    return VocabItem(
        id=row["id"],
        lesson_id=row["lesson_id"],
        word=row["word"],
        reading=row["reading"],
        meaning=row["meaning"],
        original_form=row["original_form"],
        conjugation_info=row["conjugation_info"],
        position=int(row["position"]),
    )


def add_vocabulary(
    conn: sqlite3.Connection,
    *,
    lesson_id: str,
    word: str,
    meaning: str,
    reading: Optional[str] = None,
    original_form: Optional[str] = None,
    conjugation_info: Optional[str] = None,
) -> VocabItem:
    """Insert a word at the top of the lesson list, shifting the rest down."""
    item = VocabItem(
        id=new_id(),
        lesson_id=lesson_id,
        word=word,
        reading=reading,
        meaning=meaning,
        original_form=original_form,
        conjugation_info=conjugation_info,
        position=0,
    )
    with storage_errors("add_vocabulary"):
        conn.execute("UPDATE vocabulary SET position = position + 1 WHERE lesson_id = ?", (lesson_id,))
        conn.execute(
            f"INSERT INTO vocabulary ({_VOCAB_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            (
                item.id,
                item.lesson_id,
                item.word,
                item.reading,
                item.meaning,
                item.original_form,
                item.conjugation_info,
                item.position,
            ),
        )
    return item


def get_vocabulary(conn: sqlite3.Connection, item_id: str) -> Optional[VocabItem]:
    with storage_errors("get_vocabulary"):
        row = conn.execute(f"SELECT {_VOCAB_COLUMNS} FROM vocabulary WHERE id = ?", (item_id,)).fetchone()
    return _row_to_vocab(row) if row else None


def delete_vocabulary(conn: sqlite3.Connection, item_id: str) -> bool:
    with storage_errors("delete_vocabulary"):
        cursor = conn.execute("DELETE FROM vocabulary WHERE id = ?", (item_id,))
    return cursor.rowcount > 0


def list_vocabulary_for_lesson(conn: sqlite3.Connection, lesson_id: str) -> List[VocabItem]:
    with storage_errors("list_vocabulary_for_lesson"):
        rows = conn.execute(
            f"SELECT {_VOCAB_COLUMNS} FROM vocabulary WHERE lesson_id = ? ORDER BY position, id",
            (lesson_id,),
        ).fetchall()
    return [_row_to_vocab(row) for row in rows]


# --- review states ---

_STATE_SELECT = """
    SELECT
        rs.id,
        rs.owner,
        rs.item_id,
        rs.lesson_id,
        rs.skill,
        rs.repetition_count,
        rs.easiness_factor,
        rs.interval_days,
        rs.next_review_at,
        rs.last_quality,
        rs.total_reviews,
        rs.last_reviewed_at,
        v.word AS v_word,
        v.reading AS v_reading,
        v.meaning AS v_meaning,
        v.original_form AS v_original_form,
        v.conjugation_info AS v_conjugation_info,
        v.position AS v_position
    FROM review_states rs
    JOIN vocabulary v ON v.id = rs.item_id
"""


def _row_to_state(row: sqlite3.Row) -> ReviewState:
    item = VocabItem(
        id=row["item_id"],
        lesson_id=row["lesson_id"],
        word=row["v_word"],
        reading=row["v_reading"],
        meaning=row["v_meaning"],
        original_form=row["v_original_form"],
        conjugation_info=row["v_conjugation_info"],
        position=int(row["v_position"]),
    )
    return ReviewState(
        id=int(row["id"]),
        owner=row["owner"],
        item_id=row["item_id"],
        lesson_id=row["lesson_id"],
        skill=row["skill"],
        repetition_count=int(row["repetition_count"]),
        easiness_factor=float(row["easiness_factor"]),
        interval_days=int(row["interval_days"]),
        next_review_at=from_iso(row["next_review_at"]),
        last_quality=row["last_quality"],
        total_reviews=int(row["total_reviews"]),
        last_reviewed_at=from_iso(row["last_reviewed_at"]),
        item=item,
    )


def get_review_state(conn: sqlite3.Connection, state_id: int) -> Optional[ReviewState]:
    with storage_errors("get_review_state"):
        row = conn.execute(_STATE_SELECT + " WHERE rs.id = ?", (state_id,)).fetchone()
    return _row_to_state(row) if row else None


def find_review_state(
    conn: sqlite3.Connection,
    owner: str,
    item_id: str,
    skill: str,
    lesson_id: str,
) -> Optional[ReviewState]:
    with storage_errors("find_review_state"):
        row = conn.execute(
            _STATE_SELECT
            + " WHERE rs.owner = ? AND rs.item_id = ? AND rs.skill = ? AND rs.lesson_id = ?",
            (owner, item_id, skill, lesson_id),
        ).fetchone()
    return _row_to_state(row) if row else None


def create_review_state(
    conn: sqlite3.Connection,
    owner: str,
    item_id: str,
    lesson_id: str,
    skill: str,
    now: Optional[datetime] = None,
) -> ReviewState:
    """Create the default state, or return the existing one for the same key."""
    with storage_errors("create_review_state"):
        conn.execute(
            """
            INSERT OR IGNORE INTO review_states (
                owner, item_id, lesson_id, skill,
                repetition_count, easiness_factor, interval_days, next_review_at, total_reviews
            )
            VALUES (?, ?, ?, ?, 0, ?, 0, ?, 0)
            """,
            (owner, item_id, lesson_id, skill, DEFAULT_EASINESS, to_iso(now or utc_now())),
        )
    state = find_review_state(conn, owner, item_id, skill, lesson_id)
    if state is None:
        raise StorageError("Review state vanished right after creation")
    return state


def update_review_state(conn: sqlite3.Connection, state_id: int, fields: Dict[str, Any]) -> ReviewState:
    unknown = set(fields) - set(UPDATABLE_FIELDS)
    if unknown:
        raise ValueError(f"Cannot update review state fields: {sorted(unknown)}")
    values = dict(fields)
    for key in ("next_review_at", "last_reviewed_at"):
        if isinstance(values.get(key), datetime):
            values[key] = to_iso(values[key])
    assignments = ", ".join(f"{key} = ?" for key in values)
    with storage_errors("update_review_state"):
        conn.execute(
            f"UPDATE review_states SET {assignments} WHERE id = ?",
            (*values.values(), state_id),
        )
    state = get_review_state(conn, state_id)
    if state is None:
        raise StorageError(f"Review state {state_id} disappeared during update")
    return state


def list_review_states(
    conn: sqlite3.Connection,
    *,
    owner: str,
    skill: str,
    lesson_id: Optional[str] = None,
    due_before: Optional[datetime] = None,
) -> List[ReviewState]:
    """States for an owner and skill, most overdue first."""
    filters = ["rs.owner = ?", "rs.skill = ?"]
    params: list[object] = [owner, skill]
    if lesson_id is not None:
        filters.append("rs.lesson_id = ?")
        params.append(lesson_id)
    if due_before is not None:
        filters.append("rs.next_review_at <= ?")
        params.append(to_iso(due_before))
    where_clause = " AND ".join(filters)
    with storage_errors("list_review_states"):
        rows = conn.execute(
            _STATE_SELECT + f" WHERE {where_clause} ORDER BY rs.next_review_at ASC, rs.id ASC",
            params,
        ).fetchall()
    return [_row_to_state(row) for row in rows]
