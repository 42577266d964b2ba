"""Client-side study session for one skill of one lesson.

The scheduler only answers "what is due right now"; this state machine turns
that into rounds. Cards rated 0 or 1 come back due immediately, so the re-fetch
after the last card of a deck picks them up again, and the round is complete
only when a re-fetch comes back empty.
"""

from __future__ import annotations

import sqlite3
from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional

from db.store import ReviewState
from utils import scheduler
from utils.errors import SessionStateError

Fetch = Callable[[], List[ReviewState]]
Submit = Callable[[ReviewState, int], ReviewState]


class SessionState(str, Enum):
    LOADING = "loading"
    NO_ITEMS = "no_items"
    ACTIVE = "active"
    ROUND_COMPLETE = "round_complete"


class StudySession:
    def __init__(
        self,
        skill: str,
        fetch_due: Fetch,
        fetch_all: Fetch,
        submit: Submit,
        fallback_to_all: bool = True,
    ) -> None:
        self.skill = skill
        self._fetch_due = fetch_due
        self._fetch_all = fetch_all
        self._submit = submit
        self.fallback_to_all = fallback_to_all
        self.state = SessionState.LOADING
        self.deck: List[ReviewState] = []
        self.position = 0
        self.answer_shown = False
        self.fell_back = False

    @property
    def current_card(self) -> Optional[ReviewState]:
        if self.state is not SessionState.ACTIVE:
            return None
        return self.deck[self.position]

    @property
    def remaining(self) -> int:
        if self.state is not SessionState.ACTIVE:
            return 0
        return len(self.deck) - self.position

    def _require(self, *states: SessionState) -> None:
        if self.state not in states:
            allowed = ", ".join(state.value for state in states)
            raise SessionStateError(f"Session is {self.state.value}; expected {allowed}")

    def _load(self, deck: List[ReviewState], empty_state: SessionState) -> SessionState:
        self.deck = list(deck)
        self.position = 0
        self.answer_shown = False
        self.state = SessionState.ACTIVE if self.deck else empty_state
        return self.state

    def start(self) -> SessionState:
        """Fetch due cards; fall back to the whole lesson once if nothing is due."""
        self._require(SessionState.LOADING)
        deck = self._fetch_due()
        if not deck and self.fallback_to_all:
            deck = self._fetch_all()
            self.fell_back = True
        return self._load(deck, SessionState.NO_ITEMS)

    def reveal(self) -> ReviewState:
        self._require(SessionState.ACTIVE)
        self.answer_shown = True
        return self.deck[self.position]

    def rate(self, quality: int) -> ReviewState:
        """Rate the revealed card and move on; re-fetch after the last one."""
        self._require(SessionState.ACTIVE)
        if not self.answer_shown:
            raise SessionStateError("Reveal the answer before rating the card")
        updated = self._submit(self.deck[self.position], quality)
        self.deck[self.position] = updated
        self.position += 1
        self.answer_shown = False
        if self.position >= len(self.deck):
            self._refetch(self._fetch_due, SessionState.ROUND_COMPLETE)
        return updated

    def _refetch(self, fetch: Fetch, empty_state: SessionState) -> SessionState:
        # On a failed fetch the session lands in empty_state, which restart() accepts.
        self.state = SessionState.LOADING
        try:
            deck = fetch()
        except Exception:
            self.deck = []
            self.position = 0
            self.state = empty_state
            raise
        return self._load(deck, empty_state)

    def restart(self, include_all: bool = False) -> SessionState:
        """Start a new round after completion ("review again" with include_all)."""
        self._require(SessionState.ROUND_COMPLETE, SessionState.NO_ITEMS)
        fetch = self._fetch_all if include_all else self._fetch_due
        return self._refetch(fetch, self.state)


def for_skill(
    conn: sqlite3.Connection,
    owner: str,
    lesson_id: str,
    skill: str,
    fallback_to_all: bool = True,
    clock: Optional[Callable[[], datetime]] = None,
) -> StudySession:
    """Bind a StudySession to the scheduler and an open connection."""
    skill = scheduler.validate_skill(skill)

    def now() -> Optional[datetime]:
        return clock() if clock else None

    def fetch_due() -> List[ReviewState]:
        return scheduler.get_due_items(conn, owner, lesson_id, skill, now=now())

    def fetch_all() -> List[ReviewState]:
        return scheduler.get_all_items_for_lesson(conn, owner, lesson_id, skill, now=now())

    def submit(card: ReviewState, quality: int) -> ReviewState:
        return scheduler.submit_rating(conn, owner, card.item_id, lesson_id, skill, quality, now=now())

    return StudySession(skill, fetch_due, fetch_all, submit, fallback_to_all=fallback_to_all)
