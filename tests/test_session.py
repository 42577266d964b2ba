from datetime import datetime, timedelta, timezone

import pytest

from db.store import ReviewState
from utils import session as study
from utils.errors import SessionStateError, StorageError, ValidationError
from utils.session import SessionState, StudySession

T0 = datetime(2024, 4, 1, 9, 0, tzinfo=timezone.utc)


def _card(n: int) -> ReviewState:
    return ReviewState(
        id=n, owner="learner-1", item_id=f"item-{n}", lesson_id="lesson", skill="reading", next_review_at=T0
    )


class FakeScheduler:
    """Scripted due/all fetches; records every rating."""

    def __init__(self, due_batches, all_items=()):
        self.due_batches = list(due_batches)
        self.all_items = list(all_items)
        self.ratings = []
        self.all_calls = 0

    def fetch_due(self):
        return self.due_batches.pop(0) if self.due_batches else []

    def fetch_all(self):
        self.all_calls += 1
        return list(self.all_items)

    def submit(self, card, quality):
        self.ratings.append((card.item_id, quality))
        return card

    def session(self, fallback_to_all=True):
        return StudySession("reading", self.fetch_due, self.fetch_all, self.submit, fallback_to_all=fallback_to_all)


def _answer(session, quality):
    session.reveal()
    return session.rate(quality)


def test_due_cards_start_an_active_session():
    fake = FakeScheduler([[_card(1), _card(2)]])
    session = fake.session()
    assert session.state is SessionState.LOADING
    assert session.start() is SessionState.ACTIVE
    assert session.current_card.item_id == "item-1"
    assert session.remaining == 2
    assert not session.fell_back


def test_empty_due_list_falls_back_to_all_items_once():
    fake = FakeScheduler([[]], all_items=[_card(1)])
    session = fake.session()
    assert session.start() is SessionState.ACTIVE
    assert session.fell_back
    assert fake.all_calls == 1

    _answer(session, 3)
    assert session.state is SessionState.ROUND_COMPLETE
    assert fake.all_calls == 1


def test_no_fallback_means_no_items():
    fake = FakeScheduler([[]], all_items=[_card(1)])
    session = fake.session(fallback_to_all=False)
    assert session.start() is SessionState.NO_ITEMS
    assert session.current_card is None
    assert fake.all_calls == 0


def test_empty_lesson_has_no_items_even_with_fallback():
    session = FakeScheduler([[]]).session()
    assert session.start() is SessionState.NO_ITEMS


def test_failed_cards_come_back_in_the_same_session():
    first, second = _card(1), _card(2)
    fake = FakeScheduler([[first, second], [first], []])
    session = fake.session()
    session.start()

    _answer(session, 0)
    _answer(session, 3)
    assert session.state is SessionState.ACTIVE
    assert [card.item_id for card in session.deck] == ["item-1"]

    _answer(session, 2)
    assert session.state is SessionState.ROUND_COMPLETE
    assert fake.ratings == [("item-1", 0), ("item-2", 3), ("item-1", 2)]


def test_rating_requires_a_revealed_answer():
    session = FakeScheduler([[_card(1)]]).session()
    session.start()
    with pytest.raises(SessionStateError):
        session.rate(2)
    session.reveal()
    session.rate(2)


def test_cannot_reveal_outside_an_active_round():
    session = FakeScheduler([[]]).session(fallback_to_all=False)
    with pytest.raises(SessionStateError):
        session.reveal()
    session.start()
    with pytest.raises(SessionStateError):
        session.reveal()


def test_start_only_once():
    session = FakeScheduler([[_card(1)]]).session()
    session.start()
    with pytest.raises(SessionStateError):
        session.start()


def test_restart_after_round_complete():
    fake = FakeScheduler([[_card(1)], [], [_card(1)]], all_items=[_card(1), _card(2)])
    session = fake.session()
    session.start()
    _answer(session, 3)
    assert session.state is SessionState.ROUND_COMPLETE

    with pytest.raises(SessionStateError):
        session.rate(3)

    assert session.restart() is SessionState.ACTIVE
    _answer(session, 3)
    assert session.restart(include_all=True) is SessionState.ACTIVE
    assert session.remaining == 2


def test_restart_with_nothing_due_stays_complete():
    fake = FakeScheduler([[_card(1)]])
    session = fake.session()
    session.start()
    _answer(session, 2)
    assert session.restart() is SessionState.ROUND_COMPLETE


def test_rejected_rating_keeps_the_card(conn, lesson, items):
    session = study.for_skill(conn, "learner-1", lesson.id, "reading", clock=lambda: T0)
    session.start()
    session.reveal()
    with pytest.raises(ValidationError):
        session.rate(7)
    assert session.answer_shown
    assert session.current_card.item_id == items[0].id


def test_bound_session_runs_a_full_round(conn, lesson, items):
    clock = {"now": T0}
    session = study.for_skill(conn, "learner-1", lesson.id, "meaning", clock=lambda: clock["now"])

    assert session.start() is SessionState.ACTIVE
    assert session.fell_back
    assert session.remaining == len(items)

    _answer(session, 3)
    _answer(session, 1)
    _answer(session, 2)
    assert session.state is SessionState.ACTIVE
    assert [card.item_id for card in session.deck] == [items[1].id]

    _answer(session, 3)
    assert session.state is SessionState.ROUND_COMPLETE

    clock["now"] = T0 + timedelta(days=1)
    assert session.restart() is SessionState.ACTIVE
    assert {card.item_id for card in session.deck} == {items[0].id, items[1].id, items[2].id}


def test_for_skill_rejects_unknown_skill(conn, lesson):
    with pytest.raises(ValidationError):
        study.for_skill(conn, "learner-1", lesson.id, "writing")


def test_failed_refetch_leaves_a_restartable_round():
    fake = FakeScheduler([[_card(1)], [_card(1)]])
    calls = {"due": 0}
    fetch_due = fake.fetch_due

    def flaky_fetch_due():
        calls["due"] += 1
        if calls["due"] == 2:
            raise StorageError("Storage failure during list_review_states")
        return fetch_due()

    session = StudySession("reading", flaky_fetch_due, fake.fetch_all, fake.submit)
    session.start()
    session.reveal()
    with pytest.raises(StorageError):
        session.rate(0)
    assert fake.ratings == [("item-1", 0)]
    assert session.state is SessionState.ROUND_COMPLETE
    assert session.current_card is None

    assert session.restart() is SessionState.ACTIVE
    assert session.current_card.item_id == "item-1"
    assert fake.all_calls == 0


def test_restart_of_an_empty_lesson_stays_no_items():
    session = FakeScheduler([[], []]).session()
    assert session.start() is SessionState.NO_ITEMS
    assert session.restart() is SessionState.NO_ITEMS
    assert session.restart(include_all=True) is SessionState.NO_ITEMS
