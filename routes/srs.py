from fastapi import APIRouter, Depends

from db import store
from db.database import get_db
from models.review import (
    DueRequest,
    DueResponse,
    ProgressRequest,
    ProgressResponse,
    RateItemRequest,
    RateItemResponse,
    RatedRecord,
    ReviewStateOut,
    StatsOut,
)
from utils import scheduler

router = APIRouter()

def _serialize(states) -> list[ReviewStateOut]:
    return [ReviewStateOut.from_state(state) for state in states]

@router.post("/rate-item", response_model=RateItemResponse)
async def rate_item(payload: RateItemRequest, conn = Depends(get_db)):
    """Apply a 0-3 rating and return the new state plus what is still due for that skill."""
    skill = payload.skill.value
    with store.transaction(conn, "rate_item", immediate=True):
        state = scheduler.submit_rating(
            conn, payload.owner, payload.item_id, payload.lesson_id, skill, payload.quality
        )
        due = scheduler.get_due_items(conn, payload.owner, payload.lesson_id, skill)
    return RateItemResponse(
        record=RatedRecord.from_rating(state, payload.quality),
        updated_due_items=_serialize(due),
    )

@router.post("/progress", response_model=ProgressResponse)
async def get_progress(payload: ProgressRequest, conn = Depends(get_db)):
    """Due (or, with includeAll, every) item for both skills, plus lesson stats."""
    fetch = scheduler.get_all_items_for_lesson if payload.include_all else scheduler.get_due_items
    reading = fetch(conn, payload.owner, payload.lesson_id, "reading")
    meaning = fetch(conn, payload.owner, payload.lesson_id, "meaning")
    stats = scheduler.get_stats(conn, payload.owner, payload.lesson_id)
    return ProgressResponse(
        reading_items=_serialize(reading),
        meaning_items=_serialize(meaning),
        stats=StatsOut.from_stats(stats),
    )

@router.post("/due", response_model=DueResponse)
async def due_items(payload: DueRequest, conn = Depends(get_db)):
    """Session start for one skill: due items, or the whole lesson when asked to fall back."""
    skill = payload.skill.value
    items = scheduler.get_due_items(conn, payload.owner, payload.lesson_id, skill)
    fell_back = False
    if not items and payload.fallback:
        items = scheduler.get_all_items_for_lesson(conn, payload.owner, payload.lesson_id, skill)
        fell_back = True
    return DueResponse(skill=payload.skill, items=_serialize(items), fell_back=fell_back)
