from fastapi import APIRouter, Depends, Query, status

from db import store
from db.database import get_db
from models.lesson import LessonCreate, LessonOut, VocabularyCreate, VocabularyOut
from models.review import VocabularyStatsItem, VocabularyStatsRequest, VocabularyStatsResponse
from utils import scheduler
from utils.errors import NotFoundError

router = APIRouter()

@router.post("/lessons", response_model=LessonOut, status_code=status.HTTP_201_CREATED)
async def create_lesson(payload: LessonCreate, conn = Depends(get_db)):
    """Store a generated lesson together with its extracted vocabulary."""
    with store.transaction(conn, "create_lesson"):
        lesson = store.create_lesson(
            conn,
            owner=payload.owner,
            title=payload.title,
            content=payload.content,
            vocabulary=[entry.model_dump() for entry in payload.vocabulary],
        )
    items = store.list_vocabulary_for_lesson(conn, lesson.id)
    return LessonOut.from_lesson(lesson, items)

@router.get("/lessons", response_model=list[LessonOut])
async def list_lessons(owner: str = Query(..., min_length=1), conn = Depends(get_db)):
    """List the owner's lessons, newest first (without vocabulary)."""
    return [LessonOut.from_lesson(lesson) for lesson in store.list_lessons(conn, owner)]

@router.get("/lessons/{lesson_id}", response_model=LessonOut)
async def get_lesson(lesson_id: str, owner: str = Query(..., min_length=1), conn = Depends(get_db)):
    lesson = scheduler.require_lesson(conn, lesson_id, owner=owner)
    return LessonOut.from_lesson(lesson, store.list_vocabulary_for_lesson(conn, lesson_id))

@router.delete("/lessons/{lesson_id}")
async def delete_lesson(lesson_id: str, owner: str = Query(..., min_length=1), conn = Depends(get_db)):
    """Delete a lesson; vocabulary and review states cascade."""
    with store.transaction(conn, "delete_lesson"):
        scheduler.require_lesson(conn, lesson_id, owner=owner)
        store.delete_lesson(conn, lesson_id)
    return {"success": True}

@router.post("/lessons/{lesson_id}/vocabulary", response_model=VocabularyOut, status_code=status.HTTP_201_CREATED)
async def add_vocabulary(
    lesson_id: str,
    payload: VocabularyCreate,
    owner: str = Query(..., min_length=1),
    conn = Depends(get_db),
):
    """Add a word at the top of the lesson's vocabulary list."""
    with store.transaction(conn, "add_vocabulary"):
        scheduler.require_lesson(conn, lesson_id, owner=owner)
        item = store.add_vocabulary(conn, lesson_id=lesson_id, **payload.model_dump())
    return VocabularyOut.from_item(item)

@router.delete("/vocabulary/{item_id}")
async def delete_vocabulary(item_id: str, owner: str = Query(..., min_length=1), conn = Depends(get_db)):
    """Delete a word; its reading and meaning review states cascade."""
    with store.transaction(conn, "delete_vocabulary"):
        item = store.get_vocabulary(conn, item_id)
        if item is None:
            raise NotFoundError(f"Vocabulary item {item_id} not found")
        scheduler.require_lesson(conn, item.lesson_id, owner=owner)
        store.delete_vocabulary(conn, item_id)
    return {"success": True}

@router.post("/vocabulary-stats", response_model=VocabularyStatsResponse)
async def vocabulary_stats(payload: VocabularyStatsRequest, conn = Depends(get_db)):
    """Reading and meaning progress for every word of one of the owner's lessons."""
    progress = scheduler.get_vocabulary_progress(conn, payload.owner, payload.lesson_id)
    return VocabularyStatsResponse(
        vocabulary_stats=[VocabularyStatsItem.from_progress(entry) for entry in progress]
    )
