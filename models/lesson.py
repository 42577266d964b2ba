from datetime import datetime
from typing import List, Optional

from pydantic import Field

from db.store import Lesson, VocabItem
from .common import CamelModel

class VocabularyCreate(CamelModel):
    word: str = Field(..., min_length=1)
    meaning: str = Field(..., min_length=1)
    reading: Optional[str] = None
    original_form: Optional[str] = None
    conjugation_info: Optional[str] = None

class VocabularyOut(VocabularyCreate):
    id: str
    lesson_id: str
    position: int = 0

    @classmethod
    def from_item(cls, item: VocabItem) -> "VocabularyOut":
        return cls(
            id=item.id,
            lesson_id=item.lesson_id,
            word=item.word,
            meaning=item.meaning,
            reading=item.reading,
            original_form=item.original_form,
            conjugation_info=item.conjugation_info,
            position=item.position,
        )

class LessonCreate(CamelModel):
    owner: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1)
    # Opaque lesson body from the lesson generator.
    content: str = ""
    vocabulary: List[VocabularyCreate] = Field(default_factory=list)

class LessonOut(CamelModel):
    id: str
    owner: str
    title: str
    content: str
    created_at: datetime
    vocabulary: List[VocabularyOut] = Field(default_factory=list)

    @classmethod
    def from_lesson(cls, lesson: Lesson, items: Optional[List[VocabItem]] = None) -> "LessonOut":
        return cls(
            id=lesson.id,
            owner=lesson.owner,
            title=lesson.title,
            content=lesson.content,
            created_at=lesson.created_at,
            vocabulary=[VocabularyOut.from_item(item) for item in items or []],
        )
