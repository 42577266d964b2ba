from .common import CamelModel
from .lesson import LessonCreate, LessonOut, VocabularyCreate, VocabularyOut
from .review import (
    DueRequest,
    DueResponse,
    ProgressRequest,
    ProgressResponse,
    RateItemRequest,
    RateItemResponse,
    RatedRecord,
    ReviewStateOut,
    Skill,
    StatsOut,
    VocabularyStatsRequest,
    VocabularyStatsResponse,
)

__all__ = [
    'CamelModel',
    'LessonCreate', 'LessonOut', 'VocabularyCreate', 'VocabularyOut',
    'DueRequest', 'DueResponse', 'ProgressRequest', 'ProgressResponse',
    'RateItemRequest', 'RateItemResponse', 'RatedRecord', 'ReviewStateOut',
    'Skill', 'StatsOut', 'VocabularyStatsRequest', 'VocabularyStatsResponse',
]
