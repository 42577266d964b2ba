# SQL schema for the Kotoba SRS database

SCHEMA_VERSION = 1

SCHEMA_SQL = """
-- Lessons (content produced by the lesson generator, stored as-is)
CREATE TABLE IF NOT EXISTS lessons (
    id TEXT PRIMARY KEY,
    owner TEXT NOT NULL,
    title TEXT NOT NULL,
    content TEXT NOT NULL DEFAULT '',
    created_at TEXT NOT NULL
);

-- Vocabulary extracted from a lesson
CREATE TABLE IF NOT EXISTS vocabulary (
    id TEXT PRIMARY KEY,
    lesson_id TEXT NOT NULL,
    word TEXT NOT NULL,
    reading TEXT,
    meaning TEXT NOT NULL,
    original_form TEXT,
    conjugation_info TEXT,
    position INTEGER NOT NULL DEFAULT 0,
    FOREIGN KEY (lesson_id) REFERENCES lessons (id) ON DELETE CASCADE
);

-- Review state, one row per owner/item/skill/lesson
CREATE TABLE IF NOT EXISTS review_states (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    owner TEXT NOT NULL,
    item_id TEXT NOT NULL,
    lesson_id TEXT NOT NULL,
    skill TEXT NOT NULL CHECK(skill IN ('reading', 'meaning')),
    repetition_count INTEGER NOT NULL DEFAULT 0 CHECK(repetition_count >= 0),
    easiness_factor REAL NOT NULL DEFAULT 2.5 CHECK(easiness_factor >= 1.3),
    interval_days INTEGER NOT NULL DEFAULT 0 CHECK(interval_days BETWEEN 0 AND 365),
    next_review_at TEXT NOT NULL,
    last_quality INTEGER CHECK(last_quality BETWEEN 0 AND 3),
    total_reviews INTEGER NOT NULL DEFAULT 0,
    last_reviewed_at TEXT,
    UNIQUE (owner, item_id, skill, lesson_id),
    FOREIGN KEY (item_id) REFERENCES vocabulary (id) ON DELETE CASCADE,
    FOREIGN KEY (lesson_id) REFERENCES lessons (id) ON DELETE CASCADE
);
"""

# Indexes for performance
INDEXES_SQL = """
CREATE INDEX IF NOT EXISTS idx_lessons_owner ON lessons (owner);
CREATE INDEX IF NOT EXISTS idx_vocabulary_lesson ON vocabulary (lesson_id, position);
CREATE INDEX IF NOT EXISTS idx_review_states_due ON review_states (owner, lesson_id, skill, next_review_at);
CREATE INDEX IF NOT EXISTS idx_review_states_item ON review_states (item_id);
"""
