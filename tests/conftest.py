from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

import config
from db import database, store

T0 = datetime(2024, 4, 1, 9, 0, tzinfo=timezone.utc)

VOCAB = [
    {"word": "食べる", "reading": "たべる", "meaning": "to eat"},
    {"word": "飲む", "reading": "のむ", "meaning": "to drink"},
    {"word": "学校", "reading": "がっこう", "meaning": "school"},
]


@pytest.fixture
def config_dir(tmp_path, monkeypatch):
    config_dir = tmp_path / ".kotoba"
    config_dir.mkdir()
    monkeypatch.setattr(config, "CONFIG_DIR", config_dir)
    monkeypatch.setattr(config, "CONFIG_PATH", config_dir / "config.toml")
    for name in ("KOTOBA_DB_PATH", "KOTOBA_DB_TIMEOUT", "KOTOBA_HOST", "KOTOBA_PORT", "LOG_LEVEL", "LOG_JSON"):
        monkeypatch.delenv(name, raising=False)
    return config_dir


@pytest.fixture
def db(config_dir):
    database.init_db()
    return config_dir / "kotoba.db"


@pytest.fixture
def conn(db):
    with database.get_conn() as conn:
        yield conn


@pytest.fixture
def lesson(conn):
    with store.transaction(conn, "seed"):
        created = store.create_lesson(
            conn, owner="learner-1", title="Daily life", content="...", vocabulary=VOCAB, now=T0
        )
    return created


@pytest.fixture
def items(conn, lesson):
    return store.list_vocabulary_for_lesson(conn, lesson.id)


@pytest.fixture
def client(db):
    from main import app

    return TestClient(app)
