"""Shared fixtures for the Arabic Reader test suite."""
import time

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

import auth
import db
from cache import cache_clear, get_tests


@pytest.fixture()
def client(tmp_path, monkeypatch):
    monkeypatch.setattr(db, "DB_PATH", tmp_path / "reader-test.db")
    monkeypatch.setattr(auth, "ADMIN_USERNAMES", set())
    monkeypatch.delenv("OPENROUTER_API_KEY", raising=False)
    monkeypatch.delenv("OPENROUTER_MODELS", raising=False)
    db.init_db()
    auth._rate_buckets.clear()
    cache_clear()
    get_tests().clear()

    from routes import router
    app = FastAPI()
    app.include_router(router)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture()
def make_user(client):
    """Insert a user directly and return bearer headers for a fresh session."""
    def _make(username: str, is_admin: bool = False) -> dict:
        conn = db.get_db()
        cursor = conn.execute(
            "INSERT INTO users (username, password_hash, is_admin, created_at) VALUES (?, ?, ?, ?)",
            (username, "test-hash", int(is_admin), time.time()),
        )
        user_id = cursor.lastrowid
        conn.commit()
        conn.close()
        return {"Authorization": f"Bearer {auth.create_session(user_id)}"}
    return _make


@pytest.fixture()
def user_headers(make_user):
    return make_user("layla")


@pytest.fixture()
def admin_headers(make_user):
    return make_user("teacher", is_admin=True)


@pytest.fixture()
def seed(client):
    """One book, one unit, a vocabulary, a conversation and a grammar lesson."""
    now = time.time()
    conn = db.get_db()
    book_id = conn.execute(
        "INSERT INTO books (title, description, created_at, updated_at) VALUES (?, ?, ?, ?)",
        ("Madinah Arabic Book 1", "Beginner course", now, now),
    ).lastrowid
    unit_id = conn.execute(
        'INSERT INTO units (book_id, title, "order", created_at, updated_at) VALUES (?, ?, ?, ?, ?)',
        (book_id, "Lesson 1: هذا", 0, now, now),
    ).lastrowid

    def lesson(title, lesson_type, order):
        return conn.execute(
            'INSERT INTO lessons (unit_id, title, type, "order", created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?)',
            (unit_id, title, lesson_type, order, now, now),
        ).lastrowid

    vocab_id = lesson("Vocabulary", "vocabulary", 0)
    conv_id = lesson("Dialogue", "conversation", 1)
    grammar_id = lesson("Grammar notes", "grammar", 2)

    words = [("بَيْتٌ", "house"), ("مَسْجِدٌ", "mosque"), ("بَابٌ", "door"), ("كِتَابٌ", "book")]
    word_ids = []
    for order, (arabic, english) in enumerate(words):
        word_ids.append(conn.execute(
            'INSERT INTO vocabulary_words (lesson_id, arabic, english, "order", created_at) VALUES (?, ?, ?, ?, ?)',
            (vocab_id, arabic, english, order, now),
        ).lastrowid)

    sentences = [("السَّلامُ عَلَيْكُمْ", "Peace be upon you"), ("وَعَلَيْكُمُ السَّلامُ", "And upon you peace"),
                 ("مَا هَذَا؟", None)]
    sentence_ids = []
    for order, (arabic, english) in enumerate(sentences):
        sentence_ids.append(conn.execute(
            'INSERT INTO conversation_sentences (lesson_id, arabic, english, "order", created_at) VALUES (?, ?, ?, ?, ?)',
            (conv_id, arabic, english, order, now),
        ).lastrowid)
    conn.commit()
    conn.close()
    return {
        "book_id": book_id, "unit_id": unit_id,
        "vocab_lesson_id": vocab_id, "conv_lesson_id": conv_id, "grammar_lesson_id": grammar_id,
        "word_ids": word_ids, "sentence_ids": sentence_ids,
    }
