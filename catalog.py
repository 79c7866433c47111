"""Shared lookups over the book → unit → lesson → content hierarchy."""
from typing import Optional, List

from fastapi import HTTPException

from models import PLAYABLE_LESSON_TYPES


def _one(conn, sql: str, params: tuple) -> Optional[dict]:
    row = conn.execute(sql, params).fetchone()
    return dict(row) if row else None


def _all(conn, sql: str, params: tuple = ()) -> List[dict]:
    return [dict(r) for r in conn.execute(sql, params).fetchall()]


def get_book(conn, book_id: int) -> Optional[dict]:
    return _one(conn, "SELECT * FROM books WHERE id = ?", (book_id,))


def get_unit(conn, unit_id: int) -> Optional[dict]:
    return _one(conn, "SELECT * FROM units WHERE id = ?", (unit_id,))


def get_lesson(conn, lesson_id: int) -> Optional[dict]:
    return _one(conn, "SELECT * FROM lessons WHERE id = ?", (lesson_id,))


def list_books(conn) -> List[dict]:
    return _all(conn, "SELECT * FROM books ORDER BY id")


def list_units(conn, book_id: int) -> List[dict]:
    return _all(conn, 'SELECT * FROM units WHERE book_id = ? ORDER BY "order", id', (book_id,))


def list_lessons(conn, unit_id: int) -> List[dict]:
    lessons = _all(conn, 'SELECT * FROM lessons WHERE unit_id = ? ORDER BY "order", id', (unit_id,))
    for lesson in lessons:
        lesson["available"] = lesson["type"] in PLAYABLE_LESSON_TYPES
    return lessons


def list_words(conn, lesson_id: int) -> List[dict]:
    return _all(conn, 'SELECT * FROM vocabulary_words WHERE lesson_id = ? ORDER BY "order", id', (lesson_id,))


def list_sentences(conn, lesson_id: int) -> List[dict]:
    return _all(conn, 'SELECT * FROM conversation_sentences WHERE lesson_id = ? ORDER BY "order", id', (lesson_id,))


def count_children(conn, table: str, parent_column: str, parent_id: int) -> int:
    return conn.execute(f"SELECT COUNT(*) FROM {table} WHERE {parent_column} = ?", (parent_id,)).fetchone()[0]


def require_found(item: Optional[dict], label: str) -> dict:
    if not item:
        raise HTTPException(404, f"{label} not found")
    return item


def require_lesson_type(lesson: dict, lesson_type: str):
    if lesson["type"] != lesson_type:
        raise HTTPException(400, f"Lesson is not a {lesson_type} lesson")


def progress_map(conn, user_id: int, lesson_id: int) -> dict:
    rows = _all(conn,
                "SELECT p.* FROM user_progress p JOIN vocabulary_words w ON p.word_id = w.id "
                "WHERE p.user_id = ? AND w.lesson_id = ?",
                (user_id, lesson_id))
    result = {}
    for row in rows:
        row["seen"] = bool(row["seen"])
        result[row["word_id"]] = row
    return result


def split_columns(sentences: List[dict]) -> dict:
    """Dialogue reads right-to-left: even orders go to the right column, odd to the left."""
    return {
        "right": [s for s in sentences if s["order"] % 2 == 0],
        "left": [s for s in sentences if s["order"] % 2 == 1],
    }
