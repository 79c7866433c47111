"""Per-user progress on vocabulary words."""
import time

from fastapi import APIRouter, Depends, HTTPException

from log import get_logger
from db import get_db
from auth import require_user
from models import ProgressUpdate
from catalog import get_lesson, list_words, require_found, require_lesson_type, progress_map

logger = get_logger("reader.progress_routes")

router = APIRouter()


def record_progress(conn, user_id: int, word_id: int, seen: bool = False,
                    correct: bool = False, incorrect: bool = False) -> dict:
    """Upsert one progress row. Counters only ever grow; seen is never unset."""
    now = time.time()
    conn.execute(
        "INSERT INTO user_progress (user_id, word_id, seen, correct_count, incorrect_count, "
        "last_reviewed_at, created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?) "
        "ON CONFLICT(user_id, word_id) DO UPDATE SET "
        "seen = MAX(seen, excluded.seen), "
        "correct_count = correct_count + excluded.correct_count, "
        "incorrect_count = incorrect_count + excluded.incorrect_count, "
        "last_reviewed_at = excluded.last_reviewed_at, "
        "updated_at = excluded.updated_at",
        (user_id, word_id, int(bool(seen)), int(bool(correct)), int(bool(incorrect)), now, now, now),
    )
    row = dict(conn.execute(
        "SELECT * FROM user_progress WHERE user_id = ? AND word_id = ?", (user_id, word_id)
    ).fetchone())
    row["seen"] = bool(row["seen"])
    return row


@router.post("/api/progress/{word_id}", tags=["Progress"], summary="Record a review of one word")
async def update_progress(word_id: int, req: ProgressUpdate, user=Depends(require_user)):
    conn = get_db()
    try:
        word = conn.execute("SELECT id FROM vocabulary_words WHERE id = ?", (word_id,)).fetchone()
        if not word:
            raise HTTPException(404, "Vocabulary word not found")
        row = record_progress(conn, user["id"], word_id,
                              seen=bool(req.seen), correct=bool(req.correct), incorrect=bool(req.incorrect))
        conn.commit()
        return row
    finally:
        conn.close()


@router.get("/api/lessons/{lesson_id}/progress", tags=["Progress"],
            summary="The caller's progress across a vocabulary lesson")
async def lesson_progress(lesson_id: int, user=Depends(require_user)):
    conn = get_db()
    try:
        lesson = require_found(get_lesson(conn, lesson_id), "Lesson")
        require_lesson_type(lesson, "vocabulary")
        words = list_words(conn, lesson_id)
        progress = progress_map(conn, user["id"], lesson_id)
    finally:
        conn.close()

    rows = progress.values()
    return {
        "lesson_id": lesson_id,
        "progress": progress,
        "summary": {
            "total": len(words),
            "seen": sum(1 for p in rows if p["seen"]),
            "correct": sum(p["correct_count"] for p in rows),
            "incorrect": sum(p["incorrect_count"] for p in rows),
        },
    }
