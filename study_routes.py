"""Flashcards, multiple-choice tests and audio playback for lessons."""
import time
import random
import secrets
import sqlite3

from fastapi import APIRouter, Depends, HTTPException

from log import get_logger
from db import get_db
from auth import require_user
from models import STUDY_MODES, SPEECH_LANGS, AnswerSheet
from cache import get_tests, cleanup_tests
from catalog import (
    get_lesson, list_words, list_sentences, require_found, require_lesson_type, progress_map,
)
from progress_routes import record_progress

logger = get_logger("reader.study_routes")

router = APIRouter()

DISTRACTOR_COUNT = 3
SPEECH_RATE = 0.9
SPEECH_PITCH = 1
SPEECH_VOLUME = 1
PLAYBACK_GAP_MS = 300


def build_options(correct: str, pool: list, rng=random) -> list:
    """Correct answer plus up to three distinct distractors, shuffled."""
    candidates = list(dict.fromkeys(e for e in pool if e != correct))
    options = [correct] + rng.sample(candidates, min(DISTRACTOR_COUNT, len(candidates)))
    rng.shuffle(options)
    return options


def _vocabulary_words(conn, lesson_id: int) -> list:
    lesson = require_found(get_lesson(conn, lesson_id), "Lesson")
    require_lesson_type(lesson, "vocabulary")
    return list_words(conn, lesson_id)


@router.get("/api/lessons/{lesson_id}/flashcards", tags=["Study"], summary="Flashcards for learn or practice mode")
async def flashcards(lesson_id: int, mode: str = "learn", user=Depends(require_user)):
    if mode not in STUDY_MODES:
        raise HTTPException(400, f"Invalid mode. Allowed: {', '.join(STUDY_MODES)}")
    if mode == "test":
        raise HTTPException(400, "Start a test with POST /api/lessons/{lesson_id}/test")
    conn = get_db()
    try:
        words = _vocabulary_words(conn, lesson_id)
        progress = progress_map(conn, user["id"], lesson_id)
    finally:
        conn.close()

    cards = [{**w, "progress": progress.get(w["id"])} for w in words]
    if mode == "practice":
        random.shuffle(cards)
    return {"lesson_id": lesson_id, "mode": mode, "cards": cards}


@router.post("/api/lessons/{lesson_id}/test", tags=["Study"], summary="Start a multiple-choice test")
async def start_test(lesson_id: int, user=Depends(require_user)):
    conn = get_db()
    try:
        words = _vocabulary_words(conn, lesson_id)
    finally:
        conn.close()
    if not words:
        raise HTTPException(400, "Lesson has no vocabulary words")

    pool = [w["english"] for w in words]
    questions = [
        {"word_id": w["id"], "arabic": w["arabic"], "options": build_options(w["english"], pool)}
        for w in words
    ]

    cleanup_tests()
    test_id = secrets.token_hex(16)
    get_tests()[test_id] = {
        "created_at": time.time(),
        "user_id": user["id"],
        "lesson_id": lesson_id,
        "answers": {w["id"]: w["english"] for w in words},
        "arabic": {w["id"]: w["arabic"] for w in words},
    }
    logger.info("Test started", extra={
        "component": "study", "lesson_id": lesson_id, "user_id": user["id"], "count": len(questions),
    })
    return {"test_id": test_id, "lesson_id": lesson_id, "questions": questions}


@router.post("/api/tests/{test_id}/submit", tags=["Study"], summary="Grade a test and record progress")
async def submit_test(test_id: str, req: AnswerSheet, user=Depends(require_user)):
    cleanup_tests()
    tests = get_tests()
    test = tests.get(test_id)
    if not test or test["user_id"] != user["id"]:
        raise HTTPException(404, "Test not found or expired")
    tests.pop(test_id, None)

    results = []
    conn = get_db()
    try:
        for word_id, expected in test["answers"].items():
            given = (req.answers.get(word_id) or "").strip()
            correct = given == expected
            try:
                record_progress(conn, user["id"], word_id, seen=True, correct=correct, incorrect=not correct)
            except sqlite3.IntegrityError:
                # word deleted while the test was running
                logger.warning("Skipping progress for missing word", extra={"component": "study", "detail": word_id})
            results.append({
                "word_id": word_id,
                "arabic": test["arabic"][word_id],
                "answer": given,
                "correct_answer": expected,
                "correct": correct,
            })
        conn.commit()
    finally:
        conn.close()

    total = len(results)
    correct_count = sum(1 for r in results if r["correct"])
    score = round(correct_count * 100 / total) if total else 0
    logger.info("Test submitted", extra={
        "component": "study", "lesson_id": test["lesson_id"], "user_id": user["id"], "count": correct_count,
    })
    return {"results": results, "correct_count": correct_count, "total": total, "score": score}


@router.get("/api/lessons/{lesson_id}/playback", tags=["Study"], summary="Speech sequence for playing a conversation")
async def playback(lesson_id: int, language: str = "arabic", user=Depends(require_user)):
    if language not in SPEECH_LANGS:
        raise HTTPException(400, f"Invalid language. Allowed: {', '.join(SPEECH_LANGS)}")
    conn = get_db()
    try:
        lesson = require_found(get_lesson(conn, lesson_id), "Lesson")
        require_lesson_type(lesson, "conversation")
        sentences = list_sentences(conn, lesson_id)
    finally:
        conn.close()

    items = []
    for s in sentences:
        text = (s.get(language) or "").strip()
        if not text:
            continue
        items.append({
            "sentence_id": s["id"],
            "text": text,
            "lang": SPEECH_LANGS[language],
            "rate": SPEECH_RATE,
            "pitch": SPEECH_PITCH,
            "volume": SPEECH_VOLUME,
        })
    return {"lesson_id": lesson_id, "language": language, "gap_ms": PLAYBACK_GAP_MS, "items": items}
