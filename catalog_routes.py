"""Learner-facing read routes over books, units and lessons."""
from fastapi import APIRouter, Depends

from auth import require_user
from db import get_db
from catalog import (
    get_book, get_unit, get_lesson, list_books, list_units, list_lessons,
    list_words, list_sentences, require_found, require_lesson_type,
    progress_map, split_columns,
)

router = APIRouter()


@router.get("/api/books", tags=["Catalog"], summary="List books")
async def books(user=Depends(require_user)):
    conn = get_db()
    try:
        return list_books(conn)
    finally:
        conn.close()


@router.get("/api/books/{book_id}", tags=["Catalog"], summary="Get a book with its units")
async def book_detail(book_id: int, user=Depends(require_user)):
    conn = get_db()
    try:
        book = require_found(get_book(conn, book_id), "Book")
        book["units"] = list_units(conn, book_id)
        return book
    finally:
        conn.close()


@router.get("/api/units/{unit_id}", tags=["Catalog"], summary="Get a unit with its book and lessons")
async def unit_detail(unit_id: int, user=Depends(require_user)):
    conn = get_db()
    try:
        unit = require_found(get_unit(conn, unit_id), "Unit")
        unit["book"] = get_book(conn, unit["book_id"])
        unit["lessons"] = list_lessons(conn, unit_id)
        return unit
    finally:
        conn.close()


@router.get("/api/lessons/{lesson_id}", tags=["Catalog"], summary="Get a lesson")
async def lesson_detail(lesson_id: int, user=Depends(require_user)):
    conn = get_db()
    try:
        return require_found(get_lesson(conn, lesson_id), "Lesson")
    finally:
        conn.close()


@router.get("/api/lessons/{lesson_id}/vocabulary", tags=["Catalog"],
            summary="Vocabulary words of a lesson with the caller's progress")
async def lesson_vocabulary(lesson_id: int, user=Depends(require_user)):
    conn = get_db()
    try:
        lesson = require_found(get_lesson(conn, lesson_id), "Lesson")
        require_lesson_type(lesson, "vocabulary")
        return {
            "lesson": lesson,
            "words": list_words(conn, lesson_id),
            "progress": progress_map(conn, user["id"], lesson_id),
        }
    finally:
        conn.close()


@router.get("/api/lessons/{lesson_id}/conversation", tags=["Catalog"],
            summary="Conversation sentences of a lesson, split into dialogue columns")
async def lesson_conversation(lesson_id: int, user=Depends(require_user)):
    conn = get_db()
    try:
        lesson = require_found(get_lesson(conn, lesson_id), "Lesson")
        require_lesson_type(lesson, "conversation")
        sentences = list_sentences(conn, lesson_id)
        return {"lesson": lesson, "sentences": sentences, **split_columns(sentences)}
    finally:
        conn.close()
