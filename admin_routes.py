"""Admin CRUD routes for the catalog and the OpenRouter settings."""
import time
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from log import get_logger
from db import get_db
from auth import require_admin
from models import (
    LESSON_TYPES,
    BookCreate, BookUpdate, UnitCreate, UnitUpdate, LessonCreate, LessonUpdate,
    VocabularyWordCreate, VocabularyWordUpdate,
    ConversationSentenceCreate, ConversationSentenceUpdate,
    BulkVocabularyRequest, BulkConversationRequest, OpenRouterConfigUpdate,
)
from catalog import (
    get_book, get_unit, get_lesson, list_books, list_units, list_lessons,
    list_words, list_sentences, count_children, require_found, require_lesson_type,
)
from llm import get_openrouter_config, save_openrouter_config, mask_api_key

logger = get_logger("reader.admin_routes")

router = APIRouter(prefix="/api/admin", dependencies=[Depends(require_admin)])


def _required_text(value: Optional[str], label: str) -> str:
    text = (value or "").strip()
    if not text:
        raise HTTPException(400, f"{label} is required")
    return text


def _optional_text(value: Optional[str]) -> Optional[str]:
    text = (value or "").strip()
    return text or None


def _check_order(order: Optional[int]):
    if order is not None and order < 0:
        raise HTTPException(400, "Order must be zero or greater")


def _check_lesson_type(lesson_type: str):
    if lesson_type not in LESSON_TYPES:
        raise HTTPException(400, f"Invalid lesson type. Allowed: {', '.join(LESSON_TYPES)}")


def _apply_update(conn, table: str, row_id: int, fields: dict, touch: bool = True):
    if touch:
        fields["updated_at"] = time.time()
    if not fields:
        return
    assignments = ", ".join(f'"{k}" = ?' for k in fields)
    conn.execute(f"UPDATE {table} SET {assignments} WHERE id = ?", (*fields.values(), row_id))


def _fetch(conn, table: str, row_id: int) -> dict:
    return dict(conn.execute(f"SELECT * FROM {table} WHERE id = ?", (row_id,)).fetchone())


def _delete(conn, table: str, row_id: int, label: str):
    cursor = conn.execute(f"DELETE FROM {table} WHERE id = ?", (row_id,))
    if cursor.rowcount == 0:
        raise HTTPException(404, f"{label} not found")
    conn.commit()
    logger.info(f"{label} deleted", extra={"component": "admin", "detail": row_id})


# --- Books ---

@router.get("/books", tags=["Admin"], summary="List books")
async def admin_list_books():
    conn = get_db()
    try:
        return list_books(conn)
    finally:
        conn.close()


@router.post("/books", tags=["Admin"], summary="Create a book")
async def create_book(req: BookCreate):
    title = _required_text(req.title, "Title")
    now = time.time()
    conn = get_db()
    try:
        cursor = conn.execute(
            "INSERT INTO books (title, description, created_at, updated_at) VALUES (?, ?, ?, ?)",
            (title, _optional_text(req.description), now, now),
        )
        conn.commit()
        return _fetch(conn, "books", cursor.lastrowid)
    finally:
        conn.close()


@router.put("/books/{book_id}", tags=["Admin"], summary="Update a book")
async def update_book(book_id: int, req: BookUpdate):
    conn = get_db()
    try:
        require_found(get_book(conn, book_id), "Book")
        fields = {}
        if req.title is not None:
            fields["title"] = _required_text(req.title, "Title")
        if req.description is not None:
            fields["description"] = _optional_text(req.description)
        _apply_update(conn, "books", book_id, fields)
        conn.commit()
        return _fetch(conn, "books", book_id)
    finally:
        conn.close()


@router.delete("/books/{book_id}", tags=["Admin"], summary="Delete a book and everything under it")
async def delete_book(book_id: int):
    conn = get_db()
    try:
        _delete(conn, "books", book_id, "Book")
        return {"ok": True}
    finally:
        conn.close()


# --- Units ---

@router.get("/books/{book_id}/units", tags=["Admin"], summary="List units of a book")
async def admin_list_units(book_id: int):
    conn = get_db()
    try:
        book = require_found(get_book(conn, book_id), "Book")
        return {"book": book, "units": list_units(conn, book_id)}
    finally:
        conn.close()


@router.post("/books/{book_id}/units", tags=["Admin"], summary="Create a unit")
async def create_unit(book_id: int, req: UnitCreate):
    title = _required_text(req.title, "Title")
    _check_order(req.order)
    now = time.time()
    conn = get_db()
    try:
        require_found(get_book(conn, book_id), "Book")
        order = req.order if req.order is not None else count_children(conn, "units", "book_id", book_id)
        cursor = conn.execute(
            'INSERT INTO units (book_id, title, "order", created_at, updated_at) VALUES (?, ?, ?, ?, ?)',
            (book_id, title, order, now, now),
        )
        conn.commit()
        return _fetch(conn, "units", cursor.lastrowid)
    finally:
        conn.close()


@router.put("/units/{unit_id}", tags=["Admin"], summary="Update a unit")
async def update_unit(unit_id: int, req: UnitUpdate):
    _check_order(req.order)
    conn = get_db()
    try:
        require_found(get_unit(conn, unit_id), "Unit")
        fields = {}
        if req.title is not None:
            fields["title"] = _required_text(req.title, "Title")
        if req.order is not None:
            fields["order"] = req.order
        _apply_update(conn, "units", unit_id, fields)
        conn.commit()
        return _fetch(conn, "units", unit_id)
    finally:
        conn.close()


@router.delete("/units/{unit_id}", tags=["Admin"], summary="Delete a unit with its lessons and content")
async def delete_unit(unit_id: int):
    conn = get_db()
    try:
        _delete(conn, "units", unit_id, "Unit")
        return {"ok": True}
    finally:
        conn.close()


# --- Lessons ---

@router.get("/units/{unit_id}/lessons", tags=["Admin"], summary="List lessons of a unit")
async def admin_list_lessons(unit_id: int):
    conn = get_db()
    try:
        unit = require_found(get_unit(conn, unit_id), "Unit")
        return {"unit": unit, "lessons": list_lessons(conn, unit_id)}
    finally:
        conn.close()


@router.post("/units/{unit_id}/lessons", tags=["Admin"], summary="Create a lesson")
async def create_lesson(unit_id: int, req: LessonCreate):
    title = _required_text(req.title, "Title")
    _check_lesson_type(req.type)
    _check_order(req.order)
    now = time.time()
    conn = get_db()
    try:
        require_found(get_unit(conn, unit_id), "Unit")
        order = req.order if req.order is not None else count_children(conn, "lessons", "unit_id", unit_id)
        cursor = conn.execute(
            'INSERT INTO lessons (unit_id, title, type, "order", created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?)',
            (unit_id, title, req.type, order, now, now),
        )
        conn.commit()
        return _fetch(conn, "lessons", cursor.lastrowid)
    finally:
        conn.close()


@router.put("/lessons/{lesson_id}", tags=["Admin"], summary="Update a lesson")
async def update_lesson(lesson_id: int, req: LessonUpdate):
    _check_order(req.order)
    conn = get_db()
    try:
        require_found(get_lesson(conn, lesson_id), "Lesson")
        fields = {}
        if req.title is not None:
            fields["title"] = _required_text(req.title, "Title")
        if req.type is not None:
            _check_lesson_type(req.type)
            fields["type"] = req.type
        if req.order is not None:
            fields["order"] = req.order
        _apply_update(conn, "lessons", lesson_id, fields)
        conn.commit()
        return _fetch(conn, "lessons", lesson_id)
    finally:
        conn.close()


@router.delete("/lessons/{lesson_id}", tags=["Admin"], summary="Delete a lesson and its content")
async def delete_lesson(lesson_id: int):
    conn = get_db()
    try:
        _delete(conn, "lessons", lesson_id, "Lesson")
        return {"ok": True}
    finally:
        conn.close()


# --- Vocabulary words ---

def _vocabulary_lesson(conn, lesson_id: int) -> dict:
    lesson = require_found(get_lesson(conn, lesson_id), "Lesson")
    require_lesson_type(lesson, "vocabulary")
    return lesson


def _insert_word(conn, lesson_id: int, req: VocabularyWordCreate, default_order: int) -> int:
    arabic = _required_text(req.arabic, "Arabic")
    english = _required_text(req.english, "English")
    _check_order(req.order)
    order = req.order if req.order is not None else default_order
    cursor = conn.execute(
        'INSERT INTO vocabulary_words (lesson_id, arabic, english, "order", created_at) VALUES (?, ?, ?, ?, ?)',
        (lesson_id, arabic, english, order, time.time()),
    )
    return cursor.lastrowid


@router.get("/lessons/{lesson_id}/vocabulary", tags=["Admin"], summary="List vocabulary words of a lesson")
async def admin_list_words(lesson_id: int):
    conn = get_db()
    try:
        lesson = _vocabulary_lesson(conn, lesson_id)
        return {"lesson": lesson, "words": list_words(conn, lesson_id)}
    finally:
        conn.close()


@router.post("/lessons/{lesson_id}/vocabulary", tags=["Admin"], summary="Add a word pair")
async def add_word(lesson_id: int, req: VocabularyWordCreate):
    conn = get_db()
    try:
        _vocabulary_lesson(conn, lesson_id)
        count = count_children(conn, "vocabulary_words", "lesson_id", lesson_id)
        word_id = _insert_word(conn, lesson_id, req, count)
        conn.commit()
        return _fetch(conn, "vocabulary_words", word_id)
    finally:
        conn.close()


@router.post("/lessons/{lesson_id}/vocabulary/bulk", tags=["Admin"],
             summary="Append many word pairs, e.g. after image extraction")
async def add_words_bulk(lesson_id: int, req: BulkVocabularyRequest):
    conn = get_db()
    try:
        _vocabulary_lesson(conn, lesson_id)
        next_order = count_children(conn, "vocabulary_words", "lesson_id", lesson_id)
        created = []
        for word in req.words:
            if not (word.arabic or "").strip() or not (word.english or "").strip():
                continue
            created.append(_insert_word(conn, lesson_id, word, next_order))
            next_order += 1
        conn.commit()
        logger.info("Bulk vocabulary insert", extra={
            "component": "admin", "lesson_id": lesson_id, "count": len(created),
        })
        return {"ok": True, "count": len(created), "words": [_fetch(conn, "vocabulary_words", i) for i in created]}
    finally:
        conn.close()


@router.put("/vocabulary/{word_id}", tags=["Admin"], summary="Update a word pair")
async def update_word(word_id: int, req: VocabularyWordUpdate):
    _check_order(req.order)
    conn = get_db()
    try:
        row = conn.execute("SELECT id FROM vocabulary_words WHERE id = ?", (word_id,)).fetchone()
        if not row:
            raise HTTPException(404, "Vocabulary word not found")
        fields = {}
        if req.arabic is not None:
            fields["arabic"] = _required_text(req.arabic, "Arabic")
        if req.english is not None:
            fields["english"] = _required_text(req.english, "English")
        if req.order is not None:
            fields["order"] = req.order
        _apply_update(conn, "vocabulary_words", word_id, fields, touch=False)
        conn.commit()
        return _fetch(conn, "vocabulary_words", word_id)
    finally:
        conn.close()


@router.delete("/vocabulary/{word_id}", tags=["Admin"], summary="Delete a word pair")
async def delete_word(word_id: int):
    conn = get_db()
    try:
        _delete(conn, "vocabulary_words", word_id, "Vocabulary word")
        return {"ok": True}
    finally:
        conn.close()


# --- Conversation sentences ---

def _conversation_lesson(conn, lesson_id: int) -> dict:
    lesson = require_found(get_lesson(conn, lesson_id), "Lesson")
    require_lesson_type(lesson, "conversation")
    return lesson


def _insert_sentence(conn, lesson_id: int, req: ConversationSentenceCreate, default_order: int) -> int:
    arabic = _required_text(req.arabic, "Arabic")
    _check_order(req.order)
    order = req.order if req.order is not None else default_order
    cursor = conn.execute(
        'INSERT INTO conversation_sentences (lesson_id, arabic, english, "order", created_at) VALUES (?, ?, ?, ?, ?)',
        (lesson_id, arabic, _optional_text(req.english), order, time.time()),
    )
    return cursor.lastrowid


@router.get("/lessons/{lesson_id}/conversation", tags=["Admin"], summary="List conversation sentences")
async def admin_list_sentences(lesson_id: int):
    conn = get_db()
    try:
        lesson = _conversation_lesson(conn, lesson_id)
        return {"lesson": lesson, "sentences": list_sentences(conn, lesson_id)}
    finally:
        conn.close()


@router.post("/lessons/{lesson_id}/conversation", tags=["Admin"], summary="Add a conversation sentence")
async def add_sentence(lesson_id: int, req: ConversationSentenceCreate):
    conn = get_db()
    try:
        _conversation_lesson(conn, lesson_id)
        count = count_children(conn, "conversation_sentences", "lesson_id", lesson_id)
        sentence_id = _insert_sentence(conn, lesson_id, req, count)
        conn.commit()
        return _fetch(conn, "conversation_sentences", sentence_id)
    finally:
        conn.close()


@router.post("/lessons/{lesson_id}/conversation/bulk", tags=["Admin"],
             summary="Append many sentences, e.g. after image extraction")
async def add_sentences_bulk(lesson_id: int, req: BulkConversationRequest):
    conn = get_db()
    try:
        _conversation_lesson(conn, lesson_id)
        next_order = count_children(conn, "conversation_sentences", "lesson_id", lesson_id)
        created = []
        for sentence in req.sentences:
            if not (sentence.arabic or "").strip():
                continue
            created.append(_insert_sentence(conn, lesson_id, sentence, next_order))
            next_order += 1
        conn.commit()
        logger.info("Bulk conversation insert", extra={
            "component": "admin", "lesson_id": lesson_id, "count": len(created),
        })
        return {"ok": True, "count": len(created),
                "sentences": [_fetch(conn, "conversation_sentences", i) for i in created]}
    finally:
        conn.close()


@router.put("/conversation/{sentence_id}", tags=["Admin"], summary="Update a conversation sentence")
async def update_sentence(sentence_id: int, req: ConversationSentenceUpdate):
    _check_order(req.order)
    conn = get_db()
    try:
        row = conn.execute("SELECT id FROM conversation_sentences WHERE id = ?", (sentence_id,)).fetchone()
        if not row:
            raise HTTPException(404, "Conversation sentence not found")
        fields = {}
        if req.arabic is not None:
            fields["arabic"] = _required_text(req.arabic, "Arabic")
        if req.english is not None:
            fields["english"] = _optional_text(req.english)
        if req.order is not None:
            fields["order"] = req.order
        _apply_update(conn, "conversation_sentences", sentence_id, fields, touch=False)
        conn.commit()
        return _fetch(conn, "conversation_sentences", sentence_id)
    finally:
        conn.close()


@router.delete("/conversation/{sentence_id}", tags=["Admin"], summary="Delete a conversation sentence")
async def delete_sentence(sentence_id: int):
    conn = get_db()
    try:
        _delete(conn, "conversation_sentences", sentence_id, "Conversation sentence")
        return {"ok": True}
    finally:
        conn.close()


# --- OpenRouter settings ---

@router.get("/openrouter-config", tags=["Admin"], summary="Show the OpenRouter configuration")
async def get_config():
    config = get_openrouter_config()
    return {
        "api_key": mask_api_key(config.get("api_key")),
        "configured": bool(config.get("api_key")),
        "supported_models": config.get("supported_models") or [],
    }


@router.put("/openrouter-config", tags=["Admin"], summary="Update the OpenRouter configuration")
async def put_config(req: OpenRouterConfigUpdate):
    config = save_openrouter_config(api_key=req.api_key, supported_models=req.supported_models)
    logger.info("OpenRouter config updated", extra={"component": "admin", "count": len(config["supported_models"])})
    return {
        "api_key": mask_api_key(config.get("api_key")),
        "configured": bool(config.get("api_key")),
        "supported_models": config.get("supported_models") or [],
    }
