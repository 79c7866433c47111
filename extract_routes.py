"""Admin endpoints that turn photographed textbook pages into vocabulary and conversation rows."""
from typing import Optional

from fastapi import APIRouter, File, Form, Header, Request, UploadFile
from fastapi.responses import JSONResponse

from log import get_logger
from db import get_db
from auth import (
    rate_limit_check, rate_limit_cleanup, get_rate_limit_key,
    extract_bearer_token, get_user_from_token,
)
from cache import extraction_cache_key, cache_get, cache_put
from extraction import (
    vocabulary_prompt, conversation_prompt, parse_existing,
    normalize_word_pairs, normalize_sentences,
    word_pair_key, sentence_key, split_duplicates,
)
from llm import (
    OpenRouterError, get_openrouter_config, select_vision_model,
    image_data_url, vision_messages, openrouter_chat, reply_content, parse_json_array,
)

logger = get_logger("reader.extract_routes")

router = APIRouter()


def _error(status: int, message: str, **extra) -> JSONResponse:
    return JSONResponse({"error": message, **extra}, status_code=status)


def _admin_error(authorization: Optional[str]) -> Optional[JSONResponse]:
    user = get_user_from_token(extract_bearer_token(authorization))
    if not user:
        return _error(401, "Unauthorized")
    if not user["is_admin"]:
        return _error(403, "Admin access required")
    return None


def _image_error(image: Optional[UploadFile]) -> Optional[JSONResponse]:
    if image is None or not image.filename:
        return _error(400, "No image file provided")
    if not (image.content_type or "").startswith("image/"):
        return _error(400, "File must be an image")
    return None


async def _run_extraction(kind: str, image: UploadFile, model_requested: Optional[str], prompt: str):
    """Call the vision model (or the cache). Returns (items, model, error_response)."""
    config = get_openrouter_config()
    if not config.get("api_key"):
        return None, None, _error(500, "OpenRouter API key not configured")

    model = select_vision_model(model_requested, config.get("supported_models") or [])
    data = await image.read()

    ck = extraction_cache_key(kind, data, model, prompt)
    cached = cache_get(ck)
    if cached is not None:
        logger.info("Extraction cache hit", extra={"component": "extract", "endpoint": kind, "model": model})
        return cached["items"], cached["model"], None

    messages = vision_messages(prompt, image_data_url(data, image.content_type))
    reply = await openrouter_chat(messages, model=model, api_key=config["api_key"], temperature=0)
    content = reply_content(reply)

    try:
        items = parse_json_array(content)
    except ValueError:
        logger.warning("Unparseable extraction reply", extra={"component": "extract", "endpoint": kind, "model": model})
        return None, None, _error(
            500,
            f"Failed to parse extracted {'word pairs' if kind == 'vocabulary' else 'sentences'}. "
            "The AI response was not in the expected format.",
            rawResponse=content,
        )

    used_model = reply.get("model") or model
    cache_put(ck, {"items": items, "model": used_model})
    return items, used_model, None


@router.post("/api/admin/parse-vocabulary-image", tags=["Extraction"],
             summary="Extract Arabic-English word pairs from a vocabulary page photo")
async def parse_vocabulary_image(
    request: Request,
    image: Optional[UploadFile] = File(default=None),
    model: Optional[str] = Form(default=None),
    customPrompt: Optional[str] = Form(default=None),
    existingWords: Optional[str] = Form(default=None),
    authorization: Optional[str] = Header(default=None),
):
    denied = _admin_error(authorization)
    if denied:
        return denied

    rate_limit_cleanup()
    if not rate_limit_check(get_rate_limit_key(request)):
        return _error(429, "Too many requests. Please wait a minute.")

    try:
        invalid = _image_error(image)
        if invalid:
            return invalid

        existing = parse_existing(existingWords, "words")
        items, used_model, failed = await _run_extraction(
            "vocabulary", image, model, vocabulary_prompt(customPrompt)
        )
        if failed:
            return failed

        pairs = normalize_word_pairs(items)
        unique, duplicates = split_duplicates(pairs, existing, word_pair_key)
        logger.info("Vocabulary page extracted", extra={
            "component": "extract", "model": used_model, "count": len(unique),
        })
        return {"success": True, "wordPairs": unique, "duplicates": duplicates, "model": used_model}
    except OpenRouterError as e:
        return _error(500, str(e))
    except Exception as e:
        logger.exception("Error parsing vocabulary image", extra={"component": "extract"})
        return _error(500, str(e) or "Failed to parse vocabulary image")


@router.post("/api/admin/parse-conversation-image", tags=["Extraction"],
             summary="Extract Arabic sentences from a conversation page photo")
async def parse_conversation_image(
    request: Request,
    image: Optional[UploadFile] = File(default=None),
    lessonId: Optional[str] = Form(default=None),
    model: Optional[str] = Form(default=None),
    customPrompt: Optional[str] = Form(default=None),
    existingSentences: Optional[str] = Form(default=None),
    authorization: Optional[str] = Header(default=None),
):
    denied = _admin_error(authorization)
    if denied:
        return denied

    rate_limit_cleanup()
    if not rate_limit_check(get_rate_limit_key(request)):
        return _error(429, "Too many requests. Please wait a minute.")

    try:
        if image is None or not image.filename:
            return _error(400, "No image file provided")
        if not lessonId:
            return _error(400, "Lesson ID is required")
        try:
            lesson_id = int(lessonId)
        except ValueError:
            return _error(400, "Invalid lesson ID")
        invalid = _image_error(image)
        if invalid:
            return invalid

        existing = parse_existing(existingSentences, "sentences")

        conn = get_db()
        try:
            lesson = conn.execute("SELECT id, unit_id FROM lessons WHERE id = ?", (lesson_id,)).fetchone()
            if not lesson:
                return _error(404, "Lesson not found")
            unit_words = [dict(r) for r in conn.execute(
                'SELECT w.arabic, w.english FROM vocabulary_words w '
                'JOIN lessons l ON w.lesson_id = l.id '
                'WHERE l.unit_id = ? AND l.type = ? ORDER BY w."order", w.id',
                (lesson["unit_id"], "vocabulary"),
            ).fetchall()]
        finally:
            conn.close()

        items, used_model, failed = await _run_extraction(
            "conversation", image, model, conversation_prompt(customPrompt, unit_words)
        )
        if failed:
            return failed

        sentences = normalize_sentences(items)
        unique, duplicates = split_duplicates(sentences, existing, sentence_key)
        logger.info("Conversation page extracted", extra={
            "component": "extract", "model": used_model, "count": len(unique), "lesson_id": lesson_id,
        })
        return {"success": True, "sentences": unique, "duplicates": duplicates, "model": used_model}
    except OpenRouterError as e:
        return _error(500, str(e))
    except Exception as e:
        logger.exception("Error parsing conversation image", extra={"component": "extract"})
        return _error(500, str(e) or "Failed to parse conversation image")
