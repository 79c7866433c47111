"""OpenRouter interaction: configuration, model selection, vision chat calls and reply parsing."""
import os
import json
import re as _re
import time
import base64
from typing import Optional, List

import httpx

from log import get_logger
from db import get_db
from models import VISION_MODELS

logger = get_logger("reader.llm")

# --- Config ---
OPENROUTER_URL = os.environ.get("OPENROUTER_URL", "https://openrouter.ai/api/v1/chat/completions")
APP_URL = os.environ.get("READER_APP_URL", "http://localhost:3000")
APP_NAME = os.environ.get("READER_APP_NAME", "Arabic Reader")
DEFAULT_TIMEOUT = 120

_SETTINGS_KEY = "openrouter"


class OpenRouterError(Exception):
    """Raised when the upstream API answers with a non-2xx status."""


def _env_config() -> dict:
    models = [m.strip() for m in os.environ.get("OPENROUTER_MODELS", "").split(",") if m.strip()]
    return {"api_key": os.environ.get("OPENROUTER_API_KEY") or None, "supported_models": models}


def get_openrouter_config() -> dict:
    """Stored config merged over the environment fallback."""
    config = _env_config()
    conn = get_db()
    row = conn.execute("SELECT value_json FROM settings WHERE key = ?", (_SETTINGS_KEY,)).fetchone()
    conn.close()
    if row:
        try:
            stored = json.loads(row["value_json"])
        except json.JSONDecodeError:
            logger.warning("Stored OpenRouter config is not valid JSON", extra={"component": "config"})
            stored = {}
        if stored.get("api_key"):
            config["api_key"] = stored["api_key"]
        if stored.get("supported_models"):
            config["supported_models"] = list(stored["supported_models"])
    return config


def save_openrouter_config(api_key: Optional[str] = None, supported_models: Optional[List[str]] = None) -> dict:
    conn = get_db()
    try:
        row = conn.execute("SELECT value_json FROM settings WHERE key = ?", (_SETTINGS_KEY,)).fetchone()
        stored = json.loads(row["value_json"]) if row else {}
        if api_key is not None:
            stored["api_key"] = api_key.strip() or None
        if supported_models is not None:
            stored["supported_models"] = [m.strip() for m in supported_models if m and m.strip()]
        conn.execute(
            "INSERT INTO settings (key, value_json, updated_at) VALUES (?, ?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value_json = excluded.value_json, updated_at = excluded.updated_at",
            (_SETTINGS_KEY, json.dumps(stored), time.time()),
        )
        conn.commit()
    finally:
        conn.close()
    return get_openrouter_config()


def mask_api_key(key: Optional[str]) -> Optional[str]:
    if not key:
        return None
    if len(key) <= 8:
        return "*" * len(key)
    return f"{key[:4]}...{key[-4:]}"


def select_vision_model(requested: Optional[str], supported: List[str]) -> str:
    """Pick the requested model if supported, else the first supported vision model, else the default."""
    if requested and requested in supported:
        return requested
    if supported:
        for model in VISION_MODELS:
            if model in supported:
                return model
    return VISION_MODELS[0]


def image_data_url(data: bytes, mime_type: str) -> str:
    return f"data:{mime_type};base64,{base64.b64encode(data).decode()}"


def vision_messages(prompt: str, data_url: str) -> list:
    return [
        {
            "role": "user",
            "content": [
                {"type": "text", "text": prompt},
                {"type": "image_url", "image_url": {"url": data_url}},
            ],
        }
    ]


async def openrouter_chat(messages: list, model: str, api_key: str,
                          temperature: float = 0, timeout: int = DEFAULT_TIMEOUT) -> dict:
    """POST a chat completion and return the decoded reply body."""
    started = time.time()
    async with httpx.AsyncClient(timeout=timeout) as client:
        resp = await client.post(
            OPENROUTER_URL,
            headers={
                "Content-Type": "application/json",
                "Authorization": f"Bearer {api_key}",
                "HTTP-Referer": APP_URL,
                "X-Title": APP_NAME,
            },
            json={"model": model, "messages": messages, "temperature": temperature},
        )
    duration_ms = round((time.time() - started) * 1000)

    if resp.status_code < 200 or resp.status_code >= 300:
        try:
            message = (resp.json().get("error") or {}).get("message")
        except (ValueError, AttributeError):
            message = None
        logger.warning("OpenRouter request failed", extra={
            "component": "openrouter", "model": model,
            "status_code": resp.status_code, "duration_ms": duration_ms,
        })
        raise OpenRouterError(message or f"OpenRouter API error: {resp.status_code} {resp.reason_phrase}")

    logger.info("OpenRouter request ok", extra={
        "component": "openrouter", "model": model, "duration_ms": duration_ms,
    })
    return resp.json()


def reply_content(data: dict) -> str:
    choices = data.get("choices") or []
    if not choices:
        return ""
    return (choices[0].get("message") or {}).get("content") or ""


def parse_json_array(text: str) -> list:
    """Parse the first [...] span of a model reply, falling back to the whole text.

    Raises ValueError when the reply holds no JSON array.
    """
    match = _re.search(r"\[.*\]", text, _re.DOTALL)
    candidate = match.group() if match else text
    parsed = json.loads(candidate)
    if not isinstance(parsed, list):
        raise ValueError("Response is not an array")
    return parsed
