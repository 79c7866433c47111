"""LRU cache for image extraction replies and in-memory storage of running tests.

Extraction results are cached before de-duplication, keyed on the uploaded
bytes plus model and prompt, so re-uploading the same textbook page does not
call OpenRouter again.
"""
import time
import hashlib
from collections import OrderedDict

from log import get_logger

logger = get_logger("reader.cache")

# --- Extraction Cache ---
CACHE_MAX = 200
CACHE_TTL = 3600 * 24  # 24h

_extraction_cache: OrderedDict = OrderedDict()


def extraction_cache_key(kind: str, image: bytes, model: str, prompt: str) -> str:
    h = hashlib.sha256()
    h.update(kind.encode())
    h.update(b"|")
    h.update(image)
    h.update(b"|")
    h.update(model.encode())
    h.update(b"|")
    h.update(prompt.encode())
    return h.hexdigest()


def cache_get(key: str):
    entry = _extraction_cache.get(key)
    if entry is None:
        return None
    ts, result = entry
    if time.time() - ts > CACHE_TTL:
        _extraction_cache.pop(key, None)
        return None
    _extraction_cache.move_to_end(key)
    return result


def cache_put(key: str, result: dict):
    _extraction_cache[key] = (time.time(), result)
    _extraction_cache.move_to_end(key)
    if len(_extraction_cache) > CACHE_MAX:
        evicted, _ = _extraction_cache.popitem(last=False)
        logger.debug("Evicted extraction cache entry", extra={"component": "cache", "detail": evicted[:12]})


def cache_clear():
    _extraction_cache.clear()


def cache_stats() -> dict:
    return {"entries": len(_extraction_cache), "max": CACHE_MAX, "ttl_hours": CACHE_TTL / 3600}


# --- Running tests (multiple-choice) ---
TEST_TTL = 3600
_tests: dict = {}  # test_id -> payload


def get_tests():
    return _tests


def cleanup_tests():
    cutoff = time.time() - TEST_TTL
    stale_ids = [tid for tid, payload in _tests.items() if payload.get("created_at", 0) < cutoff]
    for tid in stale_ids:
        _tests.pop(tid, None)
