"""Tests for the OpenRouter client, the extraction cache and latency stats."""
import asyncio
import time
from collections import deque

import httpx
import pytest
from fastapi.testclient import TestClient

import backend
import cache
import llm


@pytest.fixture()
def upstream(monkeypatch):
    """Route openrouter_chat through an httpx.MockTransport; set `.response` per test."""
    class Upstream:
        response = httpx.Response(200, json={"model": "openai/gpt-4o", "choices": []})
        requests = []

        def handler(self, request):
            self.requests.append(request)
            return self.response

    up = Upstream()
    up.requests = []
    real_client = httpx.AsyncClient
    monkeypatch.setattr(llm.httpx, "AsyncClient",
                        lambda **kwargs: real_client(transport=httpx.MockTransport(up.handler), **kwargs))
    return up


def _chat():
    return asyncio.run(llm.openrouter_chat(
        llm.vision_messages("read", "data:image/png;base64,AA=="), model="openai/gpt-4o", api_key="sk-test",
    ))


def test_openrouter_chat_sends_request(upstream):
    upstream.response = httpx.Response(200, json={
        "model": "openai/gpt-4o-2024", "choices": [{"message": {"content": "[]"}}],
    })
    reply = _chat()
    assert llm.reply_content(reply) == "[]"

    request = upstream.requests[0]
    assert str(request.url) == llm.OPENROUTER_URL
    assert request.headers["Authorization"] == "Bearer sk-test"
    assert request.headers["X-Title"] == llm.APP_NAME
    assert request.headers["HTTP-Referer"] == llm.APP_URL


def test_openrouter_error_uses_upstream_message(upstream):
    upstream.response = httpx.Response(401, json={"error": {"message": "No auth credentials found"}})
    with pytest.raises(llm.OpenRouterError, match="No auth credentials found"):
        _chat()


def test_openrouter_error_falls_back_to_status(upstream):
    upstream.response = httpx.Response(402, text="payment needed")
    with pytest.raises(llm.OpenRouterError) as exc:
        _chat()
    assert str(exc.value) == "OpenRouter API error: 402 Payment Required"


@pytest.fixture()
def empty_cache():
    cache.cache_clear()
    yield
    cache.cache_clear()


def test_cache_evicts_least_recently_used(empty_cache, monkeypatch):
    monkeypatch.setattr(cache, "CACHE_MAX", 2)
    cache.cache_put("a", {"items": [1]})
    cache.cache_put("b", {"items": [2]})
    assert cache.cache_get("a") == {"items": [1]}
    cache.cache_put("c", {"items": [3]})

    assert cache.cache_get("b") is None
    assert cache.cache_get("a") == {"items": [1]}
    assert cache.cache_get("c") == {"items": [3]}
    assert cache.cache_stats()["entries"] == 2


def test_cache_entries_expire(empty_cache):
    cache.cache_put("page", {"items": []})
    ts, result = cache._extraction_cache["page"]
    cache._extraction_cache["page"] = (ts - cache.CACHE_TTL - 1, result)
    assert cache.cache_get("page") is None
    assert "page" not in cache._extraction_cache


def test_cache_key_depends_on_every_input():
    base = cache.extraction_cache_key("vocabulary", b"img", "openai/gpt-4o", "prompt")
    assert base == cache.extraction_cache_key("vocabulary", b"img", "openai/gpt-4o", "prompt")
    assert base != cache.extraction_cache_key("conversation", b"img", "openai/gpt-4o", "prompt")
    assert base != cache.extraction_cache_key("vocabulary", b"img2", "openai/gpt-4o", "prompt")
    assert base != cache.extraction_cache_key("vocabulary", b"img", "openai/gpt-4o-mini", "prompt")
    assert base != cache.extraction_cache_key("vocabulary", b"img", "openai/gpt-4o", "other")


def test_cleanup_tests_drops_stale_entries():
    tests = cache.get_tests()
    tests.clear()
    tests["fresh"] = {"created_at": time.time()}
    tests["stale"] = {"created_at": time.time() - cache.TEST_TTL - 1}
    cache.cleanup_tests()
    assert list(tests) == ["fresh"]
    tests.clear()


def test_latency_stats(monkeypatch):
    monkeypatch.setattr(backend, "_latencies", deque(maxlen=backend.LATENCY_WINDOW))
    assert backend.get_latency_stats() == {"samples": 0, "avg_ms": None, "p95_ms": None}

    backend._latencies.extend(float(ms) for ms in range(1, 101))
    assert backend.get_latency_stats() == {"samples": 100, "avg_ms": 50.5, "p95_ms": 96.0}


def test_middleware_records_api_requests(client, monkeypatch):
    monkeypatch.setattr(backend, "_latencies", deque(maxlen=backend.LATENCY_WINDOW))
    app_client = TestClient(backend.app)
    r = app_client.get("/api/health")
    assert r.status_code == 200
    assert len(backend._latencies) == 1
    assert app_client.get("/nothing-here").status_code == 404
    assert len(backend._latencies) == 1
