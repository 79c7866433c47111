"""Tests for the image extraction endpoints with the OpenRouter call stubbed out."""
import json

import pytest

import auth
import extract_routes
from llm import OpenRouterError, save_openrouter_config

PNG = b"\x89PNG\r\n\x1a\nfake-page"


@pytest.fixture()
def configured(client):
    save_openrouter_config(api_key="sk-or-test-key-1234", supported_models=["openai/gpt-4o-mini"])


@pytest.fixture()
def fake_openrouter(monkeypatch):
    """Replace the upstream call; set `.content` to control the reply."""
    class Fake:
        content = "[]"
        reported_model = "openai/gpt-4o-mini-2024"
        error = None
        calls = []

        async def __call__(self, messages, model, api_key, temperature=0, timeout=120):
            self.calls.append({"messages": messages, "model": model, "api_key": api_key, "temperature": temperature})
            if self.error:
                raise self.error
            return {"model": self.reported_model, "choices": [{"message": {"content": self.content}}]}

    fake = Fake()
    fake.calls = []
    monkeypatch.setattr(extract_routes, "openrouter_chat", fake)
    return fake


def _upload(content_type="image/png", data=PNG):
    return {"image": ("page.png", data, content_type)}


def test_requires_admin(client, user_headers):
    r = client.post("/api/admin/parse-vocabulary-image", files=_upload())
    assert r.status_code == 401
    assert r.json() == {"error": "Unauthorized"}
    r = client.post("/api/admin/parse-vocabulary-image", files=_upload(), headers=user_headers)
    assert r.status_code == 403


def test_vocabulary_validation(client, admin_headers, configured, fake_openrouter):
    r = client.post("/api/admin/parse-vocabulary-image", data={"model": "x"}, headers=admin_headers)
    assert r.status_code == 400
    assert r.json()["error"] == "No image file provided"

    r = client.post("/api/admin/parse-vocabulary-image", files=_upload("text/plain"), headers=admin_headers)
    assert r.status_code == 400
    assert r.json()["error"] == "File must be an image"
    assert fake_openrouter.calls == []


def test_missing_api_key(client, admin_headers, fake_openrouter):
    r = client.post("/api/admin/parse-vocabulary-image", files=_upload(), headers=admin_headers)
    assert r.status_code == 500
    assert r.json()["error"] == "OpenRouter API key not configured"


def test_vocabulary_extraction(client, admin_headers, configured, fake_openrouter):
    fake_openrouter.content = 'Sure!\n' + json.dumps([
        {"arabic": "بَيْتٌ", "english": "house"},
        {"arabic": "بَابٌ", "english": "door"},
        {"arabic": "بَابٌ", "english": "door"},
        {"arabic": "", "english": "nothing"},
    ], ensure_ascii=False)
    existing = json.dumps([{"arabic": "بَيْتٌ", "english": "House"}], ensure_ascii=False)

    r = client.post("/api/admin/parse-vocabulary-image", files=_upload(),
                    data={"existingWords": existing, "model": "anthropic/claude-3-opus"},
                    headers=admin_headers)
    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    assert body["wordPairs"] == [{"arabic": "بَابٌ", "english": "door"}]
    assert len(body["duplicates"]) == 2
    assert body["model"] == "openai/gpt-4o-mini-2024"

    call = fake_openrouter.calls[0]
    assert call["model"] == "openai/gpt-4o-mini"
    assert call["api_key"] == "sk-or-test-key-1234"
    assert call["temperature"] == 0
    image_part = call["messages"][0]["content"][1]
    assert image_part["image_url"]["url"].startswith("data:image/png;base64,")


def test_cached_reply_is_reused(client, admin_headers, configured, fake_openrouter):
    fake_openrouter.content = '[{"arabic": "بَيْتٌ", "english": "house"}]'
    first = client.post("/api/admin/parse-vocabulary-image", files=_upload(), headers=admin_headers).json()
    existing = json.dumps([{"arabic": "بَيْتٌ", "english": "house"}], ensure_ascii=False)
    second = client.post("/api/admin/parse-vocabulary-image", files=_upload(),
                         data={"existingWords": existing}, headers=admin_headers).json()

    assert len(fake_openrouter.calls) == 1
    assert first["wordPairs"] == [{"arabic": "بَيْتٌ", "english": "house"}]
    assert second["wordPairs"] == []
    assert second["duplicates"] == [{"arabic": "بَيْتٌ", "english": "house"}]


def test_unparseable_reply(client, admin_headers, configured, fake_openrouter):
    fake_openrouter.content = "I cannot read this page."
    r = client.post("/api/admin/parse-vocabulary-image", files=_upload(), headers=admin_headers)
    assert r.status_code == 500
    assert r.json()["rawResponse"] == "I cannot read this page."
    assert r.json()["error"].startswith("Failed to parse extracted word pairs")


def test_upstream_error_message(client, admin_headers, configured, fake_openrouter):
    fake_openrouter.error = OpenRouterError("OpenRouter API error: 402 Payment Required")
    r = client.post("/api/admin/parse-vocabulary-image", files=_upload(), headers=admin_headers)
    assert r.status_code == 500
    assert r.json() == {"error": "OpenRouter API error: 402 Payment Required"}


def test_rate_limited(client, admin_headers, configured, fake_openrouter):
    for _ in range(auth.RATE_LIMIT_REQUESTS):
        assert auth.rate_limit_check("testclient")
    r = client.post("/api/admin/parse-vocabulary-image", files=_upload(), headers=admin_headers)
    assert r.status_code == 429


def test_conversation_validation(client, admin_headers, configured, fake_openrouter):
    r = client.post("/api/admin/parse-conversation-image", files=_upload(), headers=admin_headers)
    assert r.json()["error"] == "Lesson ID is required"
    r = client.post("/api/admin/parse-conversation-image", files=_upload(), data={"lessonId": "abc"},
                    headers=admin_headers)
    assert r.json()["error"] == "Invalid lesson ID"
    r = client.post("/api/admin/parse-conversation-image", files=_upload(), data={"lessonId": "9999"},
                    headers=admin_headers)
    assert r.status_code == 404
    assert r.json()["error"] == "Lesson not found"


def test_conversation_extraction_uses_unit_vocabulary(client, seed, admin_headers, configured, fake_openrouter):
    fake_openrouter.content = json.dumps([
        {"arabic": "السَّلامُ عَلَيْكُمْ", "english": "Peace be upon you"},
        {"arabic": "هَذَا بَيْتٌ", "english": "This is a house"},
        {"arabic": "مَا هَذَا؟"},
    ], ensure_ascii=False)
    existing = json.dumps([{"arabic": "السَّلامُ عَلَيْكُمْ"}], ensure_ascii=False)

    r = client.post("/api/admin/parse-conversation-image", files=_upload(),
                    data={"lessonId": str(seed["conv_lesson_id"]), "existingSentences": existing},
                    headers=admin_headers)
    assert r.status_code == 200
    body = r.json()
    assert body["sentences"] == [
        {"arabic": "هَذَا بَيْتٌ", "english": "This is a house"},
        {"arabic": "مَا هَذَا؟"},
    ]
    assert body["duplicates"] == [{"arabic": "السَّلامُ عَلَيْكُمْ", "english": "Peace be upon you"}]

    prompt = fake_openrouter.calls[0]["messages"][0]["content"][0]["text"]
    assert '"بَيْتٌ" = "house"' in prompt
    assert '"كِتَابٌ" = "book"' in prompt
