"""Pydantic schemas and constants for Arabic Reader."""
from typing import Optional, List, Dict
from pydantic import BaseModel

# --- Constants ---
LESSON_TYPES = ("vocabulary", "conversation", "grammar", "reading")
PLAYABLE_LESSON_TYPES = ("vocabulary", "conversation")

STUDY_MODES = ("learn", "practice", "test")

# Known vision-capable models, in order of preference
VISION_MODELS = [
    "openai/gpt-4o",
    "openai/gpt-4o-mini",
    "anthropic/claude-3.5-sonnet",
    "anthropic/claude-3-opus",
    "google/gemini-pro-vision",
]

SPEECH_LANGS = {"arabic": "ar-SA", "english": "en-US"}

# --- Auth ---

class AuthRequest(BaseModel):
    username: str
    password: str


# --- Catalog ---

class BookCreate(BaseModel):
    title: str
    description: Optional[str] = None


class BookUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None


class UnitCreate(BaseModel):
    title: str
    order: Optional[int] = None


class UnitUpdate(BaseModel):
    title: Optional[str] = None
    order: Optional[int] = None


class LessonCreate(BaseModel):
    title: str
    type: str = "vocabulary"
    order: Optional[int] = None


class LessonUpdate(BaseModel):
    title: Optional[str] = None
    type: Optional[str] = None
    order: Optional[int] = None


class VocabularyWordCreate(BaseModel):
    arabic: str
    english: str
    order: Optional[int] = None


class VocabularyWordUpdate(BaseModel):
    arabic: Optional[str] = None
    english: Optional[str] = None
    order: Optional[int] = None


class ConversationSentenceCreate(BaseModel):
    arabic: str
    english: Optional[str] = None
    order: Optional[int] = None


class ConversationSentenceUpdate(BaseModel):
    arabic: Optional[str] = None
    english: Optional[str] = None
    order: Optional[int] = None


class BulkVocabularyRequest(BaseModel):
    words: List[VocabularyWordCreate]


class BulkConversationRequest(BaseModel):
    sentences: List[ConversationSentenceCreate]


class OpenRouterConfigUpdate(BaseModel):
    api_key: Optional[str] = None
    supported_models: Optional[List[str]] = None


# --- Progress / study ---

class ProgressUpdate(BaseModel):
    seen: Optional[bool] = None
    correct: Optional[bool] = None
    incorrect: Optional[bool] = None


class AnswerSheet(BaseModel):
    answers: Dict[int, Optional[str]] = {}
