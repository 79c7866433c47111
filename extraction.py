"""Prompt building and reply post-processing for textbook page extraction."""
import json
from typing import Optional, List, Tuple

from log import get_logger

logger = get_logger("reader.extraction")

VOCAB_CONTEXT_LIMIT = 100

VOCABULARY_PROMPT = """You are an Arabic language teaching assistant. The image is a vocabulary page photographed from an Arabic textbook. Extract every Arabic-English word pair printed on it.

Copy the text exactly as printed. Never invent, paraphrase, translate or correct words: reproduce each entry character by character, keeping all Arabic diacritics (tashkeel), English capitalization and punctuation.

Layout: the page is usually split into two columns, one holding the English meaning or explanation and the other the Arabic word or phrase (the sides may be swapped). A third column with roots, phonetic or morphological breakdowns may be present. Each row is normally one word pair. Read BOTH columns; do not stop after the first one.

Return a JSON array in exactly this shape:
[
  {"arabic": "الْعَرَبِيَّةُ", "english": "Arabic"},
  {"arabic": "الْإِنْجِلِيزِيَّةُ", "english": "English"}
]

Rules:
- Only vocabulary pairs. Skip headers, titles, section names and page numbers.
- When several meanings are printed, take the main one as written.
- When a breakdown appears in parentheses, take the headword, not the breakdown.
- No synonyms or alternatives that are not visible on the page.
- Output only the JSON array, with no commentary. If the page holds no pairs, output []."""

CONVERSATION_PROMPT = """You are an Arabic language teaching assistant. The image is a conversation page photographed from an Arabic textbook. Extract every Arabic sentence on it, with its English translation when one is visible.

Copy the Arabic exactly as printed, character by character, keeping all diacritics (tashkeel). Never invent or paraphrase sentences.

Layout: speech bubbles are arranged in two columns and the dialogue alternates between them. English may appear as annotations, handwritten notes or separate text. Read BOTH columns and follow the conversation from top to bottom, alternating columns.

Return a JSON array in exactly this shape:
[
  {"arabic": "السَّلامُ عَلَيْكُمْ !", "english": "Peace be upon you!"},
  {"arabic": "وَعَلَيْكُمُ السَّلامُ وَرَحْمَةُ اللهِ وَبَرَكَاتُهُ !", "english": "And upon you be peace and God's mercy and blessings!"},
  {"arabic": "أَنَا سَمِيرٌ", "english": "I am Samir"}
]

Rules:
- Only conversation sentences. Skip headers, titles, speaker names and page numbers.
- Copy visible English exactly. If none is visible you may translate using the vocabulary below, but mark inferred translations as such.
- Keep the order in which the sentences appear. One bubble is usually one entry; a bubble holding several sentences may be split.
- Output only the JSON array, with no commentary. If the page holds no sentences, output []."""


def build_vocabulary_context(words: List[dict]) -> str:
    if not words:
        return ""
    lines = "\n".join(f'  - "{w["arabic"]}" = "{w["english"]}"' for w in words[:VOCAB_CONTEXT_LIMIT])
    return (
        "\n\nUnit vocabulary. Use it to translate the sentences accurately, and when a sentence "
        "contains one of these words use the English given here:\n" + lines
    )


def vocabulary_prompt(custom_prompt: Optional[str] = None) -> str:
    custom = (custom_prompt or "").strip()
    return custom or VOCABULARY_PROMPT


def conversation_prompt(custom_prompt: Optional[str] = None, unit_words: Optional[List[dict]] = None) -> str:
    custom = (custom_prompt or "").strip()
    if custom:
        return custom
    return CONVERSATION_PROMPT + build_vocabulary_context(unit_words or [])


def parse_existing(raw: Optional[str], label: str) -> List[dict]:
    """Decode the client's list of already-stored records; malformed input counts as empty."""
    if not raw:
        return []
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning(f"Failed to parse existing {label}", extra={"component": "extraction"})
        return []
    if not isinstance(parsed, list):
        logger.warning(f"Existing {label} is not a list", extra={"component": "extraction"})
        return []
    return [item for item in parsed if isinstance(item, dict)]


def _norm(text) -> str:
    return str(text or "").lower().strip()


def normalize_word_pairs(items: list) -> List[dict]:
    pairs = []
    for item in items:
        if not isinstance(item, dict) or not item.get("arabic") or not item.get("english"):
            continue
        arabic = str(item["arabic"]).strip()
        english = str(item["english"]).strip()
        if arabic and english:
            pairs.append({"arabic": arabic, "english": english})
    return pairs


def normalize_sentences(items: list) -> List[dict]:
    sentences = []
    for item in items:
        if not isinstance(item, dict) or not item.get("arabic"):
            continue
        arabic = str(item["arabic"]).strip()
        if not arabic:
            continue
        sentence = {"arabic": arabic}
        if item.get("english"):
            sentence["english"] = str(item["english"]).strip()
        sentences.append(sentence)
    return sentences


def word_pair_key(pair: dict) -> str:
    return f"{_norm(pair.get('arabic'))}|{_norm(pair.get('english'))}"


def sentence_key(sentence: dict) -> str:
    return _norm(sentence.get("arabic"))


def split_duplicates(items: List[dict], existing: List[dict], key) -> Tuple[List[dict], List[dict]]:
    """Partition items into (unique, duplicates) against existing records and earlier items."""
    seen = {key(e) for e in existing}
    unique, duplicates = [], []
    for item in items:
        k = key(item)
        if k in seen:
            duplicates.append(item)
            continue
        seen.add(k)
        unique.append(item)
    return unique, duplicates
