"""
Text cleanup for generated drafts and summaries.
"""

import re
from typing import List, Optional

from consultlog.shared.llm import ends_with_complete_sentence

WHITESPACE_PATTERN = re.compile(r"\s+")
LINE_BREAK_PATTERN = re.compile(r"\r?\n+")
SUBJECT_TOKEN_PATTERN = re.compile(r"(학생은|학생이|OO는|OO가)\s*")

# Hard cap for any character-budgeted output
MAX_CHARS = 500

META_MARKER_PATTERNS = [
    # Parenthesized notes: (약 500자), (글자수: 330), ...
    re.compile(r"\s*\([^)]*\d+자[^)]*\)"),
    re.compile(r"\s*\([^)]*글자[^)]*\)"),
    re.compile(r"\s*\([^)]*자세한[^)]*\)"),
    re.compile(r"\s*\([^)]*내용\s*포함[^)]*\)"),
    # Trailing counts: "--- 330자", "[330자]", "330자"
    re.compile(r"\s*[-─]+\s*\d+자\s*$"),
    re.compile(r"\s*\[\d+자\]\s*$"),
    re.compile(r"\s*\d+자\s*$"),
    # Analysis / verification blocks
    re.compile(r"\s*\[분석[^\]]*\]"),
    re.compile(r"\s*\[검증[^\]]*\]"),
]


def collapse_whitespace(text: Optional[str]) -> str:
    """Collapse whitespace runs to single spaces and trim."""
    return WHITESPACE_PATTERN.sub(" ", text or "").strip()


def normalize(raw: Optional[str]) -> str:
    """
    Normalize a draft: single line, single spaces, no subject tokens.

    Token removal repeats until none is left, so the result is a fixed point:
    normalize(normalize(x)) == normalize(x).
    """
    result = collapse_whitespace(LINE_BREAK_PATTERN.sub(" ", raw or ""))

    while True:
        stripped = SUBJECT_TOKEN_PATTERN.sub("", result)
        if stripped == result:
            break
        result = stripped

    return collapse_whitespace(result)


def truncate_chars(text: str, max_chars: int) -> str:
    """Cut text to max_chars, marking the cut with an ellipsis."""
    if len(text) <= max_chars:
        return text
    return f"{text[:max_chars - 1]}…"


def strip_meta_markers(text: Optional[str]) -> str:
    """Remove character counts and analysis notes the model appends."""
    if not text:
        return text or ""

    cleaned = text
    for pattern in META_MARKER_PATTERNS:
        cleaned = pattern.sub("", cleaned)
    return cleaned.strip()


def split_into_sentences(text: str) -> List[str]:
    """Split after terminal punctuation followed by whitespace."""
    if not text:
        return []
    return [s for s in re.split(r"(?<=[.!?])\s+", text) if s.strip()]


def truncate_to_complete_sentence(text: str, target_chars: int) -> str:
    """
    Keep only whole sentences that fit the character budget.

    Args:
        text: Generated text
        target_chars: Target character count (capped at MAX_CHARS)

    Returns:
        Text cut at a sentence boundary, every kept sentence terminated
    """
    cleaned = strip_meta_markers(text)
    if not cleaned:
        return ""

    max_allowed = min(target_chars, MAX_CHARS)

    if len(cleaned) <= max_allowed and ends_with_complete_sentence(cleaned):
        return cleaned.strip()

    result = ""
    for sentence in split_into_sentences(cleaned):
        trimmed = sentence.strip()
        complete = trimmed if re.search(r"[.!?]$", trimmed) else trimmed + "."
        candidate = f"{result} {complete}" if result else complete

        if len(candidate) > max_allowed:
            break
        result = candidate

    return result.strip()


def character_guideline(target_chars: int) -> str:
    """Prompt block describing the character budget."""
    max_allowed = min(target_chars, MAX_CHARS)

    # Shorter texts get a wider safety margin
    if target_chars <= 100:
        buffer_ratio = 0.70
    elif target_chars <= 150:
        buffer_ratio = 0.75
    elif target_chars <= 200:
        buffer_ratio = 0.80
    elif target_chars <= 300:
        buffer_ratio = 0.85
    else:
        buffer_ratio = 0.90

    prompt_limit = int(max_allowed * buffer_ratio)

    return (
        "<글자수 제한>\n"
        f"전체 글자수: {max_allowed}자 이하 (공백 포함, 초과 불가)\n"
        f"목표: {prompt_limit}자 ~ {max_allowed}자\n\n"
        "작성 방법:\n"
        f"1. {max_allowed}자 제한을 인지하고 계획적으로 작성\n"
        "2. 모든 문장은 완전한 종결어미로 끝냄\n"
        f"3. 최종 출력은 {max_allowed}자 이하, 완전한 문장으로 끝냄"
    )
