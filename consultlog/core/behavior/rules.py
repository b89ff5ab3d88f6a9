"""
Style rules for behavior-record drafts.

Denylist and format rules are data (code, message, pattern) so they can be
tested and extended without touching the validation loop.
"""

import re
from dataclasses import dataclass
from typing import Pattern, List, Sequence

HANGUL_START = 0xAC00
HANGUL_END = 0xD7A3
JONGSEONG_COUNT = 28
JONGSEONG_MIEUM = 16  # ㅁ

TRAILING_CLOSERS_PATTERN = re.compile(r"[\"'”’)\]}]+$")


@dataclass(frozen=True)
class PatternRule:
    """A violation raised when the pattern matches the normalized text."""
    code: str
    message: str
    pattern: Pattern

    def matches(self, text: str) -> bool:
        return bool(self.pattern.search(text))


# Violation codes and their messages, in reporting language
LINE_BREAKS = "line_breaks"
EMPTY_BODY = "empty_body"
MISSING_FINAL_PERIOD = "missing_final_period"
NEGATIVE_EXPRESSION = "negative_expression"
META_COMMENTARY = "meta_commentary"
MARKDOWN_FORMAT = "markdown_format"
NO_SENTENCES = "no_sentences"
NON_NOMINAL_ENDING = "non_nominal_ending"
LENGTH_OUT_OF_RANGE = "length_out_of_range"

MESSAGES = {
    LINE_BREAKS: "줄바꿈이 포함됨.",
    EMPTY_BODY: "본문이 비어 있음.",
    MISSING_FINAL_PERIOD: "본문이 마침표(.)로 끝나지 않음.",
    NEGATIVE_EXPRESSION: "부정적으로 보일 수 있는 금지 표현이 포함됨.",
    META_COMMENTARY: "메타 설명/검증 문구가 포함됨.",
    MARKDOWN_FORMAT: "목록/제목 같은 마크다운 유사 서식이 포함됨.",
    NO_SENTENCES: "문장이 없음.",
}

PATTERN_RULES: List[PatternRule] = [
    PatternRule(
        code=NEGATIVE_EXPRESSION,
        message=MESSAGES[NEGATIVE_EXPRESSION],
        pattern=re.compile(r"(하지만|임에도|부족하|미흡하|문제점|결함|한계)"),
    ),
    PatternRule(
        code=META_COMMENTARY,
        message=MESSAGES[META_COMMENTARY],
        pattern=re.compile(r"(메타|분석|검증|글자수|자체\s*점검|체크리스트)"),
    ),
    PatternRule(
        code=MARKDOWN_FORMAT,
        message=MESSAGES[MARKDOWN_FORMAT],
        pattern=re.compile(r"(^|\s)([-*•]|#{1,6}|\d+\.)\s+", re.MULTILINE),
    ),
]


def has_line_break(text: str) -> bool:
    return "\r" in text or "\n" in text


def ends_with_nominal_ending(sentence: str) -> bool:
    """
    True when the sentence's last syllable carries the final consonant ㅁ
    (함, 임, 음, 됨, ...), ignoring trailing quotes and brackets.
    """
    trimmed = TRAILING_CLOSERS_PATTERN.sub("", sentence).strip()
    if not trimmed:
        return False

    code = ord(trimmed[-1])
    if code < HANGUL_START or code > HANGUL_END:
        return False
    return (code - HANGUL_START) % JONGSEONG_COUNT == JONGSEONG_MIEUM


def non_nominal_message(positions: Sequence[int]) -> str:
    joined = ", ".join(str(p) for p in positions)
    return f"명사형 종결어미(받침 ㅁ)로 끝나지 않은 문장: {joined}."


def length_message(min_length: int, max_length: int, actual: int) -> str:
    return f"글자 수가 {min_length}~{max_length}자 범위를 벗어남(현재 {actual}자)."
