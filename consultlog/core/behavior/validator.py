"""
Validator for behavior-record drafts.
"""

from typing import List, Optional

from consultlog.core.behavior import rules
from consultlog.core.behavior.models import ViolationReport
from consultlog.core.behavior.normalizer import normalize
from consultlog.shared.config import settings


def split_sentences(text: str) -> List[str]:
    """Period-delimited sentences, empties dropped."""
    return [part.strip() for part in text.split(".") if part.strip()]


def validate(
    text: str,
    min_length: Optional[int] = None,
    max_length: Optional[int] = None,
    enforce_length: Optional[bool] = None
) -> ViolationReport:
    """
    Check a draft against the style rules, collecting every violation.

    Line breaks are looked for in the raw text; every other rule runs on the
    normalized text. Length bounds are guidance for the prompt and only
    become a violation when `enforce_length` is switched on.

    Args:
        text: Raw or cleaned draft text
        min_length: Lower length bound (default from settings)
        max_length: Upper length bound (default from settings)
        enforce_length: Report out-of-range length (default from settings, off)

    Returns:
        ViolationReport, valid only when no rule fired
    """
    min_length = min_length if min_length is not None else settings.behavior.min_length
    max_length = max_length if max_length is not None else settings.behavior.max_length
    if enforce_length is None:
        enforce_length = settings.behavior.enforce_length

    report = ViolationReport()

    if rules.has_line_break(text):
        report.add(rules.LINE_BREAKS, rules.MESSAGES[rules.LINE_BREAKS])

    normalized = normalize(text)
    if not normalized:
        report.add(rules.EMPTY_BODY, rules.MESSAGES[rules.EMPTY_BODY])
        return report

    if not normalized.endswith("."):
        report.add(rules.MISSING_FINAL_PERIOD, rules.MESSAGES[rules.MISSING_FINAL_PERIOD])

    for rule in rules.PATTERN_RULES:
        if rule.matches(normalized):
            report.add(rule.code, rule.message)

    if enforce_length and not (min_length <= len(normalized) <= max_length):
        report.add(
            rules.LENGTH_OUT_OF_RANGE,
            rules.length_message(min_length, max_length, len(normalized))
        )

    sentences = split_sentences(normalized)
    if not sentences:
        report.add(rules.NO_SENTENCES, rules.MESSAGES[rules.NO_SENTENCES])
    else:
        failing = [
            index + 1
            for index, sentence in enumerate(sentences)
            if not rules.ends_with_nominal_ending(sentence)
        ]
        if failing:
            report.add(rules.NON_NOMINAL_ENDING, rules.non_nominal_message(failing))

    return report
