"""
Validated behavior-record draft generation: generate, clean, validate,
and rewrite with violation feedback up to a bounded number of attempts.
"""

from typing import Optional

from consultlog.core.behavior.evidence import build_draft_request
from consultlog.core.behavior.models import EvidenceSelectionMode, StudentGroup
from consultlog.core.behavior.normalizer import normalize, strip_meta_markers
from consultlog.core.behavior.validator import validate
from consultlog.core.prompt.builder import (
    BEHAVIOR_SYSTEM_MESSAGE,
    build_initial_prompt,
    build_rewrite_prompt,
)
from consultlog.shared.config import settings
from consultlog.shared.exceptions import ValidationExhaustedError
from consultlog.shared.llm import LLMClient
from consultlog.shared.logging import get_logger

logger = get_logger(__name__)


class BehaviorDraftGenerator:
    """Generate drafts that pass the style rules."""

    def __init__(
        self,
        llm: LLMClient,
        max_rewrite_attempts: Optional[int] = None,
        system_message: str = BEHAVIOR_SYSTEM_MESSAGE,
        length_guide: Optional[str] = None
    ):
        self.llm = llm
        self.max_rewrite_attempts = (
            max_rewrite_attempts
            if max_rewrite_attempts is not None
            else settings.behavior.max_rewrite_attempts
        )
        self.system_message = system_message
        self.length_guide = length_guide

    async def generate_validated_draft(self, prompt: str, model: Optional[str] = None) -> str:
        """
        Run the generate/validate/rewrite loop.

        At most `max_rewrite_attempts + 1` generations are made. Each rewrite
        prompt is built from the original prompt plus only the immediately
        preceding draft and its violations.

        Returns:
            Cleaned draft text that passed validation

        Raises:
            ValidationExhaustedError: every attempt violated the rules
            ServiceError, EmptyResponseError: from the generation client
        """
        current_prompt = prompt
        attempt = 0

        while True:
            raw = await self.llm.generate_with_retry(
                self.system_message,
                current_prompt,
                model=model
            )
            cleaned = normalize(strip_meta_markers(raw))
            report = validate(cleaned)

            if report.is_valid:
                if attempt:
                    logger.info(f"Draft passed validation after {attempt} rewrite(s)")
                return cleaned

            logger.info(
                f"Draft attempt {attempt + 1} failed validation: {', '.join(report.codes)}"
            )
            if attempt >= self.max_rewrite_attempts:
                break

            current_prompt = build_rewrite_prompt(prompt, cleaned, report.violations)
            attempt += 1

        raise ValidationExhaustedError(report.violations, attempts=attempt + 1)

    async def generate_for_group(
        self,
        group: StudentGroup,
        evidence_mode: EvidenceSelectionMode = EvidenceSelectionMode.ALL_RECORDS,
        model: Optional[str] = None
    ) -> str:
        """Build the student's prompt and run the validated generation."""
        request = build_draft_request(
            group,
            evidence_mode=evidence_mode,
            length_guide=self.length_guide
        )
        prompt = build_initial_prompt(request)
        return await self.generate_validated_draft(prompt, model=model)
