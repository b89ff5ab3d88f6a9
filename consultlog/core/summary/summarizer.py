"""
Consultation summarizer: rewrites one consultation note in a formal register.
"""

from typing import Optional

from consultlog.core.behavior.models import ConsultationRecord
from consultlog.core.behavior.normalizer import (
    character_guideline,
    strip_meta_markers,
    truncate_to_complete_sentence,
)
from consultlog.shared.llm import LLMClient
from consultlog.shared.logging import get_logger

logger = get_logger(__name__)

SUMMARY_SYSTEM_MESSAGE = """
당신은 학교 교사의 학생 상담 기록을 정리하는 전문가입니다.
다음 상담 내용을 포멀하고 공식적인 문체로 정돈하여 작성해주세요.

[중요 규칙]
• 마크다운 기호(##, **, -, * 등)를 절대 사용하지 마세요
• "상담교사"라는 단어를 절대 사용하지 마세요 (일반 교사의 상담임)
• 원본에 없는 내용을 절대 만들어 내지 마세요
• 작성된 내용을 그대로 포멀한 문체로 다듬기만 하세요

[작성 형식]
• 제목은 【】로 표시
• 불릿은 • 사용
• 중요 키워드는 「」로 강조

[작성 내용 - 아래 두 섹션만 작성]
【상담 개요】
→ 상담 주제를 한 줄로 정리

【상담 내용】
→ 원본 내용을 포멀한 문체로 정돈하여 작성
→ 새로운 내용 추가 금지, 원본 내용만 다듬어서 작성
""".strip()


def build_summary_prompt(record: ConsultationRecord) -> str:
    """User prompt for one consultation."""
    return (
        f"날짜: {record.date} {record.time}\n"
        f"학생: {record.student_name} ({record.student_id})\n"
        f"주제: {record.topic or ''}\n"
        f"내용: {record.original_content or ''}\n\n"
        "위 형식대로 간결하게 정리해주세요:"
    )


class ConsultationSummarizer:
    """Formal summaries of consultation notes."""

    def __init__(self, llm: LLMClient):
        self.llm = llm

    async def summarize(
        self,
        record: ConsultationRecord,
        model: Optional[str] = None,
        target_chars: Optional[int] = None,
        additional_instructions: Optional[str] = None
    ) -> str:
        """
        Summarize one consultation.

        Args:
            record: Consultation with original content
            model: Override default model
            target_chars: Optional character budget; output is cut at a
                sentence boundary to fit
            additional_instructions: Optional teacher rules, given top priority

        Returns:
            Cleaned summary text (may be empty when the model only sent markers)
        """
        instructions = additional_instructions
        if target_chars:
            guideline = character_guideline(target_chars)
            instructions = f"{instructions}\n{guideline}" if instructions else guideline

        raw = await self.llm.generate_with_retry(
            SUMMARY_SYSTEM_MESSAGE,
            build_summary_prompt(record),
            additional_instructions=instructions,
            model=model
        )

        if target_chars:
            summary = truncate_to_complete_sentence(raw, target_chars)
        else:
            summary = strip_meta_markers(raw)

        logger.info(f"Summarized consultation ({len(summary)} chars)")
        return summary
