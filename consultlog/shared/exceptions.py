"""
Exception hierarchy for consultlog.
"""

from typing import List, Optional


class ConsultLogError(Exception):
    """Base exception for all consultlog errors."""
    pass


class GenerationError(ConsultLogError):
    """Base exception for draft/summary generation failures."""
    pass


class ServiceError(GenerationError):
    """Raised when the text-completion backend fails or answers malformed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class EmptyResponseError(GenerationError):
    """Raised when the first completion call returns no text."""
    pass


class ValidationExhaustedError(GenerationError):
    """Raised when every rewrite attempt still violated the style rules."""

    def __init__(self, violations: List[str], attempts: int = 0):
        self.violations = list(violations)
        self.attempts = attempts
        detail = " ".join(self.violations)
        super().__init__(f"규칙 검증 실패 ({attempts}회 시도): {detail}".strip())


class PreflightRejectionError(ConsultLogError):
    """Raised when a selected-only batch has students with nothing selected."""

    def __init__(self, student_names: List[str]):
        self.student_names = list(student_names)
        super().__init__(
            "체크된 상담 기록이 없는 학생이 있습니다: " + ", ".join(self.student_names)
        )


class BatchInProgressError(ConsultLogError):
    """Raised when a batch or regeneration starts while another batch runs."""
    pass


class DraftNotFoundError(ConsultLogError):
    """Raised when a student key has no draft or student group."""
    pass


class StoreError(ConsultLogError):
    """Raised when a consultation store operation fails."""
    pass


class AccountLockedError(ConsultLogError):
    """Raised when a login is attempted on a locked account."""
    pass
