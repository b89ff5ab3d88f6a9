"""
LLM client abstraction over an OpenAI-compatible chat-completion backend,
with Anthropic kept as an alternative provider.
Provides async completion plus the higher-level instruction and
incomplete-sentence retry helpers used by drafts and summaries.
"""

import re
from typing import Optional, Dict, Any, List
from enum import Enum

import httpx
from openai import AsyncOpenAI, APIStatusError, APIConnectionError
from anthropic import AsyncAnthropic
from anthropic import APIStatusError as AnthropicStatusError
from anthropic import APIConnectionError as AnthropicConnectionError

from consultlog.shared.config import settings
from consultlog.shared.exceptions import ServiceError, EmptyResponseError
from consultlog.shared.logging import get_logger

logger = get_logger(__name__)


class LLMProvider(str, Enum):
    """Supported LLM providers."""
    OPENAI = "openai"
    ANTHROPIC = "anthropic"


AVAILABLE_MODELS: List[Dict[str, str]] = [
    {"id": "gemma3:4b-it-q4_K_M", "name": "Gemma 3 4B (추천 - 경량 로컬 모델)", "description": "경량 (3.3GB)"},
    {"id": "gemma3:12b-it-q8_0", "name": "Gemma 3 12B Q8 (최고 품질)", "description": "최고 품질 (13GB)"},
    {"id": "gemma3:12b-it-q4_K_M", "name": "Gemma 3 12B Q4 (고품질)", "description": "고품질 (8GB)"},
    {"id": "qwen3:8b", "name": "Qwen 3 8B (균형 잡힌 성능)", "description": "균형 잡힌 성능"},
    {"id": "qwen3:4b", "name": "Qwen 3 4B (가장 빠른 응답)", "description": "경량 빠른 응답"},
    {"id": "llama3.1:8b", "name": "Llama 3.1 8B (범용 모델)", "description": "범용 모델"},
]

DEFAULT_MODEL = AVAILABLE_MODELS[0]["id"]

# Korean sentence-final syllable followed by terminal punctuation
COMPLETE_SENTENCE_PATTERN = re.compile(r"[함음임됨봄옴줌춤움늠름다요까니][.!?]\s*$")

INCOMPLETE_RETRY_PROMPT = (
    "다음 텍스트는 문장이 중간에 끊겼습니다. 같은 내용을 완전한 문장으로 끝나도록 다시 작성하세요. "
    "반드시 종결어미와 마침표로 끝내세요. 오직 본문만 출력하세요.\n\n"
    "불완전한 텍스트:\n{content}"
)


def ends_with_complete_sentence(text: Optional[str]) -> bool:
    """Check whether text ends with a complete Korean sentence."""
    if not text or not text.strip():
        return False
    return bool(COMPLETE_SENTENCE_PATTERN.search(text.strip()))


def extract_error_message(response: Optional[httpx.Response], status_code: Optional[int]) -> str:
    """Best-effort error message from a failed backend response."""
    fallback = f"서버 오류 ({status_code})"
    if response is None:
        return fallback
    try:
        data = response.json()
    except ValueError:
        return fallback

    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, str) and error.strip():
            return error
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
    return fallback


class LLMClient:
    """Unified LLM client for the text-completion backend."""

    def __init__(
        self,
        provider: Optional[str] = None,
        model: Optional[str] = None,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        incomplete_retries: Optional[int] = None
    ):
        self.provider = provider or settings.llm.provider
        self.model = model or settings.llm.default_model or DEFAULT_MODEL
        self.temperature = temperature if temperature is not None else settings.llm.temperature
        self.max_tokens = max_tokens or settings.llm.max_tokens
        self.incomplete_retries = (
            incomplete_retries if incomplete_retries is not None else settings.llm.incomplete_retries
        )

        # Initialize provider client
        if self.provider == LLMProvider.OPENAI:
            api_key = api_key or settings.llm.api_key
            if not api_key:
                raise ServiceError("LLM API key not configured")
            self.client = AsyncOpenAI(
                api_key=api_key,
                base_url=base_url or settings.llm.base_url,
                default_headers={settings.llm.api_key_header: api_key},
                timeout=settings.llm.timeout_seconds,
                max_retries=0,
            )
        elif self.provider == LLMProvider.ANTHROPIC:
            api_key = api_key or settings.llm.anthropic_api_key
            if not api_key:
                raise ServiceError("Anthropic API key not configured")
            self.client = AsyncAnthropic(api_key=api_key, timeout=settings.llm.timeout_seconds)
        else:
            raise ServiceError(f"Unsupported provider: {self.provider}")

    async def get_completion(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        **kwargs
    ) -> str:
        """
        Get text completion from the backend.

        Args:
            prompt: User prompt
            system_prompt: Optional system prompt
            model: Override default model
            temperature: Override default temperature
            max_tokens: Override default max_tokens
            **kwargs: Additional provider-specific parameters

        Returns:
            Completion text (empty string when the backend sent no content)

        Raises:
            ServiceError: non-success status, transport failure or malformed body
            ValueError: streaming was requested; responses are read whole
        """
        if kwargs.pop("stream", False):
            raise ValueError("Streaming completions are not supported")

        model = model or self.model
        temperature = temperature if temperature is not None else self.temperature
        max_tokens = max_tokens or self.max_tokens

        try:
            if self.provider == LLMProvider.OPENAI:
                return await self._openai_completion(
                    prompt=prompt,
                    system_prompt=system_prompt,
                    model=model,
                    temperature=temperature,
                    max_tokens=max_tokens,
                    **kwargs
                )
            return await self._anthropic_completion(
                prompt=prompt,
                system_prompt=system_prompt,
                model=model,
                temperature=temperature,
                max_tokens=max_tokens,
                **kwargs
            )
        except (APIStatusError, AnthropicStatusError) as e:
            message = extract_error_message(e.response, e.status_code)
            logger.warning(f"Completion backend returned {e.status_code}: {message}")
            raise ServiceError(message, status_code=e.status_code) from e
        except (APIConnectionError, AnthropicConnectionError) as e:
            raise ServiceError(f"LLM 서버에 연결할 수 없습니다: {str(e)}") from e

    async def _openai_completion(
        self,
        prompt: str,
        system_prompt: Optional[str],
        model: str,
        temperature: float,
        max_tokens: int,
        **kwargs
    ) -> str:
        """OpenAI-compatible completion."""
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        response = await self.client.chat.completions.create(
            model=model,
            messages=messages,
            temperature=temperature,
            max_tokens=max_tokens,
            **kwargs
        )

        choices = getattr(response, "choices", None)
        if not choices or getattr(choices[0], "message", None) is None:
            raise ServiceError("LLM 응답 형식이 올바르지 않습니다.")
        return choices[0].message.content or ""

    async def _anthropic_completion(
        self,
        prompt: str,
        system_prompt: Optional[str],
        model: str,
        temperature: float,
        max_tokens: int,
        **kwargs
    ) -> str:
        """Anthropic-specific completion."""
        # Anthropic uses system parameter, not system message
        completion_kwargs: Dict[str, Any] = {
            "model": model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            **kwargs
        }
        if system_prompt:
            completion_kwargs["system"] = system_prompt
        completion_kwargs["messages"] = [{"role": "user", "content": prompt}]

        response = await self.client.messages.create(**completion_kwargs)
        if not response.content:
            raise ServiceError("LLM 응답 형식이 올바르지 않습니다.")
        return response.content[0].text

    async def generate(
        self,
        system_message: str,
        user_prompt: str,
        model: Optional[str] = None
    ) -> str:
        """Single completion call with a system and a user message."""
        return await self.get_completion(
            prompt=user_prompt,
            system_prompt=system_message,
            model=model
        )

    async def generate_with_instructions(
        self,
        system_message: str,
        prompt: str,
        additional_instructions: Optional[str] = None,
        model: Optional[str] = None
    ) -> str:
        """
        Completion with optional user rules.

        Additional instructions are appended to the system message and also
        wrapped around the user prompt, before and after it.
        """
        final_system = system_message
        final_prompt = prompt
        if additional_instructions and additional_instructions.strip():
            final_system += f"\n\n사용자 추가 규칙 (최우선 준수):\n{additional_instructions}"
            prefix = f"[최우선 규칙] 다음 규칙을 반드시 지켜서 작성하라: {additional_instructions}\n\n"
            suffix = f"\n\n[다시 한번 강조] 위 본문 작성 시 반드시 적용할 규칙: {additional_instructions}"
            final_prompt = prefix + prompt + suffix

        return await self.generate(final_system, final_prompt, model)

    async def generate_with_retry(
        self,
        system_message: str,
        prompt: str,
        additional_instructions: Optional[str] = None,
        model: Optional[str] = None
    ) -> str:
        """
        Completion that asks the model to finish truncated output.

        Retries up to `incomplete_retries` times while the text does not end in
        a complete sentence, keeping the latest non-blank retry even when it
        still looks unfinished.

        Raises:
            EmptyResponseError: the first call returned blank text
            ServiceError: backend failure on any call
        """
        content = await self.generate_with_instructions(
            system_message,
            prompt,
            additional_instructions=additional_instructions,
            model=model
        )

        if not content.strip():
            raise EmptyResponseError("AI 응답이 비어있습니다.")

        for retry in range(self.incomplete_retries):
            if ends_with_complete_sentence(content):
                break

            logger.info(
                f"Incomplete sentence, retry {retry + 1}/{self.incomplete_retries}: ...{content[-30:]}"
            )
            retry_content = await self.generate(
                system_message,
                INCOMPLETE_RETRY_PROMPT.format(content=content),
                model
            )

            if retry_content.strip():
                content = retry_content
                if ends_with_complete_sentence(retry_content):
                    logger.info("Incomplete sentence retry succeeded")
                    break

        return content
