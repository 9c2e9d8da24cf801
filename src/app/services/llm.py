"""Structured LLM access via instructor + LiteLLM.

Provides:
- Prompt injection detection and sanitization of untrusted user content
- StructuredLLMClient: response_model extraction with a primary model and
  an optional fallback model, each call tracked in Prometheus
"""

from __future__ import annotations

import re
from typing import TypeVar

import instructor
import litellm
import structlog
from pydantic import BaseModel

from src.app.config import Settings, get_settings
from src.app.core.monitoring import track_oracle_call

logger = structlog.get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

# ── Prompt Injection Detection ────────────────────────────────────────────────

# Role-play phrasing ("act as a liaison") is allowed; only direct instruction
# tampering is flagged.
_INJECTION_PATTERNS: list[tuple[str, re.Pattern]] = [
    (
        "instruction_override",
        re.compile(
            r"ignore\s+(all\s+)?previous\s+instructions|"
            r"disregard\s+(all\s+)?(your\s+)?instructions|"
            r"forget\s+(all\s+)?(your\s+)?instructions|"
            r"override\s+(all\s+)?(your\s+)?instructions",
            re.IGNORECASE,
        ),
    ),
    (
        "system_prompt_exfiltration",
        re.compile(
            r"(reveal|show|display|output|print|repeat)\s+(your\s+)?(system\s+prompt|instructions)|"
            r"repeat\s+everything\s+above|"
            r"what\s+are\s+your\s+instructions",
            re.IGNORECASE,
        ),
    ),
    (
        "control_characters",
        re.compile(
            r"[\x00-\x08\x0b\x0c\x0e-\x1f]{3,}",  # 3+ control chars in sequence
        ),
    ),
]


def detect_prompt_injection(text: str) -> tuple[bool, str | None]:
    """Check text for common prompt injection patterns.

    Args:
        text: The text to analyze.

    Returns:
        Tuple of (is_injection, pattern_name) where pattern_name identifies
        which pattern matched, or None if no injection detected.
    """
    for pattern_name, pattern in _INJECTION_PATTERNS:
        if pattern.search(text):
            logger.warning(
                "prompt_injection_detected",
                pattern=pattern_name,
                text_preview=text[:100],
            )
            return True, pattern_name
    return False, None


def sanitize_messages(messages: list[dict]) -> list[dict]:
    """Sanitize messages for prompt injection before sending to the LLM.

    - System messages are NEVER modified (they are trusted).
    - User messages are checked for injection patterns.
    - If injection is detected, the offending content is replaced.
    """
    sanitized = []
    for msg in messages:
        if msg.get("role") == "system":
            sanitized.append(msg)
            continue

        content = msg.get("content", "")
        if not content:
            sanitized.append(msg)
            continue

        is_injection, pattern_name = detect_prompt_injection(content)
        if is_injection:
            cleaned = content
            for _, pattern in _INJECTION_PATTERNS:
                cleaned = pattern.sub("[removed]", cleaned)
            logger.warning(
                "prompt_injection_sanitized",
                role=msg.get("role"),
                pattern=pattern_name,
                original_length=len(content),
                cleaned_length=len(cleaned),
            )
            sanitized.append({**msg, "content": cleaned})
        else:
            sanitized.append(msg)

    return sanitized


# ── Structured Client ────────────────────────────────────────────────────────


def _api_key_for(model: str, settings: Settings) -> str | None:
    """Resolve the provider key for a LiteLLM model string."""
    provider = model.split("/", 1)[0]
    keys = {
        "gemini": settings.GEMINI_API_KEY,
        "anthropic": settings.ANTHROPIC_API_KEY,
        "openai": settings.OPENAI_API_KEY,
    }
    return keys.get(provider) or None


class StructuredLLMClient:
    """Structured extraction through instructor.from_litellm.

    Tries the primary model first and the fallback model only if the
    primary raises. Validation re-asks are bounded by LLM_MAX_RETRIES.

    Args:
        settings: Optional Settings override (defaults to get_settings()).
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or get_settings()
        self._client = instructor.from_litellm(litellm.acompletion)

    @property
    def models(self) -> list[str]:
        candidates = [self._settings.ORACLE_MODEL, self._settings.ORACLE_FALLBACK_MODEL]
        seen: list[str] = []
        for model in candidates:
            if model and model not in seen and _api_key_for(model, self._settings):
                seen.append(model)
        return seen

    async def extract(
        self,
        response_model: type[ModelT],
        messages: list[dict],
        metadata: dict | None = None,
    ) -> ModelT:
        """Run a structured completion and return a validated model.

        Args:
            response_model: Pydantic model the answer must validate against.
            messages: Chat messages; user content is sanitized first.
            metadata: Extra metadata forwarded to LiteLLM.

        Returns:
            Instance of response_model.

        Raises:
            RuntimeError: If no LLM API keys are configured.
            Exception: The last provider/validation error if every model fails.
        """
        models = self.models
        if not models:
            raise RuntimeError("No LLM API keys configured")

        safe_messages = sanitize_messages(messages)
        last_error: Exception | None = None

        for model in models:
            try:
                async with track_oracle_call(model):
                    return await self._client.chat.completions.create(
                        model=model,
                        response_model=response_model,
                        messages=safe_messages,
                        max_tokens=self._settings.ORACLE_MAX_TOKENS,
                        temperature=self._settings.ORACLE_TEMPERATURE,
                        max_retries=self._settings.LLM_MAX_RETRIES,
                        timeout=self._settings.LLM_TIMEOUT,
                        api_key=_api_key_for(model, self._settings),
                        metadata=metadata or {},
                    )
            except Exception as exc:
                last_error = exc
                logger.warning(
                    "structured_completion_failed",
                    model=model,
                    error=str(exc),
                )

        if last_error is None:
            raise RuntimeError("Structured completion produced no result")
        raise last_error
