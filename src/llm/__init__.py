"""LLM 호출 모듈. OCR 엔진이 provider를 감싸서 사용한다."""

from .config import LlmConfig
from .providers.base import (
    LlmCredentialError,
    LlmNotConfiguredError,
    LlmProviderError,
    LlmResponse,
    LlmTimeoutError,
)
from .usage_tracker import UsageTracker

__all__ = [
    "LlmConfig",
    "LlmResponse",
    "LlmProviderError",
    "LlmTimeoutError",
    "LlmNotConfiguredError",
    "LlmCredentialError",
    "UsageTracker",
]
