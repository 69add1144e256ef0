from .base import (
    BaseLlmProvider, LlmCredentialError, LlmNotConfiguredError,
    LlmProviderError, LlmResponse, LlmTimeoutError,
)
from .gemini_cli_provider import GeminiCliProvider
from .gemini_provider import GeminiProvider
from .openai_provider import OpenAiProvider
