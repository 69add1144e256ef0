"""LLM 기반 OCR 엔진 (Gemini, GPT, Gemini CLI).

세 엔진은 같은 절차를 따르고 호출 수단(provider)만 다르다.
그래서 클래스 하나가 provider 하나를 감싸는 형태로 만든다.

절차:
  1. 설정 확인 — API 키(HTTP) 또는 실행 파일(CLI). 없으면 호출하지 않는다.
  2. 최적화 단계에 따라 축소 → JPEG 재인코딩
  3. 프롬프트 = 기본 지시문 + 로컬 엔진이 찾은 영역 목록
  4. provider 호출
  5. 응답 파서로 영역에 매핑, 토큰 사용량 기록

사용법:
    from src.llm.config import LlmConfig
    from src.llm.providers.gemini_provider import GeminiProvider
    from src.ocr.llm_ocr_engine import LlmOcrEngine

    config = LlmConfig()
    engine = LlmOcrEngine(GeminiProvider(config), config)
    result = await engine.recognize_with_priors(image_bytes, priors)
"""

from __future__ import annotations
import logging
import time
from typing import Optional, Sequence

from ..llm.providers.base import (
    BaseLlmProvider,
    LlmCredentialError,
    LlmNotConfiguredError,
    LlmProviderError,
    LlmTimeoutError,
)
from .base import (
    OcrAuthenticationError,
    OcrBackendError,
    OcrConfigurationError,
    OcrResult,
    OcrTimeoutError,
    PriorAwareOcrEngine,
    TextBlock,
)
from .image_utils import OptimizationLevel, prepare_upload_image
from .prompts import DEFAULT_OCR_PROMPT, build_region_prompt
from .response_parser import parse_region_response_detailed

logger = logging.getLogger(__name__)

# 응답 토큰 상한. 한 페이지 전사에 충분한 크기.
MAX_OUTPUT_TOKENS = 4096


class LlmOcrEngine(PriorAwareOcrEngine):
    """LLM 비전 기반 OCR 엔진.

    engine_id와 display_name은 감싼 provider에서 가져온다.
    ("gemini"/"Gemini", "openai"/"GPT", "gemini_cli"/"Gemini CLI")
    """

    requires_network = True

    def __init__(self, provider: BaseLlmProvider, config, usage_tracker=None):
        """초기화.

        입력:
          provider: 이미지 + 프롬프트를 보낼 LLM provider
          config: LlmConfig (최적화 단계, 프롬프트)
          usage_tracker: UsageTracker. None이면 사용량을 기록하지 않는다.
        """
        self._provider = provider
        self._config = config
        self._usage = usage_tracker
        self.engine_id = provider.provider_id
        self.display_name = provider.display_name

    @property
    def provider(self) -> BaseLlmProvider:
        return self._provider

    def is_available(self) -> bool:
        return self._provider.is_available()

    def _check_configured(self) -> None:
        try:
            self._provider.check_configured()
        except LlmCredentialError as e:
            raise OcrAuthenticationError(
                f"{self.display_name} API 키가 설정되지 않았습니다.\n"
                f"→ 해결: 환경변수 또는 .env에 API 키를 설정하세요."
            ) from e
        except LlmNotConfiguredError as e:
            raise OcrConfigurationError(str(e)) from e

    def _optimization_level(self) -> OptimizationLevel:
        return OptimizationLevel.parse(self._config.get("image_optimization_level"))

    def _base_prompt(self) -> str:
        return self._config.get("ocr_prompt") or DEFAULT_OCR_PROMPT

    def _record_usage(self, tokens: Optional[int]) -> None:
        if self._usage is not None and tokens is not None:
            self._usage.increment(self.display_name, tokens)

    async def recognize_with_priors(
        self,
        image_bytes: bytes,
        priors: Sequence[TextBlock],
    ) -> OcrResult:
        """사전 영역 목록을 근거로 LLM에 텍스트 인식을 맡긴다.

        입력:
          image_bytes: 원본 이미지
          priors: 로컬 엔진 블록 (영역 번호 = 인덱스 + 1)

        출력:
          OcrResult — 블록 bbox는 priors의 것, 신뢰도 1.0, 언어 None

        에러:
          OcrAuthenticationError — API 키 없음
          OcrConfigurationError — CLI 실행 파일 없음
          OcrInputError — 이미지 디코딩 실패
          OcrTimeoutError — 시간 초과
          OcrBackendError — 비정상 응답/종료, 빈 출력
        """
        self._check_configured()

        start = time.monotonic()
        upload = prepare_upload_image(image_bytes, self._optimization_level())
        prompt = build_region_prompt(self._base_prompt(), priors)

        try:
            response = await self._provider.call_with_image(
                prompt, upload, image_mime="image/jpeg",
                max_tokens=MAX_OUTPUT_TOKENS,
            )
        except LlmTimeoutError as e:
            raise OcrTimeoutError(
                f"{self.display_name} 응답 시간 초과: {e}",
                status_code=e.status_code,
                detail=e.detail,
            ) from e
        except LlmNotConfiguredError as e:
            raise OcrConfigurationError(str(e)) from e
        except LlmProviderError as e:
            raise OcrBackendError(
                f"{self.display_name} 호출 실패: {e}",
                status_code=e.status_code,
                detail=e.detail,
            ) from e

        parsed = parse_region_response_detailed(
            response.text, priors, engine_name=self.display_name,
        )
        if parsed.used_fallback and self._usage is not None:
            self._usage.record_fallback(self.display_name, parsed.fallback_reason)

        self._record_usage(response.total_tokens)

        result = OcrResult.from_blocks(
            parsed.blocks,
            engine=self.display_name,
            processing_time=time.monotonic() - start,
            confidence=1.0,
        )
        logger.info(
            f"LLM OCR 완료: {len(parsed.blocks)}블록 "
            f"({self.display_name}, {response.model}, "
            f"{result.processing_time:.2f}초)"
        )
        return result
