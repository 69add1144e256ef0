"""OCR 엔진 레지스트리.

사용 가능한 OCR 엔진을 등록하고 조회한다.

엔진은 코드에 하드코딩하지 않고 register()로 등록한다.
앱 초기화 시 auto_register()로 다섯 엔진을 등록한다.
"""

from __future__ import annotations
import logging
from typing import Optional

from .base import BaseOcrEngine, OcrEngineUnavailableError

logger = logging.getLogger(__name__)


class OcrEngineRegistry:
    """OCR 엔진 레지스트리.

    사용법:
        registry = OcrEngineRegistry()
        registry.auto_register(config, usage_tracker)
        engine = registry.get_engine("gemini")
    """

    def __init__(self):
        self._engines: dict[str, BaseOcrEngine] = {}
        self._default_engine_id: Optional[str] = None

    def register(self, engine: BaseOcrEngine) -> None:
        """엔진을 등록한다.

        이미 같은 engine_id가 등록되어 있으면 덮어쓴다.
        """
        self._engines[engine.engine_id] = engine
        logger.info(f"OCR 엔진 등록: {engine.engine_id} ({engine.display_name})")

        # 첫 번째로 사용 가능한 엔진을 기본값으로
        if self._default_engine_id is None and engine.is_available():
            self._default_engine_id = engine.engine_id

    def __contains__(self, engine_id: str) -> bool:
        return engine_id in self._engines

    def get_engine(
        self,
        engine_id: Optional[str] = None,
        *,
        require_available: bool = True,
    ) -> BaseOcrEngine:
        """엔진을 조회한다.

        입력:
          engine_id: None이면 기본 엔진
          require_available: False이면 사용 가능 여부를 확인하지 않는다.
            오케스트레이터는 False로 조회해 엔진이 직접
            구체적인 에러(API 키 없음 등)를 내도록 한다.

        출력: BaseOcrEngine 인스턴스

        에러: OcrEngineUnavailableError — 엔진이 없거나 사용 불가
        """
        if engine_id is None:
            engine_id = self._default_engine_id

        if engine_id is None:
            raise OcrEngineUnavailableError("등록된 OCR 엔진이 없습니다.")

        engine = self._engines.get(engine_id)
        if engine is None:
            available = list(self._engines.keys())
            raise OcrEngineUnavailableError(
                f"엔진 '{engine_id}'를 찾을 수 없습니다. 사용 가능: {available}"
            )

        if require_available and not engine.is_available():
            raise OcrEngineUnavailableError(
                f"엔진 '{engine_id}'이(가) 사용할 수 없는 상태입니다."
            )

        return engine

    def list_engines(self) -> list[dict]:
        """등록된 모든 엔진의 정보를 반환한다. 엔진 목록 표시용."""
        return [engine.get_info() for engine in self._engines.values()]

    @property
    def default_engine_id(self) -> Optional[str]:
        return self._default_engine_id

    @default_engine_id.setter
    def default_engine_id(self, engine_id: str) -> None:
        if engine_id not in self._engines:
            raise ValueError(f"등록되지 않은 엔진: {engine_id}")
        self._default_engine_id = engine_id

    def auto_register(self, config, usage_tracker=None, *, vision_engine=None) -> None:
        """다섯 엔진을 등록한다.

        사용할 수 없는 엔진(키 없음, 미설치)도 등록한다.
        list_engines()에서 available=false로 표시하여
        사용자에게 설정하면 쓸 수 있는 엔진이 있음을 알린다.

        등록 순서 (= 목록 표시 순서, 첫 available이 기본 엔진):
          1. Local Vision — 오프라인, 하이브리드 파이프라인의 위치 기준
          2. Gemini
          3. GPT
          4. Gemini CLI
          5. Mistral

        새 엔진을 추가하려면:
          1. BaseOcrEngine(또는 PriorAwareOcrEngine)을 상속하는 클래스를 만든다.
          2. 여기에 try/except 블록을 추가한다.
        """
        # ── 1. Local Vision ──
        try:
            if vision_engine is None:
                from .vision_engine import LocalVisionEngine
                vision_engine = LocalVisionEngine()
            self.register(vision_engine)
            if not vision_engine.is_available():
                logger.info(
                    "Local Vision 등록됨 (PaddleOCR 미설치 — 사용 불가). "
                    "설치: pip install '.[paddleocr]'"
                )
        except Exception as e:
            logger.warning(f"Local Vision 등록 실패: {e}")

        # ── 2~4. LLM 엔진 (provider만 다름) ──
        try:
            from ..llm.providers.gemini_cli_provider import GeminiCliProvider
            from ..llm.providers.gemini_provider import GeminiProvider
            from ..llm.providers.openai_provider import OpenAiProvider
            from .llm_ocr_engine import LlmOcrEngine

            for provider_cls in (GeminiProvider, OpenAiProvider, GeminiCliProvider):
                try:
                    engine = LlmOcrEngine(provider_cls(config), config, usage_tracker)
                    self.register(engine)
                except Exception as e:
                    logger.warning(f"{provider_cls.display_name} 등록 실패: {e}")
        except Exception as e:
            logger.warning(f"LLM OCR 엔진 초기화 실패: {e}")

        # ── 5. Mistral ──
        try:
            from .mistral_engine import MistralOcrEngine
            self.register(MistralOcrEngine(config, usage_tracker))
        except Exception as e:
            logger.warning(f"Mistral 등록 실패: {e}")

        if not self._engines:
            logger.info("사용 가능한 OCR 엔진이 없습니다.")
