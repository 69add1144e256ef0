"""OCR 오케스트레이터.

선택된 엔진으로 인식 1회를 수행한다.

하이브리드 파이프라인:
  선택된 엔진이 사전 블록을 필요로 하면(requires_priors)
    1. 로컬 비전 엔진 → 블록(위치 기준)
    2. 선택 엔진.recognize_with_priors(이미지, 블록)
  두 단계는 순차 실행이다. 2단계는 1단계 결과가 있어야 시작할 수 있다.
  그 외 엔진은 recognize(이미지) 한 번.

재시도하지 않는다. 엔진 에러는 변환하지 않고 그대로 전달한다.
여러 호출이 동시에 들어와도 각각 독립적으로 수행한다.
"""

from __future__ import annotations
import logging
from typing import Optional

from .base import BaseOcrEngine, OcrConfigurationError, OcrResult
from .registry import OcrEngineRegistry

logger = logging.getLogger(__name__)


class OcrManager:
    """OCR 오케스트레이터.

    사용법:
        manager = OcrManager.create_default(config, usage_tracker)
        manager.set_active_engine("gemini")
        result = await manager.perform_ocr(image_bytes)
    """

    def __init__(
        self,
        registry: OcrEngineRegistry,
        vision_engine: BaseOcrEngine,
        active_engine_id: Optional[str] = None,
    ):
        """초기화.

        입력:
          registry: 엔진 레지스트리
          vision_engine: 하이브리드 1단계에 쓸 로컬 비전 엔진
          active_engine_id: 처음 선택할 엔진 (None이면 미선택)
        """
        self._registry = registry
        self._vision_engine = vision_engine
        self._active_engine_id: Optional[str] = None
        if active_engine_id is not None:
            self.set_active_engine(active_engine_id)

    @classmethod
    def create_default(cls, config, usage_tracker=None, *,
                       vision_engine: Optional[BaseOcrEngine] = None) -> OcrManager:
        """다섯 엔진을 등록한 오케스트레이터를 만든다.

        처음 선택되는 엔진은 설정의 active_engine (기본 "vision").
        """
        if vision_engine is None:
            from .vision_engine import LocalVisionEngine
            vision_engine = LocalVisionEngine()

        registry = OcrEngineRegistry()
        registry.auto_register(config, usage_tracker, vision_engine=vision_engine)

        active = config.get("active_engine")
        if active not in registry:
            logger.warning(f"설정된 엔진 '{active}'이(가) 없어 선택하지 않습니다.")
            active = None
        return cls(registry, vision_engine, active)

    @property
    def registry(self) -> OcrEngineRegistry:
        return self._registry

    @property
    def active_engine_id(self) -> Optional[str]:
        return self._active_engine_id

    def set_active_engine(self, engine_id: str) -> None:
        """인식에 쓸 엔진을 선택한다.

        에러: ValueError — 등록되지 않은 엔진
        """
        if engine_id not in self._registry:
            raise ValueError(f"등록되지 않은 엔진: {engine_id}")
        self._active_engine_id = engine_id
        logger.info(f"OCR 엔진 선택: {engine_id}")

    def list_engines(self) -> list[dict]:
        """엔진 목록 + 선택 여부."""
        engines = self._registry.list_engines()
        for info in engines:
            info["active"] = info["engine_id"] == self._active_engine_id
        return engines

    async def perform_ocr(self, image_bytes: bytes) -> OcrResult:
        """선택된 엔진으로 인식 1회를 수행한다.

        입력: 이미지 바이트
        출력: OcrResult (정확히 하나)

        에러:
          OcrConfigurationError — 엔진 미선택
          그 외 엔진이 낸 에러 (변환 없이 전달)
        """
        if self._active_engine_id is None:
            raise OcrConfigurationError(
                "OCR 엔진이 선택되지 않았습니다.\n"
                "→ 해결: 엔진을 선택하세요 (예: --engine vision)."
            )

        # 사용 가능 여부는 엔진이 직접 확인하고 구체적인 에러를 낸다
        engine = self._registry.get_engine(
            self._active_engine_id, require_available=False,
        )

        if engine.requires_priors:
            priors = await self._vision_engine.recognize(image_bytes)
            logger.debug(
                f"하이브리드 1단계 완료: {len(priors.text_blocks)}개 영역 → {engine.display_name}"
            )
            return await engine.recognize_with_priors(image_bytes, priors.text_blocks)

        return await engine.recognize(image_bytes)
