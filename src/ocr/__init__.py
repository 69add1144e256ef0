"""다중 엔진 OCR 모듈.

플러그인 아키텍처로 여러 OCR 엔진을 지원한다.

엔진:
  - Local Vision: 로컬 인식기(PaddleOCR). 오프라인, 블록 위치의 기준.
  - Gemini / GPT / Gemini CLI: LLM 비전. 로컬 엔진이 찾은 영역에 텍스트를 채운다.
  - Mistral: 문서 OCR API. 페이지 단위 markdown.

사용법:
    from src.llm import LlmConfig, UsageTracker
    from src.ocr import OcrManager

    config = LlmConfig()
    manager = OcrManager.create_default(config, UsageTracker(config))
    manager.set_active_engine("gemini")
    result = await manager.perform_ocr(image_bytes)
"""

from .base import (
    BaseOcrEngine,
    BoundingBox,
    OcrAuthenticationError,
    OcrBackendError,
    OcrConfigurationError,
    OcrEngineError,
    OcrEngineUnavailableError,
    OcrInputError,
    OcrResult,
    OcrTimeoutError,
    PriorAwareOcrEngine,
    PriorsRequiredError,
    TextBlock,
)
from .image_utils import CapturedImage, OptimizationLevel, load_image_file
from .llm_ocr_engine import LlmOcrEngine
from .manager import OcrManager
from .mistral_engine import MistralOcrEngine
from .registry import OcrEngineRegistry
from .response_parser import parse_region_response
from .vision_engine import LocalVisionEngine

__all__ = [
    "OcrManager",
    "OcrEngineRegistry",
    "BaseOcrEngine",
    "PriorAwareOcrEngine",
    "LocalVisionEngine",
    "LlmOcrEngine",
    "MistralOcrEngine",
    "BoundingBox",
    "TextBlock",
    "OcrResult",
    "CapturedImage",
    "OptimizationLevel",
    "load_image_file",
    "parse_region_response",
    "OcrEngineError",
    "OcrConfigurationError",
    "OcrAuthenticationError",
    "OcrEngineUnavailableError",
    "OcrInputError",
    "OcrBackendError",
    "OcrTimeoutError",
    "PriorsRequiredError",
]
