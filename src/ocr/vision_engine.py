"""로컬 비전 OCR 엔진.

오프라인에서 동작하는 기본 엔진. 하이브리드 파이프라인에서는
이 엔진의 bbox가 위치 정보의 기준(사전 블록)이 된다.

처리 순서:
  1. 빠른 인식 (최대 5개 관찰) → 짧은 텍스트 샘플
     실패해도 중단하지 않는다. 샘플 없음으로 처리.
  2. 샘플 언어 식별 → 인식 언어 힌트 (예: ko → ["ko-KR", "en-US"])
     샘플이 없으면 13개 언어 기본 목록
  3. 정확 인식 (언어 힌트 + 언어 보정)
  4. 관찰마다 최상위 후보 텍스트 + 신뢰도, 왼쪽 아래 원점 bbox는 뒤집는다
  5. 결과 신뢰도 = 블록 평균, 언어 = 전체 텍스트 식별 결과

실제 인식은 BaseTextRecognizer 구현체가 맡는다.
기본 구현체는 PaddleOCR (선택 설치: paddleocr extra).
"""

from __future__ import annotations
import asyncio
import logging
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Sequence

from PIL import Image

from .base import (
    BaseOcrEngine, BoundingBox, OcrEngineError, OcrEngineUnavailableError,
    OcrResult, TextBlock,
)
from .image_utils import load_image
from .language import (
    DEFAULT_RECOGNITION_LANGUAGES, identify_language, recognition_hints,
)

logger = logging.getLogger(__name__)

FAST_PASS_MAX_OBSERVATIONS = 5


# ─── 인식기 백엔드 ─────────────────────────────────────

@dataclass(frozen=True)
class TextObservation:
    """인식기가 돌려주는 관찰 하나 (최상위 후보만).

    bbox는 정규화 좌표. 원점은 인식기의 bottom_left_origin에 따른다.
    """

    text: str
    confidence: float
    bbox: BoundingBox


class BaseTextRecognizer(ABC):
    """텍스트 인식기 추상 클래스.

    bottom_left_origin: True이면 bbox 원점이 왼쪽 아래.
      엔진이 왼쪽 위 원점으로 뒤집는다.
    """

    bottom_left_origin: bool = False

    @abstractmethod
    def is_available(self) -> bool:
        raise NotImplementedError

    @abstractmethod
    async def recognize(
        self,
        image: Image.Image,
        *,
        fast: bool,
        languages: Sequence[str],
        language_correction: bool,
        max_observations: Optional[int] = None,
    ) -> list[TextObservation]:
        """이미지에서 텍스트 관찰 목록을 만든다.

        입력:
          image: 디코딩된 이미지
          fast: True이면 빠르고 덜 정확한 모드
          languages: 우선순위 순의 인식 언어 (BCP-47)
          language_correction: 언어 보정 요청 여부
          max_observations: 반환할 최대 관찰 수 (None이면 제한 없음)

        에러:
          OcrEngineError — 인식 실패
        """
        raise NotImplementedError


# PaddleOCR 언어 코드 (BCP-47 → PaddleOCR lang)
_PADDLE_LANGS = {
    "ko-KR": "korean",
    "en-US": "en",
    "ja-JP": "japan",
    "zh-Hans": "ch",
    "zh-Hant": "chinese_cht",
    "fr-FR": "fr",
    "de-DE": "german",
    "es-ES": "es",
    "it-IT": "it",
    "pt-BR": "pt",
    "ru-RU": "ru",
    "ar-SA": "ar",
    "th-TH": "th",
}

# 빠른 인식 시 긴 변 최대 픽셀
_FAST_MAX_DIMENSION = 960


class PaddleOcrRecognizer(BaseTextRecognizer):
    """PaddleOCR 기반 인식기.

    PaddleOCR은 한 모델이 한 언어(스크립트)를 맡으므로
    언어 목록의 첫 번째 항목으로 모델을 고른다.
    모델은 언어별로 한 번만 로드해 재사용한다 (첫 호출 시 다운로드 발생).

    PaddleOCR에는 언어 보정 옵션이 없다. language_correction은 무시한다.
    추론은 블로킹이므로 기본 executor에서 실행한다.
    """

    bottom_left_origin = False

    def __init__(self, device: Optional[str] = None):
        self._device = device
        self._models: dict[str, object] = {}
        self._lock = threading.Lock()
        self._available: Optional[bool] = None

    def is_available(self) -> bool:
        """PaddleOCR 패키지가 설치되어 있는지 확인."""
        if self._available is not None:
            return self._available

        try:
            import paddleocr  # noqa: F401
            self._available = True
        except ImportError:
            self._available = False
            logger.info("PaddleOCR 미설치 — pip install '.[paddleocr]'")

        return self._available

    def _get_model(self, paddle_lang: str):
        """언어별 PaddleOCR 인스턴스를 lazy 초기화."""
        with self._lock:
            model = self._models.get(paddle_lang)
            if model is None:
                if not self.is_available():
                    raise OcrEngineUnavailableError(
                        "PaddleOCR이 설치되지 않았습니다.\n"
                        "→ 해결: pip install '.[paddleocr]'"
                    )
                from paddleocr import PaddleOCR as _PaddleOCR

                kwargs = {
                    "lang": paddle_lang,
                    "use_doc_orientation_classify": False,
                    "use_doc_unwarping": False,
                    "use_textline_orientation": False,
                }
                if self._device:
                    kwargs["device"] = self._device
                model = _PaddleOCR(**kwargs)
                self._models[paddle_lang] = model
                logger.info(f"PaddleOCR 모델 로드 완료 (lang={paddle_lang})")
            return model

    @staticmethod
    def _paddle_lang(languages: Sequence[str]) -> str:
        for language in languages:
            if language in _PADDLE_LANGS:
                return _PADDLE_LANGS[language]
        return "en"

    def _run(
        self,
        image: Image.Image,
        fast: bool,
        languages: Sequence[str],
        max_observations: Optional[int],
    ) -> list[TextObservation]:
        import numpy as np

        model = self._get_model(self._paddle_lang(languages))

        img = image.convert("RGB")
        if fast:
            img = img.copy()
            img.thumbnail((_FAST_MAX_DIMENSION, _FAST_MAX_DIMENSION))
        width, height = img.size
        if width == 0 or height == 0:
            return []

        # PaddleOCR 입력은 BGR numpy 배열
        img_array = np.array(img)[:, :, ::-1]

        try:
            raw_result = model.predict(img_array)
        except Exception as e:
            raise OcrEngineError(f"PaddleOCR 인식 실패: {e}") from e

        observations = []
        for page in raw_result or []:
            # rec_scores/rec_polys는 numpy 배열일 수 있다 (진리값 판정 불가)
            texts = page.get("rec_texts")
            scores = page.get("rec_scores")
            polys = page.get("rec_polys")
            if texts is None or scores is None or polys is None:
                continue
            for text, score, poly in zip(texts, scores, polys):
                # 4꼭짓점 → 정규화 사각형
                xs = [float(p[0]) for p in poly]
                ys = [float(p[1]) for p in poly]
                x_min = max(0.0, min(xs))
                y_min = max(0.0, min(ys))
                x_max = min(float(width), max(xs))
                y_max = min(float(height), max(ys))
                observations.append(TextObservation(
                    text=str(text),
                    confidence=float(score),
                    bbox=BoundingBox(
                        x=x_min / width,
                        y=y_min / height,
                        width=max(0.0, x_max - x_min) / width,
                        height=max(0.0, y_max - y_min) / height,
                    ),
                ))

        if max_observations is not None:
            observations = observations[:max_observations]
        return observations

    async def recognize(
        self,
        image: Image.Image,
        *,
        fast: bool,
        languages: Sequence[str],
        language_correction: bool,
        max_observations: Optional[int] = None,
    ) -> list[TextObservation]:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None, self._run, image, fast, list(languages), max_observations,
        )


# ─── 엔진 ──────────────────────────────────────────────

class LocalVisionEngine(BaseOcrEngine):
    """로컬 비전 OCR 엔진.

    사용법:
        engine = LocalVisionEngine()
        if engine.is_available():
            result = await engine.recognize(image_bytes)
    """

    engine_id = "vision"
    display_name = "Local Vision (PaddleOCR)"
    requires_network = False

    def __init__(self, recognizer: Optional[BaseTextRecognizer] = None):
        self._recognizer = recognizer or PaddleOcrRecognizer()

    @property
    def recognizer(self) -> BaseTextRecognizer:
        return self._recognizer

    def is_available(self) -> bool:
        return self._recognizer.is_available()

    async def _sample_text(self, image: Image.Image) -> str:
        """빠른 인식으로 언어 식별용 샘플을 얻는다. 실패하면 빈 문자열."""
        try:
            observations = await self._recognizer.recognize(
                image,
                fast=True,
                languages=DEFAULT_RECOGNITION_LANGUAGES,
                language_correction=False,
                max_observations=FAST_PASS_MAX_OBSERVATIONS,
            )
        except Exception as e:
            logger.warning(f"빠른 인식 실패, 기본 언어 목록으로 진행: {e}")
            return ""
        return " ".join(o.text for o in observations[:FAST_PASS_MAX_OBSERVATIONS])

    def _to_block(self, observation: TextObservation) -> TextBlock:
        bbox = observation.bbox
        if self._recognizer.bottom_left_origin:
            bbox = bbox.flipped()
        return TextBlock(
            text=observation.text,
            bbox=bbox,
            confidence=observation.confidence,
        )

    async def recognize(self, image_bytes: bytes) -> OcrResult:
        """이미지에서 텍스트 블록을 인식한다.

        입력: 캡처/가져오기 이미지 바이트
        출력: OcrResult (블록 = 관찰 순서)

        에러:
          OcrInputError — 디코딩할 수 없는 이미지
          OcrEngineError — 정확 인식 실패 (재시도하지 않음)
        """
        start = time.monotonic()
        image = load_image(image_bytes)

        sample = await self._sample_text(image)
        detected = identify_language(sample) if sample.strip() else None
        if detected is not None:
            languages = recognition_hints(detected)
        else:
            languages = list(DEFAULT_RECOGNITION_LANGUAGES)
        logger.debug(f"인식 언어: {languages}")

        try:
            observations = await self._recognizer.recognize(
                image,
                fast=False,
                languages=languages,
                language_correction=True,
            )
        except OcrEngineError:
            raise
        except Exception as e:
            raise OcrEngineError(f"로컬 비전 인식 실패: {e}") from e

        blocks = [self._to_block(o) for o in observations]
        text = "\n".join(b.text for b in blocks)
        result = OcrResult.from_blocks(
            blocks,
            engine=self.display_name,
            processing_time=time.monotonic() - start,
            language=identify_language(text),
        )
        logger.info(
            f"로컬 비전 인식 완료: {len(blocks)}블록, "
            f"언어={result.language}, {result.processing_time:.2f}초"
        )
        return result
