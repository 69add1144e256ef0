"""로컬 비전 엔진 테스트.

실제 PaddleOCR 없이 가짜 인식기로 처리 순서를 검증한다.
"""

import pytest

from conftest import make_image_bytes
from src.ocr.base import BoundingBox, OcrEngineError, OcrInputError
from src.ocr.language import DEFAULT_RECOGNITION_LANGUAGES
from src.ocr.vision_engine import (
    FAST_PASS_MAX_OBSERVATIONS,
    BaseTextRecognizer,
    LocalVisionEngine,
    PaddleOcrRecognizer,
    TextObservation,
)


class FakeRecognizer(BaseTextRecognizer):
    """호출 인자를 기록하고 정해진 관찰을 돌려준다."""

    def __init__(self, observations, *, fast_observations=None,
                 fast_error=None, accurate_error=None, bottom_left=False):
        self.observations = observations
        self.fast_observations = (
            observations if fast_observations is None else fast_observations
        )
        self.fast_error = fast_error
        self.accurate_error = accurate_error
        self.bottom_left_origin = bottom_left
        self.calls = []

    def is_available(self):
        return True

    async def recognize(self, image, *, fast, languages, language_correction,
                        max_observations=None):
        self.calls.append({
            "fast": fast,
            "languages": list(languages),
            "language_correction": language_correction,
            "max_observations": max_observations,
        })
        if fast:
            if self.fast_error:
                raise self.fast_error
            return self.fast_observations[:max_observations]
        if self.accurate_error:
            raise self.accurate_error
        return self.observations


def _obs(text, y=0.1, confidence=0.9):
    return TextObservation(
        text=text, confidence=confidence,
        bbox=BoundingBox(x=0.1, y=y, width=0.6, height=0.05),
    )


@pytest.mark.asyncio
async def test_korean_sample_narrows_languages():
    recognizer = FakeRecognizer([_obs("안녕하세요", 0.1, 0.8), _obs("반갑습니다", 0.2, 0.6)])
    engine = LocalVisionEngine(recognizer)

    result = await engine.recognize(make_image_bytes())

    fast, accurate = recognizer.calls
    assert fast["fast"] is True
    assert fast["max_observations"] == FAST_PASS_MAX_OBSERVATIONS
    assert accurate["fast"] is False
    assert accurate["languages"] == ["ko-KR", "en-US"]
    assert accurate["language_correction"] is True

    assert result.text == "안녕하세요\n반갑습니다"
    assert result.confidence == pytest.approx(0.7)
    assert result.language == "ko"
    assert result.engine == "Local Vision (PaddleOCR)"


@pytest.mark.asyncio
async def test_empty_sample_uses_default_languages():
    recognizer = FakeRecognizer([_obs("Hello world")], fast_observations=[])
    engine = LocalVisionEngine(recognizer)

    await engine.recognize(make_image_bytes())

    assert recognizer.calls[1]["languages"] == DEFAULT_RECOGNITION_LANGUAGES


@pytest.mark.asyncio
async def test_unidentified_sample_uses_default_languages():
    """숫자와 기호뿐인 샘플은 언어를 특정할 수 없다."""
    recognizer = FakeRecognizer([_obs("2024-05-04 12:30")])
    engine = LocalVisionEngine(recognizer)

    await engine.recognize(make_image_bytes())

    assert recognizer.calls[1]["languages"] == DEFAULT_RECOGNITION_LANGUAGES


@pytest.mark.asyncio
async def test_fast_pass_failure_tolerated(caplog):
    recognizer = FakeRecognizer([_obs("Hello")], fast_error=RuntimeError("boom"))
    engine = LocalVisionEngine(recognizer)

    result = await engine.recognize(make_image_bytes())

    assert result.text == "Hello"
    assert recognizer.calls[1]["languages"] == DEFAULT_RECOGNITION_LANGUAGES
    assert "빠른 인식 실패" in caplog.text


@pytest.mark.asyncio
async def test_accurate_pass_failure_raises():
    recognizer = FakeRecognizer([], accurate_error=RuntimeError("model crashed"))
    engine = LocalVisionEngine(recognizer)

    with pytest.raises(OcrEngineError, match="model crashed"):
        await engine.recognize(make_image_bytes())


@pytest.mark.asyncio
async def test_bottom_left_boxes_flipped():
    recognizer = FakeRecognizer([_obs("Line", y=0.2)], bottom_left=True)
    engine = LocalVisionEngine(recognizer)

    result = await engine.recognize(make_image_bytes())

    box = result.text_blocks[0].bbox
    assert box.y == pytest.approx(1.0 - 0.2 - 0.05)
    assert box.x == 0.1


@pytest.mark.asyncio
async def test_top_left_boxes_untouched():
    recognizer = FakeRecognizer([_obs("Line", y=0.2)])
    result = await LocalVisionEngine(recognizer).recognize(make_image_bytes())
    assert result.text_blocks[0].bbox.y == 0.2


@pytest.mark.asyncio
async def test_no_text_found():
    recognizer = FakeRecognizer([])
    result = await LocalVisionEngine(recognizer).recognize(make_image_bytes())
    assert result.text == ""
    assert result.confidence == 0.0
    assert result.language is None


@pytest.mark.asyncio
async def test_undecodable_image():
    engine = LocalVisionEngine(FakeRecognizer([]))
    with pytest.raises(OcrInputError):
        await engine.recognize(b"not an image")


def test_engine_identity():
    engine = LocalVisionEngine(FakeRecognizer([]))
    assert engine.engine_id == "vision"
    assert engine.requires_network is False
    assert engine.requires_priors is False
    assert engine.is_available()


class TestPaddleOcrRecognizer:

    def test_language_mapping(self):
        assert PaddleOcrRecognizer._paddle_lang(["ko-KR", "en-US"]) == "korean"
        assert PaddleOcrRecognizer._paddle_lang(["zh-Hant"]) == "chinese_cht"
        assert PaddleOcrRecognizer._paddle_lang(["xx-XX"]) == "en"

    def test_polygons_normalized(self):
        """PaddleOCR 결과(rec_texts/rec_scores/rec_polys)를 정규화 bbox로 바꾼다."""
        from PIL import Image

        class _FakeModel:
            def predict(self, img_array):
                return [{
                    "rec_texts": ["hello", "world"],
                    "rec_scores": [0.9, 0.5],
                    "rec_polys": [
                        [[20, 10], [120, 10], [120, 30], [20, 30]],
                        [[0, 50], [200, 50], [200, 100], [0, 100]],
                    ],
                }]

        recognizer = PaddleOcrRecognizer()
        recognizer._models["en"] = _FakeModel()
        pytest.importorskip("numpy")

        observations = recognizer._run(
            Image.new("RGB", (200, 100)), False, ["en-US"], None,
        )

        assert [o.text for o in observations] == ["hello", "world"]
        assert observations[0].bbox == BoundingBox(x=0.1, y=0.1, width=0.5, height=0.2)
        assert observations[1].bbox == BoundingBox(x=0.0, y=0.5, width=1.0, height=0.5)
        assert observations[1].confidence == 0.5
