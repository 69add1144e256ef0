"""공통 테스트 픽스처."""

import io

import pytest
from PIL import Image

from src.llm.config import LlmConfig
from src.ocr.base import BoundingBox, TextBlock

_KEY_ENVS = ("GOOGLE_API_KEY", "GEMINI_API_KEY", "OPENAI_API_KEY", "MISTRAL_API_KEY")


def make_image_bytes(width: int = 200, height: int = 100, fmt: str = "PNG",
                     color=(255, 255, 255)) -> bytes:
    """단색 테스트 이미지."""
    buf = io.BytesIO()
    mode = "RGBA" if len(color) == 4 else "RGB"
    Image.new(mode, (width, height), color).save(buf, format=fmt)
    return buf.getvalue()


def make_priors(count: int) -> list[TextBlock]:
    """세로로 쌓인 사전 블록 count개."""
    return [
        TextBlock(
            text=f"prior {i + 1}",
            bbox=BoundingBox(x=0.1, y=0.1 * (i + 1), width=0.5, height=0.05),
            confidence=0.9,
        )
        for i in range(count)
    ]


@pytest.fixture
def config(tmp_path, monkeypatch):
    """환경변수 API 키를 지운 격리된 설정."""
    for name in _KEY_ENVS:
        monkeypatch.delenv(name, raising=False)
    cfg = LlmConfig(library_root=tmp_path)
    cfg._env_cache.clear()  # 프로젝트 루트 .env 무시
    return cfg


@pytest.fixture
def image_bytes():
    return make_image_bytes()
