"""이미지 유틸리티: 디코딩, 업로드용 축소, JPEG 재인코딩.

입력: 캡처/가져오기 이미지 바이트
출력: PIL Image 또는 전송용 JPEG 바이트

최적화 단계 (긴 변 기준 최대 픽셀):
  Original — 축소 없음
  High     — 2048
  Medium   — 1024 (기본)
  Low      — 768
"""

from __future__ import annotations
import io
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

from PIL import Image

from .base import OcrInputError


class OptimizationLevel(str, Enum):
    """클라우드 전송 전 이미지 축소 단계."""

    ORIGINAL = "Original"
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"

    @property
    def max_dimension(self) -> Optional[int]:
        """긴 변의 최대 픽셀. Original이면 None."""
        return _MAX_DIMENSIONS[self]

    @classmethod
    def parse(cls, value) -> OptimizationLevel:
        """설정 문자열을 단계로 변환. 알 수 없는 값은 Medium."""
        if isinstance(value, cls):
            return value
        for level in cls:
            if str(value).strip().lower() == level.value.lower():
                return level
        return cls.MEDIUM


_MAX_DIMENSIONS = {
    OptimizationLevel.ORIGINAL: None,
    OptimizationLevel.HIGH: 2048,
    OptimizationLevel.MEDIUM: 1024,
    OptimizationLevel.LOW: 768,
}


@dataclass(frozen=True)
class CapturedImage:
    """캡처 소스가 넘겨주는 이미지 하나.

    page_index: 여러 페이지 문서일 때 0부터 시작하는 페이지 번호
    source: "capture" | "pdf" | "image" | "file"
    """

    image_bytes: bytes
    width: int
    height: int
    page_index: int = 0
    source: str = "capture"


def load_image(image_bytes: bytes) -> Image.Image:
    """이미지 바이트를 디코딩한다.

    에러: OcrInputError — 디코딩할 수 없는 입력
    """
    if not image_bytes:
        raise OcrInputError("이미지가 비어 있습니다.")
    try:
        img = Image.open(io.BytesIO(image_bytes))
        img.load()  # lazy loading 방지
        return img
    except Exception as e:
        raise OcrInputError(f"이미지를 디코딩할 수 없습니다: {e}") from e


def load_image_file(path: str | Path, page_index: int = 0) -> CapturedImage:
    """이미지 파일을 CapturedImage로 읽는다. 파일 가져오기 경로용.

    에러: OcrInputError — 파일을 열 수 없을 때
    """
    path = Path(path)
    try:
        data = path.read_bytes()
    except OSError as e:
        raise OcrInputError(f"이미지를 열 수 없습니다: {path} — {e}") from e

    img = load_image(data)
    return CapturedImage(
        image_bytes=data,
        width=img.width,
        height=img.height,
        page_index=page_index,
        source="image",
    )


def resize_for_upload(img: Image.Image, level: OptimizationLevel) -> Image.Image:
    """긴 변이 단계별 최대값을 넘으면 비율을 유지하며 줄인다.

    확대는 하지 않는다. 크기가 0인 이미지는 그대로 반환.
    """
    max_dim = level.max_dimension
    width, height = img.size
    if max_dim is None or width == 0 or height == 0:
        return img

    if width >= height:
        if width <= max_dim:
            return img
        new_size = (max_dim, max(1, round(max_dim * height / width)))
    else:
        if height <= max_dim:
            return img
        new_size = (max(1, round(max_dim * width / height)), max_dim)

    return img.resize(new_size, Image.Resampling.LANCZOS)


def encode_jpeg(img: Image.Image, quality: int = 85) -> bytes:
    """JPEG 바이트로 재인코딩. RGBA/P 등은 RGB로 변환한다."""
    if img.mode not in ("RGB", "L"):
        img = img.convert("RGB")
    buf = io.BytesIO()
    img.save(buf, format="JPEG", quality=quality)
    return buf.getvalue()


def prepare_upload_image(
    image_bytes: bytes,
    level: OptimizationLevel = OptimizationLevel.MEDIUM,
) -> bytes:
    """디코딩 → 단계별 축소 → JPEG. 클라우드 엔진 공통 전처리."""
    img = load_image(image_bytes)
    return encode_jpeg(resize_for_upload(img, level))
