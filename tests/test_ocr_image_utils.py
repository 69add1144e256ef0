"""이미지 유틸리티 테스트."""

import io

import pytest
from PIL import Image

from conftest import make_image_bytes
from src.ocr.base import OcrInputError
from src.ocr.image_utils import (
    OptimizationLevel,
    encode_jpeg,
    load_image,
    load_image_file,
    prepare_upload_image,
    resize_for_upload,
)


def _size(data: bytes) -> tuple[int, int]:
    with Image.open(io.BytesIO(data)) as img:
        return img.size


class TestOptimizationLevel:

    def test_max_dimensions(self):
        assert OptimizationLevel.ORIGINAL.max_dimension is None
        assert OptimizationLevel.HIGH.max_dimension == 2048
        assert OptimizationLevel.MEDIUM.max_dimension == 1024
        assert OptimizationLevel.LOW.max_dimension == 768

    @pytest.mark.parametrize("value,expected", [
        ("High", OptimizationLevel.HIGH),
        ("low", OptimizationLevel.LOW),
        (" original ", OptimizationLevel.ORIGINAL),
        ("unknown", OptimizationLevel.MEDIUM),
        (None, OptimizationLevel.MEDIUM),
        (OptimizationLevel.LOW, OptimizationLevel.LOW),
    ])
    def test_parse(self, value, expected):
        assert OptimizationLevel.parse(value) is expected


class TestResize:

    def test_landscape_downscaled(self):
        img = Image.new("RGB", (3000, 1500))
        out = resize_for_upload(img, OptimizationLevel.MEDIUM)
        assert out.size == (1024, 512)

    def test_portrait_downscaled(self):
        img = Image.new("RGB", (1000, 4000))
        out = resize_for_upload(img, OptimizationLevel.HIGH)
        assert out.size == (512, 2048)

    def test_never_upscaled(self):
        img = Image.new("RGB", (300, 200))
        assert resize_for_upload(img, OptimizationLevel.LOW).size == (300, 200)

    def test_original_untouched(self):
        img = Image.new("RGB", (5000, 100))
        assert resize_for_upload(img, OptimizationLevel.ORIGINAL) is img


class TestDecodeEncode:

    def test_load_image_rejects_garbage(self):
        with pytest.raises(OcrInputError):
            load_image(b"definitely not an image")

    def test_load_image_rejects_empty(self):
        with pytest.raises(OcrInputError):
            load_image(b"")

    def test_encode_jpeg_converts_rgba(self):
        img = Image.new("RGBA", (10, 10), (255, 0, 0, 128))
        data = encode_jpeg(img)
        assert data[:2] == b"\xff\xd8"

    def test_prepare_upload_image(self):
        data = prepare_upload_image(make_image_bytes(2000, 1000), OptimizationLevel.LOW)
        assert data[:2] == b"\xff\xd8"
        assert _size(data) == (768, 384)

    def test_load_image_file(self, tmp_path):
        path = tmp_path / "scan.png"
        path.write_bytes(make_image_bytes(120, 80))

        captured = load_image_file(path, page_index=2)

        assert (captured.width, captured.height) == (120, 80)
        assert captured.page_index == 2
        assert captured.source == "image"

    def test_load_image_file_missing(self, tmp_path):
        with pytest.raises(OcrInputError):
            load_image_file(tmp_path / "missing.png")
