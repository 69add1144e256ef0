"""Mistral OCR 엔진 테스트.

httpx.MockTransport로 API 응답을 흉내 낸다.
"""

import base64
import io
import json

import httpx
import pytest
from PIL import Image

from conftest import make_image_bytes
from src.llm.usage_tracker import UsageTracker
from src.ocr.base import OcrAuthenticationError, OcrBackendError, OcrTimeoutError
from src.ocr.mistral_engine import (
    MISTRAL_OCR_URL,
    MistralOcrEngine,
    join_pages,
    strip_image_references,
    usage_tokens,
)


@pytest.fixture
def keyed_config(config):
    config.set("mistral_api_key", "mistral-test-key")
    return config


@pytest.fixture
def tracker(config):
    return UsageTracker(config, persist=False)


def _engine(config, tracker, handler):
    return MistralOcrEngine(config, tracker, transport=httpx.MockTransport(handler))


class TestHelpers:

    def test_strip_image_references(self):
        md = "Title\n![img-0.jpeg](img-0.jpeg)\nBody ![](x.png) end"
        assert strip_image_references(md) == "Title\n\nBody  end"

    def test_join_pages(self):
        pages = [{"markdown": "Page one"}, {"markdown": "Page two ![a](b)"}]
        assert join_pages(pages) == "Page one\n\n---\n\nPage two "

    def test_join_pages_missing_markdown(self):
        assert join_pages([{"index": 0}, {"markdown": "x"}]) == "\n\n---\n\nx"

    @pytest.mark.parametrize("data,expected", [
        ({"usage_info": {"total_tokens": 500, "prompt_tokens": 1}}, 500),
        ({"usage_info": {"prompt_tokens": 300, "completion_tokens": 20}}, 320),
        ({"usage_info": {"pages_processed": 1}}, None),
        ({}, None),
    ])
    def test_usage_tokens(self, data, expected):
        assert usage_tokens(data) == expected


@pytest.mark.asyncio
async def test_request_and_result(keyed_config, tracker):
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["url"] = str(request.url)
        captured["auth"] = request.headers["Authorization"]
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, json={
            "pages": [
                {"index": 0, "markdown": "# Heading\n![img-0](img-0.jpeg)"},
                {"index": 1, "markdown": "Second page"},
            ],
            "usage_info": {"total_tokens": 812},
        })

    engine = _engine(keyed_config, tracker, handler)
    result = await engine.recognize(make_image_bytes(3000, 1500))

    assert captured["url"] == MISTRAL_OCR_URL
    assert captured["auth"] == "Bearer mistral-test-key"
    body = captured["body"]
    assert body["model"] == "mistral-ocr-latest"
    assert body["document"]["type"] == "image_url"
    prefix = "data:image/jpeg;base64,"
    assert body["document"]["image_url"].startswith(prefix)

    # 축소하지 않는다
    sent = base64.b64decode(body["document"]["image_url"][len(prefix):])
    with Image.open(io.BytesIO(sent)) as img:
        assert img.format == "JPEG"
        assert img.size == (3000, 1500)

    assert result.text == "# Heading\n\n\n---\n\nSecond page"
    assert result.text_blocks == ()
    assert result.confidence == 1.0
    assert result.engine == "Mistral"
    assert tracker.get_total("Mistral") == 812


@pytest.mark.asyncio
async def test_usage_from_prompt_and_completion(keyed_config, tracker):
    def handler(request):
        return httpx.Response(200, json={
            "pages": [{"markdown": "x"}],
            "usage_info": {"prompt_tokens": 100, "completion_tokens": 5},
        })

    await _engine(keyed_config, tracker, handler).recognize(make_image_bytes())
    assert tracker.get_total("Mistral") == 105


@pytest.mark.asyncio
async def test_no_usage_info(keyed_config, tracker):
    def handler(request):
        return httpx.Response(200, json={"pages": [{"markdown": "x"}]})

    result = await _engine(keyed_config, tracker, handler).recognize(make_image_bytes())
    assert result.text == "x"
    assert tracker.totals() == {}


@pytest.mark.asyncio
async def test_missing_key_no_request(config, tracker):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json={"pages": []})

    engine = _engine(config, tracker, handler)
    assert not engine.is_available()
    with pytest.raises(OcrAuthenticationError):
        await engine.recognize(make_image_bytes())
    assert calls == []


@pytest.mark.asyncio
async def test_http_error_status(keyed_config, tracker):
    def handler(request):
        return httpx.Response(401, text='{"message": "Unauthorized"}')

    with pytest.raises(OcrBackendError) as exc_info:
        await _engine(keyed_config, tracker, handler).recognize(make_image_bytes())

    assert exc_info.value.status_code == 401
    assert "Unauthorized" in exc_info.value.detail
    assert tracker.totals() == {}


@pytest.mark.asyncio
async def test_missing_pages(keyed_config, tracker):
    def handler(request):
        return httpx.Response(200, json={"object": "ocr"})

    with pytest.raises(OcrBackendError, match="pages"):
        await _engine(keyed_config, tracker, handler).recognize(make_image_bytes())


@pytest.mark.asyncio
async def test_invalid_json(keyed_config, tracker):
    def handler(request):
        return httpx.Response(200, text="<html>oops</html>")

    with pytest.raises(OcrBackendError):
        await _engine(keyed_config, tracker, handler).recognize(make_image_bytes())


@pytest.mark.asyncio
async def test_timeout(keyed_config, tracker):
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(OcrTimeoutError):
        await _engine(keyed_config, tracker, handler).recognize(make_image_bytes())


@pytest.mark.asyncio
async def test_connection_error(keyed_config, tracker):
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(OcrBackendError, match="연결 실패"):
        await _engine(keyed_config, tracker, handler).recognize(make_image_bytes())
