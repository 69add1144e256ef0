"""Mistral 문서 OCR 엔진.

페이지 단위 문서 OCR API. LLM 엔진과 달리 영역 목록(사전 블록)을
쓰지 않으므로 하이브리드 파이프라인에 참여하지 않는다.

호출 흐름:
    Python → HTTP POST https://api.mistral.ai/v1/ocr
             {"model": ..., "document": {"type": "image_url",
                                         "image_url": "data:image/jpeg;base64,..."}}
          → {"pages": [{"markdown": "..."}], "usage_info": {...}}

결과 텍스트:
  페이지별 markdown에서 이미지 참조 ![alt](src)를 지우고
  "\n\n---\n\n"으로 잇는다. 블록(bbox)은 없다.

환경변수: MISTRAL_API_KEY
"""

from __future__ import annotations
import base64
import logging
import re
import time
from typing import Optional

import httpx

from .base import (
    BaseOcrEngine,
    OcrAuthenticationError,
    OcrBackendError,
    OcrResult,
    OcrTimeoutError,
)
from .image_utils import encode_jpeg, load_image

logger = logging.getLogger(__name__)

MISTRAL_OCR_URL = "https://api.mistral.ai/v1/ocr"
DEFAULT_MODEL = "mistral-ocr-latest"
PAGE_SEPARATOR = "\n\n---\n\n"
REQUEST_TIMEOUT_SEC = 120.0

_IMAGE_REF_RE = re.compile(r"!\[.*?\]\(.*?\)")


def strip_image_references(markdown: str) -> str:
    """markdown에서 이미지 참조 ![alt](src)를 지운다."""
    return _IMAGE_REF_RE.sub("", markdown)


def join_pages(pages: list) -> str:
    """페이지별 markdown을 정리해 구분선으로 잇는다."""
    return PAGE_SEPARATOR.join(
        strip_image_references(page.get("markdown") or "")
        for page in pages
        if isinstance(page, dict)
    )


def usage_tokens(data: dict) -> Optional[int]:
    """응답의 usage_info에서 토큰 수를 꺼낸다.

    total_tokens 우선, 없으면 prompt_tokens + completion_tokens.
    usage_info가 없으면 None (에러 아님).
    """
    usage = data.get("usage_info")
    if not isinstance(usage, dict):
        return None
    if usage.get("total_tokens") is not None:
        return int(usage["total_tokens"])
    prompt = usage.get("prompt_tokens")
    completion = usage.get("completion_tokens")
    if prompt is None and completion is None:
        return None
    return int(prompt or 0) + int(completion or 0)


class MistralOcrEngine(BaseOcrEngine):
    """Mistral 문서 OCR API 엔진.

    사용법:
        engine = MistralOcrEngine(config, usage_tracker)
        result = await engine.recognize(image_bytes)
    """

    engine_id = "mistral"
    display_name = "Mistral"
    requires_network = True

    def __init__(self, config, usage_tracker=None, *,
                 transport: Optional[httpx.AsyncBaseTransport] = None,
                 timeout: float = REQUEST_TIMEOUT_SEC):
        """초기화.

        입력:
          config: LlmConfig (API 키, 모델)
          usage_tracker: UsageTracker. None이면 사용량을 기록하지 않는다.
          transport: httpx 전송 계층 교체용 (테스트에서 MockTransport)
          timeout: HTTP 요청 시간 제한 (초)
        """
        self._config = config
        self._usage = usage_tracker
        self._transport = transport
        self._timeout = timeout

    def _api_key(self) -> Optional[str]:
        return self._config.get_api_key("mistral")

    @property
    def model(self) -> str:
        return self._config.get_model("mistral") or DEFAULT_MODEL

    def is_available(self) -> bool:
        """MISTRAL_API_KEY가 설정되어 있는지 확인."""
        return bool(self._api_key())

    def _build_payload(self, image_bytes: bytes) -> dict:
        # 축소하지 않는다. JPEG 재인코딩만.
        jpeg = encode_jpeg(load_image(image_bytes))
        b64_data = base64.b64encode(jpeg).decode("ascii")
        return {
            "model": self.model,
            "document": {
                "type": "image_url",
                "image_url": f"data:image/jpeg;base64,{b64_data}",
            },
        }

    async def recognize(self, image_bytes: bytes) -> OcrResult:
        """이미지를 Mistral OCR API로 인식한다.

        입력: 이미지 바이트
        출력: OcrResult (블록 없음, 신뢰도 1.0)

        에러:
          OcrAuthenticationError — API 키 없음
          OcrInputError — 이미지 디코딩 실패
          OcrTimeoutError — HTTP 시간 초과
          OcrBackendError — 비정상 상태 코드, 연결 실패, 잘못된 응답
        """
        api_key = self._api_key()
        if not api_key:
            raise OcrAuthenticationError(
                "Mistral API 키가 설정되지 않았습니다.\n"
                "→ 해결: 환경변수 또는 .env에 MISTRAL_API_KEY를 설정하세요."
            )

        start = time.monotonic()
        payload = self._build_payload(image_bytes)
        headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }

        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport,
            ) as client:
                resp = await client.post(MISTRAL_OCR_URL, json=payload, headers=headers)
        except httpx.TimeoutException as e:
            raise OcrTimeoutError(
                f"Mistral OCR 응답 시간 초과 ({self._timeout:g}초)"
            ) from e
        except httpx.HTTPError as e:
            raise OcrBackendError(f"Mistral OCR 연결 실패: {e}") from e

        if resp.status_code != 200:
            raise OcrBackendError(
                f"Mistral OCR 오류 (HTTP {resp.status_code}): {resp.text[:300]}",
                status_code=resp.status_code,
                detail=resp.text,
            )

        try:
            data = resp.json()
        except ValueError as e:
            raise OcrBackendError(
                f"Mistral OCR 응답을 해석할 수 없습니다: {e}",
                status_code=resp.status_code,
                detail=resp.text,
            ) from e

        pages = data.get("pages") if isinstance(data, dict) else None
        if not isinstance(pages, list):
            raise OcrBackendError(
                "Mistral OCR 응답에 pages가 없습니다.",
                status_code=resp.status_code,
                detail=resp.text,
            )

        text = join_pages(pages)
        tokens = usage_tokens(data)
        if tokens is not None and self._usage is not None:
            self._usage.increment(self.display_name, tokens)

        result = OcrResult.from_text(
            text,
            engine=self.display_name,
            processing_time=time.monotonic() - start,
            confidence=1.0,
        )
        logger.info(
            f"Mistral OCR 완료: {len(pages)}페이지, "
            f"{len(text)}자, {result.processing_time:.2f}초"
        )
        return result
