"""Gemini Provider.

Google Gemini API 호출 (google-genai SDK).
이미지는 inline 바이트(Part.from_bytes)로 전달한다.

환경변수: GOOGLE_API_KEY (또는 GEMINI_API_KEY)
"""

import time

import httpx

from .base import BaseLlmProvider, LlmProviderError, LlmResponse, LlmTimeoutError


class GeminiProvider(BaseLlmProvider):
    """Google Gemini API 호출."""

    provider_id = "gemini"
    display_name = "Gemini"
    DEFAULT_MODEL = "gemini-2.5-flash"  # 비용 효율적 기본 모델

    def _make_client(self, api_key: str):
        from google import genai

        return genai.Client(api_key=api_key)

    async def call_with_image(self, prompt, image, *, image_mime="image/jpeg",
                              model=None, max_tokens=None,
                              **kwargs) -> LlmResponse:
        """Gemini Vision으로 이미지 분석.

        google-genai SDK는 Part(inline_data=...) 형식으로 이미지를 전달한다.
        비정상 응답은 APIError → LlmProviderError(status_code, detail).
        전송 실패는 httpx 예외 → LlmTimeoutError / LlmProviderError.
        텍스트 없는 응답도 LlmProviderError.
        """
        from google.genai import errors, types

        self.check_configured()
        client = self._make_client(self.get_api_key())
        selected_model = model or self.model

        config = None
        if max_tokens:
            config = types.GenerateContentConfig(max_output_tokens=max_tokens)

        # 이미지 + 텍스트를 contents로 전달
        contents = [
            types.Part.from_bytes(data=image, mime_type=image_mime),
            prompt,
        ]

        t0 = time.monotonic()
        try:
            response = await client.aio.models.generate_content(
                model=selected_model,
                contents=contents,
                config=config,
            )
        except errors.APIError as e:
            raise LlmProviderError(
                f"Gemini API 오류 (HTTP {e.code}): {e.message or e}",
                status_code=e.code,
                detail=str(e),
            ) from e
        except httpx.TimeoutException as e:
            raise LlmTimeoutError(f"Gemini API 시간 초과: {e}") from e
        except httpx.HTTPError as e:
            raise LlmProviderError(f"Gemini API 연결 실패: {e}") from e
        elapsed = time.monotonic() - t0

        # 후보가 없거나 안전 필터로 막히면 text가 None
        text = response.text
        if not text or not text.strip():
            raise LlmProviderError(
                "Gemini 응답에 텍스트가 없습니다",
                detail=_block_reason(response),
            )
        usage = response.usage_metadata
        tokens_in = getattr(usage, "prompt_token_count", None)
        tokens_out = getattr(usage, "candidates_token_count", None)
        tokens_total = getattr(usage, "total_token_count", None)

        return LlmResponse(
            text=text,
            provider=self.provider_id,
            model=selected_model,
            tokens_in=tokens_in,
            tokens_out=tokens_out,
            tokens_total=tokens_total,
            elapsed_sec=round(elapsed, 2),
            raw={"model": selected_model},
        )


def _block_reason(response) -> str:
    """텍스트가 없는 응답의 사유. 차단 사유나 종료 사유가 없으면 빈 문자열."""
    feedback = getattr(response, "prompt_feedback", None)
    reason = getattr(feedback, "block_reason", None)
    if reason:
        return f"block_reason={reason}"
    candidates = getattr(response, "candidates", None) or []
    if candidates:
        finish = getattr(candidates[0], "finish_reason", None)
        if finish:
            return f"finish_reason={finish}"
    return ""
