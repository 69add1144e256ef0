"""OpenAI Provider.

OpenAI Chat Completions API 호출.
이미지는 base64 data URI로 전달한다.

환경변수: OPENAI_API_KEY
"""

import base64
import time

from .base import BaseLlmProvider, LlmProviderError, LlmResponse, LlmTimeoutError


class OpenAiProvider(BaseLlmProvider):
    """OpenAI API 호출."""

    provider_id = "openai"
    display_name = "GPT"
    DEFAULT_MODEL = "gpt-5-mini"  # 비용 효율적 기본 모델

    def _make_client(self, api_key: str):
        import openai

        return openai.AsyncOpenAI(api_key=api_key)

    async def call_with_image(self, prompt, image, *, image_mime="image/jpeg",
                              model=None, max_tokens=None,
                              **kwargs) -> LlmResponse:
        """OpenAI Vision으로 이미지 분석.

        비정상 상태 → LlmProviderError(status_code, detail).
        content가 비어 있어도 LlmProviderError.
        """
        import openai

        self.check_configured()
        client = self._make_client(self.get_api_key())
        selected_model = model or self.model

        b64_data = base64.b64encode(image).decode("ascii")
        data_uri = f"data:{image_mime};base64,{b64_data}"

        messages = [{
            "role": "user",
            "content": [
                {"type": "text", "text": prompt},
                {
                    "type": "image_url",
                    "image_url": {"url": data_uri},
                },
            ],
        }]

        create_kwargs = {
            "model": selected_model,
            "messages": messages,
        }
        # OpenAI 최신 모델(gpt-5, o3 등)은 max_tokens 대신
        # max_completion_tokens를 사용한다. 구형 모델이면 max_tokens로 폴백.
        if max_tokens:
            create_kwargs["max_completion_tokens"] = max_tokens

        t0 = time.monotonic()
        try:
            try:
                response = await client.chat.completions.create(**create_kwargs)
            except openai.BadRequestError as e:
                if "max_completion_tokens" not in str(e):
                    raise
                del create_kwargs["max_completion_tokens"]
                create_kwargs["max_tokens"] = max_tokens
                response = await client.chat.completions.create(**create_kwargs)
        except openai.APITimeoutError as e:
            raise LlmTimeoutError(f"OpenAI API 시간 초과: {e}") from e
        except openai.APIStatusError as e:
            raise LlmProviderError(
                f"OpenAI API 오류 (HTTP {e.status_code}): {e.message}",
                status_code=e.status_code,
                detail=_response_text(e),
            ) from e
        except openai.APIConnectionError as e:
            raise LlmProviderError(f"OpenAI API 연결 실패: {e}") from e
        elapsed = time.monotonic() - t0

        text = response.choices[0].message.content if response.choices else None
        if not text or not text.strip():
            finish = getattr(response.choices[0], "finish_reason", None) if response.choices else None
            raise LlmProviderError(
                "OpenAI 응답에 텍스트가 없습니다",
                detail=f"finish_reason={finish}" if finish else "",
            )
        usage = response.usage
        tokens_in = usage.prompt_tokens if usage else None
        tokens_out = usage.completion_tokens if usage else None
        tokens_total = usage.total_tokens if usage else None

        return LlmResponse(
            text=text,
            provider=self.provider_id,
            model=response.model or selected_model,
            tokens_in=tokens_in,
            tokens_out=tokens_out,
            tokens_total=tokens_total,
            elapsed_sec=round(elapsed, 2),
            raw={"id": response.id},
        )


def _response_text(error) -> str:
    """APIStatusError의 원본 본문. 읽을 수 없으면 메시지."""
    response = getattr(error, "response", None)
    try:
        return response.text if response is not None else str(error)
    except Exception:
        return str(error)
