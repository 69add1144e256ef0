"""클라우드/LLM 엔진 응답 파서.

LLM 응답 텍스트를 로컬 엔진 bbox에 맞춘 TextBlock 목록으로 바꾼다.

처리 순서:
  1. markdown 코드 블록(```json ... ```) 제거
  2. [{"region": N, "text": "..."}] JSON 배열 디코딩
  3. region - 1 인덱스로 사전 블록에 매핑 (범위 밖은 버림)
  4. 디코딩 실패 또는 매핑 0건 → 줄바꿈 분리 폴백

이 단계는 예외를 던지지 않는다. 최악의 경우 빈 목록을 반환한다.
폴백은 정확도 회귀를 추적할 수 있도록 WARNING 로그로 남긴다.
"""

from __future__ import annotations
import json
import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from .base import TextBlock

logger = logging.getLogger(__name__)

FALLBACK_EVENT = "region_parse_fallback"


@dataclass(frozen=True)
class RegionParseResult:
    """파싱 결과 + 폴백 여부.

    fallback_reason: 폴백을 쓴 이유 ("decode_error", "no_mapped_regions").
                     폴백을 쓰지 않았으면 None.
    """

    blocks: list[TextBlock]
    fallback_reason: Optional[str] = None

    @property
    def used_fallback(self) -> bool:
        return self.fallback_reason is not None


class _RegionDecodeError(ValueError):
    pass


def strip_code_fence(text: str) -> str:
    """응답을 감싼 markdown 코드 블록을 제거한다.

    ```json 여는 표시를 우선하고, 없으면 ``` 를 쓴다.
    닫는 표시는 마지막 ``` 를 기준으로 자른다.
    """
    cleaned = text.strip()
    if not cleaned.startswith("```"):
        return cleaned

    if cleaned.startswith("```json"):
        cleaned = cleaned[len("```json"):]
    else:
        cleaned = cleaned[3:]

    closing = cleaned.rfind("```")
    if closing >= 0:
        cleaned = cleaned[:closing]

    return cleaned.strip()


def _region_index(value) -> int:
    """region 값을 정수로. bool과 소수부가 있는 실수는 거부."""
    if isinstance(value, bool):
        raise _RegionDecodeError(f"region이 정수가 아닙니다: {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    raise _RegionDecodeError(f"region이 정수가 아닙니다: {value!r}")


def _decode_regions(text: str) -> list[tuple[int, str]]:
    """JSON 배열을 (region, text) 목록으로 디코딩한다.

    배열 앞뒤에 설명 문장이 붙은 경우 첫 '[' ~ 마지막 ']' 구간을 다시 시도한다.
    원소 하나라도 형식이 맞지 않으면 전체를 실패로 본다.
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        start = text.find("[")
        end = text.rfind("]") + 1
        if text.startswith("[") or start < 0 or end <= start:
            raise
        data = json.loads(text[start:end])

    if not isinstance(data, list):
        raise _RegionDecodeError(f"JSON 배열이 아닙니다: {type(data).__name__}")

    regions = []
    for item in data:
        if not isinstance(item, dict) or "region" not in item or "text" not in item:
            raise _RegionDecodeError(f"region/text 필드가 없습니다: {item!r}")
        if not isinstance(item["text"], str):
            raise _RegionDecodeError(f"text가 문자열이 아닙니다: {item['text']!r}")
        regions.append((_region_index(item["region"]), item["text"]))
    return regions


def _map_regions(
    regions: list[tuple[int, str]],
    priors: Sequence[TextBlock],
) -> list[TextBlock]:
    """region 번호(1부터)를 사전 블록에 매핑. 범위 밖 번호는 버린다."""
    blocks = []
    for region, text in regions:
        index = region - 1
        if 0 <= index < len(priors):
            blocks.append(TextBlock(text=text, bbox=priors[index].bbox, confidence=1.0))
    return blocks


def _split_lines(text: str, priors: Sequence[TextBlock]) -> list[TextBlock]:
    """빈 줄을 뺀 줄들을 사전 블록과 순서대로 1:1로 짝짓는다."""
    lines = [line for line in text.split("\n") if line.strip()]
    return [
        TextBlock(text=line, bbox=prior.bbox, confidence=1.0)
        for line, prior in zip(lines, priors)
    ]


def parse_region_response_detailed(
    raw_text: str,
    priors: Sequence[TextBlock],
    *,
    engine_name: str = "",
) -> RegionParseResult:
    """응답을 파싱하고 폴백 여부까지 돌려준다.

    입력:
      raw_text: LLM 응답 원문
      priors: 로컬 엔진 TextBlock 목록
      engine_name: 로그용 엔진 이름

    출력: RegionParseResult
    """
    cleaned = strip_code_fence(raw_text)

    reason = None
    try:
        blocks = _map_regions(_decode_regions(cleaned), priors)
        if not blocks:
            reason = "no_mapped_regions"
    except (json.JSONDecodeError, _RegionDecodeError) as e:
        reason = "decode_error"
        logger.debug(f"{engine_name} 응답 JSON 디코딩 실패: {e}")

    if reason is None:
        return RegionParseResult(blocks=blocks)

    blocks = _split_lines(cleaned, priors)
    logger.warning(
        f"{engine_name} 응답 파싱 폴백 ({reason}): "
        f"줄바꿈 분리로 {len(blocks)}/{len(priors)}개 영역 매핑. "
        f"응답 앞부분: {cleaned[:100]!r}",
        extra={
            "event": FALLBACK_EVENT,
            "engine": engine_name,
            "reason": reason,
            "mapped": len(blocks),
            "priors": len(priors),
        },
    )
    return RegionParseResult(blocks=blocks, fallback_reason=reason)


def parse_region_response(
    raw_text: str,
    priors: Sequence[TextBlock],
    *,
    engine_name: str = "",
) -> list[TextBlock]:
    """응답을 사전 블록에 맞춘 TextBlock 목록으로 변환한다."""
    return parse_region_response_detailed(
        raw_text, priors, engine_name=engine_name
    ).blocks
