"""OCR 프롬프트 템플릿.

클라우드/LLM 엔진 공통:
  기본 지시문(설정에서 바꿀 수 있음) + 로컬 엔진이 찾은 영역 목록.
영역 목록이 모델의 출력 순서를 로컬 bbox 순서에 묶어 준다.
"""

from __future__ import annotations
from typing import Sequence

from .base import TextBlock


DEFAULT_OCR_PROMPT = """\
You are an advanced OCR system with contextual understanding capabilities.

TASK: Analyze this document/image and extract text with full contextual awareness.

CONTEXTUAL ANALYSIS INSTRUCTIONS:
1. Understand the document type: presentation slide, article, form, table, diagram, etc.
2. Recognize structure: titles, headings, body text, captions, footnotes, page numbers.
3. Keep the logical reading order.
4. Preserve formatting context: hierarchy, list structures, table relationships.
5. Handle multilingual text (Korean, English, etc.) naturally.
6. Fix obvious OCR errors based on context.

OUTPUT FORMAT:
Return ONLY a JSON array matching the detected regions:
[{"region": 1, "text": "..."}, {"region": 2, "text": "..."}, ...]

- For tables: preserve structure (use markdown syntax)
- For lists: keep bullet points or numbering

CRITICAL:
- NO markdown code blocks (```), NO explanations
- ONLY the JSON array

Example: [{"region": 1, "text": "제목: Computer Vision 개요"}, {"region": 2, "text": "• 첫 번째 항목\\n• 두 번째 항목"}]
"""


def format_region_list(priors: Sequence[TextBlock]) -> str:
    """영역 목록을 'Region N: x=.., y=.., w=.., h=..' 줄들로 만든다.

    번호는 1부터, 좌표는 소수점 셋째 자리까지.
    """
    lines = []
    for i, block in enumerate(priors, start=1):
        b = block.bbox
        lines.append(
            f"Region {i}: x={b.x:.3f}, y={b.y:.3f}, w={b.width:.3f}, h={b.height:.3f}\n"
        )
    return "".join(lines)


def build_region_prompt(base_prompt: str, priors: Sequence[TextBlock]) -> str:
    """기본 지시문 뒤에 영역 목록을 붙인다."""
    return (
        f"{base_prompt}"
        f"\n\nI've pre-detected {len(priors)} text regions using computer vision. "
        f"Use these as guidance:\n\n"
        f"{format_region_list(priors)}"
    )
