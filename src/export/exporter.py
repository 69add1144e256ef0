"""OCR 결과 내보내기.

형식:
  txt  — 메타데이터 머리말 + 본문
  md   — 메타데이터 머리말(굵은 글씨) + "## Content" + 본문
  json — 본문 + 메타데이터 + (있으면) textBlocks와 bbox
  pdf  — 이미지와 블록이 있으면 검색 가능한 PDF
         (원본 이미지 위에 보이지 않는 텍스트 층),
         없으면 텍스트만 흘려 쓴 Letter 크기 PDF

신뢰도는 값이 없거나 1.0 이상이면 "N/A"로 표시한다.
클라우드 엔진의 1.0은 실제 확률이 아니기 때문이다.

파일명 규칙: {이름}_{엔진}_{NN}.{확장자}  (NN은 1부터, 두 자리)
"""

from __future__ import annotations
import io
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Optional, Sequence

from fpdf import FPDF
from fpdf.enums import TextMode, XPos, YPos
from PIL import Image

from ..ocr.base import OcrResult, TextBlock

logger = logging.getLogger(__name__)

EXPORT_FORMATS = ("txt", "md", "json", "pdf")

# 텍스트 PDF 레이아웃 (pt)
LETTER_SIZE = (612, 792)
PAGE_MARGIN = 50

# 검색 가능한 PDF: 글자 크기 = bbox 높이 × 0.8
FONT_HEIGHT_RATIO = 0.8


# ─── 메타데이터 ────────────────────────────────────────

@dataclass
class ExportMetadata:
    """내보내기 머리말에 쓰는 메타데이터."""

    engine: str
    confidence: Optional[float] = None
    language: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.now)
    source: str = "capture"
    page_count: Optional[int] = None

    @classmethod
    def from_result(cls, result: OcrResult, *, source: str = "capture",
                    page_count: Optional[int] = None) -> ExportMetadata:
        return cls(
            engine=result.engine,
            confidence=result.confidence,
            language=result.language,
            source=source,
            page_count=page_count,
        )

    @property
    def confidence_string(self) -> str:
        """신뢰도 표시 문자열. 값이 없거나 1.0 이상이면 "N/A"."""
        if self.confidence is None or self.confidence >= 1.0:
            return "N/A"
        return f"{self.confidence * 100:.1f}%"

    @property
    def date_string(self) -> str:
        return self.timestamp.strftime("%Y-%m-%d %H:%M")


def generate_filename(name: str, engine: str, page_index: int, ext: str) -> str:
    """내보내기 파일명. 예: ("scan", "Gemini", 0, "txt") → "scan_Gemini_01.txt"."""
    return f"{name}_{engine}_{page_index + 1:02d}.{ext}"


# ─── 텍스트 형식 ───────────────────────────────────────

def format_text(content: str, metadata: Optional[ExportMetadata] = None) -> str:
    output = ""
    if metadata:
        output += "# OCR Result\n"
        output += f"Engine: {metadata.engine}\n"
        output += f"Confidence: {metadata.confidence_string}\n"
        if metadata.language:
            output += f"Language: {metadata.language}\n"
        output += f"Date: {metadata.date_string}\n"
        output += "\n---\n\n"
    return output + content


def format_markdown(content: str, metadata: Optional[ExportMetadata] = None) -> str:
    markdown = ""
    if metadata:
        markdown += "# OCR Result\n\n"
        markdown += f"**Engine**: {metadata.engine}\n\n"
        markdown += f"**Confidence**: {metadata.confidence_string}\n\n"
        if metadata.language:
            markdown += f"**Language**: {metadata.language}\n\n"
        markdown += f"**Date**: {metadata.date_string}\n\n"
        if metadata.page_count and metadata.page_count > 1:
            markdown += f"**Pages**: {metadata.page_count}\n\n"
        markdown += "---\n\n"
        markdown += "## Content\n\n"
    return markdown + content


def format_json(
    content: str,
    metadata: Optional[ExportMetadata] = None,
    text_blocks: Optional[Sequence[TextBlock]] = None,
) -> str:
    """JSON 문자열. 신뢰도는 1.0 미만일 때만 넣는다."""
    timestamp = metadata.timestamp if metadata else datetime.now()
    data: dict = {
        "text": content,
        "timestamp": timestamp.isoformat(timespec="seconds"),
    }
    if metadata:
        data["engine"] = metadata.engine
        if metadata.confidence is not None and metadata.confidence < 1.0:
            data["confidence"] = metadata.confidence
        if metadata.language:
            data["language"] = metadata.language
        data["source"] = metadata.source
        if metadata.page_count is not None:
            data["pageCount"] = metadata.page_count

    if text_blocks:
        data["textBlocks"] = [block.to_dict() for block in text_blocks]

    return json.dumps(data, ensure_ascii=False, indent=2)


# ─── PDF ───────────────────────────────────────────────

def _set_font(pdf: FPDF, size: float, font_path: Optional[Path], style: str = "") -> bool:
    """글꼴 설정. 유니코드 TTF가 있으면 그것을, 없으면 내장 Helvetica.

    출력: 유니코드 글꼴을 쓰면 True
    """
    if font_path:
        if "unicode" not in pdf.fonts:
            pdf.add_font("Unicode", "", str(font_path))
        pdf.set_font("Unicode", size=size)
        return True
    pdf.set_font("Helvetica", style=style, size=size)
    return False


def _pdf_safe(text: str, unicode_font: bool) -> str:
    """내장 글꼴은 latin-1만 표현한다. 나머지 글자는 '?'로 바꾼다."""
    if unicode_font:
        return text
    return text.encode("latin-1", "replace").decode("latin-1")


def build_searchable_pdf(
    image_bytes: bytes,
    text_blocks: Sequence[TextBlock],
    *,
    font_path: Optional[Path] = None,
) -> bytes:
    """원본 이미지 한 페이지 + 블록 위치에 보이지 않는 텍스트.

    페이지 크기 = 이미지 픽셀 크기 (1px = 1pt).
    bbox는 왼쪽 위 원점이고 fpdf도 왼쪽 위 원점이라 뒤집지 않는다.
    """
    with Image.open(io.BytesIO(image_bytes)) as img:
        img.load()
        if img.mode not in ("RGB", "L"):
            img = img.convert("RGB")
        width, height = img.size

        pdf = FPDF(unit="pt")
        pdf.set_auto_page_break(False)
        pdf.add_page(format=(width, height))
        pdf.image(img, x=0, y=0, w=width, h=height)

    pdf.text_mode = TextMode.INVISIBLE
    for block in text_blocks:
        box_x = block.bbox.x * width
        box_y = block.bbox.y * height
        box_h = block.bbox.height * height
        font_size = max(1.0, box_h * FONT_HEIGHT_RATIO)
        unicode_font = _set_font(pdf, font_size, font_path)
        for i, line in enumerate(block.text.splitlines() or [""]):
            if not line:
                continue
            # text()의 y는 기준선
            baseline = box_y + font_size * (i + 1)
            pdf.text(box_x, baseline, _pdf_safe(line, unicode_font))

    return bytes(pdf.output())


def build_text_pdf(
    content: str,
    metadata: Optional[ExportMetadata] = None,
    *,
    font_path: Optional[Path] = None,
) -> bytes:
    """텍스트만 흘려 쓴 Letter 크기 PDF. 여백 50pt."""
    pdf = FPDF(unit="pt", format=LETTER_SIZE)
    pdf.set_margins(PAGE_MARGIN, PAGE_MARGIN, PAGE_MARGIN)
    pdf.set_auto_page_break(True, margin=PAGE_MARGIN)
    pdf.add_page()

    if metadata:
        _set_font(pdf, 18, font_path, style="B")
        pdf.multi_cell(0, 24, "OCR Result", new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        pdf.ln(8)
        unicode_font = _set_font(pdf, 12, font_path)
        header = [
            f"Engine: {metadata.engine}",
            f"Confidence: {metadata.confidence_string}",
        ]
        if metadata.language:
            header.append(f"Language: {metadata.language}")
        header.append(f"Date: {metadata.date_string}")
        for line in header:
            pdf.multi_cell(
                0, 16, _pdf_safe(line, unicode_font),
                new_x=XPos.LMARGIN, new_y=YPos.NEXT,
            )
        pdf.ln(12)
        _set_font(pdf, 14, font_path, style="B")
        pdf.multi_cell(0, 20, "Content:", new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        pdf.ln(8)

    unicode_font = _set_font(pdf, 12, font_path)
    pdf.multi_cell(
        0, 16, _pdf_safe(content, unicode_font),
        new_x=XPos.LMARGIN, new_y=YPos.NEXT,
    )
    return bytes(pdf.output())


# ─── 진입점 ────────────────────────────────────────────

def export_result(
    result: OcrResult,
    path: str | Path,
    fmt: Optional[str] = None,
    *,
    image_bytes: Optional[bytes] = None,
    source: str = "capture",
    page_count: Optional[int] = None,
    include_metadata: bool = True,
    font_path: Optional[Path] = None,
) -> Path:
    """결과를 파일로 내보낸다.

    입력:
      result: OcrResult
      path: 저장 경로
      fmt: "txt" | "md" | "json" | "pdf". None이면 확장자로 판단.
      image_bytes: 검색 가능한 PDF에 쓸 원본 이미지
      font_path: PDF용 유니코드 TTF (없으면 latin-1 범위만 표현)

    출력: 저장한 경로

    에러: ValueError — 지원하지 않는 형식
    """
    path = Path(path)
    fmt = (fmt or path.suffix.lstrip(".")).lower()
    if fmt == "markdown":
        fmt = "md"
    if fmt not in EXPORT_FORMATS:
        raise ValueError(
            f"지원하지 않는 내보내기 형식: {fmt!r}. 사용 가능: {list(EXPORT_FORMATS)}"
        )

    metadata = None
    if include_metadata:
        metadata = ExportMetadata.from_result(result, source=source, page_count=page_count)

    path.parent.mkdir(parents=True, exist_ok=True)
    if fmt == "txt":
        path.write_text(format_text(result.text, metadata), encoding="utf-8")
    elif fmt == "md":
        path.write_text(format_markdown(result.text, metadata), encoding="utf-8")
    elif fmt == "json":
        path.write_text(
            format_json(result.text, metadata, result.text_blocks), encoding="utf-8"
        )
    elif image_bytes and result.has_blocks:
        path.write_bytes(
            build_searchable_pdf(image_bytes, result.text_blocks, font_path=font_path)
        )
    else:
        path.write_bytes(build_text_pdf(result.text, metadata, font_path=font_path))

    logger.info(f"내보내기 완료: {path} ({fmt})")
    return path
