"""OCR 결과 내보내기 (txt, md, json, pdf)."""

from .exporter import (
    EXPORT_FORMATS,
    ExportMetadata,
    export_result,
    format_json,
    format_markdown,
    format_text,
    generate_filename,
)

__all__ = [
    "EXPORT_FORMATS",
    "ExportMetadata",
    "export_result",
    "format_json",
    "format_markdown",
    "format_text",
    "generate_filename",
]
