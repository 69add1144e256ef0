"""OCR 이력 저장소.

인식 결과 한 건 = JSON 파일 하나 + (있으면) 원본 이미지 파일 하나.

디렉토리 구조:
  {root}/
    entries/{id}.json    ← 이력 항목
    images/{id}.png      ← 원본 이미지 (PNG로 재저장)

같은 파일(PDF 여러 페이지, 이미지 여러 장)에서 나온 결과는
file_id가 같고 page_index로 순서를 구분한다.

이력 저장 실패는 인식 결과를 무효로 만들지 않는다.
호출자(CLI)가 경고만 남기고 계속 진행한다.
"""

from __future__ import annotations
import io
import json
import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Optional

from PIL import Image

from ..ocr.base import OcrResult

logger = logging.getLogger(__name__)

HISTORY_SOURCES = ("capture", "pdf", "image", "file")


@dataclass
class HistoryEntry:
    """이력 항목 하나."""

    id: str
    text: str
    date: str                            # ISO 8601
    engine: str
    source: str = "capture"              # capture | pdf | image | file
    file_id: str = ""
    page_index: int = 0
    image_path: Optional[str] = None
    original_file_path: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> HistoryEntry:
        return cls(
            id=data["id"],
            text=data.get("text", ""),
            date=data.get("date", ""),
            engine=data.get("engine", ""),
            source=data.get("source", "capture"),
            file_id=data.get("file_id", ""),
            page_index=int(data.get("page_index", 0)),
            image_path=data.get("image_path"),
            original_file_path=data.get("original_file_path"),
        )


@dataclass
class FileGroup:
    """같은 file_id의 항목 묶음. 항목은 page_index 순."""

    file_id: str
    source: str
    date: str
    image_path: Optional[str] = None
    original_file_path: Optional[str] = None
    items: list[HistoryEntry] = field(default_factory=list)


class HistoryStore:
    """JSON 파일 기반 OCR 이력 저장소.

    사용법:
        store = HistoryStore(Path("./workspace/history"))
        store.save(result, image_bytes, source="capture", file_id=result.id)
        groups = store.list_groups()
    """

    def __init__(self, root: str | Path):
        self.root = Path(root)
        self._entries_dir = self.root / "entries"
        self._images_dir = self.root / "images"

    def _ensure_dirs(self) -> None:
        self._entries_dir.mkdir(parents=True, exist_ok=True)
        self._images_dir.mkdir(parents=True, exist_ok=True)

    def _save_image(self, image_bytes: bytes, entry_id: str) -> Optional[str]:
        """원본 이미지를 PNG로 저장. 디코딩할 수 없으면 저장하지 않는다."""
        try:
            with Image.open(io.BytesIO(image_bytes)) as img:
                path = self._images_dir / f"{entry_id}.png"
                img.save(path, format="PNG")
        except (OSError, ValueError) as e:
            logger.warning(f"이력 이미지 저장 실패 ({entry_id}): {e}")
            return None
        return str(path)

    def save(
        self,
        result: OcrResult,
        image_bytes: Optional[bytes] = None,
        source: str = "capture",
        file_id: Optional[str] = None,
        page_index: int = 0,
        original_file_path: Optional[str] = None,
    ) -> HistoryEntry:
        """결과 한 건을 저장한다.

        입력:
          result: OcrResult
          image_bytes: 원본 이미지 (없으면 이미지 없이 저장)
          source: "capture" | "pdf" | "image" | "file"
          file_id: 묶음 id (None이면 result.id)
          page_index: 0부터 시작하는 페이지 번호
          original_file_path: 가져온 원본 파일 경로

        출력: HistoryEntry

        에러: ValueError — 알 수 없는 source
        """
        if source not in HISTORY_SOURCES:
            raise ValueError(
                f"알 수 없는 이력 source: {source!r}. 사용 가능: {list(HISTORY_SOURCES)}"
            )

        self._ensure_dirs()
        image_path = self._save_image(image_bytes, result.id) if image_bytes else None

        entry = HistoryEntry(
            id=result.id,
            text=result.text,
            date=datetime.now().isoformat(),
            engine=result.engine,
            source=source,
            file_id=file_id or result.id,
            page_index=page_index,
            image_path=image_path,
            original_file_path=original_file_path,
        )
        text = json.dumps(asdict(entry), ensure_ascii=False, indent=2) + "\n"
        (self._entries_dir / f"{entry.id}.json").write_text(text, encoding="utf-8")
        logger.debug(f"이력 저장: {entry.id} (file_id={entry.file_id}, page={page_index})")
        return entry

    def list_entries(self) -> list[HistoryEntry]:
        """모든 항목. 최신순."""
        if not self._entries_dir.exists():
            return []

        entries = []
        for path in self._entries_dir.glob("*.json"):
            try:
                data = json.loads(path.read_text(encoding="utf-8"))
                entries.append(HistoryEntry.from_dict(data))
            except (json.JSONDecodeError, KeyError, ValueError) as e:
                logger.warning(f"이력 항목을 읽을 수 없습니다: {path.name} ({e})")
        entries.sort(key=lambda e: e.date, reverse=True)
        return entries

    def get(self, entry_id: str) -> Optional[HistoryEntry]:
        path = self._entries_dir / f"{entry_id}.json"
        if not path.exists():
            return None
        return HistoryEntry.from_dict(json.loads(path.read_text(encoding="utf-8")))

    def list_groups(self) -> list[FileGroup]:
        """file_id별 묶음. 묶음은 최신순, 묶음 안의 항목은 page_index 순."""
        grouped: dict[str, list[HistoryEntry]] = {}
        for entry in self.list_entries():
            grouped.setdefault(entry.file_id, []).append(entry)

        groups = []
        for file_id, items in grouped.items():
            items.sort(key=lambda item: item.page_index)
            first = items[0]
            groups.append(FileGroup(
                file_id=file_id,
                source=first.source,
                date=max(item.date for item in items),
                image_path=first.image_path,
                original_file_path=first.original_file_path,
                items=items,
            ))
        groups.sort(key=lambda g: g.date, reverse=True)
        return groups

    def get_pages(self, file_id: str) -> list[HistoryEntry]:
        """한 파일의 페이지들. page_index 순."""
        pages = [e for e in self.list_entries() if e.file_id == file_id]
        return sorted(pages, key=lambda e: e.page_index)

    def delete(self, entry_id: str) -> bool:
        """항목과 이미지를 지운다. 없으면 False."""
        path = self._entries_dir / f"{entry_id}.json"
        if not path.exists():
            return False
        entry = self.get(entry_id)
        path.unlink()
        if entry and entry.image_path:
            Path(entry.image_path).unlink(missing_ok=True)
        return True
