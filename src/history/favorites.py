"""즐겨찾기 저장소.

이력과 달리 사용자가 직접 고른 텍스트만 모은다.
목록 전체를 favorites.json 하나에 최신순으로 저장하고,
이미지는 favorites/{id}.jpg로 따로 둔다.
"""

from __future__ import annotations
import io
import json
import logging
import uuid
from dataclasses import asdict, dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional

from PIL import Image

from ..ocr.image_utils import encode_jpeg

logger = logging.getLogger(__name__)


@dataclass
class FavoriteItem:
    id: str
    text: str
    date: str
    image_path: Optional[str] = None


class FavoritesStore:
    """즐겨찾기 목록.

    사용법:
        favorites = FavoritesStore(Path("./workspace/history"))
        item = favorites.add(result.text, image_bytes)
        favorites.remove(item.id)
    """

    def __init__(self, root: str | Path):
        self.root = Path(root)
        self._index_path = self.root / "favorites.json"
        self._images_dir = self.root / "favorites"

    def list_all(self) -> list[FavoriteItem]:
        """즐겨찾기 전체. 최신순. 파일이 없거나 깨졌으면 빈 목록."""
        if not self._index_path.exists():
            return []
        try:
            data = json.loads(self._index_path.read_text(encoding="utf-8"))
            return [FavoriteItem(**item) for item in data]
        except (json.JSONDecodeError, TypeError) as e:
            logger.warning(f"즐겨찾기 목록을 읽을 수 없습니다: {e}")
            return []

    def _write(self, items: list[FavoriteItem]) -> None:
        self.root.mkdir(parents=True, exist_ok=True)
        text = json.dumps([asdict(item) for item in items], ensure_ascii=False, indent=2)
        self._index_path.write_text(text + "\n", encoding="utf-8")

    def _save_image(self, image_bytes: bytes, item_id: str) -> Optional[str]:
        try:
            with Image.open(io.BytesIO(image_bytes)) as img:
                jpeg = encode_jpeg(img)
        except (OSError, ValueError) as e:
            logger.warning(f"즐겨찾기 이미지 저장 실패 ({item_id}): {e}")
            return None
        self._images_dir.mkdir(parents=True, exist_ok=True)
        path = self._images_dir / f"{item_id}.jpg"
        path.write_bytes(jpeg)
        return str(path)

    def add(self, text: str, image_bytes: Optional[bytes] = None) -> FavoriteItem:
        """목록 맨 앞에 추가한다."""
        item_id = str(uuid.uuid4())
        item = FavoriteItem(
            id=item_id,
            text=text,
            date=datetime.now().isoformat(),
            image_path=self._save_image(image_bytes, item_id) if image_bytes else None,
        )
        self._write([item] + self.list_all())
        return item

    def remove(self, item_id: str) -> bool:
        """항목과 이미지를 지운다. 없으면 False."""
        items = self.list_all()
        kept = [item for item in items if item.id != item_id]
        if len(kept) == len(items):
            return False
        for item in items:
            if item.id == item_id and item.image_path:
                Path(item.image_path).unlink(missing_ok=True)
        self._write(kept)
        return True
