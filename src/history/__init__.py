"""OCR 이력 + 즐겨찾기 저장소."""

from .favorites import FavoriteItem, FavoritesStore
from .store import HISTORY_SOURCES, FileGroup, HistoryEntry, HistoryStore

__all__ = [
    "HISTORY_SOURCES",
    "FavoriteItem",
    "FavoritesStore",
    "FileGroup",
    "HistoryEntry",
    "HistoryStore",
]
