"""즐겨찾기 저장소 테스트."""

from PIL import Image

from conftest import make_image_bytes
from src.history import FavoritesStore


def test_add_newest_first(tmp_path):
    favorites = FavoritesStore(tmp_path)

    first = favorites.add("첫 번째")
    second = favorites.add("두 번째")

    assert [item.id for item in favorites.list_all()] == [second.id, first.id]


def test_image_saved_as_jpeg(tmp_path):
    favorites = FavoritesStore(tmp_path)

    item = favorites.add("text", make_image_bytes(color=(10, 20, 30, 128)))

    with Image.open(item.image_path) as img:
        assert img.format == "JPEG"
        assert img.mode == "RGB"


def test_bad_image_ignored(tmp_path):
    item = FavoritesStore(tmp_path).add("text", b"garbage")
    assert item.image_path is None


def test_remove(tmp_path):
    favorites = FavoritesStore(tmp_path)
    keep = favorites.add("keep")
    drop = favorites.add("drop", make_image_bytes())

    assert favorites.remove(drop.id) is True
    assert [item.id for item in favorites.list_all()] == [keep.id]
    assert not (tmp_path / "favorites" / f"{drop.id}.jpg").exists()
    assert favorites.remove(drop.id) is False


def test_persisted_across_instances(tmp_path):
    FavoritesStore(tmp_path).add("saved")
    assert [item.text for item in FavoritesStore(tmp_path).list_all()] == ["saved"]


def test_corrupt_index(tmp_path, caplog):
    (tmp_path / "favorites.json").write_text("[{", encoding="utf-8")
    assert FavoritesStore(tmp_path).list_all() == []
    assert "즐겨찾기" in caplog.text
