"""OCR 엔진 레지스트리 테스트."""

import pytest

from src.ocr.base import BaseOcrEngine, OcrEngineUnavailableError, OcrResult
from src.ocr.registry import OcrEngineRegistry


class DummyEngine(BaseOcrEngine):
    """테스트용 더미 엔진."""
    engine_id = "dummy"
    display_name = "Dummy"
    requires_network = False

    def is_available(self):
        return True

    async def recognize(self, image_bytes):
        return OcrResult.from_text("", engine=self.display_name, processing_time=0.0)


class UnavailableEngine(BaseOcrEngine):
    """사용 불가 상태인 더미 엔진."""
    engine_id = "unavailable"
    display_name = "Unavailable"
    requires_network = True

    def is_available(self):
        return False

    async def recognize(self, image_bytes):
        return OcrResult.from_text("", engine=self.display_name, processing_time=0.0)


class TestOcrEngineRegistry:
    def test_register_and_get(self):
        registry = OcrEngineRegistry()
        engine = DummyEngine()
        registry.register(engine)

        assert registry.get_engine("dummy") is engine
        assert "dummy" in registry
        assert "other" not in registry

    def test_default_engine(self):
        """첫 번째로 사용 가능한 엔진이 기본값."""
        registry = OcrEngineRegistry()
        registry.register(UnavailableEngine())
        registry.register(DummyEngine())

        assert registry.default_engine_id == "dummy"
        assert registry.get_engine().engine_id == "dummy"

    def test_unavailable_not_default(self):
        """사용 불가 엔진은 기본값이 되지 않는다."""
        registry = OcrEngineRegistry()
        registry.register(UnavailableEngine())

        assert registry.default_engine_id is None

    def test_get_nonexistent(self):
        registry = OcrEngineRegistry()
        registry.register(DummyEngine())

        with pytest.raises(OcrEngineUnavailableError, match="찾을 수 없습니다"):
            registry.get_engine("nonexistent")

    def test_get_unavailable(self):
        registry = OcrEngineRegistry()
        registry.register(UnavailableEngine())

        with pytest.raises(OcrEngineUnavailableError, match="사용할 수 없는"):
            registry.get_engine("unavailable")

    def test_get_unavailable_without_check(self):
        """require_available=False면 엔진을 그대로 돌려준다."""
        registry = OcrEngineRegistry()
        engine = UnavailableEngine()
        registry.register(engine)

        assert registry.get_engine("unavailable", require_available=False) is engine

    def test_get_no_engines(self):
        registry = OcrEngineRegistry()

        with pytest.raises(OcrEngineUnavailableError, match="등록된 OCR 엔진이 없습니다"):
            registry.get_engine()

    def test_set_default(self):
        registry = OcrEngineRegistry()
        registry.register(DummyEngine())
        registry.register(UnavailableEngine())

        registry.default_engine_id = "unavailable"
        assert registry.default_engine_id == "unavailable"

        with pytest.raises(ValueError):
            registry.default_engine_id = "nonexistent"

    def test_list_engines(self):
        registry = OcrEngineRegistry()
        registry.register(DummyEngine())
        registry.register(UnavailableEngine())

        engines = registry.list_engines()
        assert [e["engine_id"] for e in engines] == ["dummy", "unavailable"]
        assert engines[0]["available"] is True
        assert engines[1]["available"] is False
        assert engines[1]["requires_network"] is True

    def test_register_overwrites(self):
        registry = OcrEngineRegistry()
        first, second = DummyEngine(), DummyEngine()
        registry.register(first)
        registry.register(second)

        assert registry.get_engine("dummy") is second
        assert len(registry.list_engines()) == 1


class TestAutoRegister:

    def test_all_engines_registered_without_keys(self, config):
        registry = OcrEngineRegistry()
        registry.auto_register(config, vision_engine=DummyEngine())

        ids = [e["engine_id"] for e in registry.list_engines()]
        assert ids == ["dummy", "gemini", "openai", "gemini_cli", "mistral"]
        # 키가 없으면 로컬 엔진만 기본값 후보
        assert registry.default_engine_id == "dummy"

    def test_llm_engines_require_priors(self, config):
        registry = OcrEngineRegistry()
        registry.auto_register(config, vision_engine=DummyEngine())

        priors = {e["engine_id"]: e["requires_priors"] for e in registry.list_engines()}
        assert priors == {
            "dummy": False,
            "gemini": True,
            "openai": True,
            "gemini_cli": True,
            "mistral": False,
        }
