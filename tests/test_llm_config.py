"""설정 관리 테스트."""

from src.llm.config import LlmConfig


def test_defaults(config):
    assert config.get_model("gemini") == "gemini-2.5-flash"
    assert config.get_model("openai") == "gpt-5-mini"
    assert config.get_model("mistral") == "mistral-ocr-latest"
    assert config.get("image_optimization_level") == "Medium"
    assert config.get("active_engine") == "vision"
    assert config.get("ocr_prompt") is None
    assert config.get("unknown", "fallback") == "fallback"


def test_api_key_from_env(config, monkeypatch):
    assert config.get_api_key("gemini") is None

    monkeypatch.setenv("GEMINI_API_KEY", "from-gemini-env")
    assert config.get_api_key("gemini") == "from-gemini-env"

    # GOOGLE_API_KEY가 우선
    monkeypatch.setenv("GOOGLE_API_KEY", "from-google-env")
    assert config.get_api_key("gemini") == "from-google-env"


def test_empty_key_is_unset(config, monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "")
    assert config.get_api_key("openai") is None


def test_override_wins(config, monkeypatch):
    monkeypatch.setenv("MISTRAL_API_KEY", "env-key")
    monkeypatch.setenv("OPENAI_MODEL", "gpt-env")

    config.set("mistral_api_key", "runtime-key")
    config.set("openai_model", "gpt-runtime")

    assert config.get_api_key("mistral") == "runtime-key"
    assert config.get_model("openai") == "gpt-runtime"


def test_env_setting(config, monkeypatch):
    monkeypatch.setenv("IMAGE_OPTIMIZATION_LEVEL", "High")
    assert config.get("image_optimization_level") == "High"


def test_dotenv_in_library_root(tmp_path, monkeypatch):
    monkeypatch.delenv("MISTRAL_API_KEY", raising=False)
    monkeypatch.delenv("GEMINI_CLI_PATH", raising=False)
    (tmp_path / ".env").write_text(
        "# comment\n"
        "MISTRAL_API_KEY='dotenv-key'\n"
        "GEMINI_CLI_PATH=/opt/bin/gemini\n"
        "not a pair\n",
        encoding="utf-8",
    )

    config = LlmConfig(library_root=tmp_path)

    assert config.get_api_key("mistral") == "dotenv-key"
    assert config.get("gemini_cli_path") == "/opt/bin/gemini"


def test_constructor_overrides(tmp_path):
    config = LlmConfig(library_root=tmp_path, overrides={"active_engine": "mistral"})
    assert config.get("active_engine") == "mistral"
