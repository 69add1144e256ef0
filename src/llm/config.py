"""LLM/OCR 설정 관리.

설정 우선순위: 런타임 지정(set) → 환경변수 → .env 파일 → 기본값.
"""

import os
from pathlib import Path
from typing import Optional


class LlmConfig:
    """LLM/OCR 설정 관리.

    설정 우선순위: 런타임 지정(set) → 환경변수 → .env 파일 → 기본값.

    사용법:
        config = LlmConfig(library_root=Path("./workspace"))
        api_key = config.get_api_key("gemini")
        model = config.get_model("openai")
        level = config.get("image_optimization_level")
    """

    DEFAULTS = {
        "gemini_model": "gemini-2.5-flash",
        "openai_model": "gpt-5-mini",
        "mistral_model": "mistral-ocr-latest",
        "gemini_cli_model": "gemini-2.5-flash",
        "gemini_cli_path": "/usr/local/bin/gemini",
        "image_optimization_level": "Medium",
        "ocr_prompt": None,
        "active_engine": "vision",
    }

    # 환경변수명 매핑 (앞에 있는 이름이 우선)
    API_KEY_ENV = {
        "gemini": ("GOOGLE_API_KEY", "GEMINI_API_KEY"),
        "openai": ("OPENAI_API_KEY",),
        "mistral": ("MISTRAL_API_KEY",),
    }

    def __init__(self, library_root: Optional[Path] = None,
                 overrides: Optional[dict] = None):
        self._library_root = library_root
        self._env_cache: dict = {}
        self._overrides: dict = dict(overrides or {})

        # .env 파일 로드 우선순위:
        #   1. 프로젝트 루트 (.env.example과 같은 위치)
        #   2. 작업(library) 루트
        # 작업 루트 .env가 프로젝트 루트 .env의 값을 덮어쓴다.
        project_root = Path(__file__).resolve().parent.parent.parent  # src/llm/config.py → 프로젝트 루트
        project_env = project_root / ".env"
        if project_env.exists():
            self._env_cache = self._load_dotenv(project_env)

        if library_root:
            lib_env = Path(library_root) / ".env"
            if lib_env.exists():
                self._env_cache.update(self._load_dotenv(lib_env))

    def _load_dotenv(self, path: Path) -> dict:
        """간단한 .env 파서. python-dotenv 없이 동작."""
        result = {}
        for line in path.read_text(encoding="utf-8").splitlines():
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            if "=" not in line:
                continue
            key, _, value = line.partition("=")
            key = key.strip()
            value = value.strip().strip("'\"")
            result[key] = value
        return result

    def _lookup_env(self, name: str) -> Optional[str]:
        return os.environ.get(name) or self._env_cache.get(name)

    def get_api_key(self, provider: str) -> Optional[str]:
        """API 키 조회. 런타임 지정 → 환경변수 → .env → None.

        빈 문자열은 설정되지 않은 것으로 본다.
        """
        override = self._overrides.get(f"{provider}_api_key")
        if override:
            return override

        for env_name in self.API_KEY_ENV.get(provider, ()):
            value = self._lookup_env(env_name)
            if value:
                return value
        return None

    def get(self, key: str, default=None):
        """설정값 조회. 런타임 지정 → 환경변수(대문자) → .env → DEFAULTS → default."""
        if key in self._overrides:
            return self._overrides[key]
        val = self._lookup_env(key.upper())
        if val is not None:
            return val
        value = self.DEFAULTS.get(key)
        return default if value is None else value

    def set(self, key: str, value) -> None:
        """런타임에 설정값을 지정한다. 환경변수와 .env보다 우선한다."""
        self._overrides[key] = value

    def get_model(self, engine_id: str) -> Optional[str]:
        """엔진별 모델명. 예: get_model("gemini") → "gemini-2.5-flash"."""
        return self.get(f"{engine_id}_model")
