"""LLM provider 추상 클래스 + 통합 응답 모델.

모든 provider는 BaseLlmProvider를 구현한다.
OCR 엔진(LlmOcrEngine)이 provider 하나를 감싸 이미지 + 프롬프트를 보낸다.

provider 계층의 에러(LlmProviderError 등)는 OCR 엔진 경계에서
OCR 에러(OcrBackendError 등)로 변환된다.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional


@dataclass
class LlmResponse:
    """모든 provider가 반환하는 통합 응답 모델.

    어떤 provider를 썼든 호출자는 동일한 형식을 받는다.
    """

    text: str                                # 응답 텍스트
    provider: str                            # "gemini", "openai", "gemini_cli"
    model: str                               # 실제 사용된 모델명
    tokens_in: Optional[int] = None          # 입력 토큰
    tokens_out: Optional[int] = None         # 출력 토큰
    tokens_total: Optional[int] = None       # provider가 보고한 총 토큰
    elapsed_sec: Optional[float] = None      # 응답 시간
    raw: Optional[dict] = None               # provider별 원본 응답 (디버깅)
    timestamp: str = field(
        default_factory=lambda: datetime.now().isoformat()
    )

    @property
    def total_tokens(self) -> Optional[int]:
        """총 토큰 수. 보고값이 없으면 입력 + 출력, 둘 다 없으면 None."""
        if self.tokens_total is not None:
            return self.tokens_total
        if self.tokens_in is None and self.tokens_out is None:
            return None
        return (self.tokens_in or 0) + (self.tokens_out or 0)


class LlmProviderError(Exception):
    """개별 provider 호출 실패.

    status_code: HTTP 상태 코드 또는 프로세스 종료 코드 (없으면 None)
    detail: 원본 에러 본문 / stderr
    """

    def __init__(self, message: str, *, status_code: Optional[int] = None,
                 detail: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail


class LlmTimeoutError(LlmProviderError):
    """provider 호출 시간 초과."""
    pass


class LlmNotConfiguredError(LlmProviderError):
    """provider 설정 누락 (CLI 실행 파일 없음 등). 호출을 시도하지 않는다."""
    pass


class LlmCredentialError(LlmNotConfiguredError):
    """API 키가 설정되지 않음."""
    pass


class BaseLlmProvider(ABC):
    """LLM provider 추상 클래스.

    각 provider는 이것을 구현한다.
    """

    provider_id: str = ""
    display_name: str = ""
    requires_api_key: bool = True
    DEFAULT_MODEL: str = ""

    def __init__(self, config):
        self.config = config

    @property
    def model(self) -> str:
        """설정된 모델명. 설정이 없으면 DEFAULT_MODEL."""
        return self.config.get_model(self.provider_id) or self.DEFAULT_MODEL

    def get_api_key(self) -> Optional[str]:
        return self.config.get_api_key(self.provider_id)

    def check_configured(self) -> None:
        """호출 전 설정 확인. 문제가 있으면 예외.

        기본 구현: API 키 확인.

        에러:
          LlmCredentialError — API 키 없음
        """
        if self.requires_api_key and not self.get_api_key():
            raise LlmCredentialError(
                f"{self.display_name} API 키가 설정되지 않았습니다."
            )

    def is_available(self) -> bool:
        """이 provider가 현재 사용 가능한지 확인."""
        try:
            self.check_configured()
        except LlmNotConfiguredError:
            return False
        return True

    @abstractmethod
    async def call_with_image(
        self,
        prompt: str,
        image: bytes,
        *,
        image_mime: str = "image/jpeg",
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
        **kwargs,
    ) -> LlmResponse:
        """이미지 + 텍스트 프롬프트로 LLM 호출.

        에러:
          LlmNotConfiguredError — 설정 누락
          LlmTimeoutError — 시간 초과
          LlmProviderError — 그 외 호출 실패
        """
        ...
