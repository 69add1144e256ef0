"""OCR 엔진 추상 클래스 + 결과 데이터 모델.

모든 OCR 엔진은 BaseOcrEngine을 상속하고 recognize()를 구현한다.
로컬 엔진의 bbox를 사전 정보(prior)로 받아야 하는 엔진은
PriorAwareOcrEngine을 상속하고 recognize_with_priors()를 구현한다.

결과 데이터 모델:
  BoundingBox: 정규화 좌표(0~1) 사각형, 원점은 왼쪽 위
  TextBlock:   텍스트 조각 하나 (텍스트 + bbox + 신뢰도)
  OcrResult:   인식 1회의 결과 (블록들 + 합친 텍스트 + 메타데이터)

OcrResult는 생성 후 변경하지 않는다 (frozen).
호출자는 저장하거나 버릴 뿐이다.
"""

from __future__ import annotations
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional, Sequence


# ─── 결과 데이터 모델 ──────────────────────────────────

@dataclass(frozen=True)
class BoundingBox:
    """정규화 좌표의 사각형.

    좌표는 원본 이미지 크기에 대한 비율 (0.0~1.0), 원점은 왼쪽 위.
    클라우드 응답 등으로 범위를 벗어난 값이 들어와도 검증하지 않는다.
    폭/높이가 음수인 경우만 거부한다.
    """

    x: float
    y: float
    width: float
    height: float

    def __post_init__(self):
        if self.width < 0 or self.height < 0:
            raise ValueError(
                f"bbox 크기는 음수일 수 없습니다: width={self.width}, height={self.height}"
            )

    def flipped(self) -> BoundingBox:
        """세로축 원점을 뒤집는다 (왼쪽 아래 ↔ 왼쪽 위).

        y' = 1 - y - h. 두 번 적용하면 원래 상자로 돌아온다.
        """
        return BoundingBox(
            x=self.x,
            y=1.0 - self.y - self.height,
            width=self.width,
            height=self.height,
        )

    def to_dict(self) -> dict:
        return {
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
        }


@dataclass(frozen=True)
class TextBlock:
    """인식된 텍스트 조각 하나.

    confidence: 0.0~1.0.
      클라우드 엔진은 신뢰도를 주지 않으므로 1.0을 대신 넣는다.
      실제 확률이 아니다.
    """

    text: str
    bbox: BoundingBox
    confidence: float = 1.0

    def to_dict(self) -> dict:
        return {
            "text": self.text,
            "boundingBox": self.bbox.to_dict(),
            "confidence": round(self.confidence, 4),
        }


@dataclass(frozen=True)
class OcrResult:
    """인식 1회의 결과.

    text_blocks는 인식 순서(=영역 순서) 그대로의 튜플이다.
    블록을 만드는 엔진은 from_blocks(), 텍스트만 주는 엔진(Mistral)은
    from_text()로 생성한다.

    주의: 생성 후 변경 불가. 블록 튜플은 이 결과가 단독으로 소유한다.
    """

    text_blocks: tuple[TextBlock, ...]
    text: str
    confidence: float
    language: Optional[str]
    processing_time: float
    engine: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @classmethod
    def from_blocks(
        cls,
        blocks: Sequence[TextBlock],
        *,
        engine: str,
        processing_time: float,
        language: Optional[str] = None,
        confidence: Optional[float] = None,
    ) -> OcrResult:
        """블록 목록으로 결과를 만든다.

        text는 블록 텍스트를 줄바꿈으로 이은 값.
        confidence를 주지 않으면 블록 신뢰도의 평균 (블록이 없으면 0.0).
        """
        blocks = tuple(blocks)
        if confidence is None:
            confidence = (
                sum(b.confidence for b in blocks) / len(blocks) if blocks else 0.0
            )
        return cls(
            text_blocks=blocks,
            text="\n".join(b.text for b in blocks),
            confidence=confidence,
            language=language,
            processing_time=processing_time,
            engine=engine,
        )

    @classmethod
    def from_text(
        cls,
        text: str,
        *,
        engine: str,
        processing_time: float,
        language: Optional[str] = None,
        confidence: float = 1.0,
    ) -> OcrResult:
        """bbox 없이 텍스트만 주는 엔진용."""
        return cls(
            text_blocks=(),
            text=text,
            confidence=confidence,
            language=language,
            processing_time=processing_time,
            engine=engine,
        )

    @property
    def has_blocks(self) -> bool:
        return bool(self.text_blocks)

    def to_dict(self) -> dict:
        """JSON 직렬화용 딕셔너리. 내보내기와 이력 저장에서 사용."""
        result: dict = {
            "id": self.id,
            "text": self.text,
            "confidence": round(self.confidence, 4),
            "language": self.language,
            "processingTime": round(self.processing_time, 3),
            "engine": self.engine,
        }
        if self.text_blocks:
            result["textBlocks"] = [b.to_dict() for b in self.text_blocks]
        return result


# ─── 에러 ──────────────────────────────────────────────

class OcrEngineError(Exception):
    """OCR 엔진 실행 중 에러."""
    pass


class OcrConfigurationError(OcrEngineError):
    """설정 문제 (엔진 미선택, CLI 경로 없음 등). 재시도하지 않는다."""
    pass


class OcrAuthenticationError(OcrConfigurationError):
    """API 키가 설정되지 않음. 호출을 시도하지 않는다."""
    pass


class OcrEngineUnavailableError(OcrConfigurationError):
    """OCR 엔진을 사용할 수 없음 (미설치, 미등록 등)."""
    pass


class OcrInputError(OcrEngineError):
    """입력 이미지를 디코딩할 수 없음. 해당 호출에만 치명적."""
    pass


class OcrBackendError(OcrEngineError):
    """백엔드 실패 (HTTP 비정상 상태, 프로세스 비정상 종료, 빈 출력).

    status_code: HTTP 상태 코드 또는 프로세스 종료 코드 (없으면 None)
    detail: 원본 에러 본문 / stderr (진단용)
    """

    def __init__(self, message: str, *, status_code: Optional[int] = None,
                 detail: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail


class OcrTimeoutError(OcrBackendError):
    """백엔드 호출 시간 초과. 부분 출력은 버린다."""
    pass


class PriorsRequiredError(NotImplementedError):
    """사전 bbox가 필요한 엔진에 recognize()를 호출함.

    복구 가능한 런타임 상황이 아니라 프로그래밍 오류다.
    그래서 OcrEngineError 계층에 넣지 않는다.
    """
    pass


# ─── 추상 클래스 ───────────────────────────────────────

class BaseOcrEngine(ABC):
    """OCR 엔진 추상 클래스.

    모든 OCR 엔진은 이 클래스를 상속하고:
    1. 클래스 속성(engine_id, display_name, requires_network) 정의
    2. is_available() 구현 — 엔진이 사용 가능한지 확인
    3. recognize() 구현 — 이미지를 받아 OcrResult 반환

    requires_priors가 True인 엔진은 오케스트레이터가
    로컬 엔진을 먼저 돌린 뒤 recognize_with_priors()를 호출한다.
    """

    engine_id: str = ""           # 예: "vision"
    display_name: str = ""        # 예: "Local Vision"
    requires_network: bool = False  # True이면 온라인 엔진
    requires_priors: bool = False   # True이면 하이브리드 파이프라인 대상

    @abstractmethod
    def is_available(self) -> bool:
        """엔진이 사용 가능한지 확인.

        Local Vision: paddleocr 패키지가 설치되어 있는지
        Gemini/GPT/Mistral: API 키가 설정되어 있는지
        Gemini CLI: 실행 파일이 있는지
        """
        raise NotImplementedError

    @abstractmethod
    async def recognize(self, image_bytes: bytes) -> OcrResult:
        """이미지에서 텍스트를 인식한다.

        입력:
          image_bytes: 캡처/가져오기 이미지 (PNG, JPEG 등)

        출력:
          OcrResult

        에러:
          OcrEngineError 계층 — 인식 실패
        """
        raise NotImplementedError

    def get_info(self) -> dict:
        """엔진 정보를 딕셔너리로 반환. 엔진 목록 표시용."""
        return {
            "engine_id": self.engine_id,
            "display_name": self.display_name,
            "requires_network": self.requires_network,
            "requires_priors": self.requires_priors,
            "available": self.is_available(),
        }


class PriorAwareOcrEngine(BaseOcrEngine):
    """로컬 엔진의 bbox를 사전 정보로 받아 텍스트를 인식하는 엔진.

    recognize()는 지원하지 않는다 (PriorsRequiredError).
    """

    requires_priors = True

    async def recognize(self, image_bytes: bytes) -> OcrResult:
        raise PriorsRequiredError(
            f"{self.display_name} 엔진은 recognize_with_priors()로 호출해야 합니다."
        )

    @abstractmethod
    async def recognize_with_priors(
        self,
        image_bytes: bytes,
        priors: Sequence[TextBlock],
    ) -> OcrResult:
        """사전 bbox 목록을 근거로 텍스트를 인식한다.

        입력:
          image_bytes: 원본 이미지
          priors: 로컬 엔진이 찾은 TextBlock 목록 (영역 번호 = 인덱스 + 1)

        출력:
          OcrResult — 블록의 bbox는 priors의 것을 그대로 쓴다
        """
        raise NotImplementedError
