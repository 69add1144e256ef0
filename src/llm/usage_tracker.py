"""OCR 엔진 사용량 추적.

엔진별 누적 토큰 수와 응답 파싱 폴백 횟수를 메모리에 유지하고,
매 호출을 작업 루트의 ocr_usage_log.jsonl에도 기록한다.

카운터는 threading.Lock으로 보호한다.
이벤트 루프의 태스크와 executor 스레드 양쪽에서 호출될 수 있다.
오케스트레이터는 이 값을 읽지 않는다. 표시용이다.
"""

import json
import logging
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


class UsageTracker:
    """엔진별 사용량 추적.

    사용법:
        tracker = UsageTracker(config)
        tracker.increment("Gemini", 1234)
        tracker.get_total("Gemini")  # → 1234
    """

    def __init__(self, config=None, *, persist: bool = True):
        self.config = config
        self._persist = persist
        self._log_path: Optional[Path] = None
        self._lock = threading.Lock()
        self._totals: dict[str, int] = {}
        self._fallbacks: dict[str, int] = {}

    def _get_log_path(self) -> Path:
        """로그 파일 경로. 작업 루트가 없으면 홈 디렉토리."""
        if self._log_path:
            return self._log_path

        library_root = getattr(self.config, '_library_root', None)
        if library_root:
            self._log_path = Path(library_root) / "ocr_usage_log.jsonl"
        else:
            self._log_path = Path.home() / ".multiocr" / "ocr_usage_log.jsonl"

        self._log_path.parent.mkdir(parents=True, exist_ok=True)
        return self._log_path

    def increment(self, engine_name: str, tokens: int) -> None:
        """엔진의 누적 토큰 수에 더한다."""
        tokens = int(tokens or 0)
        with self._lock:
            self._totals[engine_name] = self._totals.get(engine_name, 0) + tokens
        self._append({
            "ts": datetime.now(timezone.utc).isoformat(),
            "type": "call",
            "engine": engine_name,
            "tokens": tokens,
        })

    def record_fallback(self, engine_name: str, reason: str = "") -> None:
        """응답 파싱 폴백 1회를 기록한다."""
        with self._lock:
            self._fallbacks[engine_name] = self._fallbacks.get(engine_name, 0) + 1
        self._append({
            "ts": datetime.now(timezone.utc).isoformat(),
            "type": "fallback",
            "engine": engine_name,
            "reason": reason,
        })

    def get_total(self, engine_name: str) -> int:
        with self._lock:
            return self._totals.get(engine_name, 0)

    def totals(self) -> dict[str, int]:
        """엔진별 누적 토큰 수 (복사본)."""
        with self._lock:
            return dict(self._totals)

    def fallback_counts(self) -> dict[str, int]:
        """엔진별 폴백 횟수 (복사본)."""
        with self._lock:
            return dict(self._fallbacks)

    def _append(self, entry: dict):
        """JSONL 파일에 한 줄 추가. 기록 실패는 사용량 집계를 막지 않는다."""
        if not self._persist:
            return
        try:
            path = self._get_log_path()
            with self._lock:
                with open(path, "a", encoding="utf-8") as f:
                    f.write(json.dumps(entry, ensure_ascii=False) + "\n")
        except OSError as e:
            logger.warning(f"사용량 로그 기록 실패: {e}")

    def get_monthly_summary(self) -> dict:
        """이번 달 사용량 요약 (로그 파일 기준)."""
        empty = {
            "total_calls": 0,
            "total_tokens": 0,
            "total_fallbacks": 0,
            "by_engine": {},
        }
        if not self._persist:
            return empty
        path = self._get_log_path()
        if not path.exists():
            return empty

        month_prefix = datetime.now(timezone.utc).strftime("%Y-%m")

        total_calls = 0
        total_tokens = 0
        total_fallbacks = 0
        by_engine: dict = {}

        for line in path.read_text(encoding="utf-8").splitlines():
            if not line.strip():
                continue
            try:
                entry = json.loads(line)
            except json.JSONDecodeError:
                continue

            if not entry.get("ts", "").startswith(month_prefix):
                continue

            engine = entry.get("engine", "unknown")
            stats = by_engine.setdefault(
                engine, {"calls": 0, "tokens": 0, "fallbacks": 0}
            )

            if entry.get("type") == "call":
                tokens = entry.get("tokens", 0) or 0
                total_calls += 1
                total_tokens += tokens
                stats["calls"] += 1
                stats["tokens"] += tokens
            elif entry.get("type") == "fallback":
                total_fallbacks += 1
                stats["fallbacks"] += 1

        return {
            "total_calls": total_calls,
            "total_tokens": total_tokens,
            "total_fallbacks": total_fallbacks,
            "by_engine": by_engine,
        }
