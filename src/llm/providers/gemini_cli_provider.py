"""Gemini CLI Provider.

로컬에 설치된 gemini CLI를 subprocess로 실행한다. API 키 대신
CLI 자체의 로그인 정보를 쓴다.

호출 흐름:
    이미지 → 작업 디렉토리에 임시 파일로 저장
          → gemini -m <model> -p "<prompt> @<파일명>"  (cwd = 작업 디렉토리)
          → stdout = 응답 텍스트
          → 임시 파일 삭제

작업 디렉토리는 호출마다 바뀌지 않는 고정 경로다.
CLI가 @파일 참조를 작업 디렉토리 기준으로 해석하기 때문이다.

stdout/stderr는 프로세스가 도는 동안 동시에 비운다.
한쪽 파이프 버퍼가 가득 차서 프로세스가 멈추는 것을 막기 위함이다.
"""

import asyncio
import logging
import os
import tempfile
import time
import uuid
from pathlib import Path

from .base import (
    BaseLlmProvider, LlmNotConfiguredError, LlmProviderError, LlmResponse,
    LlmTimeoutError,
)

logger = logging.getLogger(__name__)

DEFAULT_CLI_PATH = "/usr/local/bin/gemini"
DEFAULT_TIMEOUT_SEC = 60.0
WORKSPACE_DIR_NAME = "GeminiCLIWorkspace"

# GUI 앱 등에서 실행될 때 PATH에 node가 없는 경우가 많다
_EXTRA_PATHS = ["/usr/local/bin", "/opt/homebrew/bin"]


def default_workspace() -> Path:
    """CLI 작업 디렉토리 (시스템 임시 디렉토리 아래 고정 경로)."""
    return Path(tempfile.gettempdir()) / WORKSPACE_DIR_NAME


def _nvm_bin_dirs() -> list[str]:
    """~/.nvm/versions/node/*/bin 목록."""
    nvm_root = Path.home() / ".nvm" / "versions" / "node"
    if not nvm_root.is_dir():
        return []
    return [str(p / "bin") for p in sorted(nvm_root.iterdir()) if (p / "bin").is_dir()]


def build_cli_env(workspace: Path) -> dict:
    """CLI 실행 환경변수. 현재 환경 + 작업 디렉토리 + 보강된 PATH."""
    env = dict(os.environ)
    env["GEMINI_CLI_IDE_WORKSPACE_PATH"] = str(workspace)

    current = env.get("PATH", "")
    parts = [p for p in current.split(os.pathsep) if p]
    for extra in _EXTRA_PATHS + _nvm_bin_dirs():
        if extra not in parts:
            parts.append(extra)
    env["PATH"] = os.pathsep.join(parts)
    return env


class GeminiCliProvider(BaseLlmProvider):
    """gemini CLI를 subprocess로 실행."""

    provider_id = "gemini_cli"
    display_name = "Gemini CLI"
    requires_api_key = False
    DEFAULT_MODEL = "gemini-2.5-flash"

    def __init__(self, config, *, workspace=None,
                 timeout_sec: float = DEFAULT_TIMEOUT_SEC):
        super().__init__(config)
        self.workspace = Path(workspace) if workspace else default_workspace()
        self.timeout_sec = timeout_sec

    @property
    def cli_path(self) -> str:
        return str(self.config.get("gemini_cli_path") or DEFAULT_CLI_PATH)

    def check_configured(self) -> None:
        """CLI 실행 파일이 있는지 확인.

        에러:
          LlmNotConfiguredError — 실행 파일 없음 또는 실행 권한 없음
        """
        path = Path(self.cli_path)
        if not path.is_file() or not os.access(path, os.X_OK):
            raise LlmNotConfiguredError(
                f"Gemini CLI를 찾을 수 없습니다: {path}\n"
                f"→ 해결: npm install -g @google/gemini-cli 후 "
                f"gemini_cli_path 설정을 확인하세요."
            )

    async def _run(self, args: list[str], env: dict) -> tuple[int, bytes, bytes]:
        """프로세스를 실행하고 (종료 코드, stdout, stderr)를 반환.

        시간 초과 시 프로세스를 종료하고 부분 출력은 버린다.
        """
        proc = await asyncio.create_subprocess_exec(
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=str(self.workspace),
            env=env,
        )

        async def _drain_and_wait():
            stdout, stderr = await asyncio.gather(
                proc.stdout.read(),
                proc.stderr.read(),
            )
            returncode = await proc.wait()
            return returncode, stdout, stderr

        try:
            return await asyncio.wait_for(_drain_and_wait(), timeout=self.timeout_sec)
        except asyncio.TimeoutError:
            if proc.returncode is None:
                proc.kill()
            await proc.wait()
            raise LlmTimeoutError(
                f"Gemini CLI 시간 초과 ({self.timeout_sec:g}초)"
            ) from None

    async def call_with_image(self, prompt, image, *, image_mime="image/jpeg",
                              model=None, max_tokens=None,
                              **kwargs) -> LlmResponse:
        """이미지를 작업 디렉토리에 저장하고 CLI에 @파일명으로 전달한다.

        에러:
          LlmNotConfiguredError — 실행 파일 없음
          LlmTimeoutError — 시간 초과 (기본 60초)
          LlmProviderError — 0이 아닌 종료 코드, 빈 출력
        """
        self.check_configured()
        selected_model = model or self.model

        self.workspace.mkdir(parents=True, exist_ok=True)
        suffix = ".png" if image_mime == "image/png" else ".jpg"
        filename = f"ocr_{uuid.uuid4().hex}{suffix}"
        image_path = self.workspace / filename
        image_path.write_bytes(image)

        args = [self.cli_path, "-m", selected_model, "-p", f"{prompt} @{filename}"]
        logger.debug(f"Gemini CLI 실행: {self.cli_path} -m {selected_model} (cwd={self.workspace})")

        t0 = time.monotonic()
        try:
            returncode, stdout, stderr = await self._run(
                args, build_cli_env(self.workspace)
            )
        finally:
            image_path.unlink(missing_ok=True)
        elapsed = time.monotonic() - t0

        err_text = stderr.decode("utf-8", errors="replace").strip()
        if returncode != 0:
            raise LlmProviderError(
                f"Gemini CLI 실패 (종료 코드 {returncode}): {err_text[:500]}",
                status_code=returncode,
                detail=err_text,
            )

        text = stdout.decode("utf-8", errors="replace").strip()
        if not text:
            raise LlmProviderError(
                "Gemini CLI 출력이 비어 있습니다.",
                status_code=returncode,
                detail=err_text,
            )

        return LlmResponse(
            text=text,
            provider=self.provider_id,
            model=selected_model,
            elapsed_sec=round(elapsed, 2),
            raw={"model": selected_model},
        )
