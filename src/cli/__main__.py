"""CLI 도구 — 다중 엔진 OCR.

사용법:
    python -m src.cli engines
    python -m src.cli ocr <이미지...> [--engine gemini] [--level Medium]
                                     [--export DIR] [--format txt|md|json|pdf]
                                     [--history DIR] [--favorite]
    python -m src.cli usage
    python -m src.cli favorites --history DIR

프로젝트 루트에서 실행한다 (pip install -e . 후에는 어디서든).
"""

import argparse
import asyncio
import logging
import sys
import uuid
from pathlib import Path

from src.export import EXPORT_FORMATS, export_result, generate_filename
from src.history import FavoritesStore, HistoryStore
from src.llm import LlmConfig, UsageTracker
from src.ocr import OcrEngineError, OcrManager, OptimizationLevel, load_image_file

logger = logging.getLogger(__name__)


def _build_manager(args) -> tuple:
    workspace = Path(args.workspace) if args.workspace else None
    config = LlmConfig(library_root=workspace)
    tracker = UsageTracker(config)
    return OcrManager.create_default(config, tracker), config, tracker


def cmd_engines(args):
    """등록된 엔진 목록을 출력한다."""
    manager, _, _ = _build_manager(args)
    for info in manager.list_engines():
        mark = "*" if info["active"] else " "
        status = "사용 가능" if info["available"] else "사용 불가"
        kind = "온라인" if info["requires_network"] else "오프라인"
        hybrid = ", 하이브리드" if info["requires_priors"] else ""
        print(f" {mark} {info['engine_id']:<11} {info['display_name']}  ({kind}{hybrid}, {status})")


async def _recognize_all(manager: OcrManager, images: list) -> list:
    """이미지들을 동시에 인식한다. 실패한 항목은 예외 객체로 남긴다."""
    return await asyncio.gather(
        *(manager.perform_ocr(image.image_bytes) for image in images),
        return_exceptions=True,
    )


def cmd_ocr(args):
    """이미지 파일을 인식한다."""
    manager, config, _ = _build_manager(args)
    try:
        if args.engine:
            manager.set_active_engine(args.engine)
        if args.level:
            config.set("image_optimization_level", OptimizationLevel.parse(args.level).value)
        images = [
            load_image_file(path, page_index=i) for i, path in enumerate(args.files)
        ]
    except (ValueError, OcrEngineError) as e:
        print(f"오류: {e}", file=sys.stderr)
        sys.exit(1)

    results = asyncio.run(_recognize_all(manager, images))

    store = HistoryStore(args.history) if args.history else None
    favorites = FavoritesStore(args.history) if args.history and args.favorite else None
    file_id = str(uuid.uuid4())
    failed = 0

    for path, image, result in zip(args.files, images, results):
        if isinstance(result, Exception):
            if not isinstance(result, OcrEngineError):
                raise result
            failed += 1
            print(f"오류 ({path}): {result}", file=sys.stderr)
            continue

        if len(args.files) > 1:
            print(f"── {path} ({result.engine}, {result.processing_time:.2f}초) ──")
        print(result.text)

        if store is not None:
            try:
                store.save(
                    result,
                    image.image_bytes,
                    source=image.source,
                    file_id=file_id,
                    page_index=image.page_index,
                    original_file_path=str(Path(path).resolve()),
                )
            except OSError as e:
                logger.warning(f"이력 저장 실패 ({path}): {e}")

        if favorites is not None:
            try:
                favorites.add(result.text, image.image_bytes)
            except OSError as e:
                logger.warning(f"즐겨찾기 저장 실패 ({path}): {e}")

        if args.export:
            name = Path(args.files[0]).stem
            filename = generate_filename(name, result.engine, image.page_index, args.format)
            out = export_result(
                result,
                Path(args.export) / filename,
                args.format,
                image_bytes=image.image_bytes,
                source=image.source,
                page_count=len(args.files),
                font_path=Path(args.font) if args.font else None,
            )
            print(f"✓ 내보냈습니다: {out}", file=sys.stderr)

    if failed:
        sys.exit(1)


def cmd_usage(args):
    """이번 달 엔진별 사용량을 출력한다."""
    workspace = Path(args.workspace) if args.workspace else None
    tracker = UsageTracker(LlmConfig(library_root=workspace))
    summary = tracker.get_monthly_summary()

    print(f"이번 달 호출: {summary['total_calls']}회, "
          f"토큰: {summary['total_tokens']}, "
          f"파싱 폴백: {summary['total_fallbacks']}회")
    if not summary["by_engine"]:
        print("  (기록 없음)")
        return
    for engine, stats in summary["by_engine"].items():
        print(f"  {engine:<12} 호출 {stats['calls']}회, "
              f"토큰 {stats['tokens']}, 폴백 {stats['fallbacks']}회")


def cmd_favorites(args):
    """즐겨찾기 목록을 출력한다."""
    items = FavoritesStore(args.history).list_all()
    if not items:
        print("  (즐겨찾기 없음)")
        return
    for item in items:
        first_line = item.text.splitlines()[0] if item.text else ""
        print(f"  {item.date[:16]}  {item.id[:8]}  {first_line[:60]}")


def main():
    parser = argparse.ArgumentParser(
        prog="multiocr",
        description="다중 엔진 OCR — CLI 도구",
    )
    parser.add_argument("--workspace", help="작업 디렉토리 (.env, 사용량 로그 위치)")
    parser.add_argument("-v", "--verbose", action="store_true", help="DEBUG 로그 출력")
    subparsers = parser.add_subparsers(dest="command")

    # engines
    p_engines = subparsers.add_parser("engines", help="등록된 OCR 엔진 목록을 출력한다")
    p_engines.set_defaults(func=cmd_engines)

    # ocr
    p_ocr = subparsers.add_parser("ocr", help="이미지 파일에서 텍스트를 인식한다")
    p_ocr.add_argument("files", nargs="+", help="이미지 파일 경로 (여러 개면 한 묶음으로 처리)")
    p_ocr.add_argument("--engine", help="엔진 id (vision, gemini, openai, gemini_cli, mistral)")
    p_ocr.add_argument(
        "--level",
        choices=[level.value for level in OptimizationLevel],
        help="클라우드 전송 이미지 축소 단계 (기본: Medium)",
    )
    p_ocr.add_argument("--export", help="결과를 내보낼 디렉토리")
    p_ocr.add_argument("--format", choices=EXPORT_FORMATS, default="txt", help="내보내기 형식")
    p_ocr.add_argument("--font", help="PDF 내보내기용 유니코드 TTF 경로")
    p_ocr.add_argument("--history", help="이력 저장 디렉토리")
    p_ocr.add_argument(
        "--favorite", action="store_true",
        help="결과를 즐겨찾기에도 추가한다 (--history 디렉토리에 저장)",
    )
    p_ocr.set_defaults(func=cmd_ocr)

    # usage
    p_usage = subparsers.add_parser("usage", help="이번 달 엔진별 사용량을 출력한다")
    p_usage.set_defaults(func=cmd_usage)

    # favorites
    p_fav = subparsers.add_parser("favorites", help="즐겨찾기 목록을 출력한다")
    p_fav.add_argument("--history", required=True, help="이력 저장 디렉토리")
    p_fav.set_defaults(func=cmd_favorites)

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if not args.command:
        parser.print_help()
        sys.exit(1)

    args.func(args)


if __name__ == "__main__":
    main()
