from __future__ import annotations

import argparse
import asyncio
import logging
import shutil
from importlib.util import find_spec
from pathlib import Path
from typing import Iterable

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .collection import PatternCollection
from .config import AppConfig
from .errors import InvalidInputError
from .grid import GRID_SIZES, StepGrid, try_decode_grid
from .logging_utils import configure_logging, debug_enabled, get_log_path, log_exception
from .media import MediaService
from .params import extract_params, rewrite_param
from .program import split_tempo_directive
from .providers.litellm import LiteLLMPatternGenerator
from .runtime import RecordingRuntime
from .session import SessionContext
from .spinner import Spinner, render_error
from .tracks import record_from_generation

_LOGGER = logging.getLogger("strudelbop.cli")
_CONSOLE = Console()


def _grid_row(grid: StepGrid) -> str:
    return " ".join("x" if hit else "." for hit in grid.steps)


def _parse_assignment(text: str) -> tuple[int, float]:
    index, sep, value = text.partition("=")
    if not sep:
        raise InvalidInputError(f"Expected INDEX=VALUE, got {text!r}")
    try:
        return int(index), float(value)
    except ValueError as exc:
        raise InvalidInputError(f"Expected INDEX=VALUE, got {text!r}") from exc


def _report(lines: Iterable[str]) -> None:
    for line in lines:
        _CONSOLE.print(line, markup=False, highlight=False, soft_wrap=True)


async def _combine(paths: list[Path], config: AppConfig) -> int:
    stems = [path.stem for path in paths]
    duplicates = sorted({stem for stem in stems if stems.count(stem) > 1})
    if duplicates:
        raise InvalidInputError(f"Fragment files must have distinct names: {', '.join(duplicates)}")
    context = SessionContext(RecordingRuntime(), config=config)
    directive: str | None = None
    for path in paths:
        text = path.read_text(encoding="utf-8")
        result = await context.engine.play_track(path.stem, text)
        if not result.ok:
            message = f"{escape(path.name)}: {escape(result.error or '')}"
            _CONSOLE.print(f"[red]{message}[/red]", soft_wrap=True)
            return 1
        # The newest file carrying a setcps line sets the printed tempo.
        directive = split_tempo_directive(text).directive or directive
    _report([context.engine.combined_program(directive) or ""])
    return 0


async def _generate(prompt: str, save: bool, config: AppConfig) -> int:
    generator = LiteLLMPatternGenerator(config.model)
    try:
        with Spinner(f"Generating pattern with {config.model}"):
            fragment = await generator.generate(prompt)
    finally:
        await generator.aclose()
    _report([fragment])
    if save:
        record = PatternCollection(config.patterns_path).add(
            record_from_generation(prompt.strip(), fragment)
        )
        _CONSOLE.print(f"Saved as {record.id}")
    return 0


def _patterns(args: argparse.Namespace, config: AppConfig) -> int:
    collection = PatternCollection(config.patterns_path)
    if args.action == "remove":
        if not collection.remove(args.id):
            _CONSOLE.print(f"No saved pattern {args.id}")
            return 1
        _CONSOLE.print(f"Removed {args.id}")
        return 0
    table = Table("id", "name", "bpm", "fragment")
    for record in collection.records():
        table.add_row(record.id, record.display_name, f"{record.base_tempo:g}", record.fragment)
    _CONSOLE.print(table)
    return 0


async def _sample(args: argparse.Namespace, config: AppConfig) -> int:
    media = MediaService(
        config.samples_dir,
        ffmpeg_path=config.ffmpeg_path,
    )
    if args.action == "info":
        with Spinner("Fetching media info"):
            info = await media.fetch_info(args.url)
        _report(f"{key}: {value}" for key, value in info.model_dump().items())
        return 0
    with Spinner("Downloading sample"):
        sample = await media.download(args.url, start=args.start, end=args.end, filename=args.name)
    _CONSOLE.print(f"Wrote {sample.filename} ({sample.size_bytes} bytes) at {sample.relative_path}")
    return 0


def _doctor(config: AppConfig) -> int:
    _report(
        [
            f"Data directory: {config.data_dir}",
            f"Patterns file: {config.patterns_path} (exists: {config.patterns_path.exists()})",
            f"Samples directory: {config.samples_dir}",
            f"Log file: {get_log_path(config)}",
            f"yt-dlp installed: {find_spec('yt_dlp') is not None}",
            f"ffmpeg: {shutil.which(config.ffmpeg_path) or 'not found'}",
            f"litellm installed: {find_spec('litellm') is not None}",
            f"Generator model: {config.model}",
            "Hints:",
            "- Set FFMPEG_PATH if ffmpeg lives outside PATH.",
            "- Set STRUDELBOP_MODEL and the provider's API key env var for `generate`.",
        ]
    )
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="strudelbop")
    sub = parser.add_subparsers(dest="command", required=True)

    combine = sub.add_parser("combine", help="Print the combined program for fragment files.")
    combine.add_argument("files", nargs="+", type=Path)

    grid = sub.add_parser("grid", help="Show the step grid for a fragment.")
    grid.add_argument("fragment", type=str)
    grid.add_argument("--steps", type=int, choices=GRID_SIZES, default=16)
    grid.add_argument("--sample", action="store_true")

    params = sub.add_parser("params", help="List or rewrite effect parameters.")
    params.add_argument("fragment", type=str)
    params.add_argument("--set", dest="assignment", metavar="INDEX=VALUE", default=None)

    generate = sub.add_parser("generate", help="Generate a fragment from a description.")
    generate.add_argument("prompt", type=str)
    generate.add_argument("--save", action="store_true")

    patterns = sub.add_parser("patterns", help="Manage saved patterns.")
    patterns_sub = patterns.add_subparsers(dest="action", required=True)
    patterns_sub.add_parser("list")
    remove = patterns_sub.add_parser("remove")
    remove.add_argument("id", type=str)

    sample = sub.add_parser("sample", help="Fetch audio samples.")
    sample_sub = sample.add_subparsers(dest="action", required=True)
    info = sample_sub.add_parser("info")
    info.add_argument("url", type=str)
    download = sample_sub.add_parser("download")
    download.add_argument("url", type=str)
    download.add_argument("--start", type=str, default=None)
    download.add_argument("--end", type=str, default=None)
    download.add_argument("--name", type=str, default=None)

    sub.add_parser("doctor", help="Check tools, paths and configuration.")
    return parser


def main(argv: list[str] | None = None) -> int:
    configure_logging()
    config: AppConfig | None = None
    try:
        parser = build_parser()
        args = parser.parse_args(argv)
        config = AppConfig.from_env()

        if args.command == "combine":
            return asyncio.run(_combine(args.files, config))

        if args.command == "grid":
            decoded = try_decode_grid(args.fragment, args.steps, sample=args.sample)
            if decoded is None:
                _CONSOLE.print("Not grid-editable; edit as text.")
                return 1
            lines = [f"sound: {decoded.sound}", _grid_row(decoded)]
            if decoded.loop_cycles is not None:
                lines.append(f"loop: {decoded.loop_cycles} cycles")
            lines.extend(f"keeps: {modifier.render()}" for modifier in decoded.modifiers)
            _report(lines)
            return 0

        if args.command == "params":
            if args.assignment:
                index, value = _parse_assignment(args.assignment)
                _report([rewrite_param(args.fragment, index, value)])
                return 0
            table = Table("#", "name", "value", "range", "offset")
            for index, param in enumerate(extract_params(args.fragment)):
                table.add_row(
                    str(index),
                    param.name,
                    f"{param.value:g}",
                    f"{param.spec.minimum:g}..{param.spec.maximum:g} / {param.spec.step:g}",
                    str(param.offset),
                )
            _CONSOLE.print(table)
            return 0

        if args.command == "generate":
            return asyncio.run(_generate(args.prompt, args.save, config))

        if args.command == "patterns":
            return _patterns(args, config)

        if args.command == "sample":
            return asyncio.run(_sample(args, config))

        if args.command == "doctor":
            return _doctor(config)

        parser.print_help()
        return 1
    except Exception as exc:
        _LOGGER.warning("strudelbop CLI failed: %s", exc, exc_info=debug_enabled())
        log_exception("strudelbop CLI", exc, config)
        render_error("strudelbop CLI", exc)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
