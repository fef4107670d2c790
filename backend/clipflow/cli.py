"""
clipflow CLI - thin entrypoint for operator commands.

Commands:
- info: probe a media file
- extract / concat / split: run one operation
- batch: run a JSON list of {kind, options} descriptors
- formats: list supported container formats

Design Principles:
==================
- CLI is a dispatcher only
- Every operation goes through TaskScheduler.submit
- Surface errors verbatim from the operation layer
- No interactive prompts
- No retry logic

Exit Codes:
===========
- 0: Success
- 1: Validation error
- 2: Execution error
- 3: Partial completion
- 4: System error (file not found, bad JSON, bad configuration)
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, NoReturn, Optional, Sequence

from .config import ConfigError, Settings, SUPPORTED_INPUT_FORMATS, SUPPORTED_OUTPUT_FORMATS
from .context import AppContext, build_context
from .media.errors import BackendError
from .media.models import AudioCodec, QualityPreset, VideoCodec
from .operations.errors import ValidationError
from .operations.models import SplitBy
from .tasks.models import Task, TaskStatus
from .timecode import TimecodeError, parse_time

EXIT_SUCCESS = 0
EXIT_VALIDATION = 1
EXIT_EXECUTION = 2
EXIT_PARTIAL = 3
EXIT_SYSTEM = 4


def _configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _load_settings(args: argparse.Namespace) -> Settings:
    """
    Raises:
        SystemExit(4): Invalid environment configuration
    """
    try:
        settings = Settings.from_env()
        concurrency = getattr(args, "concurrency", None)
        if concurrency is not None:
            settings = Settings.from_dict({**settings.to_dict(), "max_concurrent_tasks": concurrency})
    except ConfigError as e:
        print(f"ERROR: Invalid configuration: {e}", file=sys.stderr)
        sys.exit(EXIT_SYSTEM)
    _configure_logging(settings)
    return settings


def _encoding_from_args(args: argparse.Namespace) -> Dict[str, Any]:
    encoding: Dict[str, Any] = {}
    if args.video_codec:
        encoding["video_codec"] = args.video_codec
    if args.audio_codec:
        encoding["audio_codec"] = args.audio_codec
    if args.quality:
        encoding["quality"] = args.quality
    if args.no_metadata:
        encoding["preserve_metadata"] = False
    return encoding


def _parse_time_arg(name: str, value: str) -> int:
    try:
        return parse_time(value)
    except TimecodeError as e:
        print(f"ERROR: {name}: {e}", file=sys.stderr)
        sys.exit(EXIT_VALIDATION)


async def _run_descriptors(ctx: AppContext, descriptors: List[Any]) -> List[Task]:
    task_ids = ctx.scheduler.submit(descriptors)
    return [await ctx.scheduler.wait(task_id) for task_id in task_ids]


def exit_code_for(tasks: Sequence[Task]) -> int:
    """
    Map finished tasks to a process exit code.

    All succeeded without errors -> 0; nothing produced output -> 1 if
    every task was rejected at submission, else 2; anything in between
    (including a task that completed with errors) -> 3.
    """
    if not tasks:
        return EXIT_SUCCESS

    clean = [
        t for t in tasks
        if t.status == TaskStatus.COMPLETED
        and t.result is not None
        and t.result.success
        and not t.result.error
    ]
    if len(clean) == len(tasks):
        return EXIT_SUCCESS

    produced = [t for t in tasks if t.status == TaskStatus.COMPLETED]
    if not produced:
        if all(t.request is None for t in tasks):
            return EXIT_VALIDATION
        return EXIT_EXECUTION
    return EXIT_PARTIAL


def _execute(args: argparse.Namespace, descriptors: List[Any]) -> NoReturn:
    settings = _load_settings(args)
    ctx = build_context(settings)

    tasks = asyncio.run(_run_descriptors(ctx, descriptors))
    print(json.dumps([t.model_dump(mode="json") for t in tasks], indent=2))

    for task in tasks:
        if task.result is not None and task.result.error:
            print(f"✗ Task {task.id} ({task.kind}): {task.result.error}", file=sys.stderr)

    sys.exit(exit_code_for(tasks))


def cmd_info(args: argparse.Namespace) -> NoReturn:
    """
    Probe a media file and print its metadata as JSON.

    Exit codes:
        0: Probed
        1: File not found
        2: Probe failed
    """
    settings = _load_settings(args)
    ctx = build_context(settings)

    try:
        metadata = asyncio.run(ctx.orchestrator.probe(args.path))
    except ValidationError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(EXIT_VALIDATION)
    except BackendError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(EXIT_EXECUTION)

    print(json.dumps(metadata.model_dump(mode="json"), indent=2))
    sys.exit(EXIT_SUCCESS)


def cmd_extract(args: argparse.Namespace) -> NoReturn:
    start = _parse_time_arg("--start", args.start)
    end = _parse_time_arg("--end", args.end)
    descriptor = {
        "kind": "extract",
        "options": {
            "input_path": args.input,
            "output_path": args.output,
            "segment": {"start": start, "end": end},
            "encoding": _encoding_from_args(args),
        },
    }
    _execute(args, [descriptor])


def cmd_concat(args: argparse.Namespace) -> NoReturn:
    options: Dict[str, Any] = {
        "input_paths": args.inputs,
        "output_path": args.output,
        "encoding": _encoding_from_args(args),
    }
    if args.width is not None or args.height is not None:
        if args.width is None or args.height is None:
            print("ERROR: --width and --height must be given together", file=sys.stderr)
            sys.exit(EXIT_VALIDATION)
        options["target_resolution"] = {"width": args.width, "height": args.height}
    if args.fps is not None:
        options["fps"] = args.fps
    _execute(args, [{"kind": "concatenate", "options": options}])


def cmd_split(args: argparse.Namespace) -> NoReturn:
    params: Dict[str, Any] = {}
    if args.duration is not None:
        params["duration"] = args.duration
    if args.count is not None:
        params["segment_count"] = args.count
    if args.max_size is not None:
        params["max_size"] = args.max_size

    options: Dict[str, Any] = {
        "input_path": args.input,
        "output_dir": args.output_dir,
        "split_by": args.by,
        "params": params,
        "encoding": _encoding_from_args(args),
    }
    if args.pattern:
        options["name_pattern"] = args.pattern
    _execute(args, [{"kind": "partition", "options": options}])


def _load_batch(batch_path: Path) -> List[Any]:
    """
    Raises:
        SystemExit(4): File not found, invalid JSON, or not a list
    """
    if not batch_path.exists():
        print(f"ERROR: Batch file not found: {batch_path}", file=sys.stderr)
        sys.exit(EXIT_SYSTEM)

    try:
        with open(batch_path, "r") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        print(f"ERROR: Invalid JSON in {batch_path}: {e}", file=sys.stderr)
        sys.exit(EXIT_SYSTEM)

    if not isinstance(data, list):
        print(f"ERROR: Batch file must contain a JSON list: {batch_path}", file=sys.stderr)
        sys.exit(EXIT_SYSTEM)
    return data


def cmd_batch(args: argparse.Namespace) -> NoReturn:
    descriptors = _load_batch(Path(args.file).resolve())
    _execute(args, descriptors)


def cmd_formats(args: argparse.Namespace) -> NoReturn:
    print(json.dumps(
        {"input": list(SUPPORTED_INPUT_FORMATS), "output": list(SUPPORTED_OUTPUT_FORMATS)},
        indent=2,
    ))
    sys.exit(EXIT_SUCCESS)


def _add_encoding_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--video-codec",
        choices=[c.value for c in VideoCodec],
        help="Re-encode video with this codec",
    )
    parser.add_argument(
        "--audio-codec",
        choices=[c.value for c in AudioCodec],
        help="Re-encode audio with this codec",
    )
    parser.add_argument(
        "--quality",
        choices=[q.value for q in QualityPreset],
        help="Encoder preset",
    )
    parser.add_argument(
        "--no-metadata",
        action="store_true",
        help="Do not copy source container metadata",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="clipflow",
        description="clipflow - scheduled media extract, concatenate and split",
    )
    subparsers = parser.add_subparsers(dest="command", required=True, help="Command to execute")

    parser_info = subparsers.add_parser("info", help="Print media metadata as JSON")
    parser_info.add_argument("path", help="Media file to probe")
    parser_info.set_defaults(func=cmd_info)

    parser_extract = subparsers.add_parser("extract", help="Cut one segment out of a file")
    parser_extract.add_argument("input", help="Source media file")
    parser_extract.add_argument("output", help="Output file")
    parser_extract.add_argument("--start", required=True, help="Start time (HH:MM:SS.mmm or seconds)")
    parser_extract.add_argument("--end", required=True, help="End time (HH:MM:SS.mmm or seconds)")
    _add_encoding_arguments(parser_extract)
    parser_extract.set_defaults(func=cmd_extract)

    parser_concat = subparsers.add_parser("concat", help="Join files end to end")
    parser_concat.add_argument("output", help="Output file")
    parser_concat.add_argument("inputs", nargs="+", help="Source media files, in order")
    parser_concat.add_argument("--width", type=int, help="Target width (normalizes inputs)")
    parser_concat.add_argument("--height", type=int, help="Target height (normalizes inputs)")
    parser_concat.add_argument("--fps", type=float, help="Target frame rate (normalizes inputs)")
    _add_encoding_arguments(parser_concat)
    parser_concat.set_defaults(func=cmd_concat)

    parser_split = subparsers.add_parser("split", help="Split a file into segments")
    parser_split.add_argument("input", help="Source media file")
    parser_split.add_argument("output_dir", help="Directory for the segments")
    parser_split.add_argument("--by", required=True, choices=[s.value for s in SplitBy])
    parser_split.add_argument("--duration", type=float, help="Segment length in seconds")
    parser_split.add_argument("--count", type=int, help="Number of equal segments")
    parser_split.add_argument("--max-size", type=float, help="Approximate segment size in MB")
    parser_split.add_argument("--pattern", help="Name pattern using {name}, {index}, {ext}")
    _add_encoding_arguments(parser_split)
    parser_split.set_defaults(func=cmd_split)

    parser_batch = subparsers.add_parser("batch", help="Run a JSON list of operation descriptors")
    parser_batch.add_argument("file", help="JSON file with [{kind, options}, ...]")
    parser_batch.add_argument("--concurrency", type=int, help="Maximum concurrent tasks")
    parser_batch.set_defaults(func=cmd_batch)

    parser_formats = subparsers.add_parser("formats", help="List supported formats")
    parser_formats.set_defaults(func=cmd_formats)

    return parser


def main(argv: Optional[Sequence[str]] = None) -> NoReturn:
    """
    Main CLI entrypoint.

    Parses arguments and dispatches to subcommands.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        args.func(args)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(EXIT_SYSTEM)


if __name__ == "__main__":
    main()
