#!/usr/bin/env python
import sys
import asyncio
import argparse
from typing import List, Optional, Tuple

from loguru import logger

from motolang import InterpolatedString, MotoConfig, MotoError, Registry, TaskExecutor, Variable
from motolang.loader import ScriptLoader
from motolang.log import configure_logging


def parse_assignment_arg(arg: str) -> Tuple[str, str]:
    """Split a ``[:name=value]`` command-line argument into (name, value)."""
    parts = InterpolatedString.of(arg.strip()).decompose().parts
    if len(parts) != 1 or not isinstance(parts[0], Variable) or "=" not in parts[0].raw:
        raise ValueError(f"expected [:name=value], got {arg!r}")
    var = parts[0]
    if not var.key:
        raise ValueError(f"missing variable name in {arg!r}")
    return var.key, var.fallback_text()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="moto", description="moto - run tasks from .moto scripts")
    parser.add_argument("--dir", default=None, help="Directory containing script files (default: MOTO_SCRIPT_DIR or .)")
    parser.add_argument("--log-level", default=None, help="Log level (default: MOTO_LOG_LEVEL or INFO)")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("list", help="List available tasks")

    run_parser = subparsers.add_parser("run", help="Run a task")
    run_parser.add_argument("task", help="Task name, optionally qualified as package.task")
    run_parser.add_argument("assignments", nargs="*", help="Variables as [:name=value]")

    show_parser = subparsers.add_parser("show", help="Print a task body with placeholders resolved")
    show_parser.add_argument("task")
    show_parser.add_argument("assignments", nargs="*", help="Variables as [:name=value]")
    return parser


async def _load(config: MotoConfig) -> Registry:
    registry = Registry(max_iterations=config.max_iterations)
    report = await ScriptLoader(registry).load_directory(config.script_dir, config.extension)
    for path, reason in report.failed:
        print(f"[skipped] {path}: {reason}", file=sys.stderr)
    return registry


async def _inject(registry: Registry, assignments: List[Tuple[str, str]]) -> None:
    for name, value in assignments:
        await registry.set_variable(name, value)


async def _main(args, config: MotoConfig, assignments: List[Tuple[str, str]]) -> int:
    registry = await _load(config)

    if args.command == "list":
        for ref in await registry.tasks():
            print(f"{ref.qualified_name:<32} {ref.task.runtime}")
        return 0

    await _inject(registry, assignments)
    if args.command == "show":
        ref = await registry.find_task_ref(args.task)
        if ref is None:
            print(f"Error: task '{args.task}' not found", file=sys.stderr)
            return 1
        print(await registry.resolve(ref.task.body, ref.scope))
        return 0

    return await TaskExecutor(registry, config).run(args.task)


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 0

    config = MotoConfig.from_env(script_dir=args.dir, log_level=args.log_level)
    configure_logging(config.log_level)

    try:
        assignments = [parse_assignment_arg(arg) for arg in getattr(args, "assignments", [])]
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    try:
        return asyncio.run(_main(args, config, assignments))
    except MotoError as e:
        logger.debug("command failed: {!r}", e)
        print(f"[Error] {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
