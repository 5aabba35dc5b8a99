"""
Command-line entry points for esmc-gate.

Two commands, each a single-shot process:

    esmc-l5-checkpoint check [--silent]
    esmc-mesh-cache check|load|save|invalidate|purge "<topic>" ['<json>'] [--silent]

The JSON result is always printed to stdout. Human-readable output goes to
stderr and is suppressed by ``--silent`` (or ESMC_SILENT=1). Exit codes are
decided here and nowhere else.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

from .activation import evaluate, read_trigger_files, write_checkpoint_result
from .config import CONFIG_RELATIVE_PATH, GateConfig, find_project_root
from .result_cache import MeshResultCache
from .rich_output import GateConsole, OutputConfig
from .storage import create_store

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1


class UsageError(Exception):
    """Raised for missing or invalid command-line arguments."""


class _ArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> None:  # type: ignore[override]
        raise UsageError(message)


def _common_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--silent",
        action="store_true",
        help="Suppress human-readable output; the JSON result is still printed.",
    )
    parser.add_argument(
        "--root",
        type=Path,
        default=None,
        help="Directory holding the state and cache files (default: current directory).",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Show rationale columns and debug logging.",
    )


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        stream=sys.stderr,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _emit_json(result: dict[str, Any]) -> None:
    print(json.dumps(result, indent=2))


def _load_config(root: Path) -> GateConfig:
    path = find_project_root(root) / CONFIG_RELATIVE_PATH
    try:
        return GateConfig.load(path)
    except (OSError, ValueError, TypeError) as e:
        logger.warning("Ignoring unreadable config %s: %s", path, e)
        return GateConfig()


def _make_console(args: argparse.Namespace) -> GateConsole:
    config = OutputConfig.from_env(silent=args.silent)
    if args.verbose:
        config.verbosity = "verbose"
    return GateConsole(config)


def _usage_failure(parser: argparse.ArgumentParser, message: str, silent: bool) -> int:
    console = GateConsole(OutputConfig.from_env(silent=silent))
    console.print_error_panel("Usage error", message, suggestion=parser.format_usage().strip())
    _emit_json({"error": message})
    return EXIT_FAILED


# =============================================================================
# L5 checkpoint
# =============================================================================


def build_checkpoint_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog="esmc-l5-checkpoint",
        description="Decide whether strategic mode must be forced.",
    )
    parser.add_argument("command", nargs="?", choices=["check"], help="Command to run.")
    _common_options(parser)
    return parser


def checkpoint_main(argv: list[str] | None = None) -> int:
    """Run the L5 checkpoint. Exit 0 if activated, 1 otherwise."""
    parser = build_checkpoint_parser()
    argv = sys.argv[1:] if argv is None else argv
    silent = "--silent" in argv
    try:
        args = parser.parse_args(argv)
    except UsageError as e:
        return _usage_failure(parser, str(e), silent)
    if args.command is None:
        return _usage_failure(parser, "missing command (expected: check)", args.silent)

    _configure_logging(args.verbose)
    console = _make_console(args)

    root = args.root or Path.cwd()
    config = _load_config(root)

    decision = evaluate(read_trigger_files(root, config.checkpoint))
    try:
        write_checkpoint_result(root, decision, config.checkpoint)
    except OSError as e:
        logger.warning("Could not write checkpoint result: %s", e)
        console.emit_warning(str(e), warning_type="write_error")

    console.emit_decision(decision)
    _emit_json(decision.to_dict())
    return EXIT_OK if decision.activate else EXIT_FAILED


# =============================================================================
# Mesh result cache
# =============================================================================

CACHE_COMMANDS = ("check", "load", "save", "invalidate", "purge")


def build_cache_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog="esmc-mesh-cache",
        description="Check, load or save cached phase-1 mesh results.",
    )
    parser.add_argument("command", nargs="?", choices=CACHE_COMMANDS, help="Command to run.")
    parser.add_argument("topic", nargs="?", help="Free-text topic the result is keyed on.")
    parser.add_argument("payload", nargs="?", help="JSON result to store (save only).")
    _common_options(parser)
    return parser


def _run_cache_command(
    args: argparse.Namespace, cache: MeshResultCache, console: GateConsole
) -> tuple[dict[str, Any], bool]:
    if args.command == "check":
        status = cache.check(args.topic)
        console.emit_cache_check(status)
        return status.to_dict(), status.cached

    if args.command == "load":
        loaded = cache.load(args.topic)
        console.emit_cache_load(loaded)
        return loaded.to_dict(), loaded.loaded

    if args.command == "save":
        try:
            payload = json.loads(args.payload)
        except json.JSONDecodeError as e:
            console.emit_error(str(e), error_type="invalid_payload")
            return {"saved": False, "error": f"invalid payload JSON: {e}"}, False
        saved = cache.save(args.topic, payload)
        console.emit_cache_save(saved)
        return saved.to_dict(), saved.saved

    if args.command == "invalidate":
        removed = cache.invalidate(args.topic)
        return {"invalidated": removed, "hash": cache.key_for(args.topic)}, removed

    removed_keys = cache.purge_expired()
    console.emit_purge(removed_keys)
    return {"purged": removed_keys, "count": len(removed_keys)}, True


def cache_main(argv: list[str] | None = None) -> int:
    """Run a mesh cache command. Exit 0 on hit or success, 1 otherwise."""
    parser = build_cache_parser()
    argv = sys.argv[1:] if argv is None else argv
    silent = "--silent" in argv
    try:
        args = parser.parse_args(argv)
    except UsageError as e:
        return _usage_failure(parser, str(e), silent)

    if args.command is None:
        return _usage_failure(parser, "missing command", args.silent)
    if args.command != "purge" and not args.topic:
        return _usage_failure(parser, f"{args.command} requires a topic", args.silent)
    if args.command == "save" and args.payload is None:
        return _usage_failure(parser, "save requires a JSON payload", args.silent)

    _configure_logging(args.verbose)
    console = _make_console(args)

    root = args.root or Path.cwd()
    config = _load_config(root)
    cache = MeshResultCache(create_store(config.cache, root), config.cache)

    result, ok = _run_cache_command(args, cache, console)
    _emit_json(result)
    return EXIT_OK if ok else EXIT_FAILED


__all__ = [
    "build_cache_parser",
    "build_checkpoint_parser",
    "cache_main",
    "checkpoint_main",
]
