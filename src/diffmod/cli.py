"""Console entrypoint for diffmod.

Diffs two local files, composes two patches, or computes a patch modulo a
moving base, printing the result as unified diff text.
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Any

from pydantic import ValidationError
from rich.console import Console

from diffmod import __version__
from diffmod.config import ColorMode, DiffAlgorithm, DiffOptions, LogLevel, Settings, load_settings
from diffmod.engine.buffer import Buffer, Range
from diffmod.engine.compose import compose
from diffmod.engine.differ import diff_file
from diffmod.engine.model import Diff, DiffBuilder
from diffmod.engine.modulo import diff_modulo_base
from diffmod.engine.names import DEV_NULL
from diffmod.engine.render import render_bytes, render_styled
from diffmod.errors import DiffModError
from diffmod.logging import LOGGER_NAME, _to_logging_level, configure_logging
from diffmod.paths import get_diffmod_home
from diffmod.providers import ContentProvider, FileContentProvider, GitContentProvider, load_body, load_diff


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="diffmod",
        description="Unified diff engine: diff, compose, and diff modulo a moving base",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
        help="Show version and exit.",
    )
    parser.add_argument(
        "--debug",
        nargs="?",
        const="",
        metavar="LOGFILE",
        help="Enable debug logging; with LOGFILE, also write the log to that file.",
    )
    parser.add_argument(
        "--log-level",
        choices=[e.value for e in LogLevel],
        dest="log_level",
        help="Log level override",
    )
    parser.add_argument("--config-path", dest="config_path", help="Path to config.toml")
    parser.add_argument("--strip", type=int, dest="strip", help="Leading path components to strip (default 1)")
    parser.add_argument("--context", type=int, dest="context", help="Context lines around changes (default 3)")
    parser.add_argument("--algorithm", choices=[e.value for e in DiffAlgorithm], help="Line matching algorithm")
    parser.add_argument("--color", choices=[e.value for e in ColorMode], help="Colorize output")
    parser.add_argument(
        "--git",
        metavar="REPO",
        help="Read patches as revision ranges (A..B) and files as REV:path from this repository",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    diff_parser = subparsers.add_parser("diff", help="Diff two files")
    diff_parser.add_argument("old", help="Old file (or /dev/null)")
    diff_parser.add_argument("new", help="New file (or /dev/null)")

    compose_parser = subparsers.add_parser("compose", help="Compose an A->B patch with a B->C patch")
    compose_parser.add_argument("first", help="First patch (A->B)")
    compose_parser.add_argument("second", help="Second patch (B->C)")

    modulo_parser = subparsers.add_parser("modulo", help="Show a patch modulo the movement of its base")
    modulo_parser.add_argument("base_old", help="Patch from the old base to the reference state")
    modulo_parser.add_argument("base_new", help="Patch from the new base to the reference state")
    modulo_parser.add_argument("target", help="Patch from the old base to the branch")
    modulo_parser.add_argument(
        "--commits",
        action="store_true",
        help="With --git, take BASE OLD NEW commits and derive the three patches from merge bases",
    )

    config_parser = subparsers.add_parser("config", help="Config helpers")
    config_sub = config_parser.add_subparsers(dest="config_cmd", required=True)
    config_sub.add_parser("path", help="Print config path")
    config_sub.add_parser("print", help="Print resolved settings")

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    debug_enabled = args.debug is not None
    overrides = _collect_overrides(args, debug_enabled)
    try:
        settings = load_settings(cli_overrides=overrides, config_path=args.config_path)
    except ValidationError as exc:
        print(f"error: invalid settings: {exc.errors()[0]['msg']}", file=sys.stderr)
        return 1

    _configure_base_logging(debug_enabled=debug_enabled, diffmod_level=settings.log_level)
    if args.debug:
        configure_logging(settings.log_level, log_file=args.debug)

    if args.command == "config":
        return _run_config(settings, args)

    provider: ContentProvider = GitContentProvider(args.git) if args.git else FileContentProvider()
    buffer = Buffer()
    options = settings.diff_options()
    try:
        if args.command == "diff":
            result = _run_diff(buffer, provider, options, args.old, args.new)
        elif args.command == "compose":
            first = load_diff(buffer, provider, args.first, options)
            second = load_diff(buffer, provider, args.second, options)
            result = compose(first, second, buffer, options=options)
        elif args.command == "modulo":
            sources = (args.base_old, args.base_new, args.target)
            if args.commits:
                if not isinstance(provider, GitContentProvider):
                    raise DiffModError("modulo --commits requires --git REPO")
                sources = provider.modulo_ranges(*sources)
            base_old, base_new, target = (load_diff(buffer, provider, source, options) for source in sources)
            result = diff_modulo_base(buffer, target, base_old, base_new)
        else:
            parser.error(f"unknown command {args.command}")
            return 1
    except DiffModError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    _write_diff(result, buffer, settings.color)
    return 0


def _run_diff(buffer: Buffer, provider: ContentProvider, options: DiffOptions, old: str, new: str) -> Diff:
    old_path, old_body = _load_side(buffer, provider, old, b"a/" * options.strip_path_components)
    new_path, new_body = _load_side(buffer, provider, new, b"b/" * options.strip_path_components)
    file = diff_file(buffer, old_path, new_path, old_body, new_body, options)
    builder = DiffBuilder(options)
    if file.hunks or file.binary or file.old_name != file.new_name:
        builder.add_file(file)
    return builder.build()


def _load_side(
    buffer: Buffer, provider: ContentProvider, source: str, prefix: bytes
) -> tuple[Range | None, Range]:
    if source.encode() == DEV_NULL:
        return None, buffer.insert(b"")
    name = source.split(":", 1)[1] if isinstance(provider, GitContentProvider) and ":" in source else source
    body = load_body(buffer, provider, source)
    return buffer.insert(prefix + name.lstrip("/").encode()), body


def _write_diff(diff: Diff, buffer: Buffer, color: ColorMode) -> None:
    use_color = color == ColorMode.ALWAYS or (color == ColorMode.AUTO and sys.stdout.isatty())
    if use_color:
        console = Console(file=sys.stdout, force_terminal=True, highlight=False)
        console.print(render_styled(diff, buffer), end="", soft_wrap=True)
        return
    sys.stdout.flush()
    sys.stdout.buffer.write(render_bytes(diff, buffer))
    sys.stdout.buffer.flush()


def _run_config(settings: Settings, args: argparse.Namespace) -> int:
    if args.config_cmd == "path":
        print(args.config_path or get_diffmod_home() / "config.toml")
        return 0
    if args.config_cmd == "print":
        print(settings.model_dump_json(indent=2))
        return 0
    return 1


def _collect_overrides(args: argparse.Namespace, debug_enabled: bool) -> dict[str, Any]:
    default_log_level = LogLevel.DEBUG.value if debug_enabled else None
    log_level_override = args.log_level or default_log_level
    return {
        "strip_path_components": args.strip,
        "context_lines": args.context,
        "algorithm": args.algorithm,
        "color": args.color,
        "log_level": log_level_override,
    }


def _configure_base_logging(*, debug_enabled: bool, diffmod_level: LogLevel | str) -> None:
    root_level = logging.INFO if debug_enabled else logging.WARNING

    logging.basicConfig(
        level=root_level,
        stream=sys.__stderr__,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        force=True,
    )

    logging.getLogger(LOGGER_NAME).setLevel(_to_logging_level(diffmod_level))


if __name__ == "__main__":
    sys.exit(main())
