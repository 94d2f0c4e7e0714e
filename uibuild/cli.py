"""CLI entrypoints for uibuild commands."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from .config import CONFIG_FILENAME, ConfigError, load_config
from .errors import ExternalResolutionError
from .logging import configure_logging
from .orchestrator import BuildCommand, BuildOrchestrator

_COMMAND_HELP = {
    BuildCommand.BUILD: "Build component bundles, the aggregate entry and declarations.",
    BuildCommand.COMPONENTS: "Build one bundle per component for every target.",
    BuildCommand.ENTRY: "Build the aggregate components entry for every target.",
    BuildCommand.TYPES: "Emit declarations and copy them into every target.",
}


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    kwargs: dict[str, object] = {
        "action": "store_true",
        "help": "Increase log verbosity for troubleshooting.",
    }
    if suppress_default:
        kwargs["default"] = argparse.SUPPRESS
    else:
        kwargs["default"] = False
    parser.add_argument(
        "-v",
        "--verbose",
        **kwargs,
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="uibuild",
        description="Build component bundles and declarations for a UI component library.",
    )
    _add_verbose_option(parser)
    subparsers = parser.add_subparsers(dest="command", required=True)

    for command, help_text in _COMMAND_HELP.items():
        command_parser = subparsers.add_parser(command.value, help=help_text)
        _add_verbose_option(command_parser, suppress_default=True)
        command_parser.add_argument(
            "path",
            nargs="?",
            default=".",
            help="Path to the workspace root (defaults to current directory).",
        )
        command_parser.add_argument(
            "--config",
            type=Path,
            default=None,
            help=f"Configuration file (defaults to <path>/{CONFIG_FILENAME}).",
        )
        command_parser.add_argument(
            "--log-file",
            type=Path,
            default=None,
            help="Also write detailed logs to this file.",
        )

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for uibuild commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=bool(args.verbose), log_file=args.log_file)

    config_path = args.config if args.config is not None else Path(args.path)
    try:
        config = load_config(config_path)
    except ConfigError as exc:
        parser.exit(1, f"{exc}\n")

    orchestrator = BuildOrchestrator(config)
    try:
        report = orchestrator.run(BuildCommand(args.command))
    except ExternalResolutionError as exc:
        parser.exit(1, f"uibuild {args.command} failed: {exc}\n")

    for line in report.summary():
        print(line)
    if not report.ok:
        parser.exit(report.exit_code)


if __name__ == "__main__":
    main(sys.argv[1:])
