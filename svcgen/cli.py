"""CLI entrypoints for svcgen commands."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from .config import ConfigError
from .descriptors import DescriptorError
from .logging import configure_logging
from .orchestrator import GenerationOutcome, Orchestrator
from .rendering import RenderError


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


def _add_target_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "descriptors",
        nargs="+",
        help="Compiled descriptor documents (FileDescriptorProto/Set as JSON or YAML).",
    )
    parser.add_argument(
        "--root",
        default=".",
        help="Project root holding .svcgen.yml and the output directories (defaults to current directory).",
    )
    parser.add_argument(
        "--module-name",
        default=None,
        help="Python module name used to qualify generated imports (overrides .svcgen.yml).",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="svcgen",
        description="Scaffold service logic, route wiring and error codes from service descriptors.",
    )
    _add_verbose_option(parser)
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Also write detailed logs to this file.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    generate_parser = subparsers.add_parser(
        "generate",
        help="Generate artifacts and merge them into existing files.",
    )
    _add_verbose_option(generate_parser, suppress_default=True)
    _add_target_options(generate_parser)
    generate_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the changes that would be written without touching any file.",
    )

    check_parser = subparsers.add_parser(
        "check",
        help="Exit non-zero when generated files are out of date.",
    )
    _add_verbose_option(check_parser, suppress_default=True)
    _add_target_options(check_parser)

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for svcgen commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=bool(args.verbose), log_file=args.log_file)

    orchestrator = Orchestrator()
    check = args.command == "check"
    dry_run = check or bool(getattr(args, "dry_run", False))

    try:
        outcomes = orchestrator.run_generate(
            args.descriptors,
            root=args.root,
            module_name=args.module_name,
            dry_run=dry_run,
        )
    except (ConfigError, DescriptorError) as exc:
        parser.exit(1, f"{exc}\n")
    except RenderError as exc:
        parser.exit(1, f"svcgen {args.command} failed: {exc}\nRun with --verbose for more details.\n")

    failed = _report(outcomes, show_diff=dry_run and not check)
    if failed:
        parser.exit(1, f"{failed} target(s) could not be merged; fix their svcgen markers and rerun.\n")
    if check and any(outcome.changed for outcome in outcomes):
        parser.exit(1, "Generated files are out of date. Run `svcgen generate`.\n")


def _report(outcomes: list[GenerationOutcome], *, show_diff: bool) -> int:
    failed = 0
    for outcome in outcomes:
        if outcome.empty:
            print(f"{outcome.source_file}: no services, nothing to generate")
            continue
        for target in outcome.targets:
            rel_path = _relativize(target.path)
            if target.status == "failed":
                failed += 1
                print(f"failed     {rel_path}: {target.error}")
                continue
            print(f"{target.status:<10} {rel_path}")
            if show_diff and target.diff:
                print(target.diff)
    return failed


def _relativize(path: Path) -> str:
    try:
        return str(path.relative_to(Path.cwd()))
    except ValueError:
        return str(path)


if __name__ == "__main__":
    main(sys.argv[1:])
