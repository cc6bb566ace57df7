"""CLI entrypoints for codemodel commands."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from .config import ConfigError, load_config
from .ingest import RepoLoader
from .logging import configure_logging, get_logger
from .models import ContractViolation, PipelineError, ProvenanceError
from .pipeline import AnalysisPipeline
from .serialization import FORMATS, dumps, load_document, require_facts

logger = get_logger("cli")


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


def _add_format_option(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--format",
        choices=FORMATS,
        default=None,
        help="Document format (defaults to the configured format, or json).",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="codemodel",
        description="Build a verifiable structural model of a codebase.",
    )
    _add_verbose_option(parser)
    subparsers = parser.add_subparsers(dest="command", required=True)

    analyze_parser = subparsers.add_parser(
        "analyze",
        help="Analyze a repository and emit the structural model document.",
    )
    _add_verbose_option(analyze_parser, suppress_default=True)
    analyze_parser.add_argument(
        "path",
        nargs="?",
        default=".",
        help="Path to the repository root (defaults to current directory).",
    )
    analyze_parser.add_argument(
        "-o",
        "--output",
        default=None,
        help="Write the document to this file instead of stdout.",
    )
    _add_format_option(analyze_parser)
    analyze_parser.add_argument(
        "--time-budget",
        type=float,
        default=None,
        help="Overall time budget in seconds for per-file normalization.",
    )
    analyze_parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Number of worker threads used for normalization.",
    )
    analyze_parser.add_argument(
        "--log-file",
        default=None,
        help="Also write log output to this file.",
    )

    check_parser = subparsers.add_parser(
        "check",
        help="Verify that every concept in a document is tagged FACT.",
    )
    _add_verbose_option(check_parser, suppress_default=True)
    check_parser.add_argument("file", help="Document produced by `codemodel analyze`.")
    _add_format_option(check_parser)

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for codemodel commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    log_file = Path(args.log_file) if getattr(args, "log_file", None) else None
    configure_logging(verbose=bool(args.verbose), log_file=log_file)

    if args.command == "analyze":
        _run_analyze(parser, args)
    elif args.command == "check":
        _run_check(parser, args)
    else:  # pragma: no cover - argparse enforces choices
        parser.exit(1, "Unknown command\n")


def _run_analyze(parser: argparse.ArgumentParser, args: argparse.Namespace) -> None:
    root = Path(args.path)
    try:
        config = load_config(root)
    except ConfigError as exc:
        parser.exit(1, f"codemodel analyze failed: {exc}\n")

    if config.logging.level is not None or config.logging.file is not None:
        log_file = Path(args.log_file) if args.log_file else config.logging.file
        configure_logging(verbose=bool(args.verbose), level=config.logging.level, log_file=log_file)

    if args.time_budget is not None:
        if args.time_budget <= 0:
            parser.exit(1, "--time-budget must be positive\n")
        config.analysis.time_budget = args.time_budget
    if args.workers is not None:
        if args.workers < 1:
            parser.exit(1, "--workers must be at least 1\n")
        config.analysis.max_workers = args.workers
    fmt = args.format or config.output.format

    try:
        repository = RepoLoader().load(root)
        pipeline = AnalysisPipeline.from_config(config)
        result = pipeline.run(repository.files, repository.manifests)
    except (FileNotFoundError, NotADirectoryError) as exc:
        parser.exit(1, f"{exc}\n")
    except ValueError as exc:
        parser.exit(1, f"codemodel analyze failed: {exc}\n")
    except PipelineError as exc:
        summary = exc.partial.summary()
        parser.exit(
            1,
            f"codemodel analyze failed: {exc}\n"
            f"{len(exc.partial.modules)} module(s) were normalized before the failure "
            f"({summary['statuses']}). Run with --verbose for more details.\n",
        )
    except ContractViolation as exc:
        parser.exit(1, f"codemodel analyze failed: input contract violated: {exc}\n")

    text = dumps(result, fmt)
    if args.output:
        output = Path(args.output)
        output.write_text(text, encoding="utf-8")
        logger.info("Wrote %s document to %s", fmt, output)
    else:
        sys.stdout.write(text)


def _run_check(parser: argparse.ArgumentParser, args: argparse.Namespace) -> None:
    path = Path(args.file)
    fmt = args.format or ("yaml" if path.suffix.lower() in {".yaml", ".yml"} else "json")
    try:
        document = load_document(path.read_text(encoding="utf-8"), fmt)
    except FileNotFoundError as exc:
        parser.exit(1, f"{exc}\n")
    except ValueError as exc:
        parser.exit(1, f"{path}: not a valid {fmt} analysis document: {exc}\n")

    try:
        checked = require_facts(document.get("concepts") or [])
    except ProvenanceError as exc:
        parser.exit(1, f"{path}: {exc}\n")
    print(f"{checked} concept(s) verified as FACT")


if __name__ == "__main__":
    main(sys.argv[1:])
