"""CLI entrypoints for documind commands."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path

from .config import ConfigError, DocuMindConfig, load_config
from .errors import DocuMindError
from .extractors import extract
from .logging import configure_logging
from .models import AnalysisJob
from .orchestrator import DOCUMENTATION_TYPES, Orchestrator


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
        prog="documind",
        description="Analyze GitHub repositories and generate documentation with an LLM.",
    )
    _add_verbose_option(parser)
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to documind.yml or the directory containing it.",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Also write detailed logs to this file.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    analyze_parser = subparsers.add_parser(
        "analyze",
        help="Analyze a repository and print its quality score.",
    )
    _add_verbose_option(analyze_parser, suppress_default=True)
    analyze_parser.add_argument("url", help="GitHub repository URL.")

    generate_parser = subparsers.add_parser(
        "generate",
        help="Analyze a repository, then generate one documentation artifact.",
    )
    _add_verbose_option(generate_parser, suppress_default=True)
    generate_parser.add_argument("url", help="GitHub repository URL.")
    generate_parser.add_argument(
        "--type",
        dest="doc_type",
        choices=DOCUMENTATION_TYPES,
        default="readme",
        help="Kind of documentation to generate (default: readme).",
    )
    generate_parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Write the generated content to this file instead of stdout.",
    )

    extract_parser = subparsers.add_parser(
        "extract",
        help="Print the extracted structure of local source files as JSON.",
    )
    _add_verbose_option(extract_parser, suppress_default=True)
    extract_parser.add_argument("files", nargs="+", type=Path, help="Source files to parse.")

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP service.")
    _add_verbose_option(serve_parser, suppress_default=True)
    serve_parser.add_argument("--host", default=None, help="Interface to bind.")
    serve_parser.add_argument("--port", type=int, default=None, help="Port to listen on.")

    return parser


async def _await_job(orchestrator: Orchestrator, repository_id: str, interval: float) -> AnalysisJob:
    last_seen = None
    while True:
        job = orchestrator.get_job_status(repository_id)
        marker = (job.progress, job.current_file)
        if marker != last_seen:
            print(f"[{job.progress:>3}%] {job.current_file or job.status.value}")
            last_seen = marker
        if job.status.is_terminal:
            return job
        await asyncio.sleep(interval)


async def _analyze(orchestrator: Orchestrator, url: str) -> AnalysisJob:
    submission = await orchestrator.submit(url)
    return await _await_job(
        orchestrator, submission.repository.id, orchestrator.config.analysis.poll_interval
    )


async def _run_analyze(config: DocuMindConfig, url: str) -> int:
    orchestrator = Orchestrator(config)
    job = await _analyze(orchestrator, url)
    if job.error:
        print(f"Analysis failed: {job.error}", file=sys.stderr)
        return 1
    reports = orchestrator.store.list_documentation(job.repository_id, "quality")
    if reports:
        print(f"Quality score: {reports[-1].metadata.get('score')}")
    return 0


async def _run_generate(
    config: DocuMindConfig, url: str, doc_type: str, output: Path | None
) -> int:
    orchestrator = Orchestrator(config)
    job = await _analyze(orchestrator, url)
    if job.error:
        print(f"Analysis failed: {job.error}", file=sys.stderr)
        return 1
    documentation = await orchestrator.generate_documentation(job.repository_id, doc_type)
    if output is not None:
        output.write_text(documentation.content, encoding="utf-8")
        print(f"{doc_type} documentation written to {_relativize(output)}")
    else:
        print(documentation.content)
    return 0


def _run_extract(files: list[Path]) -> int:
    results = []
    for path in files:
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            print(f"Cannot read {path}: {exc}", file=sys.stderr)
            return 1
        results.append(extract(path.name, text).to_dict())
    print(json.dumps(results, indent=2))
    return 0


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for documind commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(
        verbose=bool(args.verbose),
        log_file=args.log_file,
        server=args.command == "serve",
    )

    try:
        config = load_config(args.config)
    except ConfigError as exc:
        parser.exit(1, f"{exc}\n")

    if args.command == "extract":
        code = _run_extract(args.files)
    elif args.command == "serve":  # pragma: no cover - integration path
        from .service import run_service

        run_service(args.host, args.port, config=config)
        code = 0
    else:
        try:
            if args.command == "analyze":
                code = asyncio.run(_run_analyze(config, args.url))
            else:
                code = asyncio.run(
                    _run_generate(config, args.url, args.doc_type, args.output)
                )
        except DocuMindError as exc:
            parser.exit(1, f"documind {args.command} failed: {exc}\nRun with --verbose for more details.\n")
    if code:
        sys.exit(code)


def _relativize(path: Path) -> str:
    try:
        return str(path.resolve().relative_to(Path.cwd()))
    except ValueError:
        return str(path)


if __name__ == "__main__":
    main(sys.argv[1:])
