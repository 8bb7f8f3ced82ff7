"""Command-line entry points for each pipeline stage and the full workflow."""

from __future__ import annotations

import argparse
import logging
from collections.abc import Sequence
from dataclasses import replace
from pathlib import Path

from acr_app.app import STAGES, StageContext, run_workflow, select_steps
from acr_app.core.config import SETTINGS, ConfigurationError
from acr_app.core.criteria import select_criteria
from acr_app.features.renderer import ReportRenderError

logger = logging.getLogger(__name__)


class ExitCode:
    SUCCESS = 0
    CONFIGURATION = 1
    USAGE = 2


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    # urllib3 connection chatter drowns the pacing logs at DEBUG
    logging.getLogger("urllib3").setLevel(logging.INFO)


def _common(parser: argparse.ArgumentParser) -> argparse.ArgumentParser:
    parser.add_argument(
        "--results-dir", type=Path, default=SETTINGS.results_dir, help="Artifact directory"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def build_collect_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="acr-collect", description="Extract WCAG-tagged open issues from Drupal.org"
    )
    parser.add_argument(
        "--criteria",
        nargs="+",
        default=[],
        metavar="CODE",
        help="Limit to these criteria (wcag111 or 1.1.1); default is the full catalog",
    )
    parser.add_argument(
        "--urls-only",
        action="store_true",
        help="Only write the search/feed URL manifest, without fetching anything",
    )
    return _common(parser)


def build_summarize_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="acr-summarize", description="Generate AI summaries for collected issues"
    )
    parser.add_argument("file", nargs="?", type=Path, help="Issues CSV (default: latest)")
    return _common(parser)


def build_consolidate_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="acr-consolidate", description="Consolidate issue summaries per WCAG criterion"
    )
    parser.add_argument("file", nargs="?", type=Path, help="Issues CSV (default: latest)")
    parser.add_argument("--summaries", type=Path, help="Summaries CSV (default: latest)")
    return _common(parser)


def build_render_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="acr-render", description="Convert consolidated assessments to OpenACR YAML"
    )
    parser.add_argument("file", nargs="?", type=Path, help="Consolidated CSV (default: latest)")
    parser.add_argument("--tables", type=Path, help="Override tables YAML")
    parser.add_argument("--template", type=Path, help="Header template YAML")
    return _common(parser)


def build_workflow_parser() -> argparse.ArgumentParser:
    steps = ", ".join(f"{n}={s.name}" for n, s in sorted(STAGES.items()))
    parser = argparse.ArgumentParser(
        prog="acr-workflow", description=f"Run the ACR pipeline ({steps})"
    )
    parser.add_argument("--step", type=int, help="Run only this step")
    parser.add_argument("--from", dest="start", type=int, help="First step to run")
    parser.add_argument("--to", dest="end", type=int, help="Last step to run")
    parser.add_argument("--skip", type=int, action="append", default=[], help="Skip a step")
    parser.add_argument("--dry-run", action="store_true", help="List the steps without running")
    parser.add_argument("--criteria", nargs="+", default=[], metavar="CODE")
    return _common(parser)


def _context(args: argparse.Namespace, **overrides) -> StageContext:
    settings = replace(SETTINGS, results_dir=Path(args.results_dir))
    return StageContext(settings=settings, **overrides)


def _execute(steps: Sequence[int], ctx: StageContext, dry_run: bool = False) -> int:
    try:
        run_workflow(steps, ctx, dry_run=dry_run)
    except ConfigurationError as exc:
        logger.error("%s", exc)
        return ExitCode.CONFIGURATION
    except ReportRenderError as exc:
        logger.error("Report rendering failed: %s", exc)
        return ExitCode.CONFIGURATION
    return ExitCode.SUCCESS


def collect_main(argv: Sequence[str] | None = None) -> int:
    args = build_collect_parser().parse_args(argv)
    configure_logging(args.verbose)
    try:
        select_criteria(args.criteria)
    except ValueError as exc:
        logger.error("%s", exc)
        return ExitCode.USAGE
    return _execute([1], _context(args, criteria=list(args.criteria), urls_only=args.urls_only))


def summarize_main(argv: Sequence[str] | None = None) -> int:
    args = build_summarize_parser().parse_args(argv)
    configure_logging(args.verbose)
    return _execute([2], _context(args, input_file=args.file))


def consolidate_main(argv: Sequence[str] | None = None) -> int:
    args = build_consolidate_parser().parse_args(argv)
    configure_logging(args.verbose)
    return _execute([3], _context(args, input_file=args.file, summaries_file=args.summaries))


def render_main(argv: Sequence[str] | None = None) -> int:
    args = build_render_parser().parse_args(argv)
    configure_logging(args.verbose)
    ctx = _context(
        args, input_file=args.file, tables_file=args.tables, template_file=args.template
    )
    return _execute([4], ctx)


def workflow_main(argv: Sequence[str] | None = None) -> int:
    parser = build_workflow_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)
    if args.step is not None and (args.start is not None or args.end is not None):
        parser.print_usage()
        logger.error("--step cannot be combined with --from/--to")
        return ExitCode.USAGE
    try:
        steps = select_steps(args.step, args.start, args.end, args.skip)
        select_criteria(args.criteria)
    except ValueError as exc:
        logger.error("%s", exc)
        return ExitCode.USAGE
    logger.info("Steps to run: %s", ", ".join(f"{n} ({STAGES[n].name})" for n in steps) or "none")
    return _execute(steps, _context(args, criteria=list(args.criteria)), dry_run=args.dry_run)
