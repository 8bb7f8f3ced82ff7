"""Application entry point: stage registry and workflow runner."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from acr_app.core.artifacts import read_frame, resolve_input
from acr_app.core.backoff import SleepFn
from acr_app.core.config import (
    CONSOLIDATED_PREFIX,
    ISSUE_COLUMNS,
    ISSUES_PREFIX,
    SETTINGS,
    SUMMARIES_PREFIX,
    AppSettings,
    load_api_key,
)
from acr_app.core.criteria import select_criteria
from acr_app.core.forge_client import ForgeClient
from acr_app.core.gemini_client import GeminiClient
from acr_app.core.mappers import dataframe_to_issues
from acr_app.core.progress import ProgressReporter
from acr_app.core.report_tables import load_report_tables
from acr_app.features.aggregator import AggregatorService, build_groups, write_assessments
from acr_app.features.collector import CollectorService, write_collection, write_search_urls
from acr_app.features.renderer import RendererService
from acr_app.features.summarizer import SummarizerService, write_summaries

logger = logging.getLogger(__name__)


@dataclass
class StageContext:
    settings: AppSettings = field(default_factory=lambda: SETTINGS)
    criteria: list[str] = field(default_factory=list)
    urls_only: bool = False
    input_file: Path | None = None
    summaries_file: Path | None = None
    tables_file: Path | None = None
    template_file: Path | None = None
    sleep: SleepFn = time.sleep
    # outputs of earlier stages in the same run, keyed by artifact prefix
    artifacts: dict[str, Path] = field(default_factory=dict)


@dataclass(frozen=True)
class Stage:
    number: int
    name: str
    description: str
    runner: Callable[[StageContext], Path]
    needs_api_key: bool = False


STAGES: dict[int, Stage] = {}


def register_stage(number: int, name: str, description: str, *, needs_api_key: bool = False):
    def decorator(func):
        STAGES[number] = Stage(number, name, description, func, needs_api_key)
        return func

    return decorator


def _input_for(ctx: StageContext, explicit: Path | None, prefix: str) -> Path:
    if explicit is None and prefix in ctx.artifacts:
        return ctx.artifacts[prefix]
    return resolve_input(explicit, ctx.settings.results_dir, prefix)


@register_stage(1, "collect", "Extract WCAG-tagged issues from Drupal.org")
def run_collect(ctx: StageContext) -> Path:
    criteria = select_criteria(ctx.criteria)
    client = ForgeClient(sleep=ctx.sleep)
    if ctx.urls_only:
        return write_search_urls(criteria, client, ctx.settings.results_dir)
    service = CollectorService(client, sleep=ctx.sleep)
    reporter = ProgressReporter(f"Collecting issues for {len(criteria)} criteria")
    report = service.collect_all(criteria, progress=reporter.callback)
    reporter.complete(f"{len(report.records)} issues extracted")
    path = write_collection(report, ctx.settings.results_dir)
    ctx.artifacts[ISSUES_PREFIX] = path
    return path


@register_stage(2, "summarize", "Generate per-issue AI summaries", needs_api_key=True)
def run_summarize(ctx: StageContext) -> Path:
    api_key = load_api_key(ctx.settings.env_file)
    source = _input_for(ctx, ctx.input_file, ISSUES_PREFIX)
    issues = dataframe_to_issues(read_frame(source, required=("WCAG SC", "Issue ID", "Issue URL")))
    logger.info("Loaded %d issues from %s", len(issues), source)
    service = SummarizerService(ForgeClient(sleep=ctx.sleep), GeminiClient(api_key), sleep=ctx.sleep)
    reporter = ProgressReporter(f"Summarizing {len(issues)} issues")
    summaries = service.summarize_all(issues, progress=reporter.callback)
    reporter.complete(f"{len(summaries)} summaries generated")
    path = write_summaries(summaries, ctx.settings.results_dir)
    ctx.artifacts[SUMMARIES_PREFIX] = path
    return path


@register_stage(3, "consolidate", "Consolidate summaries per WCAG criterion", needs_api_key=True)
def run_consolidate(ctx: StageContext) -> Path:
    api_key = load_api_key(ctx.settings.env_file)
    issues_path = _input_for(ctx, ctx.input_file, ISSUES_PREFIX)
    summaries_path = _input_for(ctx, ctx.summaries_file, SUMMARIES_PREFIX)
    issues_df = read_frame(issues_path, required=ISSUE_COLUMNS[:2])
    summaries_df = read_frame(summaries_path, required=("Issue ID", "ACR Note"))
    groups = build_groups(issues_df, summaries_df)
    logger.info("Found %d unique WCAG criteria", len(groups))
    service = AggregatorService(GeminiClient(api_key), sleep=ctx.sleep)
    reporter = ProgressReporter(f"Consolidating {len(groups)} criteria")
    rows = service.aggregate_all(groups, progress=reporter.callback)
    reporter.complete(f"{len(rows)} criteria assessed")
    path = write_assessments(rows, ctx.settings.results_dir)
    ctx.artifacts[CONSOLIDATED_PREFIX] = path
    return path


@register_stage(4, "render", "Convert consolidated assessments to OpenACR YAML")
def run_render(ctx: StageContext) -> Path:
    source = _input_for(ctx, ctx.input_file, CONSOLIDATED_PREFIX)
    tables = load_report_tables(ctx.tables_file or ctx.settings.tables_file)
    service = RendererService(tables, header_path=ctx.template_file)
    return service.render_file(source, ctx.settings.results_dir)


def select_steps(
    step: int | None = None,
    start: int | None = None,
    end: int | None = None,
    skip: Sequence[int] = (),
) -> list[int]:
    """Resolve ``--step`` / ``--from`` / ``--to`` / ``--skip`` into an ordered step list."""
    known = sorted(STAGES)
    if step is not None:
        if step not in STAGES:
            raise ValueError(f"Unknown step {step}; choose from {known}")
        return [step]
    lo = known[0] if start is None else start
    hi = known[-1] if end is None else end
    if lo > hi:
        raise ValueError(f"--from {lo} is after --to {hi}")
    for value in (lo, hi, *skip):
        if value not in STAGES:
            raise ValueError(f"Unknown step {value}; choose from {known}")
    return [n for n in known if lo <= n <= hi and n not in set(skip)]


def run_workflow(steps: Sequence[int], ctx: StageContext, *, dry_run: bool = False) -> dict[int, Path]:
    """Run the selected stages in order; the first failure stops the workflow."""
    if not steps:
        logger.warning("No steps selected")
        return {}
    if not dry_run and any(STAGES[n].needs_api_key for n in steps):
        load_api_key(ctx.settings.env_file)
    outputs: dict[int, Path] = {}
    started = time.monotonic()
    for number in steps:
        stage = STAGES[number]
        if dry_run:
            logger.info("[dry-run] Step %d (%s): %s", number, stage.name, stage.description)
            continue
        logger.info("Step %d (%s): %s", number, stage.name, stage.description)
        stage_started = time.monotonic()
        outputs[number] = stage.runner(ctx)
        logger.info(
            "Step %d finished in %.1fs -> %s", number, time.monotonic() - stage_started, outputs[number]
        )
    if not dry_run:
        logger.info("Workflow finished in %.1fs", time.monotonic() - started)
    return outputs
