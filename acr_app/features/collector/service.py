"""CollectorService: per-criterion search, feed fallback, cooldowns and enrichment."""

from __future__ import annotations

import logging
import random
import time
from collections import Counter
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from pathlib import Path

import pandas as pd

from acr_app.core.artifacts import artifact_path, iso_now, write_frame
from acr_app.core.backoff import BLOCKED, RetryPolicy, SleepFn, pause
from acr_app.core.config import (
    BLOCKED_RETRY,
    COOLDOWN_EVERY,
    COOLDOWN_RANGE,
    CRITERIA_DELAY_BASE,
    CRITERIA_DELAY_FLOOR,
    CRITERIA_DELAY_JITTER,
    CRITERIA_DELAY_STEP,
    DETAIL_PAUSE_RANGE,
    ISSUE_COLUMNS,
    ISSUES_PREFIX,
    SEARCH_URL_COLUMNS,
    SEARCH_URLS_PREFIX,
    WARMUP_PAUSE,
)
from acr_app.core.forge_client import ForgeClient, ForgeRequestError
from acr_app.core.mappers import issues_to_dataframe
from acr_app.core.models import Criterion, IssueModel
from acr_app.core.progress import ProgressCallback

from .parsers import DetailPageParser, RegexDetailPageParser, parse_feed, parse_search_results

logger = logging.getLogger(__name__)

OK = "ok"
EMPTY = "empty"
BLOCKED_OUTCOME = "blocked"
FAILED = "failed"


@dataclass(slots=True)
class CriterionResult:
    criterion: Criterion
    outcome: str
    issues: list[IssueModel] = field(default_factory=list)
    source: str = "search"
    detail: str = ""


@dataclass(slots=True)
class CollectionReport:
    results: list[CriterionResult] = field(default_factory=list)

    @property
    def records(self) -> list[IssueModel]:
        return [issue for r in self.results for issue in r.issues]

    @property
    def tallies(self) -> dict[str, int]:
        counts = Counter(r.outcome for r in self.results)
        return {k: counts.get(k, 0) for k in (OK, EMPTY, BLOCKED_OUTCOME, FAILED)}

    def to_dataframe(self) -> pd.DataFrame:
        return issues_to_dataframe(self.records)


class CollectorService:
    def __init__(
        self,
        client: ForgeClient,
        *,
        parser: DetailPageParser | None = None,
        blocked_retry: RetryPolicy = BLOCKED_RETRY,
        sleep: SleepFn = time.sleep,
        rng: random.Random | None = None,
        enrich: bool = True,
    ):
        self.client = client
        self.parser = parser or RegexDetailPageParser()
        self.blocked_retry = blocked_retry
        self.sleep = sleep
        self.rng = rng or random.Random()
        self.enrich = enrich

    # ------------------ Per Criterion ------------------
    def collect_for_criterion(self, criterion: Criterion) -> CriterionResult:
        code = criterion.code
        cooldowns = 0
        while True:
            try:
                resp = self.client.fetch_search(code)
            except ForgeRequestError as exc:
                logger.error("Search for %s failed: %s", code, exc)
                return CriterionResult(criterion, FAILED, detail=str(exc))

            if resp.ok:
                issues = parse_search_results(resp.text, code, extracted_at=iso_now())
                return self._finish(criterion, issues, "search")

            if resp.status_code != 403:
                logger.error("Search for %s returned HTTP %s", code, resp.status_code)
                return CriterionResult(criterion, FAILED, detail=f"HTTP {resp.status_code}")

            logger.warning("Access denied (403) for %s; trying the RSS feed", code)
            feed_status = self._try_feed(criterion)
            if isinstance(feed_status, CriterionResult):
                return feed_status

            if cooldowns >= self.blocked_retry.attempts:
                logger.error("All cooldowns exhausted for %s; marking as blocked", code)
                return CriterionResult(criterion, BLOCKED_OUTCOME, detail=feed_status)
            cooldowns += 1
            wait = self.blocked_retry.delay(BLOCKED, cooldowns, self.rng)
            logger.warning(
                "Bot detection active for %s (%s); cooling down %.0f min before retry %d/%d",
                code,
                feed_status,
                wait / 60.0,
                cooldowns,
                self.blocked_retry.attempts,
            )
            self.sleep(wait)

    def _try_feed(self, criterion: Criterion) -> CriterionResult | str:
        """Return a finished result when the feed works, else a short failure reason."""
        try:
            resp = self.client.fetch_feed(criterion.code)
        except ForgeRequestError as exc:
            return f"feed network error: {exc}"
        if not resp.ok:
            return f"feed HTTP {resp.status_code}"
        issues = parse_feed(resp.text, criterion.code, extracted_at=iso_now())
        return self._finish(criterion, issues, "feed")

    def _finish(self, criterion: Criterion, issues: list[IssueModel], source: str) -> CriterionResult:
        if not issues:
            logger.info("No issues found for %s", criterion.code)
            return CriterionResult(criterion, EMPTY, source=source)
        logger.info("Found %d issues for %s via %s", len(issues), criterion.code, source)
        if self.enrich:
            for issue in issues:
                self.enrich_issue(issue)
        return CriterionResult(criterion, OK, issues=issues, source=source)

    def enrich_issue(self, issue: IssueModel) -> IssueModel:
        """Fill metadata from the issue page; a failed fetch keeps the bare record."""
        try:
            resp = self.client.fetch_detail(issue.url)
        except ForgeRequestError as exc:
            logger.warning("Could not fetch metadata for %s: %s", issue.issue_id, exc)
            return issue
        if resp.ok:
            issue.apply_details(self.parser.parse(resp.text))
        else:
            logger.warning("Could not fetch metadata for %s: HTTP %s", issue.issue_id, resp.status_code)
        pause(self.sleep, DETAIL_PAUSE_RANGE, self.rng)
        return issue

    # ------------------ Whole Run ------------------
    def inter_criterion_delay(self) -> float:
        successes = self.client.success_count
        base = max(CRITERIA_DELAY_BASE - successes * CRITERIA_DELAY_STEP, CRITERIA_DELAY_FLOOR)
        return base + self.rng.uniform(0.0, CRITERIA_DELAY_JITTER)

    def collect_all(
        self, criteria: Sequence[Criterion], *, progress: ProgressCallback | None = None
    ) -> CollectionReport:
        report = CollectionReport()
        if self.client.warm_up():
            self.sleep(WARMUP_PAUSE)
        total = len(criteria)
        for idx, criterion in enumerate(criteria, start=1):
            if progress:
                progress(f"Processing {criterion.code} ({criterion.name})", idx, total)
            result = self.collect_for_criterion(criterion)
            report.results.append(result)
            if result.outcome == OK:
                self.client.success_count += 1
            if idx < total:
                self.sleep(self.inter_criterion_delay())
                successes = self.client.success_count
                if result.outcome == OK and successes % COOLDOWN_EVERY == 0:
                    logger.info("Longer pause after %d successful criteria", successes)
                    pause(self.sleep, COOLDOWN_RANGE, self.rng)
        log_statistics(report)
        return report


def log_statistics(report: CollectionReport) -> None:
    tallies = report.tallies
    logger.info(
        "Criteria: %d with issues, %d empty, %d blocked, %d failed",
        tallies[OK],
        tallies[EMPTY],
        tallies[BLOCKED_OUTCOME],
        tallies[FAILED],
    )
    records = report.records
    logger.info("Total issues extracted: %d", len(records))
    per_criterion = Counter(i.criterion for i in records)
    for code, count in sorted(per_criterion.items()):
        logger.info("  %s: %d", code, count)
    for project, count in Counter(i.project for i in records).most_common(10):
        logger.info("  project %s: %d", project, count)
    blocked = [r.criterion.code for r in report.results if r.outcome == BLOCKED_OUTCOME]
    if blocked:
        logger.warning("Blocked criteria (re-run later): %s", ", ".join(blocked))


def write_collection(report: CollectionReport, results_dir: str | Path) -> Path:
    path = artifact_path(results_dir, ISSUES_PREFIX)
    return write_frame(report.to_dataframe(), path, ISSUE_COLUMNS)


def search_url_manifest(criteria: Iterable[Criterion], client: ForgeClient) -> pd.DataFrame:
    rows = [
        {
            "WCAG SC": c.code,
            "Criterion": f"{c.num} {c.name}",
            "Level": c.tier,
            "Search URL": client.search_url(c.code),
            "Feed URL": client.feed_url(c.code),
        }
        for c in criteria
    ]
    return pd.DataFrame(rows, columns=list(SEARCH_URL_COLUMNS))


def write_search_urls(criteria: Iterable[Criterion], client: ForgeClient, results_dir: str | Path) -> Path:
    path = artifact_path(results_dir, SEARCH_URLS_PREFIX)
    return write_frame(search_url_manifest(criteria, client), path, SEARCH_URL_COLUMNS)
