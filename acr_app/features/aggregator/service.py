"""AggregatorService: consolidate issue summaries into one assessment per criterion."""

from __future__ import annotations

import logging
import random
import time
from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

import pandas as pd

from acr_app.core.artifacts import artifact_path, iso_now, write_frame
from acr_app.core.backoff import RetryPolicy, SleepFn, pause
from acr_app.core.config import (
    CONSOLIDATE_AFTER_CALL_RANGE,
    CONSOLIDATE_MAX_OUTPUT_TOKENS,
    CONSOLIDATE_RETRY,
    CONSOLIDATE_RETRY_COOLDOWN,
    CONSOLIDATED_COLUMNS,
    CONSOLIDATED_PREFIX,
    ERROR,
    REQUIRES_REVIEW,
)
from acr_app.core.gemini_client import (
    GeminiClient,
    GenerativeAPIError,
    ProviderOverloadedError,
    generate_with_retry,
)
from acr_app.core.mappers import assessments_to_dataframe
from acr_app.core.models import CriterionAssessmentModel
from acr_app.core.progress import ProgressCallback
from acr_app.core.responses import parse_labeled_sections
from acr_app.core.status import normalize_assessment

logger = logging.getLogger(__name__)

ACR_ASSESSMENT = "ACR_ASSESSMENT"
ACR_SUMMARY = "ACR_SUMMARY"
SUMMARY_PLACEHOLDER = "Unable to generate summary"
NOTE_LIMIT = 200
MISSING_NOTE = "No ACR note available"

_PROMPT = """You are an accessibility expert creating a consolidated WCAG Success Criterion assessment for an Accessibility Conformance Report (ACR).

WCAG SUCCESS CRITERION: {criterion}

INDIVIDUAL ISSUE SUMMARIES:
{notes}

Based on these {count} issues, provide exactly two responses:

1. ACR_ASSESSMENT: Choose the most appropriate conformance level:
   - "SUPPORTED" - if all issues are minor or resolved, with no significant barriers
   - "PARTIALLY_SUPPORTED" - if there are some barriers but basic functionality remains accessible
   - "NOT_SUPPORTED" - if there are significant barriers that prevent accessibility
   - "NOT_APPLICABLE" - if this Success Criterion doesn't apply to the current system

2. ACR_SUMMARY: Write a consolidated summary (1-3 paragraphs, as concise as possible):
   - For single issues: Write 1 focused paragraph describing the barrier and impact
   - For multiple similar issues: Group by issue type and write 1-2 paragraphs
   - For diverse issues: Write up to 3 paragraphs, each focusing on different barrier types
   - Start with issue count context only if multiple diverse issues: "Based on [X] identified issues..."
   - Focus on the main accessibility barriers and user impact using concise language like "affects people without vision"
   - Group similar issues together rather than listing each one separately
   - Keep each paragraph focused on a specific aspect (barriers, impact, status/recommendations)
   - DO NOT mention WCAG Success Criterion numbers or titles (redundant given the context)
   - Use professional, concise language suitable for an ACR document
   - Prioritize brevity while maintaining clarity and completeness

Format your response as:
ACR_ASSESSMENT: [SUPPORTED/PARTIALLY_SUPPORTED/NOT_SUPPORTED/NOT_APPLICABLE]
ACR_SUMMARY: [your consolidated summary]

Keep the summary concise but comprehensive, focusing on the overall conformance picture rather than individual issue details."""


@dataclass(slots=True)
class GroupMember:
    issue_id: str
    title: str
    acr_note: str


@dataclass(slots=True)
class CriterionGroup:
    criterion: str
    members: list[GroupMember] = field(default_factory=list)

    @property
    def issue_ids(self) -> list[str]:
        return [m.issue_id for m in self.members]


def _is_error_note(note: str) -> bool:
    return note.startswith("Error generating") or note.startswith("Error:")


def build_groups(issues_df: pd.DataFrame, summaries_df: pd.DataFrame) -> list[CriterionGroup]:
    """Join collected issues to their summaries by issue id, one group per criterion code.

    Every criterion code present in ``issues_df`` gets a group, even when none of
    its issues has a usable summary. Summaries whose note is an error
    placeholder are left out of the member list.
    """
    notes: dict[str, str] = {}
    for row in summaries_df.to_dict(orient="records"):
        issue_id = str(row.get("Issue ID", "")).strip()
        if issue_id and issue_id not in notes:
            notes[issue_id] = str(row.get("ACR Note", "") or "").strip()
    groups: dict[str, CriterionGroup] = {}
    for row in issues_df.to_dict(orient="records"):
        code = str(row.get("WCAG SC", "")).strip()
        if not code:
            continue
        group = groups.setdefault(code, CriterionGroup(code))
        issue_id = str(row.get("Issue ID", "")).strip()
        if issue_id not in notes or issue_id in group.issue_ids:
            continue
        note = notes[issue_id] or MISSING_NOTE
        if _is_error_note(note):
            logger.debug("Skipping errored summary for issue %s", issue_id)
            continue
        group.members.append(GroupMember(issue_id, str(row.get("Issue Title", "")), note))
    return [groups[code] for code in sorted(groups)]


def truncate_note(note: str, limit: int = NOTE_LIMIT) -> str:
    return note[:limit] + "..." if len(note) > limit else note


def build_prompt(group: CriterionGroup) -> str:
    notes = "\n".join(
        f"{idx}. {truncate_note(m.acr_note)}" for idx, m in enumerate(group.members, start=1)
    )
    return _PROMPT.format(criterion=group.criterion, notes=notes, count=len(group.members))


def review_narrative(count: int) -> str:
    plural = "s" if count != 1 else ""
    return (
        f"Based on {count} identified issue{plural}, automatic assessment could not be completed "
        "due to API limitations. Manual review required to determine conformance level and "
        "detailed impact analysis. Issues affect accessibility across multiple user groups and "
        "require technical evaluation."
    )


NO_SUMMARIES_NARRATIVE = (
    "No issue summaries were available for this criterion. Manual review required to "
    "determine conformance level."
)


def parse_consolidation_response(text: str) -> tuple[str, str]:
    fields = parse_labeled_sections(text, (ACR_ASSESSMENT, ACR_SUMMARY))
    level = normalize_assessment(fields[ACR_ASSESSMENT].value)
    summary = fields[ACR_SUMMARY].or_placeholder(SUMMARY_PLACEHOLDER)
    return level, summary


class AggregatorService:
    def __init__(
        self,
        ai: GeminiClient,
        *,
        retry: RetryPolicy = CONSOLIDATE_RETRY,
        retry_cooldown: float = CONSOLIDATE_RETRY_COOLDOWN,
        sleep: SleepFn = time.sleep,
        rng: random.Random | None = None,
    ):
        self.ai = ai
        self.retry = retry
        self.retry_cooldown = retry_cooldown
        self.sleep = sleep
        self.rng = rng or random.Random()

    def aggregate(self, group: CriterionGroup) -> CriterionAssessmentModel:
        """Assess one criterion; never raises for provider failures."""
        count = len(group.members)
        if count == 0:
            return self._row(group, REQUIRES_REVIEW, NO_SUMMARIES_NARRATIVE)
        try:
            text = generate_with_retry(
                self.ai,
                build_prompt(group),
                retry=self.retry,
                max_output_tokens=CONSOLIDATE_MAX_OUTPUT_TOKENS,
                sleep=self.sleep,
                rng=self.rng,
                label=group.criterion,
            )
        except ProviderOverloadedError as exc:
            logger.warning("%s: provider overloaded after retries (%s)", group.criterion, exc)
            return self._row(group, REQUIRES_REVIEW, review_narrative(count))
        except GenerativeAPIError as exc:
            logger.error("%s: error generating summary: %s", group.criterion, exc)
            return self._row(group, ERROR, f"Error generating summary: {exc}")
        level, summary = parse_consolidation_response(text)
        pause(self.sleep, CONSOLIDATE_AFTER_CALL_RANGE, self.rng)
        return self._row(group, level, summary)

    def _row(self, group: CriterionGroup, level: str, summary: str) -> CriterionAssessmentModel:
        return CriterionAssessmentModel(
            criterion=group.criterion,
            level=level,
            summary=summary,
            issue_count=len(group.members),
            issue_ids=group.issue_ids,
            processed_at=iso_now(),
        )

    def aggregate_all(
        self, groups: Sequence[CriterionGroup], *, progress: ProgressCallback | None = None
    ) -> list[CriterionAssessmentModel]:
        """Main pass, then one bulk retry of overloaded criteria after a cooldown."""
        results: dict[str, CriterionAssessmentModel] = {}
        queued: list[CriterionGroup] = []
        total = len(groups)
        for idx, group in enumerate(groups, start=1):
            if progress:
                progress(f"Consolidating {group.criterion} ({len(group.members)} issues)", idx, total)
            row = self.aggregate(group)
            results[group.criterion] = row
            if row.level == REQUIRES_REVIEW and group.members:
                queued.append(group)
            else:
                logger.info("%s: %s", group.criterion, row.level)

        if queued:
            logger.info(
                "Retrying %d overloaded criteria after %.0fs", len(queued), self.retry_cooldown
            )
            self.sleep(self.retry_cooldown)
            for group in queued:
                row = self.aggregate(group)
                if row.level == REQUIRES_REVIEW or row.level == ERROR:
                    logger.warning("Retry failed for %s; keeping manual-review row", group.criterion)
                    continue
                results[group.criterion] = row
                logger.info("%s: %s (retry successful)", group.criterion, row.level)

        ordered = [results[code] for code in sorted(results)]
        log_statistics(ordered)
        return ordered


def log_statistics(rows: Sequence[CriterionAssessmentModel]) -> None:
    counts = Counter(r.level for r in rows)
    for level, count in sorted(counts.items()):
        logger.info("  %s: %d", level, count)


def write_assessments(rows: Sequence[CriterionAssessmentModel], results_dir: str | Path) -> Path:
    path = artifact_path(results_dir, CONSOLIDATED_PREFIX)
    return write_frame(assessments_to_dataframe(rows), path, CONSOLIDATED_COLUMNS)
