"""SummarizerService: fetch each issue page, ask Gemini for four notes, parse them."""

from __future__ import annotations

import logging
import random
import time
from collections.abc import Sequence
from pathlib import Path

from acr_app.core.artifacts import artifact_path, iso_now, write_frame
from acr_app.core.backoff import RetryPolicy, SleepFn, pause
from acr_app.core.config import (
    SUMMARIES_PREFIX,
    SUMMARY_AFTER_CALL_RANGE,
    SUMMARY_BETWEEN_ISSUES_RANGE,
    SUMMARY_COLUMNS,
    SUMMARY_MAX_OUTPUT_TOKENS,
    SUMMARY_RETRY,
)
from acr_app.core.forge_client import ForgeClient, ForgeRequestError
from acr_app.core.gemini_client import GeminiClient, GenerativeAPIError, generate_with_retry
from acr_app.core.mappers import summaries_to_dataframe
from acr_app.core.models import IssueContent, IssueModel, IssueSummaryModel
from acr_app.core.progress import ProgressCallback
from acr_app.core.responses import parse_labeled_sections, values_or_placeholders

from .content import extract_issue_content, unavailable_content

logger = logging.getLogger(__name__)

ACR_NOTE = "ACR_NOTE"
DEVELOPER_NOTE = "DEVELOPER_NOTE"
TITLE_ASSESSMENT = "TITLE_ASSESSMENT"
WCAG_ASSESSMENT = "WCAG_ASSESSMENT"
LABELS = (ACR_NOTE, DEVELOPER_NOTE, TITLE_ASSESSMENT, WCAG_ASSESSMENT)

PLACEHOLDERS: dict[str, str] = {
    ACR_NOTE: "Unable to generate ACR note",
    DEVELOPER_NOTE: "Unable to generate developer note",
    TITLE_ASSESSMENT: "Unable to assess title",
    WCAG_ASSESSMENT: "Unable to assess WCAG classification",
}

_PROMPT = """You are an accessibility expert analyzing a Drupal.org issue. Please provide four specific analyses:

ISSUE CONTEXT:
- Current WCAG Classification: {criterion}
- Title: {title}
- Status: {status}
- Priority: {priority}
- Description: {description}
- Recent Comments: {comments}

Please provide exactly four responses:

1. ACR_NOTE: A note for an accessibility conformance report (1-2 sentences):
   - Focus on the specific accessibility barrier and its impact on users with disabilities
   - Use concise impact language: "Affects people without vision", "Affects people without hearing", "Affects people with limited vision", "Affects people with limited hearing", "Affects people without speech", "Affects people with limited manipulation", "Affects people with limited reach and strength", "Affects people with limited language, cognitive, and learning abilities"
   - DO NOT mention WCAG Success Criteria numbers (tracked separately)
   - Use concise, professional compliance language

2. DEVELOPER_NOTE: Technical guidance for Drupal developers (3-4 sentences):
   - Analyze patch/merge request status from comments (look for .patch files, merge requests, issue forks)
   - If patches exist but are old, note they need updating/rebasing
   - Identify specific technical actions needed (code changes, testing, reviews)
   - Provide concrete next steps based on the most recent comments
   - If "Create issue fork" button exists but no actual patches, note "no current patches"

3. TITLE_ASSESSMENT: Evaluate if the title accurately reflects the issue content:
   - If title is accurate, respond: "TITLE_OK: Current title accurately reflects the issue"
   - If title needs improvement, respond: "TITLE_SUGGEST: [better title under 80 characters]"
   - Consider scope, specificity, and clarity improvements

4. WCAG_ASSESSMENT: Analyze the WCAG Success Criterion classification:
   - The issue is currently classified as "{criterion}"
   - Based on the description and comments, identify the most appropriate WCAG 2.1 Success Criterion (format: X.X.X)
   - If you agree with the current classification, respond: "WCAG_AGREE: {criterion}"
   - If you think it should be different/additional, respond: "WCAG_SUGGEST: X.X.X - [brief explanation]"

Format your response as:
ACR_NOTE: [your accessibility conformance note]
DEVELOPER_NOTE: [your developer guidance note]
TITLE_ASSESSMENT: [your title evaluation]
WCAG_ASSESSMENT: [your WCAG classification analysis]

Focus on actionable insights and accurate technical details from the comments."""


def build_prompt(issue: IssueModel, content: IssueContent) -> str:
    return _PROMPT.format(
        criterion=issue.criterion or "Unknown",
        title=content.title,
        status=issue.status or "Unknown",
        priority=issue.priority or "Unknown",
        description=content.description,
        comments="\n\n".join(c.text for c in content.comments),
    )


def parse_summary_response(text: str) -> dict[str, str]:
    """Map each label to its text, substituting the fixed placeholder when absent."""
    return values_or_placeholders(parse_labeled_sections(text, LABELS), PLACEHOLDERS)


def error_fields(message: str) -> dict[str, str]:
    return {
        ACR_NOTE: f"Error generating ACR note: {message}",
        DEVELOPER_NOTE: f"Error generating developer note: {message}",
        TITLE_ASSESSMENT: f"Error assessing title: {message}",
        WCAG_ASSESSMENT: f"Error assessing WCAG classification: {message}",
    }


def has_placeholder(summary: IssueSummaryModel) -> bool:
    """True when any field fell back to its "Unable to ..." placeholder."""
    values = (summary.acr_note, summary.developer_note, summary.title_assessment, summary.wcag_assessment)
    return any(value in PLACEHOLDERS.values() for value in values)


class SummarizerService:
    def __init__(
        self,
        forge: ForgeClient,
        ai: GeminiClient,
        *,
        retry: RetryPolicy = SUMMARY_RETRY,
        sleep: SleepFn = time.sleep,
        rng: random.Random | None = None,
    ):
        self.forge = forge
        self.ai = ai
        self.retry = retry
        self.sleep = sleep
        self.rng = rng or random.Random()

    def fetch_content(self, issue: IssueModel) -> IssueContent:
        try:
            resp = self.forge.fetch_detail(issue.url)
        except ForgeRequestError as exc:
            logger.warning("Could not fetch content for %s: %s", issue.issue_id, exc)
            return unavailable_content()
        if not resp.ok:
            logger.warning("Could not fetch content for %s: HTTP %s", issue.issue_id, resp.status_code)
            return unavailable_content()
        return extract_issue_content(resp.text)

    def summarize(self, issue: IssueModel) -> IssueSummaryModel:
        content = self.fetch_content(issue)
        prompt = build_prompt(issue, content)
        try:
            text = generate_with_retry(
                self.ai,
                prompt,
                retry=self.retry,
                max_output_tokens=SUMMARY_MAX_OUTPUT_TOKENS,
                sleep=self.sleep,
                rng=self.rng,
                label=f"Issue {issue.issue_id}",
            )
        except GenerativeAPIError as exc:
            logger.error("Error generating summaries for %s: %s", issue.issue_id, exc)
            fields = error_fields(str(exc))
        else:
            fields = parse_summary_response(text)
            pause(self.sleep, SUMMARY_AFTER_CALL_RANGE, self.rng)
        return IssueSummaryModel(
            issue_id=issue.issue_id,
            acr_note=fields[ACR_NOTE],
            developer_note=fields[DEVELOPER_NOTE],
            title_assessment=fields[TITLE_ASSESSMENT],
            wcag_assessment=fields[WCAG_ASSESSMENT],
            participants=list(content.participants),
            processed_at=iso_now(),
        )

    def summarize_all(
        self, issues: Sequence[IssueModel], *, progress: ProgressCallback | None = None
    ) -> list[IssueSummaryModel]:
        out: list[IssueSummaryModel] = []
        total = len(issues)
        for idx, issue in enumerate(issues, start=1):
            if progress:
                progress(f"Issue {issue.issue_id}: {issue.title[:60]}", idx, total)
            summary = self.summarize(issue)
            logger.info("ACR note for %s: %s", issue.issue_id, summary.acr_note)
            out.append(summary)
            if idx < total:
                pause(self.sleep, SUMMARY_BETWEEN_ISSUES_RANGE, self.rng)
        errors = sum(1 for s in out if s.is_error)
        placeholders = sum(1 for s in out if not s.is_error and has_placeholder(s))
        logger.info(
            "Summarized %d issues (%d complete, %d with placeholders, %d errors)",
            len(out),
            len(out) - errors - placeholders,
            placeholders,
            errors,
        )
        return out


def write_summaries(summaries: Sequence[IssueSummaryModel], results_dir: str | Path) -> Path:
    path = artifact_path(results_dir, SUMMARIES_PREFIX)
    return write_frame(summaries_to_dataframe(summaries), path, SUMMARY_COLUMNS)
