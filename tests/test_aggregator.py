import re

import pandas as pd
import requests

from acr_app.core.artifacts import read_frame
from acr_app.core.backoff import BackoffPolicy, RetryPolicy
from acr_app.core.config import (
    CONSOLIDATED_COLUMNS,
    ERROR,
    NOT_SUPPORTED,
    PARTIALLY_SUPPORTED,
    REQUIRES_REVIEW,
    SUPPORTED,
    UNKNOWN,
)
from acr_app.core.gemini_client import (
    GeminiClient,
    GenerativeAPIError,
    ProviderOverloadedError,
    RateLimitedError,
)
from acr_app.features.aggregator import AggregatorService, build_groups, write_assessments
from acr_app.features.aggregator.service import (
    NO_SUMMARIES_NARRATIVE,
    SUMMARY_PLACEHOLDER,
    CriterionGroup,
    GroupMember,
    build_prompt,
    parse_consolidation_response,
    review_narrative,
    truncate_note,
)

TWO_TRIES = RetryPolicy(attempts=2, transient=BackoffPolicy(kind="linear", base=1.0))


class CriterionGemini(GeminiClient):
    """Answers per criterion, reading the code back out of the prompt."""

    def __init__(self, scripts):
        super().__init__("k")
        self.scripts = {code: list(items) for code, items in scripts.items()}
        self.calls = []

    def generate(self, prompt, *, max_output_tokens, temperature=0.1):
        code = re.search(r"WCAG SUCCESS CRITERION: (\S+)", prompt).group(1)
        self.calls.append(code)
        item = self.scripts[code].pop(0)
        if isinstance(item, Exception):
            raise item
        return item


def answer(level, summary="Screen reader users miss image content."):
    return f"ACR_ASSESSMENT: {level}\nACR_SUMMARY: {summary}"


def overloaded():
    return ProviderOverloadedError("Gemini service unavailable (503)", 503)


def group(code, *ids):
    return CriterionGroup(code, [GroupMember(i, f"Issue {i}", f"Note for {i}") for i in ids])


def test_build_groups_joins_and_filters():
    issues = pd.DataFrame(
        {
            "WCAG SC": ["wcag143", "wcag111", "wcag111", "wcag111", "wcag111", "wcag244"],
            "Issue ID": ["7", "1", "2", "3", "1", "9"],
            "Issue Title": ["Contrast", "Alt", "Alt 2", "Alt 3", "Alt", "Links"],
        }
    )
    summaries = pd.DataFrame(
        {
            "Issue ID": ["1", "2", "3", "7", "9"],
            "ACR Note": [
                "Images lack alt text.",
                "Error generating ACR note: Gemini rate limit exceeded (429)",
                "",
                "Low contrast text.",
                "Error: timeout",
            ],
        }
    )
    groups = build_groups(issues, summaries)
    assert [g.criterion for g in groups] == ["wcag111", "wcag143", "wcag244"]
    by_code = {g.criterion: g for g in groups}
    assert by_code["wcag111"].issue_ids == ["1", "3"]
    assert by_code["wcag111"].members[1].acr_note == "No ACR note available"
    assert by_code["wcag143"].issue_ids == ["7"]
    assert by_code["wcag244"].members == []


def test_prompt_truncates_long_notes():
    long_note = "x" * 250
    assert truncate_note(long_note) == "x" * 200 + "..."
    assert truncate_note("short") == "short"
    g = CriterionGroup("wcag111", [GroupMember("1", "t", long_note), GroupMember("2", "t", "Short note")])
    prompt = build_prompt(g)
    assert "1. " + "x" * 200 + "...\n2. Short note" in prompt
    assert "Based on these 2 issues" in prompt


def test_parse_consolidation_response():
    assert parse_consolidation_response(answer("**PARTIALLY_SUPPORTED**", "Some barriers.")) == (
        PARTIALLY_SUPPORTED,
        "Some barriers.",
    )
    level, summary = parse_consolidation_response("ACR_ASSESSMENT: possibly fine")
    assert level == UNKNOWN
    assert summary == SUMMARY_PLACEHOLDER


def test_review_narrative_wording():
    assert review_narrative(1).startswith("Based on 1 identified issue, automatic assessment")
    text = review_narrative(3)
    assert text.startswith("Based on 3 identified issues, automatic assessment could not be completed")
    assert text.endswith("require technical evaluation.")


def test_successful_consolidation(sleeps, low_rng):
    ai = CriterionGemini({"wcag111": [answer("NOT SUPPORTED", "Images lack alternatives.")]})
    row = AggregatorService(ai, sleep=sleeps, rng=low_rng).aggregate(group("wcag111", "1", "2"))
    assert row.level == NOT_SUPPORTED
    assert row.summary == "Images lack alternatives."
    assert row.issue_count == 2
    assert row.issue_ids == ["1", "2"]
    assert sleeps.calls == [2.0]


def test_persistent_overload_becomes_review_row(sleeps, low_rng):
    ai = CriterionGemini({"wcag111": [overloaded()] * 5})
    row = AggregatorService(ai, sleep=sleeps, rng=low_rng).aggregate(group("wcag111", "1", "2", "3"))
    assert row.level == REQUIRES_REVIEW
    assert row.summary == review_narrative(3)
    assert row.issue_count == 3
    assert sleeps.calls == [15.0, 40.0, 80.0, 160.0]


def test_other_failures_become_error_row(sleeps, low_rng):
    ai = CriterionGemini({"wcag111": [RateLimitedError("Gemini rate limit exceeded (429)", 429)] * 5})
    row = AggregatorService(ai, sleep=sleeps, rng=low_rng).aggregate(group("wcag111", "1"))
    assert row.level == ERROR
    assert row.summary == "Error generating summary: Gemini rate limit exceeded (429)"


def test_non_retryable_failure_is_not_retried(sleeps):
    ai = CriterionGemini({"wcag111": [GenerativeAPIError("Gemini API error 400: bad", 400)]})
    row = AggregatorService(ai, sleep=sleeps).aggregate(group("wcag111", "1"))
    assert row.level == ERROR
    assert ai.calls == ["wcag111"]


def test_group_without_summaries_skips_the_call(sleeps):
    ai = CriterionGemini({})
    row = AggregatorService(ai, sleep=sleeps).aggregate(CriterionGroup("wcag131"))
    assert row.level == REQUIRES_REVIEW
    assert row.summary == NO_SUMMARIES_NARRATIVE
    assert row.issue_count == 0
    assert ai.calls == []


def test_retry_queue_after_cooldown(sleeps, low_rng):
    ai = CriterionGemini(
        {
            "wcag143": [answer("SUPPORTED")],
            "wcag111": [overloaded(), overloaded(), answer("PARTIALLY_SUPPORTED", "Recovered.")],
            "wcag211": [overloaded()] * 4,
        }
    )
    service = AggregatorService(ai, retry=TWO_TRIES, retry_cooldown=30.0, sleep=sleeps, rng=low_rng)
    groups = [group("wcag143", "7"), group("wcag111", "1"), group("wcag211", "4"), CriterionGroup("wcag131")]
    seen = []
    rows = service.aggregate_all(groups, progress=lambda m, i, t: seen.append(i))
    assert seen == [1, 2, 3, 4]
    assert [r.criterion for r in rows] == ["wcag111", "wcag131", "wcag143", "wcag211"]
    by_code = {r.criterion: r for r in rows}
    assert by_code["wcag111"].level == PARTIALLY_SUPPORTED
    assert by_code["wcag111"].summary == "Recovered."
    assert by_code["wcag143"].level == SUPPORTED
    assert by_code["wcag211"].level == REQUIRES_REVIEW
    assert by_code["wcag211"].summary == review_narrative(1)
    # the empty group is never sent and never queued
    assert "wcag131" not in ai.calls
    assert ai.calls.count("wcag211") == 4
    # one shared cooldown before the retry pass
    assert sleeps.calls.count(30.0) == 1


def test_no_cooldown_when_nothing_queued(sleeps, low_rng):
    ai = CriterionGemini({"wcag111": [answer("SUPPORTED")]})
    service = AggregatorService(ai, retry=TWO_TRIES, retry_cooldown=30.0, sleep=sleeps, rng=low_rng)
    service.aggregate_all([group("wcag111", "1")])
    assert 30.0 not in sleeps.calls


def test_consolidated_csv(tmp_path, sleeps, low_rng):
    ai = CriterionGemini({"wcag111": [answer("SUPPORTED", "Fine.")]})
    rows = AggregatorService(ai, sleep=sleeps, rng=low_rng).aggregate_all([group("wcag111", "1", "2")])
    df = read_frame(write_assessments(rows, tmp_path))
    assert list(df.columns) == list(CONSOLIDATED_COLUMNS)
    assert df.loc[0, "Issue IDs"] == "1, 2"
    assert df.loc[0, "Issue Count"] == "2"


class BrokenSession(requests.Session):
    def post(self, url, **kwargs):
        raise requests.exceptions.ChunkedEncodingError("Connection broken: IncompleteRead")


def test_broken_ai_reads_become_error_rows(sleeps, low_rng):
    ai = GeminiClient("k", session=BrokenSession())
    service = AggregatorService(ai, retry=TWO_TRIES, sleep=sleeps, rng=low_rng)
    rows = service.aggregate_all([group("wcag111", "1", "2")])
    assert len(rows) == 1
    assert rows[0].level == ERROR
    assert rows[0].summary.startswith("Error generating summary:")
    assert rows[0].issue_ids == ["1", "2"]
