"""Mapping between domain models and the tabular (CSV) artifact layout."""

from __future__ import annotations

from collections.abc import Iterable

import pandas as pd

from .config import CONSOLIDATED_COLUMNS, ISSUE_COLUMNS, SUMMARY_COLUMNS
from .models import CriterionAssessmentModel, IssueModel, IssueSummaryModel

ID_SEPARATOR = ", "


def _text(value) -> str:
    if value is None:
        return ""
    try:
        if pd.isna(value):
            return ""
    except (TypeError, ValueError):
        pass
    return str(value).strip()


def _optional(value) -> str | None:
    text = _text(value)
    return text or None


def _int(value) -> int:
    text = _text(value)
    try:
        return int(float(text)) if text else 0
    except ValueError:
        return 0


def split_ids(value) -> list[str]:
    return [part.strip() for part in _text(value).split(",") if part.strip()]


# ------------------ Issues ------------------
def issue_to_row(issue: IssueModel) -> dict[str, object]:
    return {
        "WCAG SC": issue.criterion,
        "Issue ID": issue.issue_id,
        "Issue Title": issue.title,
        "Issue URL": issue.url,
        "Project": issue.project,
        "Status": issue.status or "",
        "Priority": issue.priority or "",
        "Component": issue.component or "",
        "Version": issue.version or "",
        "Reporter": issue.reporter or "",
        "Created": issue.created or "",
        "Updated": issue.updated or "",
        "Comments": issue.comment_count,
        "Has Fork": "Yes" if issue.has_fork else "No",
        "Last Commenter": issue.last_commenter or "",
        "Extracted At": issue.extracted_at or "",
    }


def issues_to_dataframe(issues: Iterable[IssueModel]) -> pd.DataFrame:
    """Deduplicate on (criterion, issue id) and sort by criterion then project."""
    rows = [issue_to_row(i) for i in issues]
    if not rows:
        return pd.DataFrame(columns=list(ISSUE_COLUMNS))
    df = pd.DataFrame(rows, columns=list(ISSUE_COLUMNS))
    df = df.drop_duplicates(subset=["WCAG SC", "Issue ID"], keep="first")
    return df.sort_values(["WCAG SC", "Project"], kind="stable").reset_index(drop=True)


def dataframe_to_issues(df: pd.DataFrame) -> list[IssueModel]:
    out: list[IssueModel] = []
    for row in df.to_dict(orient="records"):
        out.append(
            IssueModel(
                criterion=_text(row.get("WCAG SC")),
                issue_id=_text(row.get("Issue ID")),
                title=_text(row.get("Issue Title")),
                url=_text(row.get("Issue URL")),
                project=_text(row.get("Project")),
                status=_optional(row.get("Status")),
                priority=_optional(row.get("Priority")),
                component=_optional(row.get("Component")),
                version=_optional(row.get("Version")),
                reporter=_optional(row.get("Reporter")),
                created=_optional(row.get("Created")),
                updated=_optional(row.get("Updated")),
                comment_count=_int(row.get("Comments")),
                has_fork=_text(row.get("Has Fork")).lower() == "yes",
                last_commenter=_optional(row.get("Last Commenter")),
                extracted_at=_optional(row.get("Extracted At")),
            )
        )
    return out


# ------------------ Summaries ------------------
def summaries_to_dataframe(summaries: Iterable[IssueSummaryModel]) -> pd.DataFrame:
    rows = [
        {
            "Issue ID": s.issue_id,
            "ACR Note": s.acr_note,
            "Developer Note": s.developer_note,
            "Title Assessment": s.title_assessment,
            "WCAG Assessment": s.wcag_assessment,
            "User Aliases": ID_SEPARATOR.join(s.participants),
            "Processed At": s.processed_at or "",
        }
        for s in summaries
    ]
    return pd.DataFrame(rows, columns=list(SUMMARY_COLUMNS))


def dataframe_to_summaries(df: pd.DataFrame) -> list[IssueSummaryModel]:
    return [
        IssueSummaryModel(
            issue_id=_text(row.get("Issue ID")),
            acr_note=_text(row.get("ACR Note")),
            developer_note=_text(row.get("Developer Note")),
            title_assessment=_text(row.get("Title Assessment")),
            wcag_assessment=_text(row.get("WCAG Assessment")),
            participants=split_ids(row.get("User Aliases")),
            processed_at=_optional(row.get("Processed At")),
        )
        for row in df.to_dict(orient="records")
    ]


# ------------------ Assessments ------------------
def assessments_to_dataframe(items: Iterable[CriterionAssessmentModel]) -> pd.DataFrame:
    rows = [
        {
            "WCAG SC": a.criterion,
            "ACR Assessment": a.level,
            "ACR Summary": a.summary,
            "Issue Count": a.issue_count,
            "Issue IDs": ID_SEPARATOR.join(a.issue_ids),
            "Processed At": a.processed_at or "",
        }
        for a in items
    ]
    if not rows:
        return pd.DataFrame(columns=list(CONSOLIDATED_COLUMNS))
    df = pd.DataFrame(rows, columns=list(CONSOLIDATED_COLUMNS))
    return df.sort_values("WCAG SC", kind="stable").reset_index(drop=True)


def dataframe_to_assessments(df: pd.DataFrame) -> list[CriterionAssessmentModel]:
    return [
        CriterionAssessmentModel(
            criterion=_text(row.get("WCAG SC")),
            level=_text(row.get("ACR Assessment")),
            summary=_text(row.get("ACR Summary")),
            issue_count=_int(row.get("Issue Count")),
            issue_ids=split_ids(row.get("Issue IDs")),
            processed_at=_optional(row.get("Processed At")),
        )
        for row in df.to_dict(orient="records")
    ]
