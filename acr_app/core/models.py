"""Domain data models for criteria, forge issues, summaries, assessments and report entries."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(slots=True, frozen=True)
class Criterion:
    code: str  # forge tag, e.g. "wcag1410"
    num: str  # dotted number, e.g. "1.4.10"
    name: str
    tier: str  # "A", "AA" or "AAA"


@dataclass(slots=True)
class IssueDetails:
    status: str | None = None
    priority: str | None = None
    component: str | None = None
    version: str | None = None
    reporter: str | None = None
    created: str | None = None
    updated: str | None = None
    comment_count: int = 0
    has_fork: bool = False
    last_commenter: str | None = None


@dataclass(slots=True)
class IssueModel:
    criterion: str
    issue_id: str
    title: str
    url: str
    project: str
    status: str | None = None
    priority: str | None = None
    component: str | None = None
    version: str | None = None
    reporter: str | None = None
    created: str | None = None
    updated: str | None = None
    comment_count: int = 0
    has_fork: bool = False
    last_commenter: str | None = None
    extracted_at: str | None = None

    def apply_details(self, details: IssueDetails) -> None:
        self.status = details.status
        self.priority = details.priority
        self.component = details.component
        self.version = details.version
        self.reporter = details.reporter
        self.created = details.created
        self.updated = details.updated
        self.comment_count = details.comment_count
        self.has_fork = details.has_fork
        self.last_commenter = details.last_commenter


@dataclass(slots=True)
class CommentCandidate:
    text: str
    score: int = 0
    patch_mentions: int = 0
    merge_request_mentions: int = 0
    fork_mentions: int = 0


@dataclass(slots=True)
class IssueContent:
    title: str
    description: str
    comments: list[CommentCandidate] = field(default_factory=list)
    participants: list[str] = field(default_factory=list)


@dataclass(slots=True)
class IssueSummaryModel:
    issue_id: str
    acr_note: str
    developer_note: str
    title_assessment: str
    wcag_assessment: str
    participants: list[str] = field(default_factory=list)
    processed_at: str | None = None

    @property
    def is_error(self) -> bool:
        return self.acr_note.startswith("Error generating")


@dataclass(slots=True)
class CriterionAssessmentModel:
    criterion: str
    level: str
    summary: str
    issue_count: int
    issue_ids: list[str] = field(default_factory=list)
    processed_at: str | None = None


@dataclass(slots=True)
class RenderedEntry:
    num: str
    adherence: str
    notes: str
    issue_count: int = 0
    issue_ids: str = ""
