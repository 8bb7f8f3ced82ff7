"""HTML/RSS parsing for Drupal.org issue search results and issue detail pages."""

from __future__ import annotations

import html as html_lib
import logging
import re
from typing import Protocol

import pandas as pd

from acr_app.core.config import FORGE_BASE_URL
from acr_app.core.models import IssueDetails, IssueModel

logger = logging.getLogger(__name__)

# =============================================================================
# Search Results
# =============================================================================
# Each pattern yields (url, project, issue_id, title); the node pattern has no project.
_SEARCH_PATTERNS: tuple[tuple[re.Pattern[str], bool], ...] = (
    (re.compile(r'<a[^>]*href="(/project/([^/]+)/issues/(\d+))"[^>]*>([^<]+)</a>'), True),
    (re.compile(r'<a[^>]*href="(/node/(\d+))"[^>]*class="[^"]*node[^"]*"[^>]*>([^<]+)</a>'), False),
    (
        re.compile(
            r'<a[^>]*href="(https://www\.drupal\.org/project/([^/]+)/issues/(\d+))"[^>]*>([^<]+)</a>'
        ),
        True,
    ),
    (
        re.compile(
            r'<h3[^>]*class="[^"]*search-result__title[^"]*"[^>]*>.*?'
            r'<a[^>]*href="([^"]*/project/([^/]+)/issues/(\d+))"[^>]*>([^<]+)</a>'
        ),
        True,
    ),
)

_PROJECT_RE = re.compile(r"/project/([^/]+)/")
_TRAILING_ID_RE = re.compile(r"/(\d+)$")


def clean_title(raw: str) -> str:
    """Decode HTML entities and collapse whitespace."""
    return re.sub(r"\s+", " ", html_lib.unescape(raw)).strip()


def absolute_url(url: str, base_url: str = FORGE_BASE_URL) -> str:
    return url if url.startswith("http") else f"{base_url}{url}"


def parse_search_results(html: str, code: str, *, extracted_at: str | None = None) -> list[IssueModel]:
    """Extract issue records from a search-results page, de-duplicated by issue id."""
    issues: list[IssueModel] = []
    seen: set[str] = set()
    for pattern, has_project in _SEARCH_PATTERNS:
        for match in pattern.finditer(html or ""):
            if has_project:
                url, project, issue_id, title = match.groups()
            else:
                url, issue_id, title = match.groups()
                project_match = _PROJECT_RE.search(url)
                project = project_match.group(1) if project_match else "unknown"
            title = clean_title(title or "")
            if not issue_id or not title or issue_id in seen:
                continue
            seen.add(issue_id)
            issues.append(
                IssueModel(
                    criterion=code,
                    issue_id=issue_id,
                    title=title,
                    url=absolute_url(url),
                    project=project or "unknown",
                    extracted_at=extracted_at,
                )
            )
    logger.debug("Parsed %d unique issues for %s", len(issues), code)
    return issues


def parse_feed(xml: str, code: str, *, extracted_at: str | None = None) -> list[IssueModel]:
    """Extract issue records from the search RSS feed; non-RSS content yields nothing."""
    if not xml or "<rss" not in xml:
        logger.warning("Feed for %s is not an RSS document", code)
        return []
    issues: list[IssueModel] = []
    seen: set[str] = set()
    for item in xml.split("<item>")[1:]:
        title_match = re.search(r"<title>(.*?)</title>", item)
        link_match = re.search(r"<link>(.*?)</link>", item)
        if not title_match or not link_match:
            continue
        url = link_match.group(1).strip()
        id_match = _TRAILING_ID_RE.search(url)
        if not id_match or id_match.group(1) in seen:
            continue
        seen.add(id_match.group(1))
        project_match = _PROJECT_RE.search(url)
        issues.append(
            IssueModel(
                criterion=code,
                issue_id=id_match.group(1),
                title=clean_title(title_match.group(1)),
                url=url,
                project=project_match.group(1) if project_match else "unknown",
                extracted_at=extracted_at,
            )
        )
    logger.debug("Parsed %d feed items for %s", len(issues), code)
    return issues


# =============================================================================
# Issue Detail Page
# =============================================================================
class DetailPageParser(Protocol):
    def parse(self, html: str) -> IssueDetails: ...


def _labeled_field(label: str) -> re.Pattern[str]:
    return re.compile(
        rf'<div class="field-label">{label}:&nbsp;</div><div class="field-items">'
        r'<div class="field-item even">([^<]+)</div>'
    )


_STATUS_RE = re.compile(
    r'<div class="field field-name-field-issue-status[^>]*><div class="field-items">'
    r'<div class="field-item even">([^<]+)</div>'
)
_REPORTER_RE = re.compile(
    r'<div class="field-label">Reporter:&nbsp;</div><div class="field-items">'
    r'<div class="field-item even"><a href="[^"]*" [^>]*class="username">([^<]+)</a>\s*</div>'
)
_COMMENT_ID_RE = re.compile(r'<div[^>]+id="comment-(\d+)"[^>]*>')
_PERMALINK_RE = re.compile(
    r'<a href="[^"]*#comment-\d+"[^>]*>\s*<span[^>]*>Comment\s*</span>\s*#(\d+)</a>'
)
_MOST_RECENT_RE = re.compile(r'<a href="[^"]*#comment-(\d+)" class="most-recent active">Most recent</a>')
_UPDATED_BY_RE = re.compile(r'Updated.*?by.*?class="username">([^<]+)<')
_FORK_CTA_RE = re.compile(r"Create (?:issue fork|new fork|merge request)", re.IGNORECASE)
_MR_REF_RE = re.compile(r">\s*!\d+\s*<")


def parse_forge_date(value: str | None) -> str | None:
    """``"12 Oct 2019 at 03:45 UTC"`` -> ``"2019-10-12"``; unparseable text -> ``None``."""
    if not value:
        return None
    text = value.strip().replace(" at ", " ").replace(" UTC", "")
    ts = pd.to_datetime(text, utc=True, errors="coerce")
    if pd.isna(ts):
        logger.debug("Could not parse forge date %r", value)
        return None
    return ts.strftime("%Y-%m-%d")


def count_comments(html: str) -> int:
    ids = set(_COMMENT_ID_RE.findall(html))
    if ids:
        return len(ids)
    ordinals = [int(n) for n in _PERMALINK_RE.findall(html) if int(n) > 0]
    return max(ordinals) if ordinals else 0


def find_last_commenter(html: str) -> str | None:
    recent = _MOST_RECENT_RE.search(html)
    if recent:
        cid = recent.group(1)
        patterns = (
            re.compile(rf'id="comment-{cid}"[^>]*>.*?class="username">([^<]+)<', re.DOTALL),
            re.compile(rf'comment-{cid}[^>]*>.*?<a href="/u/([^"]+)"', re.DOTALL),
            re.compile(rf'comment-{cid}[^>]*>.*?submitted.*?/u/([^"]+)"', re.DOTALL),
        )
        for pattern in patterns:
            m = pattern.search(html)
            if m:
                return m.group(1).strip()
    m = _UPDATED_BY_RE.search(html)
    return m.group(1).strip() if m else None


def detect_fork(html: str) -> bool:
    """Best-effort: an issue fork or merge request exists (call-to-action text ignored)."""
    text = _FORK_CTA_RE.sub("", html)
    if "merge-request-link" in text:
        return True
    if "Merge request" in text or _MR_REF_RE.search(text):
        return True
    return "fork" in text and "Available" in text


class RegexDetailPageParser:
    """Pattern-based extraction for the current Drupal.org issue page markup."""

    def parse(self, html: str) -> IssueDetails:
        html = html or ""

        def first(pattern: re.Pattern[str]) -> str | None:
            m = pattern.search(html)
            return m.group(1).strip() if m else None

        return IssueDetails(
            status=first(_STATUS_RE),
            priority=first(_labeled_field("Priority")),
            component=first(_labeled_field("Component")),
            version=first(_labeled_field("Version")),
            reporter=first(_REPORTER_RE),
            created=parse_forge_date(first(_labeled_field("Created"))),
            updated=parse_forge_date(first(_labeled_field("Updated"))),
            comment_count=count_comments(html),
            has_fork=detect_fork(html),
            last_commenter=find_last_commenter(html),
        )
