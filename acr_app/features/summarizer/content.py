"""Extract prompt material (title, description, relevant comments, participants) from an issue page."""

from __future__ import annotations

import re

from acr_app.core.models import CommentCandidate, IssueContent

UNKNOWN_TITLE = "Unknown Title"
UNAVAILABLE_TITLE = "Unable to fetch title"
UNAVAILABLE_DESCRIPTION = "Unable to fetch description"

DESCRIPTION_LIMIT = 1200
COMMENT_LIMIT = 800
MAX_CANDIDATES = 8
MAX_COMMENTS = 5
MIN_COMMENT_LENGTH = 30

_TITLE_RE = re.compile(r'<h1[^>]*class="[^"]*page-title[^"]*"[^>]*>([^<]+)</h1>')
_DESCRIPTION_RE = re.compile(
    r'<div class="field field-name-body field-type-text-with-summary[^>]*>.*?'
    r'<div class="field-item even"[^>]*>(.*?)</div>',
    re.DOTALL,
)
_COMMENT_RE = re.compile(
    r'<div[^>]+id="comment-\d+"[^>]*>.*?<div class="comment-body"[^>]*>(.*?)</div>', re.DOTALL
)
_PATCH_RE = re.compile(r"\b\d+[\w-]*\.patch\b", re.IGNORECASE)
_MR_RE = re.compile(r"merge request|![\d]+|MR[\d]+", re.IGNORECASE)
_FORK_RE = re.compile(r"issue fork|fork.*created", re.IGNORECASE)
_USER_LINK_RE = re.compile(r'<a[^>]+href="[^"]*/user/\d+[^"]*"[^>]*>([^<]+)</a>')
_USERNAME_SPAN_RE = re.compile(r'<span class="username"[^>]*>([^<]+)</span>')

_NON_USERS = {"Log in", "Register", "Anonymous"}


def strip_tags(fragment: str) -> str:
    return re.sub(r"\s+", " ", re.sub(r"<[^>]*>", " ", fragment)).strip()


def score_comment(text: str) -> CommentCandidate:
    patches = len(_PATCH_RE.findall(text))
    mrs = len(_MR_RE.findall(text))
    forks = len(_FORK_RE.findall(text))
    return CommentCandidate(
        text=text[:COMMENT_LIMIT],
        score=patches + mrs + forks,
        patch_mentions=patches,
        merge_request_mentions=mrs,
        fork_mentions=forks,
    )


def extract_participants(html: str) -> list[str]:
    names: set[str] = set()
    for match in _USER_LINK_RE.finditer(html):
        name = match.group(1).strip()
        if name and name not in _NON_USERS and "@" not in name:
            names.add(name)
    for match in _USERNAME_SPAN_RE.finditer(html):
        name = match.group(1).strip()
        if name and name not in _NON_USERS and "@" not in name:
            names.add(name)
    return sorted(names)


def extract_issue_content(html: str) -> IssueContent:
    html = html or ""
    title_match = _TITLE_RE.search(html)
    title = title_match.group(1).strip() if title_match else UNKNOWN_TITLE

    desc_match = _DESCRIPTION_RE.search(html)
    description = strip_tags(desc_match.group(1))[:DESCRIPTION_LIMIT] if desc_match else ""

    candidates: list[CommentCandidate] = []
    for match in _COMMENT_RE.finditer(html):
        if len(candidates) >= MAX_CANDIDATES:
            break
        text = strip_tags(match.group(1))
        candidate = score_comment(text)
        if len(text) > MIN_COMMENT_LENGTH or candidate.score > 0:
            candidates.append(candidate)
    # stable sort keeps page order among equal scores
    candidates.sort(key=lambda c: c.score, reverse=True)

    return IssueContent(
        title=title,
        description=description,
        comments=candidates[:MAX_COMMENTS],
        participants=extract_participants(html),
    )


def unavailable_content() -> IssueContent:
    return IssueContent(title=UNAVAILABLE_TITLE, description=UNAVAILABLE_DESCRIPTION)
