"""Summarizer feature: per-issue ACR and developer notes from the generative API."""

from acr_app.features.summarizer.content import extract_issue_content, unavailable_content
from acr_app.features.summarizer.service import (
    LABELS,
    PLACEHOLDERS,
    SummarizerService,
    build_prompt,
    parse_summary_response,
    write_summaries,
)

__all__ = [
    "LABELS",
    "PLACEHOLDERS",
    "SummarizerService",
    "build_prompt",
    "extract_issue_content",
    "parse_summary_response",
    "unavailable_content",
    "write_summaries",
]
