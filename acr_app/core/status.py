"""Assessment-level normalization and adherence mapping.

Uses the vocabulary from config.py (ASSESSMENT_ALIASES, ADHERENCE_BY_ASSESSMENT).
"""

from __future__ import annotations

import re

from .config import (
    ADHERENCE_BY_ASSESSMENT,
    ASSESSMENT_ALIASES,
    DEFAULT_ADHERENCE,
    UNKNOWN,
)

# Longest alias first so "NOT_SUPPORTED" is not read as "SUPPORTED"
_ALIASES_BY_LENGTH = sorted(ASSESSMENT_ALIASES.items(), key=lambda kv: len(kv[0]), reverse=True)


def _canonical_text(value: str) -> str:
    text = re.sub(r"[*`\"'\[\]]", "", value).strip().upper()
    return re.sub(r"[\s\-]+", "_", text)


def normalize_assessment(value: str | None) -> str:
    """Map a model-produced assessment to one of the four levels, else ``UNKNOWN``.

    Parameters
    ----------
    value : str | None
        Raw text following the ``ACR_ASSESSMENT:`` label.

    Returns
    -------
    str
        ``SUPPORTED``, ``PARTIALLY_SUPPORTED``, ``NOT_SUPPORTED``,
        ``NOT_APPLICABLE`` or ``UNKNOWN``.

    Examples
    --------
    >>> normalize_assessment("**Partially Supported**")
    'PARTIALLY_SUPPORTED'
    >>> normalize_assessment("NOT_SUPPORTED - major barriers")
    'NOT_SUPPORTED'
    >>> normalize_assessment("maybe")
    'UNKNOWN'
    """
    if not value:
        return UNKNOWN
    text = _canonical_text(str(value))
    if not text:
        return UNKNOWN
    if text in ASSESSMENT_ALIASES:
        return ASSESSMENT_ALIASES[text]
    for alias, level in _ALIASES_BY_LENGTH:
        if re.match(rf"{re.escape(alias)}($|_|[^A-Z])", text):
            return level
    for alias, level in _ALIASES_BY_LENGTH:
        if len(alias) < 4:
            continue
        if re.search(rf"(^|_){re.escape(alias)}($|_)", text):
            return level
    return UNKNOWN


def to_adherence(level: str | None) -> str:
    """Map an assessment level to the report's adherence vocabulary (default ``not-evaluated``)."""
    if not level:
        return DEFAULT_ADHERENCE
    return ADHERENCE_BY_ASSESSMENT.get(str(level).strip().upper(), DEFAULT_ADHERENCE)
