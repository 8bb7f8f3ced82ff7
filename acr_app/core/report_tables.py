"""Load and expose report override tables from YAML (with fallbacks)."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from .criteria import CRITERIA, EXCLUDED_FROM_REPORT, FORCED_NOT_APPLICABLE, POSITIVE_STATEMENTS

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ReportTables:
    tiers: dict[str, str] = field(default_factory=dict)
    not_applicable: frozenset[str] = frozenset()
    excluded: frozenset[str] = frozenset()
    positive_statements: dict[str, str] = field(default_factory=dict)


def default_tables() -> ReportTables:
    return ReportTables(
        tiers={c.num: c.tier for c in CRITERIA},
        not_applicable=FORCED_NOT_APPLICABLE,
        excluded=EXCLUDED_FROM_REPORT,
        positive_statements=dict(POSITIVE_STATEMENTS),
    )


_CACHE: dict[str, ReportTables] = {}


def _as_codes(value) -> frozenset[str] | None:
    if value is None:
        return None
    if not isinstance(value, list):
        raise ValueError("expected a list of criterion numbers")
    return frozenset(str(v).strip() for v in value)


def load_report_tables(path: str | Path | None = None) -> ReportTables:
    """Return report tables, overlaying an optional ``acr-tables.yaml`` on the built-ins.

    Recognized keys: ``not_applicable`` and ``excluded`` (lists of dotted
    numbers), ``positive_statements`` (number to text, merged over the
    defaults) and ``tiers`` (number to ``A``/``AA``/``AAA``, merged). A missing
    or unreadable file yields the built-in tables.
    """
    key = str(path) if path is not None else ""
    if key in _CACHE:
        return _CACHE[key]
    tables = default_tables()
    yaml_path = Path(path) if path is not None else None
    if yaml_path is None or not yaml_path.exists():
        _CACHE[key] = tables
        return tables
    try:
        data = yaml.safe_load(yaml_path.read_text(encoding="utf-8")) or {}
        if not isinstance(data, dict):
            raise ValueError("top level must be a mapping")
        na = _as_codes(data.get("not_applicable"))
        if na is not None:
            tables.not_applicable = na
        excluded = _as_codes(data.get("excluded"))
        if excluded is not None:
            tables.excluded = excluded
        for num, text in (data.get("positive_statements") or {}).items():
            tables.positive_statements[str(num)] = str(text)
        for num, tier in (data.get("tiers") or {}).items():
            tables.tiers[str(num)] = str(tier).upper()
    except (yaml.YAMLError, ValueError, AttributeError) as exc:
        logger.warning("Ignoring report tables file %s: %s", yaml_path, exc)
        tables = default_tables()
    _CACHE[key] = tables
    return tables


def clear_cache() -> None:
    _CACHE.clear()
