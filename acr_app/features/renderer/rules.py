"""Assessment-to-report rules: exclusion, forced not-applicable, positive statements, tiers."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from acr_app.core.criteria import DEFAULT_TIER, TIERS, tier_of, to_dotted
from acr_app.core.mappers import ID_SEPARATOR
from acr_app.core.models import CriterionAssessmentModel, RenderedEntry
from acr_app.core.report_tables import ReportTables
from acr_app.core.status import to_adherence

logger = logging.getLogger(__name__)

NOT_APPLICABLE_NOTE = "Not applicable."
NO_ASSESSMENT_NOTE = "No assessment available"


def render_entry(row: CriterionAssessmentModel, tables: ReportTables) -> RenderedEntry | None:
    """Derive the report entry for one criterion; ``None`` when the report cannot hold it.

    Precedence: exclusion, then forced not-applicable, then the mapped level
    (with the canned statement replacing the narrative for ``supports``).
    """
    num = to_dotted(row.criterion)
    if num in tables.excluded:
        logger.info("Skipping %s (not supported by the report catalog)", num)
        return None
    ids = ID_SEPARATOR.join(row.issue_ids)
    if num in tables.not_applicable:
        return RenderedEntry(num, "not-applicable", NOT_APPLICABLE_NOTE, row.issue_count, ids)
    adherence = to_adherence(row.level)
    notes = row.summary or NO_ASSESSMENT_NOTE
    if adherence == "supports":
        notes = tables.positive_statements.get(num, notes)
    return RenderedEntry(num, adherence, notes, row.issue_count, ids)


def build_entries(
    rows: Iterable[CriterionAssessmentModel], tables: ReportTables
) -> dict[str, list[RenderedEntry]]:
    """Bucket entries by tier and add not-applicable rows for forced codes missing upstream."""
    buckets: dict[str, list[RenderedEntry]] = {tier: [] for tier in TIERS}
    seen: set[str] = set()
    for row in rows:
        entry = render_entry(row, tables)
        if entry is None or entry.num in seen:
            continue
        seen.add(entry.num)
        buckets[tier_for(entry.num, tables)].append(entry)
    for num in sorted(tables.not_applicable - seen - tables.excluded, key=_num_key):
        logger.info("Adding missing not-applicable criterion %s", num)
        buckets[tier_for(num, tables)].append(RenderedEntry(num, "not-applicable", NOT_APPLICABLE_NOTE))
    return buckets


def tier_for(num: str, tables: ReportTables) -> str:
    tier = tier_of(num, tables.tiers)
    return tier if tier in TIERS else DEFAULT_TIER


def _num_key(num: str) -> tuple:
    return tuple(int(p) if p.isdigit() else 0 for p in num.split("."))
