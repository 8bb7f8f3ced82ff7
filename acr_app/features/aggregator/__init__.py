"""Aggregator feature: one conformance assessment per WCAG criterion."""

from acr_app.features.aggregator.service import (
    AggregatorService,
    CriterionGroup,
    GroupMember,
    build_groups,
    build_prompt,
    parse_consolidation_response,
    review_narrative,
    truncate_note,
    write_assessments,
)

__all__ = [
    "AggregatorService",
    "CriterionGroup",
    "GroupMember",
    "build_groups",
    "build_prompt",
    "parse_consolidation_response",
    "review_narrative",
    "truncate_note",
    "write_assessments",
]
