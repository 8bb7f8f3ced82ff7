"""Collector feature: scrape Drupal.org issues tagged per WCAG criterion."""

from acr_app.features.collector.parsers import (
    DetailPageParser,
    RegexDetailPageParser,
    parse_feed,
    parse_forge_date,
    parse_search_results,
)
from acr_app.features.collector.service import (
    CollectionReport,
    CollectorService,
    CriterionResult,
    search_url_manifest,
    write_collection,
    write_search_urls,
)

__all__ = [
    "CollectionReport",
    "CollectorService",
    "CriterionResult",
    "DetailPageParser",
    "RegexDetailPageParser",
    "parse_feed",
    "parse_forge_date",
    "parse_search_results",
    "search_url_manifest",
    "write_collection",
    "write_search_urls",
]
