"""Render the consolidated assessments file into an OpenACR YAML report."""

from __future__ import annotations

import logging
from pathlib import Path

from acr_app.core.artifacts import artifact_path, read_frame, utc_now
from acr_app.core.config import (
    CONSOLIDATED_COLUMNS,
    FOOTER_TEMPLATE,
    HEADER_TEMPLATE,
    REPORT_PREFIX,
    SETTINGS,
)
from acr_app.core.mappers import dataframe_to_assessments
from acr_app.core.models import CriterionAssessmentModel
from acr_app.core.report_tables import ReportTables, load_report_tables

from .rules import build_entries
from .yaml_writer import ReportRenderError, render_document

logger = logging.getLogger(__name__)


def load_template(path: str | Path) -> str:
    template = Path(path)
    if not template.is_file():
        raise ReportRenderError(f"Template not found: {template}")
    return template.read_text(encoding="utf-8")


class RendererService:
    def __init__(
        self,
        tables: ReportTables | None = None,
        *,
        header_path: str | Path | None = None,
        footer_path: str | Path | None = None,
    ):
        self.tables = tables or load_report_tables()
        self.header_path = Path(header_path or SETTINGS.template_dir / HEADER_TEMPLATE)
        self.footer_path = Path(footer_path or SETTINGS.template_dir / FOOTER_TEMPLATE)

    def render(self, rows: list[CriterionAssessmentModel], report_date: str | None = None) -> str:
        entries = build_entries(rows, self.tables)
        for tier, items in entries.items():
            logger.info("Level %s: %d criteria", tier, len(items))
        return render_document(
            entries,
            load_template(self.header_path),
            load_template(self.footer_path),
            report_date or utc_now().strftime("%Y-%m-%d"),
        )

    def render_file(self, consolidated_path: str | Path, results_dir: str | Path) -> Path:
        """Read a consolidated CSV and write the report; nothing is written on failure."""
        df = read_frame(Path(consolidated_path), required=CONSOLIDATED_COLUMNS[:3])
        rows = dataframe_to_assessments(df)
        logger.info("Loaded %d criterion assessments from %s", len(rows), consolidated_path)
        document = self.render(rows)
        path = artifact_path(results_dir, REPORT_PREFIX, suffix=".yaml")
        path.write_text(document, encoding="utf-8")
        logger.info("Wrote report to %s", path)
        return path
