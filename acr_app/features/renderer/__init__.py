"""Renderer feature: OpenACR YAML from consolidated assessments."""

from acr_app.features.renderer.rules import build_entries, render_entry, tier_for
from acr_app.features.renderer.service import RendererService, load_template
from acr_app.features.renderer.yaml_writer import (
    ReportRenderError,
    format_notes,
    format_scalar,
    render_document,
    validate_document,
)

__all__ = [
    "RendererService",
    "ReportRenderError",
    "build_entries",
    "format_notes",
    "format_scalar",
    "load_template",
    "render_document",
    "render_entry",
    "tier_for",
    "validate_document",
]
