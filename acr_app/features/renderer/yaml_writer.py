"""Text-level YAML emission for the report document.

The document keeps the exact layout of the header/footer templates, so it is
assembled as text and validated with PyYAML afterwards instead of being dumped
from a data structure.
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from string import Template

import yaml

from acr_app.core.config import FOLD_THRESHOLD
from acr_app.core.models import RenderedEntry


class ReportRenderError(RuntimeError):
    """Raised when the assembled report is not valid YAML or a template is malformed."""


NOTES_INDENT = " " * 14
_LINE_BREAKS = str.maketrans({"\u2028": "\n", "\u2029": "\n", "\x85": "\n"})
# characters a YAML stream may not carry at all, escaped or not
_NON_PRINTABLE = re.compile("[^\x09\x0a\x0d\x20-\x7e\xa0-\ud7ff\ue000-\ufffd\U00010000-\U0010ffff]")
_INDICATORS = set("-?:,[]{}#&*!|>'\"%@`")
_TIER_HEADINGS: tuple[tuple[str, str | None], ...] = (
    ("A", None),  # heading and notes come from the header template
    (
        "AA",
        "  success_criteria_level_aa:\n"
        "    notes: >-\n"
        "      Level AA Success Criteria assessments based on identified accessibility\n"
        "      issues and automated analysis. The Drupal community strives to exceed\n"
        "      Level A compliance where possible.\n"
        "    criteria:",
    ),
    (
        "AAA",
        "  success_criteria_level_aaa:\n"
        "    notes: Where possible the Drupal community strives to exceed AA compliance.\n"
        "    criteria:",
    ),
)


def clean_text(text: str) -> str:
    """Unicode line breaks become newlines; characters YAML cannot carry are dropped."""
    return _NON_PRINTABLE.sub("", text.translate(_LINE_BREAKS))


def _reads_back(text: str) -> bool:
    try:
        return yaml.safe_load(f"k: {text}") == {"k": text}
    except yaml.YAMLError:
        return False


def needs_quotes(text: str) -> bool:
    if text != text.strip() or "  " in text:
        return True
    if any(ch in text for ch in ':#|"\n\r\t'):
        return True
    if text[0] in _INDICATORS:
        return True
    return not _reads_back(text)


def quote(text: str) -> str:
    escaped = (
        text.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\n", "\\n")
        .replace("\r", "\\r")
        .replace("\t", "\\t")
    )
    return f'"{escaped}"'


def format_scalar(value: str | None) -> str:
    """Plain scalar when unambiguous, double-quoted otherwise; empty -> ``""``."""
    if not value:
        return '""'
    text = clean_text(str(value))
    if not text:
        return '""'
    return quote(text) if needs_quotes(text) else text


def format_notes(value: str | None, indent: str = NOTES_INDENT) -> str:
    """Folded block (``>-``) for long or multi-line text, else :func:`format_scalar`."""
    if not value:
        return '""'
    text = clean_text(str(value)).strip()
    if not text:
        return '""'
    if len(text) > FOLD_THRESHOLD or "\n" in text:
        lines = [line.rstrip() for line in text.replace("\r\n", "\n").replace("\r", "\n").split("\n")]
        body = f"\n{indent}  ".join(lines)
        return f">-\n{indent}  {body}"
    return format_scalar(text)


def render_criterion(entry: RenderedEntry) -> str:
    notes = format_notes(entry.notes)
    return (
        f"      - num: {format_scalar(entry.num)}\n"
        "        components:\n"
        "          - name: web\n"
        "            adherence:\n"
        f"              level: {entry.adherence}\n"
        f"              notes: {notes}\n"
        "          - name: electronic-docs\n"
        "            adherence:\n"
        "              level: not-applicable\n"
        '              notes: ""\n'
        "          - name: software\n"
        "            adherence:\n"
        "              level: not-applicable\n"
        '              notes: ""\n'
        "          - name: authoring-tool\n"
        "            adherence:\n"
        f"              level: {entry.adherence}\n"
        f"              notes: {notes}\n"
    )


def _criteria_block(entries: Sequence[RenderedEntry]) -> str:
    if not entries:
        return " []\n"
    return "\n" + "".join(render_criterion(e) for e in entries)


def render_header(template: str, report_date: str) -> str:
    text = Template(template).safe_substitute(timestamp=report_date).rstrip()
    if not text.endswith("criteria:"):
        raise ReportRenderError("Header template must end with the level A 'criteria:' key")
    return text


def render_document(
    entries: Mapping[str, Sequence[RenderedEntry]], header: str, footer: str, report_date: str
) -> str:
    """Header + three tier sections + static footer, validated with ``yaml.safe_load``."""
    parts = [render_header(header, report_date)]
    for tier, heading in _TIER_HEADINGS:
        if heading is not None:
            parts.append(heading)
        parts.append(_criteria_block(entries.get(tier, ())))
    parts.append(footer if footer.endswith("\n") else footer + "\n")
    document = "".join(parts)
    validate_document(document)
    return document


def validate_document(document: str) -> dict:
    try:
        data = yaml.safe_load(document)
    except yaml.YAMLError as exc:
        raise ReportRenderError(f"Generated report is not valid YAML: {exc}") from exc
    if not isinstance(data, dict) or "chapters" not in data:
        raise ReportRenderError("Generated report has no 'chapters' mapping")
    return data
