"""Parse ``LABEL: value`` sections out of free-form model output."""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass


@dataclass(slots=True, frozen=True)
class LabeledField:
    label: str
    value: str
    present: bool

    def or_placeholder(self, placeholder: str) -> str:
        return self.value if self.present and self.value else placeholder


def _label_pattern(label: str) -> re.Pattern[str]:
    # Tolerates markdown emphasis around the label, e.g. "**ACR_NOTE**:"
    return re.compile(rf"[*#]*(?<![A-Za-z0-9_]){re.escape(label)}\**\s*:\**[ \t]*")


def parse_labeled_sections(text: str | None, labels: Sequence[str]) -> dict[str, LabeledField]:
    """Split ``text`` into the sections introduced by ``labels``.

    Each value runs from its label to the next recognized label (in whatever
    order they appear) or the end of the text. Labels that never appear, or
    appear with an empty value, come back with ``present=False``.
    """
    body = text or ""
    hits: list[tuple[int, int, str]] = []
    for label in labels:
        m = _label_pattern(label).search(body)
        if m:
            hits.append((m.start(), m.end(), label))
    hits.sort()
    found: dict[str, LabeledField] = {}
    for idx, (_, value_start, label) in enumerate(hits):
        value_end = hits[idx + 1][0] if idx + 1 < len(hits) else len(body)
        value = body[value_start:value_end].strip().strip("*").strip()
        found[label] = LabeledField(label, value, bool(value))
    return {label: found.get(label, LabeledField(label, "", False)) for label in labels}


def values_or_placeholders(
    fields: Mapping[str, LabeledField], placeholders: Mapping[str, str]
) -> dict[str, str]:
    return {label: fields[label].or_placeholder(text) for label, text in placeholders.items()}
