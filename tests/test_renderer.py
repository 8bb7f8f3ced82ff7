import pytest
import yaml

from acr_app.core.artifacts import write_frame
from acr_app.core.config import CONSOLIDATED_COLUMNS
from acr_app.core.criteria import CRITERIA, EXCLUDED_FROM_REPORT, POSITIVE_STATEMENTS
from acr_app.core.mappers import assessments_to_dataframe
from acr_app.core.models import CriterionAssessmentModel, RenderedEntry
from acr_app.core.report_tables import default_tables
from acr_app.features.renderer import RendererService, ReportRenderError
from acr_app.features.renderer.rules import (
    NO_ASSESSMENT_NOTE,
    NOT_APPLICABLE_NOTE,
    build_entries,
    render_entry,
    tier_for,
)
from acr_app.features.renderer.yaml_writer import (
    format_notes,
    format_scalar,
    render_document,
    render_header,
    validate_document,
)

DATE = "2024-05-01"


def row(code, level, summary="Keyboard users cannot reach the menu.", ids=("1",)):
    return CriterionAssessmentModel(code, level, summary, len(ids), list(ids))


def chapter(data, tier):
    return data["chapters"][f"success_criteria_level_{tier.lower()}"]


def web_component(item):
    return next(c for c in item["components"] if c["name"] == "web")


def by_num(data):
    found = {}
    for tier in ("A", "AA", "AAA"):
        for item in chapter(data, tier)["criteria"] or []:
            assert item["num"] not in found
            found[item["num"]] = (tier, item)
    return found


# ------------------ Rules ------------------
def test_forced_not_applicable_overrides_assessment():
    entry = render_entry(row("wcag121", "NOT_SUPPORTED"), default_tables())
    assert entry.adherence == "not-applicable"
    assert entry.notes == NOT_APPLICABLE_NOTE


def test_supported_uses_positive_statement():
    entry = render_entry(row("wcag111", "SUPPORTED", "model text"), default_tables())
    assert entry.adherence == "supports"
    assert entry.notes == POSITIVE_STATEMENTS["1.1.1"]


def test_excluded_criterion_is_dropped():
    assert render_entry(row("wcag258", "NOT_SUPPORTED"), default_tables()) is None


def test_unmapped_levels_are_not_evaluated():
    tables = default_tables()
    assert render_entry(row("wcag131", "REQUIRES_REVIEW"), tables).adherence == "not-evaluated"
    assert render_entry(row("wcag131", "ERROR"), tables).adherence == "not-evaluated"
    entry = render_entry(row("wcag131", "garbage", summary=""), tables)
    assert entry.adherence == "not-evaluated"
    assert entry.notes == NO_ASSESSMENT_NOTE


def test_missing_not_applicable_rows_are_synthesized():
    entries = build_entries([row("wcag111", "PARTIALLY_SUPPORTED")], default_tables())
    a_nums = [e.num for e in entries["A"]]
    assert a_nums[0] == "1.1.1"
    assert a_nums[1:] == ["1.2.1", "1.2.3", "1.4.2", "2.1.4", "2.2.1", "2.2.2", "2.3.1", "2.5.4", "4.1.1"]
    assert [e.num for e in entries["AA"]] == ["1.2.4", "1.2.5"]
    assert entries["AAA"] == []


def test_unknown_code_is_kept_and_bucketed_as_aa():
    entries = build_entries([row("wcag999", "NOT_SUPPORTED")], default_tables())
    assert "wcag999" in [e.num for e in entries["AA"]]


def test_duplicate_rows_render_once():
    entries = build_entries(
        [row("wcag143", "NOT_SUPPORTED"), row("1.4.3", "SUPPORTED")], default_tables()
    )
    assert [e.num for e in entries["AA"]].count("1.4.3") == 1


def test_tier_overrides_fall_back_to_aa():
    tables = default_tables()
    tables.tiers.update({"1.1.1": "AAA", "1.4.3": "B"})
    assert tier_for("1.1.1", tables) == "AAA"
    assert tier_for("1.4.3", tables) == "AA"
    assert tier_for("2.1.1", tables) == "A"
    assert tier_for("9.9.9", tables) == "AA"


# ------------------ Scalars ------------------
def test_scalar_quoting():
    assert format_scalar("Not applicable.") == "Not applicable."
    assert format_scalar("Note: colon inside") == '"Note: colon inside"'
    assert format_scalar("yes") == '"yes"'
    assert format_scalar('say "hi"') == '"say \\"hi\\""'
    assert format_scalar("") == '""'
    assert format_scalar(None) == '""'


def test_long_notes_are_folded():
    text = "Screen reader users " * 6
    folded = format_notes(text)
    assert folded.startswith(">-\n")
    doc = yaml.safe_load(f"notes: {folded}")
    assert doc["notes"] == text.strip()


def test_multiline_notes_keep_paragraphs():
    text = "First paragraph.\n\nSecond paragraph: details."
    doc = yaml.safe_load(f"notes: {format_notes(text, indent='')}")
    assert doc["notes"] == "First paragraph.\nSecond paragraph: details."


# ------------------ Document ------------------
def test_document_structure_and_components():
    service = RendererService(default_tables())
    document = service.render([row("wcag111", "PARTIALLY_SUPPORTED")], report_date=DATE)
    data = yaml.safe_load(document)
    assert data["report_date"] == DATE
    assert data["last_modified_date"] == DATE
    found = by_num(data)
    tier, item = found["1.1.1"]
    assert tier == "A"
    assert [c["name"] for c in item["components"]] == [
        "web",
        "electronic-docs",
        "software",
        "authoring-tool",
    ]
    assert web_component(item)["adherence"]["level"] == "partially-supports"
    authoring = item["components"][3]["adherence"]
    assert authoring == web_component(item)["adherence"]
    assert item["components"][1]["adherence"] == {"level": "not-applicable", "notes": ""}
    assert chapter(data, "AAA")["criteria"] == []


def test_full_catalog_renders_each_criterion_once():
    rows = [row(c.code, "SUPPORTED") for c in CRITERIA]
    data = yaml.safe_load(RendererService(default_tables()).render(rows, report_date=DATE))
    found = by_num(data)
    expected = {c.num for c in CRITERIA} - EXCLUDED_FROM_REPORT
    assert set(found) == expected
    for criterion in CRITERIA:
        if criterion.num in expected:
            assert found[criterion.num][0] == criterion.tier
    assert web_component(found["1.2.1"][1])["adherence"]["level"] == "not-applicable"
    assert web_component(found["1.4.3"][1])["adherence"]["notes"] == POSITIVE_STATEMENTS["1.4.3"]


def test_rendering_is_deterministic():
    rows = [row("wcag143", "NOT_SUPPORTED"), row("wcag111", "SUPPORTED")]
    service = RendererService(default_tables())
    assert service.render(rows, report_date=DATE) == service.render(rows, report_date=DATE)


def test_header_must_end_with_criteria_key():
    assert render_header("title: ${timestamp}\ncriteria:\n", DATE) == f"title: {DATE}\ncriteria:"
    with pytest.raises(ReportRenderError):
        render_header("title: x\n", DATE)


def test_invalid_document_raises():
    with pytest.raises(ReportRenderError):
        validate_document("chapters: [unclosed\n")
    with pytest.raises(ReportRenderError):
        validate_document("just text")
    entries = {"A": [RenderedEntry("1.1.1", "supports", "ok")]}
    with pytest.raises(ReportRenderError):
        render_document(entries, "title: x\ncriteria:", "", DATE)


def test_render_file_writes_report(tmp_path):
    rows = [row("wcag111", "NOT_SUPPORTED"), row("wcag143", "PARTIALLY_SUPPORTED")]
    source = write_frame(assessments_to_dataframe(rows), tmp_path / "consolidated.csv", CONSOLIDATED_COLUMNS)
    out = RendererService(default_tables()).render_file(source, tmp_path / "results")
    assert out.name.startswith("drupal-openacr_")
    assert out.suffix == ".yaml"
    data = yaml.safe_load(out.read_text(encoding="utf-8"))
    assert web_component(by_num(data)["1.1.1"][1])["adherence"]["level"] == "does-not-support"


def test_render_file_writes_nothing_on_failure(tmp_path):
    source = write_frame(
        assessments_to_dataframe([row("wcag111", "SUPPORTED")]),
        tmp_path / "consolidated.csv",
        CONSOLIDATED_COLUMNS,
    )
    bad_header = tmp_path / "header.yaml"
    bad_header.write_text("title: [broken\nchapters:\n  success_criteria_level_a:\n    criteria:\n")
    service = RendererService(default_tables(), header_path=bad_header)
    with pytest.raises(ReportRenderError):
        service.render_file(source, tmp_path / "results")
    assert not (tmp_path / "results").exists() or not list((tmp_path / "results").iterdir())


def test_missing_template_raises(tmp_path):
    service = RendererService(default_tables(), header_path=tmp_path / "nope.yaml")
    with pytest.raises(ReportRenderError):
        service.render([], report_date=DATE)


def test_unicode_line_breaks_and_controls_render_valid_yaml():
    first = "Focus order skips the dialog close button"
    second = "keyboard users cannot dismiss it" + "." * 26
    narrative = f"{first}\u2028{second}"
    assert len(narrative) == 100
    service = RendererService(default_tables())
    data = yaml.safe_load(
        service.render(
            [row("wcag111", "NOT_SUPPORTED", narrative), row("wcag143", "PARTIALLY_SUPPORTED", "Bad \x1b char")],
            report_date=DATE,
        )
    )
    found = by_num(data)
    folded = web_component(found["1.1.1"][1])["adherence"]["notes"]
    assert folded == f"{first} {second}"
    escaped = web_component(found["1.4.3"][1])["adherence"]["notes"]
    assert escaped == "Bad  char"


def test_notes_drop_paragraph_and_next_line_breaks():
    text = "One.\u2029Two.\x85Three."
    doc = yaml.safe_load(f"notes: {format_notes(text, indent='')}")
    assert doc["notes"] == "One. Two. Three."
    assert format_scalar("bell\x07") == "bell"
