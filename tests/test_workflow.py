import logging
from dataclasses import replace

import pytest
import yaml

from acr_app.app import STAGES, Stage, StageContext, run_workflow, select_steps
from acr_app.cli import ExitCode, collect_main, render_main, summarize_main, workflow_main
from acr_app.core.artifacts import write_frame
from acr_app.core.config import (
    API_KEY_ENV_VAR,
    CONSOLIDATED_COLUMNS,
    SETTINGS,
    MissingCredentialError,
)
from acr_app.core.mappers import assessments_to_dataframe
from acr_app.core.models import CriterionAssessmentModel
from acr_app.core.progress import ProgressReporter


@pytest.fixture
def workspace(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv(API_KEY_ENV_VAR, raising=False)
    return tmp_path


def test_stage_registry():
    assert sorted(STAGES) == [1, 2, 3, 4]
    assert [STAGES[n].name for n in sorted(STAGES)] == ["collect", "summarize", "consolidate", "render"]
    assert [n for n in sorted(STAGES) if STAGES[n].needs_api_key] == [2, 3]


def test_select_steps():
    assert select_steps() == [1, 2, 3, 4]
    assert select_steps(step=3) == [3]
    assert select_steps(start=2) == [2, 3, 4]
    assert select_steps(start=2, end=3) == [2, 3]
    assert select_steps(skip=[1, 3]) == [2, 4]
    with pytest.raises(ValueError):
        select_steps(step=7)
    with pytest.raises(ValueError):
        select_steps(start=4, end=2)
    with pytest.raises(ValueError):
        select_steps(skip=[9])


def test_dry_run_executes_nothing(workspace, monkeypatch):
    calls = []
    for n in (1, 2):
        stage = STAGES[n]
        monkeypatch.setitem(STAGES, n, replace(stage, runner=lambda ctx, n=n: calls.append(n)))
    ctx = StageContext(settings=replace(SETTINGS, results_dir=workspace))
    assert run_workflow([1, 2], ctx, dry_run=True) == {}
    assert calls == []


def test_api_key_checked_before_any_stage_runs(workspace, monkeypatch):
    calls = []
    monkeypatch.setitem(STAGES, 1, replace(STAGES[1], runner=lambda ctx: calls.append(1)))
    ctx = StageContext(settings=replace(SETTINGS, results_dir=workspace, env_file=workspace / ".env"))
    with pytest.raises(MissingCredentialError):
        run_workflow([1, 2], ctx)
    assert calls == []


def test_stages_hand_artifacts_forward(workspace, monkeypatch):
    def produce(ctx):
        path = workspace / "first.csv"
        ctx.artifacts["first"] = path
        return path

    def consume(ctx):
        return ctx.artifacts["first"].with_suffix(".yaml")

    monkeypatch.setitem(STAGES, 1, Stage(1, "collect", "first", produce))
    monkeypatch.setitem(STAGES, 4, Stage(4, "render", "second", consume))
    outputs = run_workflow([1, 4], StageContext(settings=replace(SETTINGS, results_dir=workspace)))
    assert outputs == {1: workspace / "first.csv", 4: workspace / "first.yaml"}


def test_failing_stage_stops_the_workflow(workspace, monkeypatch):
    calls = []

    def boom(ctx):
        raise RuntimeError("stage failed")

    monkeypatch.setitem(STAGES, 1, Stage(1, "collect", "first", boom))
    monkeypatch.setitem(STAGES, 4, Stage(4, "render", "second", lambda ctx: calls.append(4)))
    with pytest.raises(RuntimeError):
        run_workflow([1, 4], StageContext(settings=replace(SETTINGS, results_dir=workspace)))
    assert calls == []


def test_cli_usage_errors(workspace):
    assert workflow_main(["--step", "2", "--from", "1"]) == ExitCode.USAGE
    assert workflow_main(["--from", "3", "--to", "1"]) == ExitCode.USAGE
    assert workflow_main(["--criteria", "wcag999", "--dry-run"]) == ExitCode.USAGE
    assert collect_main(["--criteria", "bogus", "--urls-only"]) == ExitCode.USAGE


def test_cli_dry_run_succeeds_without_key(workspace):
    assert workflow_main(["--dry-run", "--results-dir", str(workspace / "results")]) == ExitCode.SUCCESS


def test_cli_missing_key_is_configuration_error(workspace):
    assert summarize_main(["--results-dir", str(workspace / "results")]) == ExitCode.CONFIGURATION


def test_cli_missing_input_is_configuration_error(workspace):
    assert render_main(["--results-dir", str(workspace / "results")]) == ExitCode.CONFIGURATION


def test_cli_urls_only_writes_manifest(workspace):
    results = workspace / "results"
    code = collect_main(["--criteria", "wcag111", "1.4.3", "--urls-only", "--results-dir", str(results)])
    assert code == ExitCode.SUCCESS
    files = list(results.glob("wcag-search-urls_*.csv"))
    assert len(files) == 1
    assert "issue_tags=wcag143" in files[0].read_text(encoding="utf-8")


def test_cli_render_uses_latest_consolidated_file(workspace):
    results = workspace / "results"
    rows = [CriterionAssessmentModel("wcag111", "NOT_SUPPORTED", "Images lack alt text.", 1, ["5"])]
    write_frame(
        assessments_to_dataframe(rows),
        results / "wcag-acr-consolidated_2024-05-01_09-00.csv",
        CONSOLIDATED_COLUMNS,
    )
    assert render_main(["--results-dir", str(results)]) == ExitCode.SUCCESS
    reports = list(results.glob("drupal-openacr_*.yaml"))
    assert len(reports) == 1
    data = yaml.safe_load(reports[0].read_text(encoding="utf-8"))
    first = data["chapters"]["success_criteria_level_a"]["criteria"][0]
    assert first["num"] == "1.1.1"
    assert first["components"][0]["adherence"]["notes"] == "Images lack alt text."


def test_progress_reporter_logs(caplog):
    caplog.set_level(logging.INFO, logger="acr_app.core.progress")
    reporter = ProgressReporter("Collecting")
    reporter.callback("Processing wcag111", 1, 3)
    reporter.complete("done")
    reporter.update("ignored after completion")
    messages = [r.getMessage() for r in caplog.records]
    assert messages == ["Collecting", "[1/3] Processing wcag111", "Collecting: done"]
