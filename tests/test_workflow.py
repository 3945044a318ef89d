"""Tests for the generated CI workflow."""

import yaml

from docs_pipeline.core.simple_config import PipelineSettings, load_config
from docs_pipeline.workflow import DEFAULT_WORKFLOW_PATH, dump_workflow, render_workflow, write_workflow

from conftest import REPO_ROOT


def test_triggers_and_schedule():
    workflow = render_workflow(PipelineSettings())

    assert set(workflow["on"]) == {"pull_request", "push", "schedule"}
    assert workflow["on"]["schedule"] == [{"cron": "0 0 * * 0"}]


def test_job_pins_runtime_and_timeout():
    settings = PipelineSettings(python_version="3.12", timeout_minutes=20, lock_file="deps.lock")
    job = render_workflow(settings)["jobs"]["docs"]

    assert job["timeout-minutes"] == 20
    setup_python = job["steps"][1]
    assert setup_python["with"]["python-version"] == "3.12"
    assert setup_python["with"]["cache-dependency-path"] == "deps.lock"


def test_token_only_reaches_pipeline_step():
    steps = render_workflow(PipelineSettings())["jobs"]["docs"]["steps"]

    with_env = [step for step in steps if "env" in step]
    assert len(with_env) == 1
    assert with_env[0]["run"] == "docs-pipeline run"
    assert with_env[0]["env"] == {"GITHUB_TOKEN": "${{ secrets.GITHUB_TOKEN }}"}


def test_dump_round_trips_with_string_keys():
    settings = PipelineSettings()
    loaded = yaml.safe_load(dump_workflow(settings))

    # 'on' must stay a string key, not YAML 1.1's boolean True
    assert "on" in loaded
    assert loaded == render_workflow(settings)


def test_write_workflow(settings):
    path = write_workflow(settings)

    assert path == settings.checkout_dir / DEFAULT_WORKFLOW_PATH
    assert yaml.safe_load(path.read_text()) == render_workflow(settings)


def test_checked_in_workflow_is_current():
    settings = load_config(str(REPO_ROOT / "pipeline.yaml"))
    checked_in = yaml.safe_load((REPO_ROOT / DEFAULT_WORKFLOW_PATH).read_text())
    assert checked_in == render_workflow(settings)
