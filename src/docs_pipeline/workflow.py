"""GitHub Actions workflow that drives the pipeline."""

import logging
from pathlib import Path
from typing import Dict, Any

import yaml

from docs_pipeline.core.simple_config import PipelineSettings

logger = logging.getLogger(__name__)

DEFAULT_WORKFLOW_PATH = ".github/workflows/docs.yml"

CHECKOUT_ACTION = "actions/checkout@v4"
SETUP_PYTHON_ACTION = "actions/setup-python@v5"


def render_workflow(settings: PipelineSettings) -> Dict[str, Any]:
    """Build the workflow definition as a YAML-compatible dictionary.

    Publish gating is not expressed in the workflow itself; `docs-pipeline run`
    evaluates it from the event environment.
    """
    steps = [
        {"uses": CHECKOUT_ACTION},
        {
            "uses": SETUP_PYTHON_ACTION,
            "with": {
                "python-version": settings.python_version,
                "cache": "pip",
                "cache-dependency-path": settings.lock_file,
            },
        },
        {"run": "python -m pip install ."},
        {
            "run": "docs-pipeline run",
            "env": {
                settings.token_env: "${{ secrets.GITHUB_TOKEN }}",
            },
        },
    ]

    return {
        "name": "Docs",
        "on": {
            "pull_request": None,
            "push": None,
            "schedule": [{"cron": settings.schedule_cron}],
        },
        "permissions": {"contents": "write"},
        "jobs": {
            "docs": {
                "runs-on": "ubuntu-latest",
                "timeout-minutes": settings.timeout_minutes,
                "steps": steps,
            },
        },
    }


def dump_workflow(settings: PipelineSettings) -> str:
    """Serialize the workflow with stable key order."""
    return yaml.safe_dump(render_workflow(settings), sort_keys=False, default_flow_style=False)


def write_workflow(settings: PipelineSettings, path: str = DEFAULT_WORKFLOW_PATH) -> Path:
    """Write the workflow file, creating parent directories.

    Args:
        settings: Pipeline settings
        path: Destination, relative to the checkout when not absolute

    Returns:
        Path that was written
    """
    target = Path(path)
    if not target.is_absolute():
        target = settings.checkout_dir / target
    target.parent.mkdir(parents=True, exist_ok=True)

    with open(target, "w") as f:
        f.write(dump_workflow(settings))

    logger.info(f"[WORKFLOW] Wrote {target}")
    return target
