"""Shared pytest fixtures for docs-pipeline tests."""

import os
import sys
import stat
import shutil
from pathlib import Path

import pytest
from git import Repo

from docs_pipeline.core.logging_config import configure_logging
from docs_pipeline.core.simple_config import PipelineSettings, reset_config
from docs_pipeline.pipeline.models import BuildArtifact, PipelineEvent

REPO_ROOT = Path(__file__).resolve().parent.parent

CURRENT_PYTHON = f"{sys.version_info.major}.{sys.version_info.minor}"


@pytest.fixture(scope="session", autouse=True)
def pipeline_logging():
    """Route structlog through stdlib logging for the whole session."""
    configure_logging(verbose=True)


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch):
    """Drop CI and pipeline variables so tests never see the host's event."""
    for name in list(os.environ):
        if name.startswith("GITHUB_") or name.startswith("DOCS_PIPELINE_"):
            monkeypatch.delenv(name, raising=False)

    # Commits made by fixtures need an identity even without a global git config
    monkeypatch.setenv("GIT_AUTHOR_NAME", "Docs Tester")
    monkeypatch.setenv("GIT_AUTHOR_EMAIL", "docs-tester@example.com")
    monkeypatch.setenv("GIT_COMMITTER_NAME", "Docs Tester")
    monkeypatch.setenv("GIT_COMMITTER_EMAIL", "docs-tester@example.com")

    reset_config()
    yield
    reset_config()


@pytest.fixture
def settings(tmp_path):
    """Settings rooted in a temporary checkout with dependency install off."""
    checkout = tmp_path / "checkout"
    checkout.mkdir()
    return PipelineSettings(
        checkout_dir=checkout,
        python_version=CURRENT_PYTHON,
        install_dependencies=False,
    )


def make_event(
    event_name: str = "push",
    ref: str = "refs/heads/develop",
    owner: str = "scalikejdbc",
) -> PipelineEvent:
    """Create an event, defaulting to one that qualifies for publishing."""
    return PipelineEvent(
        event_name=event_name,
        ref=ref,
        repository_owner=owner,
        repository=f"{owner}/scalikejdbc.github.io",
        sha="0123456789abcdef0123456789abcdef01234567",
    )


@pytest.fixture
def push_event():
    return make_event()


@pytest.fixture
def pull_request_event():
    return make_event(event_name="pull_request", ref="refs/pull/42/merge")


@pytest.fixture
def schedule_event():
    return make_event(event_name="schedule")


@pytest.fixture
def bare_remote(tmp_path):
    """Bare repository standing in for the hosting remote."""
    path = tmp_path / "remote.git"
    Repo.init(str(path), bare=True)
    return path


@pytest.fixture
def source_repo(settings, bare_remote):
    """Checkout with one commit of documentation sources and an origin remote."""
    repo = Repo.init(str(settings.checkout_dir))
    (settings.checkout_dir / ".gitignore").write_text("build/\n")
    (settings.checkout_dir / "README.md").write_text("# docs sources\n")
    (settings.checkout_dir / "docs").mkdir()
    (settings.checkout_dir / "docs" / "index.md").write_text("# Home\n")
    repo.git.add("-A")
    repo.git.commit("-m", "Add documentation sources")
    repo.create_remote("origin", str(bare_remote))
    return repo


def write_artifact(settings: PipelineSettings, files: dict) -> BuildArtifact:
    """Replace the artifact directory with the given relative path -> content map."""
    artifact_dir = settings.artifact_path
    if artifact_dir.exists():
        shutil.rmtree(artifact_dir)
    artifact_dir.mkdir(parents=True, exist_ok=True)

    for rel_path, content in files.items():
        target = artifact_dir / rel_path
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content)
    return BuildArtifact(path=artifact_dir, file_count=len(files))


@pytest.fixture
def artifact(settings):
    return write_artifact(settings, {
        "index.html": "<h1>SQL templates</h1>",
        "css/site.css": "body { margin: 0; }",
    })


def reject_pushes(bare_remote: Path) -> None:
    """Install a pre-receive hook that refuses every push."""
    hook = bare_remote / "hooks" / "pre-receive"
    hook.parent.mkdir(parents=True, exist_ok=True)
    hook.write_text("#!/bin/sh\necho 'remote: permission denied for docs bot' >&2\nexit 1\n")
    hook.chmod(hook.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
