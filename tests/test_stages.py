"""Tests for the setup and build stages."""

import subprocess
import sys
from unittest.mock import patch

import pytest

from docs_pipeline.core.errors import BuildError, RunTimeoutError, SetupError
from docs_pipeline.pipeline.build import build_site, count_files
from docs_pipeline.pipeline.environment import (
    install_command,
    prepare_environment,
    runtime_matches,
)

GENERATE_SITE = (
    "import pathlib; out = pathlib.Path('build'); (out / 'css').mkdir(parents=True); "
    "(out / 'index.html').write_text('<h1>docs</h1>'); "
    "(out / 'css' / 'site.css').write_text('body {}')"
)


def python_command(code):
    return [sys.executable, "-c", code]


class TestRuntimeMatches:
    def test_major_minor_pin(self):
        assert runtime_matches("3.11", (3, 11, 4)) is True
        assert runtime_matches("3.11", (3, 12, 0)) is False

    def test_patch_pin(self):
        assert runtime_matches("3.11.4", (3, 11, 4)) is True
        assert runtime_matches("3.11.4", (3, 11, 5)) is False

    def test_current_interpreter(self, settings):
        assert runtime_matches(settings.python_version) is True


class TestPrepareEnvironment:
    def test_version_mismatch_is_fatal(self, settings):
        pinned = settings.model_copy(update={"python_version": "2.7"})
        with pytest.raises(SetupError, match="does not match pinned version 2.7"):
            prepare_environment(pinned)

    def test_install_disabled_skips_installer(self, settings):
        with patch("docs_pipeline.pipeline.environment.subprocess.run") as run:
            prepare_environment(settings)
        run.assert_not_called()

    def test_missing_lock_file(self, settings):
        installing = settings.model_copy(update={"install_dependencies": True})
        with pytest.raises(SetupError, match="Lock file not found"):
            prepare_environment(installing)

    def test_installs_from_lock_file(self, settings):
        (settings.checkout_dir / "requirements.lock").write_text("mkdocs==1.6.1\n")
        installing = settings.model_copy(update={"install_dependencies": True})

        completed = subprocess.CompletedProcess(args=[], returncode=0, stdout="", stderr="")
        with patch("docs_pipeline.pipeline.environment.subprocess.run", return_value=completed) as run:
            prepare_environment(installing, timeout=120)

        cmd = run.call_args.args[0]
        assert cmd == install_command(installing)
        assert cmd[1:5] == ["-m", "pip", "install", "-r"]
        assert cmd[-1].endswith("requirements.lock")
        assert run.call_args.kwargs["timeout"] == 120

    def test_installer_failure_is_fatal(self, settings):
        (settings.checkout_dir / "requirements.lock").write_text("no-such-package==0\n")
        installing = settings.model_copy(update={"install_dependencies": True})

        failed = subprocess.CompletedProcess(args=[], returncode=1, stdout="", stderr="No matching distribution")
        with patch("docs_pipeline.pipeline.environment.subprocess.run", return_value=failed):
            with pytest.raises(SetupError, match="exit code 1"):
                prepare_environment(installing)

    def test_installer_timeout(self, settings):
        (settings.checkout_dir / "requirements.lock").write_text("mkdocs==1.6.1\n")
        installing = settings.model_copy(update={"install_dependencies": True})

        with patch(
            "docs_pipeline.pipeline.environment.subprocess.run",
            side_effect=subprocess.TimeoutExpired(cmd="pip", timeout=1),
        ):
            with pytest.raises(RunTimeoutError) as exc_info:
                prepare_environment(installing, timeout=1)
        assert exc_info.value.stage == "setup"


class TestBuildSite:
    def test_collects_generated_artifact(self, settings):
        configured = settings.model_copy(update={"build_command": python_command(GENERATE_SITE)})
        artifact = build_site(configured)

        assert artifact.path == settings.artifact_path
        assert artifact.file_count == 2
        assert (artifact.path / "index.html").read_text() == "<h1>docs</h1>"

    def test_generator_failure(self, settings):
        configured = settings.model_copy(update={
            "build_command": python_command("import sys; sys.stderr.write('bad front matter'); sys.exit(3)")
        })
        with pytest.raises(BuildError, match="exited with code 3"):
            build_site(configured)

    def test_missing_artifact_directory(self, settings):
        configured = settings.model_copy(update={"build_command": python_command("pass")})
        with pytest.raises(BuildError, match="artifact directory is missing"):
            build_site(configured)

    def test_empty_artifact_directory(self, settings):
        configured = settings.model_copy(update={
            "build_command": python_command("import os; os.mkdir('build')")
        })
        with pytest.raises(BuildError, match="empty"):
            build_site(configured)

    def test_generator_not_installed(self, settings):
        configured = settings.model_copy(update={"build_command": ["definitely-not-a-site-generator"]})
        with pytest.raises(BuildError, match="Could not start site generator"):
            build_site(configured)

    def test_generator_timeout(self, settings):
        configured = settings.model_copy(update={
            "build_command": python_command("import time; time.sleep(10)")
        })
        with pytest.raises(RunTimeoutError) as exc_info:
            build_site(configured, timeout=0.2)
        assert exc_info.value.stage == "build"

    def test_count_files_recurses(self, artifact):
        assert count_files(artifact.path) == 2
