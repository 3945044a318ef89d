"""Build stage: run the site generator and collect its output."""

import logging
import subprocess
from pathlib import Path
from typing import Optional

from docs_pipeline.core.errors import BuildError, RunTimeoutError
from docs_pipeline.core.simple_config import PipelineSettings
from docs_pipeline.pipeline.models import BuildArtifact

logger = logging.getLogger(__name__)


def count_files(path: Path) -> int:
    """Number of regular files below a directory."""
    return sum(1 for p in path.rglob("*") if p.is_file())


def build_site(settings: PipelineSettings, timeout: Optional[float] = None) -> BuildArtifact:
    """Run the generator once and return the artifact it produced.

    Args:
        settings: Pipeline settings with the build command and artifact dir
        timeout: Seconds left in the run budget

    Returns:
        BuildArtifact describing the generated directory

    Raises:
        BuildError: If the generator fails or leaves no artifact
        RunTimeoutError: If the generator runs past the run budget
    """
    cmd = list(settings.build_command)
    logger.info(f"[BUILD] Running: {' '.join(cmd)}")
    logger.info(f"[BUILD] Checkout: {settings.checkout_dir.resolve()}")

    try:
        result = subprocess.run(
            cmd,
            cwd=str(settings.checkout_dir),
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired:
        raise RunTimeoutError("Site generator exceeded the run time limit", stage="build")
    except OSError as e:
        raise BuildError(f"Could not start site generator '{cmd[0]}': {e}")

    if result.stdout.strip():
        logger.debug(f"[BUILD] Generator output:\n{result.stdout.strip()}")

    if result.returncode != 0:
        logger.error(f"[BUILD] Generator errors:\n{result.stderr.strip()}")
        raise BuildError(f"Site generator exited with code {result.returncode}")

    artifact_path = settings.artifact_path
    if not artifact_path.is_dir():
        raise BuildError(f"Generator finished but artifact directory is missing: {artifact_path}")

    file_count = count_files(artifact_path)
    if file_count == 0:
        raise BuildError(f"Artifact directory is empty: {artifact_path}")

    logger.info(f"[BUILD] ✓ Generated {file_count} files in {artifact_path}")
    return BuildArtifact(path=artifact_path, file_count=file_count)
