"""Environment setup stage: runtime pin check and lock-file install."""

import sys
import logging
import subprocess
from typing import List, Optional, Tuple

from docs_pipeline.core.errors import SetupError, RunTimeoutError
from docs_pipeline.core.simple_config import PipelineSettings

logger = logging.getLogger(__name__)


def runtime_matches(pinned: str, version_info: Optional[Tuple[int, ...]] = None) -> bool:
    """Check the running interpreter against a pinned version.

    Only as many components as the pin names are compared, so a pin of
    "3.11" accepts any 3.11.x.

    Args:
        pinned: Version string such as "3.11" or "3.11.4"
        version_info: Interpreter version (defaults to sys.version_info)

    Returns:
        True if the interpreter satisfies the pin
    """
    current = tuple(version_info or sys.version_info[:3])
    wanted = tuple(int(part) for part in pinned.split("."))
    return current[:len(wanted)] == wanted


def install_command(settings: PipelineSettings) -> List[str]:
    """Single fixed installer invocation for the lock file."""
    return [sys.executable, "-m", "pip", "install", "-r", str(settings.lock_file_path)]


def prepare_environment(settings: PipelineSettings, timeout: Optional[float] = None) -> None:
    """Provision the runtime and dependencies for the build.

    Args:
        settings: Pipeline settings
        timeout: Seconds left in the run budget

    Raises:
        SetupError: If the runtime does not match or the install fails
        RunTimeoutError: If the install runs past the run budget
    """
    current = ".".join(str(part) for part in sys.version_info[:3])
    if not runtime_matches(settings.python_version):
        raise SetupError(
            f"Python {current} does not match pinned version {settings.python_version}"
        )
    logger.info(f"[SETUP] Python {current} satisfies pin {settings.python_version}")

    if not settings.install_dependencies:
        logger.info("[SETUP] Dependency install disabled, using pre-provisioned environment")
        return

    lock_path = settings.lock_file_path
    if not lock_path.is_file():
        raise SetupError(f"Lock file not found: {lock_path}")

    cmd = install_command(settings)
    logger.info(f"[SETUP] Installing dependencies from {lock_path.name}")
    try:
        result = subprocess.run(
            cmd,
            cwd=str(settings.checkout_dir),
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired:
        raise RunTimeoutError("Dependency install exceeded the run time limit", stage="setup")
    except OSError as e:
        raise SetupError(f"Could not start installer: {e}")

    if result.returncode != 0:
        logger.error(f"[SETUP] Installer output:\n{result.stderr.strip()}")
        raise SetupError(f"Dependency install failed with exit code {result.returncode}")

    logger.info("[SETUP] ✓ Dependencies installed")
