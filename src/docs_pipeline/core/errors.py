"""Error types raised by pipeline stages."""

from typing import Optional


class PipelineError(Exception):
    """Base error for a failed pipeline stage.

    Any PipelineError is fatal to the run it was raised in.
    """

    stage: str = "pipeline"

    def __init__(self, message: str, stage: Optional[str] = None):
        super().__init__(message)
        if stage:
            self.stage = stage


class ConfigError(PipelineError):
    """Configuration file or environment override is invalid."""

    stage = "config"


class SetupError(PipelineError):
    """Runtime or dependencies could not be provisioned."""

    stage = "setup"


class BuildError(PipelineError):
    """Site generator failed or produced no artifact."""

    stage = "build"


class PublishError(PipelineError):
    """Artifact could not be pushed to the hosting branch."""

    stage = "publish"


class RunTimeoutError(PipelineError):
    """Run exceeded its wall-clock ceiling."""

    stage = "timeout"
