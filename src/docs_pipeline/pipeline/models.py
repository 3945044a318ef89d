"""Data models for pipeline events and run results."""

import os
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import List, Optional, Dict, Any, Mapping

from pydantic import BaseModel, Field


class EventKind(str, Enum):
    """Event names the pipeline reacts to."""
    PULL_REQUEST = "pull_request"
    PUSH = "push"
    SCHEDULE = "schedule"
    WORKFLOW_DISPATCH = "workflow_dispatch"


class StageStatus(str, Enum):
    """Outcome of a single stage."""
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


class RunStatus(str, Enum):
    """Overall outcome of a run. There is no partial state."""
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class PipelineEvent(BaseModel):
    """Metadata of the event that triggered a run."""

    event_name: str = Field(..., description="Event kind, e.g. 'push' or 'pull_request'")
    ref: str = Field("", description="Fully qualified git ref, e.g. 'refs/heads/develop'")
    repository_owner: str = Field("", description="Owner of the repository the event came from")
    repository: str = Field("", description="owner/name slug of the repository")
    sha: str = Field("", description="Commit being built")

    @property
    def kind(self) -> Optional[EventKind]:
        """EventKind for known event names, None otherwise."""
        try:
            return EventKind(self.event_name)
        except ValueError:
            return None

    @property
    def branch(self) -> Optional[str]:
        """Short branch name when ref points at a branch."""
        prefix = "refs/heads/"
        if self.ref.startswith(prefix):
            return self.ref[len(prefix):]
        return None

    @classmethod
    def from_environment(cls, environ: Optional[Mapping[str, str]] = None) -> "PipelineEvent":
        """Create an event from the GitHub Actions environment variables.

        Args:
            environ: Mapping to read from (defaults to os.environ)

        Returns:
            PipelineEvent instance
        """
        env = os.environ if environ is None else environ
        repository = env.get("GITHUB_REPOSITORY", "")
        owner = env.get("GITHUB_REPOSITORY_OWNER") or repository.split("/")[0]
        return cls(
            event_name=env.get("GITHUB_EVENT_NAME", ""),
            ref=env.get("GITHUB_REF", ""),
            repository_owner=owner,
            repository=repository,
            sha=env.get("GITHUB_SHA", ""),
        )


@dataclass
class TriggerDecision:
    """Whether a run builds and whether it publishes."""

    run_build: bool
    run_publish: bool
    reasons: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "run_build": self.run_build,
            "run_publish": self.run_publish,
            "reasons": list(self.reasons),
        }


@dataclass
class BuildArtifact:
    """Generated site output."""

    path: Path
    file_count: int


@dataclass
class PublishResult:
    """Outcome of pushing an artifact to the hosting branch."""

    status: str  # "published", "up_to_date"
    branch: str
    commit_sha: str
    files_published: int


@dataclass
class StageResult:
    """Outcome of one stage in a run."""

    name: str
    status: StageStatus
    duration_seconds: float = 0.0
    detail: Optional[str] = None


@dataclass
class RunResult:
    """Outcome of a full pipeline run."""

    run_id: str
    event: PipelineEvent
    decision: TriggerDecision
    status: RunStatus
    started_at: datetime
    finished_at: datetime
    stages: List[StageResult] = field(default_factory=list)
    error: Optional[str] = None
    artifact: Optional[BuildArtifact] = None
    publish: Optional[PublishResult] = None

    @property
    def succeeded(self) -> bool:
        return self.status == RunStatus.SUCCEEDED

    def stage(self, name: str) -> Optional[StageResult]:
        """Get a stage result by name."""
        for stage in self.stages:
            if stage.name == name:
                return stage
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-compatible dictionary."""
        data = {
            "run_id": self.run_id,
            "event": self.event.model_dump(),
            "decision": self.decision.to_dict(),
            "status": self.status.value,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat(),
            "stages": [
                {
                    "name": s.name,
                    "status": s.status.value,
                    "duration_seconds": round(s.duration_seconds, 3),
                    "detail": s.detail,
                }
                for s in self.stages
            ],
        }
        if self.error:
            data["error"] = self.error
        if self.artifact:
            data["artifact"] = {
                "path": str(self.artifact.path),
                "file_count": self.artifact.file_count,
            }
        if self.publish:
            data["publish"] = {
                "status": self.publish.status,
                "branch": self.publish.branch,
                "commit_sha": self.publish.commit_sha,
                "files_published": self.publish.files_published,
            }
        return data
