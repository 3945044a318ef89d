"""Runs Setup → Build → Publish for one triggering event."""

import time
import uuid
from datetime import datetime, timezone
from typing import Callable, List, Optional

import structlog

from docs_pipeline.core.errors import PipelineError, RunTimeoutError
from docs_pipeline.core.hosting_branch import HostingBranchPublisher
from docs_pipeline.core.simple_config import PipelineSettings
from docs_pipeline.pipeline.build import build_site
from docs_pipeline.pipeline.environment import prepare_environment
from docs_pipeline.pipeline.models import (
    BuildArtifact,
    PipelineEvent,
    PublishResult,
    RunResult,
    RunStatus,
    StageResult,
    StageStatus,
)
from docs_pipeline.pipeline.triggers import evaluate

logger = structlog.get_logger()

STAGES = ("setup", "build", "publish")

SetupFn = Callable[[PipelineSettings, Optional[float]], None]
BuildFn = Callable[[PipelineSettings, Optional[float]], BuildArtifact]
PublishFn = Callable[[BuildArtifact, str, Optional[float]], PublishResult]


class PipelineRunner:
    """Runs the stages of one pipeline run in order.

    A stage only starts if every earlier stage succeeded. Publish additionally
    requires the trigger decision to allow it. The first PipelineError marks
    the run failed and the remaining stages skipped.
    """

    def __init__(
        self,
        settings: PipelineSettings,
        setup: Optional[SetupFn] = None,
        build: Optional[BuildFn] = None,
        publish: Optional[PublishFn] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize runner.

        Args:
            settings: Pipeline settings
            setup: Setup stage (defaults to prepare_environment)
            build: Build stage (defaults to build_site)
            publish: Publish stage (defaults to HostingBranchPublisher.publish)
            clock: Monotonic clock used for the run time limit
        """
        self.settings = settings
        self.setup = setup or prepare_environment
        self.build = build or build_site
        self.publish = publish or self._publish_to_hosting_branch
        self.clock = clock

    def _publish_to_hosting_branch(
        self, artifact: BuildArtifact, run_id: str, timeout: Optional[float]
    ) -> PublishResult:
        publisher = HostingBranchPublisher(self.settings)
        return publisher.publish(artifact, run_id=run_id, timeout=timeout)

    def run(self, event: PipelineEvent, run_id: Optional[str] = None) -> RunResult:
        """Run the pipeline for an event.

        Args:
            event: Triggering event
            run_id: Optional identifier (generated when omitted)

        Returns:
            RunResult with per-stage outcomes
        """
        run_id = run_id or uuid.uuid4().hex[:12]
        log = logger.bind(run_id=run_id, event=event.event_name, ref=event.ref)
        started_at = datetime.now(timezone.utc)
        start = self.clock()
        deadline = start + self.settings.timeout_minutes * 60

        decision = evaluate(event, self.settings)
        log.info(
            "run_started",
            run_build=decision.run_build,
            run_publish=decision.run_publish,
            reasons=decision.reasons,
        )

        stages: List[StageResult] = []
        artifact: Optional[BuildArtifact] = None
        publish_result: Optional[PublishResult] = None
        error: Optional[str] = None

        def remaining(stage: str) -> float:
            left = deadline - self.clock()
            if left <= 0:
                raise RunTimeoutError(
                    f"Run exceeded {self.settings.timeout_minutes} minute limit before {stage}",
                    stage=stage,
                )
            return left

        for name in STAGES:
            if error is not None or not decision.run_build:
                stages.append(StageResult(name=name, status=StageStatus.SKIPPED))
                continue
            if name == "publish" and not decision.run_publish:
                stages.append(StageResult(
                    name=name,
                    status=StageStatus.SKIPPED,
                    detail="; ".join(decision.reasons),
                ))
                log.info("publish_skipped", reasons=decision.reasons)
                continue

            stage_start = self.clock()
            try:
                if name == "setup":
                    self.setup(self.settings, remaining(name))
                    detail = None
                elif name == "build":
                    artifact = self.build(self.settings, remaining(name))
                    detail = f"{artifact.file_count} files"
                else:
                    publish_result = self.publish(artifact, run_id, remaining(name))
                    detail = f"{publish_result.status} {publish_result.commit_sha[:8]}"
                if self.clock() > deadline:
                    raise RunTimeoutError(
                        f"Run exceeded {self.settings.timeout_minutes} minute limit during {name}",
                        stage=name,
                    )
            except PipelineError as e:
                error = f"{e.stage}: {e}"
                stages.append(StageResult(
                    name=name,
                    status=StageStatus.FAILED,
                    duration_seconds=self.clock() - stage_start,
                    detail=str(e),
                ))
                log.error("stage_failed", stage=name, error=str(e))
                continue

            stages.append(StageResult(
                name=name,
                status=StageStatus.SUCCEEDED,
                duration_seconds=self.clock() - stage_start,
                detail=detail,
            ))
            log.info("stage_succeeded", stage=name, detail=detail)

        status = RunStatus.FAILED if error else RunStatus.SUCCEEDED
        log.info("run_finished", status=status.value, seconds=round(self.clock() - start, 3))

        return RunResult(
            run_id=run_id,
            event=event,
            decision=decision,
            status=status,
            started_at=started_at,
            finished_at=datetime.now(timezone.utc),
            stages=stages,
            error=error,
            artifact=artifact,
            publish=publish_result,
        )
