"""
docs-pipeline - build and publish the documentation site

Usage:
    docs-pipeline run [--event NAME] [--ref REF] [--owner OWNER]
    docs-pipeline evaluate [--event NAME] [--ref REF] [--owner OWNER]
    docs-pipeline build
    docs-pipeline publish [--message MSG]
    docs-pipeline render-workflow [--output PATH | --stdout]

Event details default to the GitHub Actions environment
(GITHUB_EVENT_NAME, GITHUB_REF, GITHUB_REPOSITORY_OWNER, ...).
"""

import argparse
import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from docs_pipeline.core.errors import PipelineError, PublishError
from docs_pipeline.core.hosting_branch import HostingBranchPublisher
from docs_pipeline.core.logging_config import configure_logging
from docs_pipeline.core.simple_config import PipelineSettings, get_config, load_config
from docs_pipeline.pipeline.build import build_site, count_files
from docs_pipeline.pipeline.models import BuildArtifact, PipelineEvent
from docs_pipeline.pipeline.runner import PipelineRunner
from docs_pipeline.pipeline.triggers import evaluate, next_scheduled_run
from docs_pipeline.workflow import DEFAULT_WORKFLOW_PATH, dump_workflow, write_workflow

logger = logging.getLogger(__name__)


def _print_json(data: Dict[str, Any]) -> None:
    print(json.dumps(data, indent=2))


def _event_from_args(args: argparse.Namespace) -> PipelineEvent:
    """Environment event with any command-line overrides applied."""
    event = PipelineEvent.from_environment()
    overrides = {
        "event_name": args.event,
        "ref": args.ref,
        "repository_owner": args.owner,
        "repository": args.repository,
        "sha": args.sha,
    }
    return event.model_copy(update={k: v for k, v in overrides.items() if v is not None})


def cmd_run(args: argparse.Namespace, settings: PipelineSettings) -> int:
    event = _event_from_args(args)
    result = PipelineRunner(settings).run(event)
    _print_json(result.to_dict())
    if not result.succeeded:
        logger.error(f"[RUN] Run {result.run_id} failed: {result.error}")
        return 1
    return 0


def cmd_evaluate(args: argparse.Namespace, settings: PipelineSettings) -> int:
    event = _event_from_args(args)
    data = evaluate(event, settings).to_dict()
    try:
        tick = next_scheduled_run(datetime.now(timezone.utc), settings.schedule_cron)
        data["next_scheduled_run"] = tick.isoformat()
    except ValueError as e:
        logger.warning(f"[EVALUATE] {e}")
        data["next_scheduled_run"] = None
    _print_json(data)
    return 0


def cmd_build(args: argparse.Namespace, settings: PipelineSettings) -> int:
    artifact = build_site(settings, timeout=settings.timeout_minutes * 60)
    _print_json({"path": str(artifact.path), "file_count": artifact.file_count})
    return 0


def cmd_publish(args: argparse.Namespace, settings: PipelineSettings) -> int:
    path = settings.artifact_path
    if not path.is_dir():
        raise PublishError(f"Artifact directory not found: {path}; run 'docs-pipeline build' first")

    artifact = BuildArtifact(path=path, file_count=count_files(path))
    result = HostingBranchPublisher(settings).publish(
        artifact, message=args.message, timeout=settings.timeout_minutes * 60
    )
    _print_json({
        "status": result.status,
        "branch": result.branch,
        "commit_sha": result.commit_sha,
        "files_published": result.files_published,
    })
    return 0


def cmd_render_workflow(args: argparse.Namespace, settings: PipelineSettings) -> int:
    if args.stdout:
        sys.stdout.write(dump_workflow(settings))
    else:
        write_workflow(settings, args.output)
    return 0


def _add_event_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--event", help="Event name (default: $GITHUB_EVENT_NAME)")
    parser.add_argument("--ref", help="Git ref (default: $GITHUB_REF)")
    parser.add_argument("--owner", help="Repository owner (default: $GITHUB_REPOSITORY_OWNER)")
    parser.add_argument("--repository", help="owner/name (default: $GITHUB_REPOSITORY)")
    parser.add_argument("--sha", help="Commit SHA (default: $GITHUB_SHA)")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="docs-pipeline",
        description="Build the documentation site and publish it to the hosting branch",
    )
    parser.add_argument("--config", help="Path to pipeline.yaml (default: ./pipeline.yaml)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Run setup, build and (if allowed) publish")
    _add_event_arguments(run_parser)
    run_parser.set_defaults(handler=cmd_run)

    evaluate_parser = subparsers.add_parser("evaluate", help="Show whether an event builds and publishes")
    _add_event_arguments(evaluate_parser)
    evaluate_parser.set_defaults(handler=cmd_evaluate)

    build_parser_ = subparsers.add_parser("build", help="Run the site generator only")
    build_parser_.set_defaults(handler=cmd_build)

    publish_parser = subparsers.add_parser("publish", help="Publish an existing artifact")
    publish_parser.add_argument("--message", help="Commit message for the hosting branch")
    publish_parser.set_defaults(handler=cmd_publish)

    workflow_parser = subparsers.add_parser("render-workflow", help="Generate the CI workflow file")
    workflow_parser.add_argument("--output", default=DEFAULT_WORKFLOW_PATH, help="Destination path")
    workflow_parser.add_argument("--stdout", action="store_true", help="Print instead of writing")
    workflow_parser.set_defaults(handler=cmd_render_workflow)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)

    try:
        settings = load_config(args.config) if args.config else get_config()
        return args.handler(args, settings)
    except PipelineError as e:
        logger.error(f"[{e.stage.upper()}] {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
