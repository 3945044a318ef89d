"""Decides whether an event builds the site and whether it publishes."""

import logging
from datetime import datetime, timedelta
from typing import Tuple

from docs_pipeline.core.simple_config import PipelineSettings
from docs_pipeline.pipeline.models import EventKind, PipelineEvent, TriggerDecision

logger = logging.getLogger(__name__)

BUILD_EVENTS = frozenset({
    EventKind.PULL_REQUEST,
    EventKind.PUSH,
    EventKind.SCHEDULE,
    EventKind.WORKFLOW_DISPATCH,
})


def should_build(event: PipelineEvent) -> bool:
    """True for every event kind the pipeline is triggered by."""
    return event.kind in BUILD_EVENTS


def should_publish(event: PipelineEvent, settings: PipelineSettings) -> bool:
    """Publish gate: canonical owner, primary branch, direct push.

    Args:
        event: Triggering event
        settings: Pipeline settings holding the expected owner and branch

    Returns:
        True only when all three conditions hold
    """
    return (
        event.repository_owner == settings.canonical_owner
        and event.ref == settings.primary_ref
        and event.event_name == EventKind.PUSH.value
    )


def evaluate(event: PipelineEvent, settings: PipelineSettings) -> TriggerDecision:
    """Combine the build and publish gates, recording why publish is skipped."""
    reasons = []

    if not should_build(event):
        reasons.append(f"event '{event.event_name}' does not trigger the pipeline")
        return TriggerDecision(run_build=False, run_publish=False, reasons=reasons)

    run_publish = should_publish(event, settings)
    if not run_publish:
        if event.repository_owner != settings.canonical_owner:
            reasons.append(
                f"owner '{event.repository_owner}' is not '{settings.canonical_owner}'"
            )
        if event.branch is None:
            reasons.append(f"ref '{event.ref}' is not a branch")
        elif event.branch != settings.primary_branch:
            reasons.append(f"branch '{event.branch}' is not '{settings.primary_branch}'")
        if event.event_name != EventKind.PUSH.value:
            reasons.append(f"event '{event.event_name}' is not a push")

    logger.debug(
        f"[TRIGGER] event={event.event_name} ref={event.ref} "
        f"owner={event.repository_owner} publish={run_publish}"
    )
    return TriggerDecision(run_build=True, run_publish=run_publish, reasons=reasons)


def _parse_weekly_cron(cron: str) -> Tuple[int, int, int]:
    """Split 'M H * * D' into (minute, hour, python weekday)."""
    fields = cron.split()
    if len(fields) != 5:
        raise ValueError(f"Cron '{cron}' must have five fields")

    minute, hour, day_of_month, month, day_of_week = fields
    if day_of_month != "*" or month != "*":
        raise ValueError(f"Cron '{cron}' is not a weekly schedule")

    try:
        minute_i, hour_i, dow_i = int(minute), int(hour), int(day_of_week)
    except ValueError:
        raise ValueError(f"Cron '{cron}' must use plain numbers for minute, hour and weekday")

    if not (0 <= minute_i <= 59 and 0 <= hour_i <= 23 and 0 <= dow_i <= 7):
        raise ValueError(f"Cron '{cron}' has an out-of-range field")

    # cron: 0 and 7 are Sunday; datetime.weekday(): Monday is 0
    return minute_i, hour_i, (dow_i - 1) % 7


def next_scheduled_run(after: datetime, cron: str = "0 0 * * 0") -> datetime:
    """Next tick of a weekly cron strictly after the given time.

    Args:
        after: Reference time (timezone is preserved)
        cron: Weekly five-field cron expression

    Returns:
        Datetime of the next scheduled run
    """
    minute, hour, weekday = _parse_weekly_cron(cron)

    candidate = after.replace(hour=hour, minute=minute, second=0, microsecond=0)
    candidate += timedelta(days=(weekday - after.weekday()) % 7)
    if candidate <= after:
        candidate += timedelta(days=7)
    return candidate
