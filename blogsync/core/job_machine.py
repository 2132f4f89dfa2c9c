"""Publish job state machine with per-job progress subscriptions.

Enforces:
- Valid status transitions only (VALID_TRANSITIONS table)
- Non-decreasing progress until a terminal status; FAILED freezes it
- Per-step status never moves backwards (pending -> in_progress -> done)
- Every change is published to the job's subscribers as a frozen snapshot

Terminal jobs with no subscribers are evicted ``retention_seconds`` after
they finish.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Any

from blogsync.core.errors import InvalidTransitionError, NotFoundError
from blogsync.core.listeners import ListenerRegistry
from blogsync.models.jobs import (
    STATUS_PROGRESS,
    STEP_ORDER,
    VALID_TRANSITIONS,
    JobBase,
    JobStatus,
    StepStatus,
)
from blogsync.models.results import ErrorKind

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[JobBase], Any]


class JobMachine:
    """Owns every PublishJob for the lifetime of the process.

    Parameters
    ----------
    retention_seconds:
        How long a finished, unobserved job stays readable.
    clock:
        Wall-clock source for ``created_at``/``finished_at`` and eviction.
    """

    def __init__(
        self,
        retention_seconds: float = 600.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._retention = retention_seconds
        self._clock = clock
        self._jobs: dict[str, JobBase] = {}
        self._subscribers: dict[str, ListenerRegistry] = {}

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def create(self, job: JobBase) -> JobBase:
        """Register a new PENDING job."""
        self.evict_expired()
        if job.job_id in self._jobs:
            raise InvalidTransitionError(f"Job {job.job_id} already exists")
        job = job.model_copy(update={"created_at": self._clock()})
        self._jobs[job.job_id] = job
        logger.info("Job %s (%s) created for blog %s", job.job_id, job.kind, job.blog_id)
        return job

    def get(self, job_id: str) -> JobBase | None:
        """Latest snapshot, or None for unknown or evicted jobs."""
        self.evict_expired()
        return self._jobs.get(job_id)

    def require(self, job_id: str) -> JobBase:
        job = self._jobs.get(job_id)
        if job is None:
            raise NotFoundError(f"Job {job_id} not found")
        return job

    def evict_expired(self) -> list[str]:
        """Drop finished jobs past retention that nobody is watching."""
        now = self._clock()
        expired = [
            job_id
            for job_id, job in self._jobs.items()
            if job.finished_at is not None
            and now - job.finished_at >= self._retention
            and not self._subscribers.get(job_id)
        ]
        for job_id in expired:
            del self._jobs[job_id]
            self._subscribers.pop(job_id, None)
        if expired:
            logger.debug("Evicted %d finished jobs", len(expired))
        return expired

    def __len__(self) -> int:
        return len(self._jobs)

    # ------------------------------------------------------------------
    # Transition logic
    # ------------------------------------------------------------------

    def transition(
        self,
        job_id: str,
        target: JobStatus,
        *,
        error: str | None = None,
        error_kind: ErrorKind | None = None,
        **result: Any,
    ) -> JobBase:
        """Move a job to ``target``, attaching progress and result fields."""
        job = self.require(job_id)
        allowed = VALID_TRANSITIONS.get(job.status, set())
        if target not in allowed:
            raise InvalidTransitionError(
                f"Cannot transition job {job_id} from {job.status.value} to {target.value}. "
                f"Allowed: {[s.value for s in allowed]}"
            )

        update: dict[str, Any] = dict(result)
        update["status"] = target
        if target == JobStatus.FAILED:
            update["error"] = error or "Unknown error"
            update["error_kind"] = error_kind or ErrorKind.INTERNAL
        else:
            update["progress"] = max(job.progress, STATUS_PROGRESS[target])
        if target in (JobStatus.COMPLETED, JobStatus.FAILED):
            update["finished_at"] = self._clock()

        logger.info("Job %s: %s -> %s", job_id, job.status.value, target.value)
        return self._replace(job, update)

    def set_progress(self, job_id: str, progress: int) -> JobBase:
        """Raise progress; lower values and terminal jobs are ignored."""
        job = self.require(job_id)
        progress = max(0, min(progress, 100))
        if job.is_terminal or progress <= job.progress:
            return job
        return self._replace(job, {"progress": progress})

    def update_step(
        self,
        job_id: str,
        name: str,
        status: StepStatus,
        message: str | None = None,
    ) -> JobBase:
        """Change one step's status; a step can never move backwards."""
        job = self.require(job_id)
        steps = list(job.steps)
        for index, step in enumerate(steps):
            if step.name == name:
                break
        else:
            raise NotFoundError(f"Job {job_id} has no step {name!r}")

        if STEP_ORDER[status] < STEP_ORDER[step.status] or (
            STEP_ORDER[step.status] == 2 and status != step.status
        ):
            raise InvalidTransitionError(
                f"Step {name!r} of job {job_id} cannot go from "
                f"{step.status.value} to {status.value}"
            )
        steps[index] = step.model_copy(
            update={"status": status, "message": message if message is not None else step.message}
        )
        return self._replace(job, {"steps": tuple(steps)})

    def annotate(self, job_id: str, **fields: Any) -> JobBase:
        """Attach result fields (e.g. ``deployment_id``) without a transition."""
        return self._replace(self.require(job_id), fields)

    def _replace(self, job: JobBase, update: dict[str, Any]) -> JobBase:
        snapshot = job.model_copy(update=update)
        self._jobs[job.job_id] = snapshot
        registry = self._subscribers.get(job.job_id)
        if registry:
            registry.notify(snapshot)
        return snapshot

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def subscribe(self, job_id: str, callback: ProgressCallback) -> JobBase:
        """Deliver every future snapshot to ``callback``.

        The current snapshot is delivered immediately so late subscribers
        see updates that were emitted before they arrived.
        """
        job = self.require(job_id)
        registry = self._subscribers.setdefault(job_id, ListenerRegistry(f"job {job_id}"))
        registry.add(callback)
        try:
            callback(job)
        except Exception as exc:  # noqa: BLE001
            logger.error("Progress listener for job %s failed: %s", job_id, exc)
        return job

    def unsubscribe(self, job_id: str, callback: ProgressCallback | None = None) -> None:
        """Stop delivery to one callback, or to every callback of the job."""
        registry = self._subscribers.get(job_id)
        if registry is None:
            return
        if callback is None:
            registry.clear()
        else:
            registry.remove(callback)
        if not registry:
            del self._subscribers[job_id]

    def subscriber_count(self, job_id: str) -> int:
        return len(self._subscribers.get(job_id, ()))
