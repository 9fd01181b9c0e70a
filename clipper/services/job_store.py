"""
Job Store - Process-wide in-memory registry of clipping jobs.

Jobs are frozen snapshots. Every stage transition builds a new snapshot with
all of its fields applied at once and swaps it in under a lock, so status
polling never observes a half-written transition.

Nothing here is persisted; a process restart loses every job.
"""

import logging
import threading
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

logger = logging.getLogger(__name__)


class JobStatus(str, Enum):
    """Lifecycle status of a clipping job."""

    UPLOADED = "uploaded"
    TRANSCRIBING = "transcribing"
    ANALYZING = "analyzing"
    CLIPPING = "clipping"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


@dataclass(frozen=True)
class Clip:
    """A rendered clip belonging to a job."""

    id: str
    title: str
    duration: float
    download_url: str


@dataclass(frozen=True)
class Job:
    """Snapshot of a job's state."""

    id: str
    user_id: str
    video_path: str
    status: JobStatus = JobStatus.UPLOADED
    progress: int = 0
    clips: tuple[Clip, ...] = field(default_factory=tuple)
    error: Optional[str] = None
    source_url: Optional[str] = None
    created_at: str = ""
    updated_at: str = ""


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_job_id() -> str:
    return str(uuid.uuid4())


class JobStore:
    """
    Thread-safe in-memory job registry.

    Each job has exactly one writer (its orchestrator run) and any number of
    readers (status polls). The lock only guards the map; snapshots handed
    out to readers are immutable.
    """

    def __init__(self) -> None:
        self._jobs: dict[str, Job] = {}
        self._lock = threading.Lock()

    def create(
        self,
        user_id: str,
        video_path: str,
        source_url: Optional[str] = None,
        job_id: Optional[str] = None,
    ) -> Job:
        """
        Register a new job in the ``uploaded`` state.

        ``job_id`` lets callers that name files after the job reserve the id
        up front; otherwise a fresh uuid4 is generated.

        Raises:
            ValueError: If ``job_id`` is already registered
        """
        now = _utc_now()
        with self._lock:
            if job_id is None:
                job_id = new_job_id()
                while job_id in self._jobs:
                    job_id = new_job_id()
            elif job_id in self._jobs:
                raise ValueError(f"Job {job_id} already exists")

            job = Job(
                id=job_id,
                user_id=user_id,
                video_path=video_path,
                source_url=source_url,
                created_at=now,
                updated_at=now,
            )
            self._jobs[job_id] = job

        logger.info(f"Job {job_id} created for user {user_id}")
        return job

    def get(self, job_id: str) -> Optional[Job]:
        with self._lock:
            return self._jobs.get(job_id)

    def get_owned(self, job_id: str, user_id: str) -> Optional[Job]:
        """Return the job only if it belongs to ``user_id``."""
        job = self.get(job_id)
        if job is None or job.user_id != user_id:
            return None
        return job

    def update(self, job_id: str, **changes) -> Job:
        """
        Atomically apply ``changes`` to a job and return the new snapshot.

        Raises:
            KeyError: If the job does not exist
            ValueError: If the change would rewrite the owner or lower progress
        """
        if "id" in changes or "user_id" in changes:
            raise ValueError("Job identity and owner are immutable")

        if "clips" in changes:
            changes["clips"] = tuple(changes["clips"])

        with self._lock:
            current = self._jobs[job_id]

            progress = changes.get("progress")
            if progress is not None and progress < current.progress:
                raise ValueError(
                    f"Progress for job {job_id} cannot go backwards "
                    f"({current.progress} -> {progress})"
                )

            updated = replace(current, updated_at=_utc_now(), **changes)
            self._jobs[job_id] = updated

        return updated

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)
