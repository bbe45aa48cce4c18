"""AccountingJob aggregate — one unit of work for the accounting system.

State Machine:
    PENDING → PROCESSING → COMPLETED
    PROCESSING → PENDING   (retryable failure, rescheduled with backoff)
    PROCESSING → FAILED    (non-retryable, or attempts exhausted; escalated)
    FAILED → PENDING       (manual retry, attempts reset)

Backoff after attempt ``n`` is ``min(1000 * 2**(n - 1), 60000)`` ms.
"""

from datetime import UTC, datetime, timedelta
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Identifier, Integer, String

from fulfillment.accounting.events import (
    AccountingJobCompleted,
    AccountingJobEnqueued,
    AccountingJobFailed,
    AccountingJobRescheduled,
)
from fulfillment.domain import fulfillment

BASE_BACKOFF_MS = 1000
MAX_BACKOFF_MS = 60_000
DEFAULT_MAX_ATTEMPTS = 5


class JobType(Enum):
    CREATE_INVOICE = "create_invoice"
    SYNC_CONTACT = "sync_contact"


class JobStatus(Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


_VALID_TRANSITIONS = {
    JobStatus.PENDING: {JobStatus.PROCESSING},
    JobStatus.PROCESSING: {JobStatus.PENDING, JobStatus.COMPLETED, JobStatus.FAILED},
    JobStatus.FAILED: {JobStatus.PENDING},
    JobStatus.COMPLETED: set(),
}


def backoff_delay(attempt: int) -> timedelta:
    """Delay before the attempt following failed attempt number ``attempt``."""
    milliseconds = min(BASE_BACKOFF_MS * 2 ** (attempt - 1), MAX_BACKOFF_MS)
    return timedelta(milliseconds=milliseconds)


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=UTC)


@fulfillment.aggregate
class AccountingJob:
    job_type = String(required=True, choices=JobType)
    entity_type = String(required=True, max_length=50)
    entity_id = Identifier(required=True)
    status = String(choices=JobStatus, default=JobStatus.PENDING.value)
    attempts = Integer(default=0, min_value=0)
    max_attempts = Integer(default=DEFAULT_MAX_ATTEMPTS, min_value=1)
    next_attempt_at = DateTime()
    last_error = String(max_length=1000)
    external_id = String(max_length=100)
    escalated = Boolean(default=False)
    created_at = DateTime()
    completed_at = DateTime()

    @classmethod
    def enqueue(cls, job_type: JobType, entity_type: str, entity_id, max_attempts: int = DEFAULT_MAX_ATTEMPTS):
        now = datetime.now(UTC)
        job = cls(
            job_type=job_type.value,
            entity_type=entity_type,
            entity_id=str(entity_id),
            max_attempts=max_attempts,
            next_attempt_at=now,
            created_at=now,
        )
        job.raise_(
            AccountingJobEnqueued(
                job_id=str(job.id),
                job_type=job.job_type,
                entity_type=entity_type,
                entity_id=str(entity_id),
                enqueued_at=now,
            )
        )
        return job

    def _assert_can_transition(self, target: JobStatus) -> None:
        current = JobStatus(self.status)
        if target not in _VALID_TRANSITIONS[current]:
            raise ValidationError({"status": [f"Cannot transition from {current.value} to {target.value}"]})

    def is_due(self, as_of: datetime) -> bool:
        if JobStatus(self.status) != JobStatus.PENDING:
            return False
        return self.next_attempt_at is None or _aware(self.next_attempt_at) <= _aware(as_of)

    def start(self) -> None:
        self._assert_can_transition(JobStatus.PROCESSING)
        self.status = JobStatus.PROCESSING.value
        self.attempts = (self.attempts or 0) + 1

    def complete(self, external_id: str | None = None) -> None:
        self._assert_can_transition(JobStatus.COMPLETED)
        now = datetime.now(UTC)
        self.status = JobStatus.COMPLETED.value
        self.external_id = external_id
        self.last_error = None
        self.completed_at = now
        self.raise_(
            AccountingJobCompleted(
                job_id=str(self.id),
                job_type=self.job_type,
                entity_id=str(self.entity_id),
                external_id=external_id,
                attempts=self.attempts,
                completed_at=now,
            )
        )

    def record_failure(self, error: str, retryable: bool, as_of: datetime | None = None) -> bool:
        """Reschedule or give up; returns True when the job is now failed."""
        now = as_of or datetime.now(UTC)
        self.last_error = error
        if retryable and self.attempts < self.max_attempts:
            self._assert_can_transition(JobStatus.PENDING)
            self.status = JobStatus.PENDING.value
            self.next_attempt_at = _aware(now) + backoff_delay(self.attempts)
            self.raise_(
                AccountingJobRescheduled(
                    job_id=str(self.id),
                    attempts=self.attempts,
                    error=error,
                    next_attempt_at=self.next_attempt_at,
                )
            )
            return False

        self._assert_can_transition(JobStatus.FAILED)
        self.status = JobStatus.FAILED.value
        self.escalated = True
        self.next_attempt_at = None
        self.raise_(
            AccountingJobFailed(
                job_id=str(self.id),
                job_type=self.job_type,
                entity_type=self.entity_type,
                entity_id=str(self.entity_id),
                attempts=self.attempts,
                error=error,
                failed_at=now,
            )
        )
        return True

    def retry(self) -> None:
        """Manual retry of a failed job with a fresh attempt budget."""
        self._assert_can_transition(JobStatus.PENDING)
        self.status = JobStatus.PENDING.value
        self.attempts = 0
        self.escalated = False
        self.last_error = None
        self.next_attempt_at = datetime.now(UTC)


@fulfillment.repository(part_of=AccountingJob)
class AccountingJobRepository:
    def find_by_status(self, status: JobStatus) -> list[AccountingJob]:
        return self._dao.query.filter(status=status.value).all().items

    def find_for_entity(self, entity_type: str, entity_id) -> list[AccountingJob]:
        jobs = self._dao.query.filter(entity_id=str(entity_id)).all().items
        return [j for j in jobs if j.entity_type == entity_type]

    def due(self, as_of: datetime) -> list[AccountingJob]:
        jobs = [j for j in self.find_by_status(JobStatus.PENDING) if j.is_due(as_of)]
        return sorted(jobs, key=lambda j: _aware(j.created_at or as_of))
