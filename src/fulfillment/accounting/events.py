"""Accounting job events."""

from protean.fields import DateTime, Identifier, Integer, String

from fulfillment.domain import fulfillment


@fulfillment.event(part_of="AccountingJob")
class AccountingJobEnqueued:
    __version__ = 1

    job_id = Identifier(required=True)
    job_type = String(required=True)
    entity_type = String(required=True)
    entity_id = Identifier(required=True)
    enqueued_at = DateTime(required=True)


@fulfillment.event(part_of="AccountingJob")
class AccountingJobCompleted:
    __version__ = 1

    job_id = Identifier(required=True)
    job_type = String(required=True)
    entity_id = Identifier(required=True)
    external_id = String()
    attempts = Integer(required=True)
    completed_at = DateTime(required=True)


@fulfillment.event(part_of="AccountingJob")
class AccountingJobRescheduled:
    """A retryable failure; the job waits for its backoff to elapse."""

    __version__ = 1

    job_id = Identifier(required=True)
    attempts = Integer(required=True)
    error = String(required=True)
    next_attempt_at = DateTime(required=True)


@fulfillment.event(part_of="AccountingJob")
class AccountingJobFailed:
    """The job gave up and was escalated to operators."""

    __version__ = 1

    job_id = Identifier(required=True)
    job_type = String(required=True)
    entity_type = String(required=True)
    entity_id = Identifier(required=True)
    attempts = Integer(required=True)
    error = String(required=True)
    failed_at = DateTime(required=True)
