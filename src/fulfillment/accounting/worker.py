"""Accounting retry worker — drains due jobs through the gateway.

Invoked by a background loop or cron via ``ProcessAccountingJobs``. Each job
is handled on its own: a gateway error is recorded on that job and the loop
moves on.
"""

from datetime import UTC, datetime

from protean import handle
from protean.fields import DateTime, Identifier
from protean.utils.globals import current_domain

from fulfillment.accounting import get_accounting_gateway
from fulfillment.accounting.job import AccountingJob
from fulfillment.domain import fulfillment, logger


@fulfillment.command(part_of="AccountingJob")
class ProcessAccountingJobs:
    """Submit every pending job whose next attempt is due."""

    as_of = DateTime()


@fulfillment.command(part_of="AccountingJob")
class RetryAccountingJob:
    job_id = Identifier(required=True)


@fulfillment.command_handler(part_of=AccountingJob)
class AccountingJobHandler:
    @handle(ProcessAccountingJobs)
    def process_jobs(self, command):
        as_of = command.as_of or datetime.now(UTC)
        if as_of.tzinfo is None:
            as_of = as_of.replace(tzinfo=UTC)
        repo = current_domain.repository_for(AccountingJob)
        gateway = get_accounting_gateway()

        summary = {"processed": 0, "completed": 0, "rescheduled": 0, "failed": 0}
        for job in repo.due(as_of):
            job.start()
            try:
                result = gateway.submit(job.job_type, job.entity_type, str(job.entity_id))
            except Exception as exc:
                logger.error("Accounting gateway raised", job_id=str(job.id), error=str(exc))
                result = {"status": "failed", "error": str(exc), "retryable": True}

            if result.get("status") == "ok":
                job.complete(result.get("external_id"))
                summary["completed"] += 1
            elif job.record_failure(result.get("error", "Unknown gateway error"), bool(result.get("retryable")), as_of):
                summary["failed"] += 1
                logger.error(
                    "Accounting job failed",
                    job_id=str(job.id),
                    job_type=job.job_type,
                    attempts=job.attempts,
                    error=job.last_error,
                )
            else:
                summary["rescheduled"] += 1
                logger.warning(
                    "Accounting job rescheduled",
                    job_id=str(job.id),
                    attempts=job.attempts,
                    next_attempt_at=str(job.next_attempt_at),
                )
            summary["processed"] += 1
            repo.add(job)

        logger.info("Accounting jobs processed", as_of=str(as_of), **summary)
        return summary

    @handle(RetryAccountingJob)
    def retry_job(self, command):
        repo = current_domain.repository_for(AccountingJob)
        job = repo.get(command.job_id)
        job.retry()
        repo.add(job)
        logger.info("Accounting job reset for retry", job_id=str(job.id))
