"""Queue sink — persists an AccountingJob for the retry worker to drain."""

from protean.utils.globals import current_domain

from fulfillment.accounting.job import AccountingJob, JobType
from fulfillment.accounting.port import AccountingSinkPort
from fulfillment.config import get_settings
from fulfillment.domain import logger


class QueueAccountingSink(AccountingSinkPort):
    def enqueue(self, job_type: str, entity_type: str, entity_id: str) -> str:
        job = AccountingJob.enqueue(
            JobType(job_type),
            entity_type,
            entity_id,
            max_attempts=get_settings().accounting_max_attempts,
        )
        current_domain.repository_for(AccountingJob).add(job)
        logger.info("Accounting job enqueued", job_id=str(job.id), job_type=job_type, entity_id=str(entity_id))
        return str(job.id)
