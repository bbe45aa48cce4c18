"""Operator alert for accounting jobs that gave up."""

from protean.utils.mixins import handle

from fulfillment.accounting.events import AccountingJobFailed
from fulfillment.accounting.job import AccountingJob
from fulfillment.domain import fulfillment, logger
from fulfillment.notifier import send_notification


@fulfillment.event_handler(part_of=AccountingJob)
class AccountingEscalationHandler:
    @handle(AccountingJobFailed)
    def on_job_failed(self, event: AccountingJobFailed) -> None:
        try:
            send_notification(
                "accounting_job_failed",
                {
                    "job_id": str(event.job_id),
                    "job_type": event.job_type,
                    "entity_type": event.entity_type,
                    "entity_id": str(event.entity_id),
                    "attempts": event.attempts,
                    "error": event.error,
                },
            )
        except Exception as exc:
            logger.error("Accounting escalation failed", job_id=str(event.job_id), error=str(exc))
