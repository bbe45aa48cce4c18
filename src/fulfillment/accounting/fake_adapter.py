"""Fake accounting gateway — records submissions for testing."""

from uuid import uuid4

from fulfillment.accounting.port import AccountingGatewayPort


class FakeAccountingGateway(AccountingGatewayPort):
    """Gateway that always succeeds by default."""

    def __init__(self):
        self.submissions: list[dict] = []
        self.should_succeed = True
        self.retryable = True
        self.failure_reason = "Accounting system timeout"

    def configure(
        self, should_succeed: bool = True, retryable: bool = True, failure_reason: str = "Accounting system timeout"
    ):
        """Configure the fake gateway behavior for testing."""
        self.should_succeed = should_succeed
        self.retryable = retryable
        self.failure_reason = failure_reason

    def submit(self, job_type: str, entity_type: str, entity_id: str) -> dict:
        self.submissions.append({"job_type": job_type, "entity_type": entity_type, "entity_id": entity_id})
        if not self.should_succeed:
            return {"status": "failed", "error": self.failure_reason, "retryable": self.retryable}
        return {"status": "ok", "external_id": f"acct-{uuid4().hex[:10]}"}
