"""Accounting ports — the job sink engine code writes to, and the gateway
the retry worker submits jobs through."""

from abc import ABC, abstractmethod


class AccountingSinkPort(ABC):
    @abstractmethod
    def enqueue(self, job_type: str, entity_type: str, entity_id: str) -> str:
        """Record a job for later processing; returns the job id."""
        ...


class AccountingGatewayPort(ABC):
    """Abstract interface for accounting system adapters."""

    @abstractmethod
    def submit(self, job_type: str, entity_type: str, entity_id: str) -> dict:
        """Push one job to the accounting system.

        Returns:
            dict with keys: status ("ok" or "failed"), external_id (on success),
            error and retryable (on failure)
        """
        ...
