"""Customer aggregate — a B2B trading account with a credit facility.

A customer may place orders only once onboarding is complete, the credit
application is approved, and the account is active. Credit approval is a
one-way gate: a second approval is refused rather than silently re-applied,
and limit changes go through ``change_credit_limit``.
"""

from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Integer, String, Text

from fulfillment.customer.events import (
    AccountClosed,
    AccountReactivated,
    AccountSuspended,
    CreditApproved,
    CreditLimitChanged,
    CreditRejected,
    CustomerRegistered,
    OnboardingCompleted,
)
from fulfillment.domain import fulfillment
from fulfillment.errors import AlreadyApproved, AlreadySuspended


class CreditStatus(Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class AccountStatus(Enum):
    ACTIVE = "active"
    SUSPENDED = "suspended"
    CLOSED = "closed"


@fulfillment.aggregate
class Customer:
    business_name = String(required=True, max_length=200)
    email = String(required=True, max_length=254)
    contact_name = String(max_length=150)
    credit_limit = Integer(default=0, min_value=0)
    payment_terms = String(max_length=50)
    credit_status = String(choices=CreditStatus, default=CreditStatus.PENDING.value)
    credit_reviewed_by = String(max_length=100)
    credit_reviewed_at = DateTime()
    credit_notes = Text()
    account_status = String(choices=AccountStatus, default=AccountStatus.ACTIVE.value)
    suspension_reason = String(max_length=500)
    onboarding_complete = Boolean(default=False)
    registered_at = DateTime()

    @classmethod
    def register(cls, business_name: str, email: str, contact_name: str | None = None):
        now = datetime.now(UTC)
        customer = cls(
            business_name=business_name,
            email=email,
            contact_name=contact_name,
            registered_at=now,
        )
        customer.raise_(
            CustomerRegistered(
                customer_id=str(customer.id),
                business_name=business_name,
                email=email,
                registered_at=now,
            )
        )
        return customer

    # -------------------------------------------------------------------
    # Eligibility
    # -------------------------------------------------------------------
    def can_place_orders(self) -> bool:
        return (
            self.account_status == AccountStatus.ACTIVE.value
            and self.credit_status == CreditStatus.APPROVED.value
            and bool(self.onboarding_complete)
        )

    def assert_can_place_orders(self) -> None:
        problems = []
        if self.account_status != AccountStatus.ACTIVE.value:
            problems.append(f"Account is {self.account_status}")
        if self.credit_status != CreditStatus.APPROVED.value:
            problems.append(f"Credit application is {self.credit_status}")
        if not self.onboarding_complete:
            problems.append("Onboarding is not complete")
        if problems:
            raise ValidationError({"customer": problems})

    def complete_onboarding(self) -> None:
        if self.onboarding_complete:
            raise ValidationError({"onboarding_complete": ["Onboarding is already complete"]})
        self.onboarding_complete = True
        self.raise_(OnboardingCompleted(customer_id=str(self.id), completed_at=datetime.now(UTC)))

    # -------------------------------------------------------------------
    # Credit application
    # -------------------------------------------------------------------
    def approve_credit(self, credit_limit: int, approved_by: str, payment_terms: str | None = None, notes=None):
        """Approve the credit application.

        Raises ``AlreadyApproved`` when the application was approved before;
        the first approval's limit stays in force.
        """
        if self.credit_status == CreditStatus.APPROVED.value:
            raise AlreadyApproved(f"Credit already approved with limit {self.credit_limit}")
        if credit_limit < 0:
            raise ValidationError({"credit_limit": ["Credit limit cannot be negative"]})

        now = datetime.now(UTC)
        self.credit_status = CreditStatus.APPROVED.value
        self.credit_limit = credit_limit
        self.payment_terms = payment_terms
        self.credit_reviewed_by = approved_by
        self.credit_reviewed_at = now
        self.credit_notes = notes
        self.raise_(
            CreditApproved(
                customer_id=str(self.id),
                credit_limit=credit_limit,
                payment_terms=payment_terms,
                approved_by=approved_by,
                approved_at=now,
            )
        )

    def reject_credit(self, reason: str, rejected_by: str) -> None:
        if self.credit_status == CreditStatus.APPROVED.value:
            raise AlreadyApproved("Credit already approved; change the limit instead")
        if not reason or not reason.strip():
            raise ValidationError({"reason": ["A rejection reason is required"]})

        now = datetime.now(UTC)
        self.credit_status = CreditStatus.REJECTED.value
        self.credit_reviewed_by = rejected_by
        self.credit_reviewed_at = now
        self.credit_notes = reason
        self.raise_(
            CreditRejected(
                customer_id=str(self.id),
                reason=reason,
                rejected_by=rejected_by,
                rejected_at=now,
            )
        )

    def change_credit_limit(self, new_limit: int, changed_by: str) -> None:
        if self.credit_status != CreditStatus.APPROVED.value:
            raise ValidationError({"credit_status": ["Credit must be approved before the limit can change"]})
        if new_limit < 0:
            raise ValidationError({"credit_limit": ["Credit limit cannot be negative"]})

        previous = self.credit_limit
        self.credit_limit = new_limit
        self.raise_(
            CreditLimitChanged(
                customer_id=str(self.id),
                previous_limit=previous,
                new_limit=new_limit,
                changed_by=changed_by,
                changed_at=datetime.now(UTC),
            )
        )

    # -------------------------------------------------------------------
    # Account lifecycle
    # -------------------------------------------------------------------
    def suspend(self, reason: str) -> None:
        if self.account_status == AccountStatus.SUSPENDED.value:
            raise AlreadySuspended()
        if self.account_status != AccountStatus.ACTIVE.value:
            raise ValidationError({"account_status": ["Only active accounts can be suspended"]})

        self.account_status = AccountStatus.SUSPENDED.value
        self.suspension_reason = reason
        self.raise_(
            AccountSuspended(customer_id=str(self.id), reason=reason, suspended_at=datetime.now(UTC))
        )

    def reactivate(self) -> None:
        if self.account_status != AccountStatus.SUSPENDED.value:
            raise ValidationError({"account_status": ["Only suspended accounts can be reactivated"]})

        self.account_status = AccountStatus.ACTIVE.value
        self.suspension_reason = None
        self.raise_(AccountReactivated(customer_id=str(self.id), reactivated_at=datetime.now(UTC)))

    def close(self) -> None:
        if self.account_status == AccountStatus.CLOSED.value:
            raise ValidationError({"account_status": ["Account is already closed"]})

        self.account_status = AccountStatus.CLOSED.value
        self.raise_(AccountClosed(customer_id=str(self.id), closed_at=datetime.now(UTC)))
