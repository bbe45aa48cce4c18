"""Domain events for the Customer aggregate."""

from protean.fields import DateTime, Identifier, Integer, String

from fulfillment.domain import fulfillment


@fulfillment.event(part_of="Customer")
class CustomerRegistered:
    """A business customer was registered, pending credit review."""

    __version__ = 1

    customer_id = Identifier(required=True)
    business_name = String(required=True)
    email = String(required=True)
    registered_at = DateTime(required=True)


@fulfillment.event(part_of="Customer")
class OnboardingCompleted:
    __version__ = 1

    customer_id = Identifier(required=True)
    completed_at = DateTime(required=True)


@fulfillment.event(part_of="Customer")
class CreditApproved:
    """A credit application was approved with a limit and payment terms."""

    __version__ = 1

    customer_id = Identifier(required=True)
    credit_limit = Integer(required=True)
    payment_terms = String()
    approved_by = String(required=True)
    approved_at = DateTime(required=True)


@fulfillment.event(part_of="Customer")
class CreditRejected:
    __version__ = 1

    customer_id = Identifier(required=True)
    reason = String(required=True)
    rejected_by = String(required=True)
    rejected_at = DateTime(required=True)


@fulfillment.event(part_of="Customer")
class CreditLimitChanged:
    __version__ = 1

    customer_id = Identifier(required=True)
    previous_limit = Integer(required=True)
    new_limit = Integer(required=True)
    changed_by = String(required=True)
    changed_at = DateTime(required=True)


@fulfillment.event(part_of="Customer")
class AccountSuspended:
    __version__ = 1

    customer_id = Identifier(required=True)
    reason = String(required=True)
    suspended_at = DateTime(required=True)


@fulfillment.event(part_of="Customer")
class AccountReactivated:
    __version__ = 1

    customer_id = Identifier(required=True)
    reactivated_at = DateTime(required=True)


@fulfillment.event(part_of="Customer")
class AccountClosed:
    __version__ = 1

    customer_id = Identifier(required=True)
    closed_at = DateTime(required=True)
