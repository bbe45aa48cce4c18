"""Customer account lifecycle — commands and handler."""

from protean import handle
from protean.fields import Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from fulfillment.customer.customer import Customer
from fulfillment.domain import fulfillment, logger
from fulfillment.roles import assert_privileged


@fulfillment.command(part_of="Customer")
class RegisterCustomer:
    business_name = String(required=True, max_length=200)
    email = String(required=True, max_length=254)
    contact_name = String(max_length=150)


@fulfillment.command(part_of="Customer")
class CompleteOnboarding:
    customer_id = Identifier(required=True)


@fulfillment.command(part_of="Customer")
class ApproveCredit:
    """Approve a customer's credit application (admin/manager only)."""

    customer_id = Identifier(required=True)
    credit_limit = Integer(required=True, min_value=0)
    payment_terms = String(max_length=50)
    notes = Text()
    approved_by = String(required=True, max_length=100)
    role = String(required=True, max_length=20)


@fulfillment.command(part_of="Customer")
class RejectCredit:
    customer_id = Identifier(required=True)
    reason = String(required=True, max_length=500)
    rejected_by = String(required=True, max_length=100)
    role = String(required=True, max_length=20)


@fulfillment.command(part_of="Customer")
class UpdateCreditLimit:
    customer_id = Identifier(required=True)
    credit_limit = Integer(required=True, min_value=0)
    changed_by = String(required=True, max_length=100)
    role = String(required=True, max_length=20)


@fulfillment.command(part_of="Customer")
class SuspendAccount:
    """Temporarily suspend a customer account, blocking new orders."""

    customer_id = Identifier(required=True)
    reason = String(required=True, max_length=500)


@fulfillment.command(part_of="Customer")
class ReactivateAccount:
    customer_id = Identifier(required=True)


@fulfillment.command(part_of="Customer")
class CloseAccount:
    customer_id = Identifier(required=True)


@fulfillment.command_handler(part_of=Customer)
class ManageAccountHandler:
    @handle(RegisterCustomer)
    def register_customer(self, command):
        customer = Customer.register(
            business_name=command.business_name,
            email=command.email,
            contact_name=command.contact_name,
        )
        current_domain.repository_for(Customer).add(customer)
        return str(customer.id)

    @handle(CompleteOnboarding)
    def complete_onboarding(self, command):
        repo = current_domain.repository_for(Customer)
        customer = repo.get(command.customer_id)
        customer.complete_onboarding()
        repo.add(customer)

    @handle(ApproveCredit)
    def approve_credit(self, command):
        assert_privileged(command.role, "approve credit applications")
        repo = current_domain.repository_for(Customer)
        customer = repo.get(command.customer_id)
        customer.approve_credit(
            credit_limit=command.credit_limit,
            approved_by=command.approved_by,
            payment_terms=command.payment_terms,
            notes=command.notes,
        )
        repo.add(customer)
        logger.info(
            "Credit approved",
            customer_id=str(customer.id),
            credit_limit=command.credit_limit,
            approved_by=command.approved_by,
        )

    @handle(RejectCredit)
    def reject_credit(self, command):
        assert_privileged(command.role, "reject credit applications")
        repo = current_domain.repository_for(Customer)
        customer = repo.get(command.customer_id)
        customer.reject_credit(reason=command.reason, rejected_by=command.rejected_by)
        repo.add(customer)

    @handle(UpdateCreditLimit)
    def update_credit_limit(self, command):
        assert_privileged(command.role, "change credit limits")
        repo = current_domain.repository_for(Customer)
        customer = repo.get(command.customer_id)
        customer.change_credit_limit(command.credit_limit, changed_by=command.changed_by)
        repo.add(customer)

    @handle(SuspendAccount)
    def suspend_account(self, command):
        repo = current_domain.repository_for(Customer)
        customer = repo.get(command.customer_id)
        customer.suspend(reason=command.reason)
        repo.add(customer)

    @handle(ReactivateAccount)
    def reactivate_account(self, command):
        repo = current_domain.repository_for(Customer)
        customer = repo.get(command.customer_id)
        customer.reactivate()
        repo.add(customer)

    @handle(CloseAccount)
    def close_account(self, command):
        repo = current_domain.repository_for(Customer)
        customer = repo.get(command.customer_id)
        customer.close()
        repo.add(customer)
