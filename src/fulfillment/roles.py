"""Actor roles recognised by the engine.

Identity provisioning lives elsewhere; commands carry the acting user's id
and role, and the engine checks the role against the operation.
"""

from enum import Enum

from protean.exceptions import ValidationError

from fulfillment.errors import NotAuthorized


class ActorRole(Enum):
    ADMIN = "admin"
    MANAGER = "manager"
    SALES = "sales"
    PACKER = "packer"
    DRIVER = "driver"
    CUSTOMER = "customer"
    SYSTEM = "system"


PRIVILEGED_ROLES = frozenset({ActorRole.ADMIN, ActorRole.MANAGER})


def parse_role(role: str) -> ActorRole:
    try:
        return ActorRole(role)
    except ValueError:
        raise ValidationError({"role": [f"Unknown role '{role}'"]}) from None


def assert_privileged(role: str, action: str) -> None:
    """Raise ``NotAuthorized`` unless ``role`` is admin or manager."""
    if parse_role(role) not in PRIVILEGED_ROLES:
        raise NotAuthorized(role, action)
