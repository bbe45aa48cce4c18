"""Domain error taxonomy.

Every error is a Protean ``ValidationError`` so it carries a field → messages
dict and travels through command handlers and the API unchanged. Unknown
records surface as Protean's own ``ObjectNotFoundError``.
"""

from protean.exceptions import ValidationError


class InvalidTransition(ValidationError):
    """Requested status change is not in the adjacency table."""

    def __init__(self, current: str, requested: str, detail: str | None = None):
        self.current = current
        self.requested = requested
        message = detail or f"Cannot transition from {current} to {requested}"
        super().__init__({"status": [message]})


class NotAuthorized(ValidationError):
    """The acting role may not perform the operation."""

    def __init__(self, role: str, action: str):
        self.role = role
        self.action = action
        super().__init__({"role": [f"Role '{role}' is not permitted to {action}"]})


class CreditExceeded(ValidationError):
    def __init__(self, available: int, requested: int):
        self.available = available
        self.requested = requested
        super().__init__(
            {"credit": [f"Order total {requested} exceeds available credit {available}"]}
        )


class InsufficientStock(ValidationError):
    """Stock cannot cover a decrement.

    ``shortages`` is a list of ``{"product_id", "sku", "requested", "available"}``
    dicts, one per short product.
    """

    def __init__(self, shortages: list[dict] | None = None, message: str | None = None):
        self.shortages = shortages or []
        messages = [
            f"{item['sku'] or item['product_id']}: need {item['requested']}, have {item['available']}"
            for item in self.shortages
        ]
        if message:
            messages.insert(0, message)
        super().__init__({"stock": messages or ["Insufficient stock"]})


class AlreadyApproved(ValidationError):
    def __init__(self, message: str = "Already approved"):
        super().__init__({"approval": [message]})


class AlreadyConsumed(ValidationError):
    def __init__(self, message: str = "Batch is already consumed"):
        super().__init__({"batch": [message]})


class AlreadySuspended(ValidationError):
    def __init__(self, message: str = "Account is already suspended"):
        super().__init__({"account_status": [message]})


class ConcurrentModification(ValidationError):
    """Packing record version changed between read and write."""

    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(
            {"version": [f"Packing record changed: expected version {expected}, found {actual}"]}
        )


class MissingCoordinates(ValidationError):
    def __init__(self, order_numbers: list[str]):
        self.order_numbers = order_numbers
        super().__init__(
            {"coordinates": [f"Orders missing coordinates: {', '.join(order_numbers)}"]}
        )


class RouteSolverError(ValidationError):
    def __init__(self, message: str):
        super().__init__({"route_solver": [message]})
