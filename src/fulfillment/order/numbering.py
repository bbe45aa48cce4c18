"""Sequential, human-readable order numbers (ORD-000001, ORD-000002, ...)."""

from protean.exceptions import ObjectNotFoundError
from protean.fields import Integer, String
from protean.utils.globals import current_domain

from fulfillment.domain import fulfillment

_SEQUENCE_ID = "order-number"


@fulfillment.aggregate
class OrderNumberSequence:
    prefix = String(max_length=10, default="ORD")
    last_value = Integer(default=0, min_value=0)

    def next_number(self) -> str:
        self.last_value += 1
        return f"{self.prefix}-{self.last_value:06d}"


def next_order_number() -> str:
    """Issue the next order number within the caller's unit of work.

    Callers serialise concurrent placements on ``locks.NUMBERING_KEY``.
    """
    repo = current_domain.repository_for(OrderNumberSequence)
    try:
        sequence = repo.get(_SEQUENCE_ID)
    except ObjectNotFoundError:
        sequence = OrderNumberSequence(id=_SEQUENCE_ID)
    number = sequence.next_number()
    repo.add(sequence)
    return number
