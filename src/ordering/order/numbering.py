"""Order numbers — a gap-tolerant monotonic sequence.

Order numbers are the human-facing identifier embedded in bank-transfer payment
codes, so they must be small integers and unique. A number allocated by a
checkout that later fails is simply skipped.
"""

from protean.fields import Integer, String
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.utils.locks import KeyedLock

_sequence_locks = KeyedLock()

ORDER_SEQUENCE = "orders"


@ordering.aggregate
class OrderSequence:
    name = String(required=True, max_length=50, unique=True)
    last_value = Integer(default=0, min_value=0)


@ordering.repository(part_of=OrderSequence)
class OrderSequenceRepository:
    def next_value(self, name: str) -> int:
        """Allocate and persist the next value. Call outside an enclosing UnitOfWork."""
        with _sequence_locks.hold(name):
            results = self._dao.query.filter(name=name).all().items
            sequence = results[0] if results else OrderSequence(name=name, last_value=0)
            sequence.last_value += 1
            self.add(sequence)
            return sequence.last_value


def next_order_number() -> int:
    return current_domain.repository_for(OrderSequence).next_value(ORDER_SEQUENCE)
