from enum import Enum


class BookingStatus(str, Enum):
    PENDING = "pending"      # created, waiting for payment
    CONFIRMED = "confirmed"  # payment verified with the provider
    CANCELLED = "cancelled"  # slot released; row can be reactivated
    COMPLETED = "completed"  # slot elapsed after confirmation

    @classmethod
    def values(cls):
        return [s.value for s in cls]


TERMINAL_STATUSES = frozenset({BookingStatus.CANCELLED, BookingStatus.COMPLETED})

ALLOWED_TRANSITIONS = {
    BookingStatus.PENDING: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.CONFIRMED: frozenset({BookingStatus.CANCELLED, BookingStatus.COMPLETED}),
    BookingStatus.CANCELLED: frozenset(),
    BookingStatus.COMPLETED: frozenset(),
}


def can_transition(current, target) -> bool:
    """Re-applying the current status counts as allowed (no-op)."""
    current, target = BookingStatus(current), BookingStatus(target)
    return current == target or target in ALLOWED_TRANSITIONS[current]
