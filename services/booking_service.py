"""
Booking use-cases.

Each public method returns an Outcome instead of raising for expected
business results (not found, slot taken, payment not done, bad input).
Unexpected exceptions still propagate.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from models.status import BookingStatus
from utils import validation
from utils.errors import (
    AlreadyPaid,
    BookingError,
    ConcurrencyConflict,
    GatewayUnavailable,
    InvalidTransition,
    NotFound,
    PaymentNotInitialized,
    PaymentNotSucceeded,
    SlotConflict,
    ValidationError,
)
from utils.slots import generate_slots, slot_key
from utils.timeutils import utcnow

logger = logging.getLogger(__name__)


class OutcomeKind(str, Enum):
    OK = "ok"
    CREATED = "created"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    INVALID = "invalid"
    UNAVAILABLE = "unavailable"


_ERROR_KINDS = {
    NotFound: OutcomeKind.NOT_FOUND,
    SlotConflict: OutcomeKind.CONFLICT,
    ConcurrencyConflict: OutcomeKind.CONFLICT,
    ValidationError: OutcomeKind.INVALID,
    AlreadyPaid: OutcomeKind.INVALID,
    PaymentNotInitialized: OutcomeKind.INVALID,
    PaymentNotSucceeded: OutcomeKind.INVALID,
    InvalidTransition: OutcomeKind.INVALID,
    GatewayUnavailable: OutcomeKind.UNAVAILABLE,
}


@dataclass
class Outcome:
    kind: OutcomeKind
    value: Any = None
    message: Optional[str] = None
    error_kind: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.kind in (OutcomeKind.OK, OutcomeKind.CREATED)

    @classmethod
    def success(cls, value, created=False):
        return cls(OutcomeKind.CREATED if created else OutcomeKind.OK, value=value)

    @classmethod
    def from_error(cls, exc: BookingError):
        kind = _ERROR_KINDS.get(type(exc), OutcomeKind.INVALID)
        return cls(kind, message=exc.message, error_kind=exc.kind, details=dict(exc.details))


class BookingService:
    def __init__(self, store, payments, slot_duration_ms: Optional[int] = None,
                 business_start_ms: Optional[int] = None, business_end_ms: Optional[int] = None):
        self.store = store
        self.payments = payments
        default_start, default_end = validation.business_window_ms()
        self.slot_duration_ms = slot_duration_ms if slot_duration_ms is not None else validation.slot_duration_ms()
        self.business_start_ms = business_start_ms if business_start_ms is not None else default_start
        self.business_end_ms = business_end_ms if business_end_ms is not None else default_end

    # -------------------------
    # helpers
    # -------------------------
    def _run(self, fn: Callable[[], Outcome]) -> Outcome:
        try:
            return fn()
        except BookingError as exc:
            return Outcome.from_error(exc)

    def _with_fresh_booking(self, booking_id, action):
        """
        Load the booking and run ``action`` on it. A version clash or a
        gateway failure is retried once against a freshly loaded row.
        """
        attempt = 0
        while True:
            attempt += 1
            booking = self.store.find_one(id=booking_id)
            if booking is None:
                raise NotFound()
            try:
                return action(booking)
            except (ConcurrencyConflict, GatewayUnavailable) as exc:
                if attempt >= 2:
                    raise
                logger.warning("booking_retry id=%s reason=%s", booking_id, exc.kind)

    def _range(self, query) -> dict:
        cleaned, errors = validation.validate_range_query(query)
        if errors:
            raise ValidationError(details=errors)
        return cleaned

    def _slots(self, start: datetime, end: datetime):
        return generate_slots(start, end, self.slot_duration_ms, self.business_start_ms, self.business_end_ms)

    # -------------------------
    # use-cases
    # -------------------------
    def create_booking(self, data: dict) -> Outcome:
        def run():
            cleaned, errors = validation.validate_booking_input(data)
            if errors:
                raise ValidationError(details=errors)
            slot_start = cleaned.pop("slot_start")
            booking = self.store.create_or_reactivate(slot_start, cleaned)
            return Outcome.success(booking, created=True)
        return self._run(run)

    def cancel_booking(self, booking_id) -> Outcome:
        def cancel(booking):
            booking.check_transition(BookingStatus.CANCELLED)
            if booking.booking_status == BookingStatus.CANCELLED:
                return booking
            updated = self.store.update_by_id(
                booking.id,
                {"status": BookingStatus.CANCELLED},
                expected_version=booking.version,
            )
            if updated is None:
                raise NotFound()
            logger.info("booking_cancelled id=%s", booking.id)
            return updated

        return self._run(lambda: Outcome.success(self._with_fresh_booking(booking_id, cancel)))

    def list_available_slots(self, query) -> Outcome:
        def run():
            rng = self._range(query)
            start, end = rng["start_date"], rng["end_date"]
            taken = {
                slot_key(b.slot_start_utc)
                for b in self.store.find_in_range(start, end)
                if b.is_active
            }
            available = [s for s in self._slots(start, end) if slot_key(s) not in taken]
            return Outcome.success(available)
        return self._run(run)

    def list_booked(self, query) -> Outcome:
        def run():
            rng = self._range(query)
            return Outcome.success(self.store.find_in_range(rng["start_date"], rng["end_date"]))
        return self._run(run)

    def initialize_payment(self, booking_id) -> Outcome:
        return self._run(
            lambda: Outcome.success(self._with_fresh_booking(booking_id, self.payments.initialize_payment))
        )

    def confirm_payment(self, booking_id) -> Outcome:
        return self._run(
            lambda: Outcome.success(self._with_fresh_booking(booking_id, self.payments.confirm_payment))
        )

    # -------------------------
    # out-of-band
    # -------------------------
    def complete_elapsed(self, now: Optional[datetime] = None) -> List:
        """Move confirmed bookings whose slot has ended to completed."""
        now = now or utcnow()
        cutoff = now - timedelta(milliseconds=self.slot_duration_ms)
        completed = []
        for booking in self.store.find_confirmed_started_by(cutoff):
            try:
                updated = self.store.update_by_id(
                    booking.id,
                    {"status": BookingStatus.COMPLETED},
                    expected_version=booking.version,
                )
            except ConcurrencyConflict:
                logger.warning("booking_complete_skipped id=%s", booking.id)
                continue
            if updated is not None:
                completed.append(updated)
        return completed
