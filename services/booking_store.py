"""
Persistence for bookings.

Every mutation is a single conditional statement so that concurrent
requests are ordered by the database, not by the application:

* new bookings rely on the unique index on ``slot_start``;
* cancelled rows are reactivated with ``UPDATE ... WHERE status = 'cancelled'``;
* other updates compare-and-swap on ``version``.
"""
import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from models.booking import Booking
from models.status import BookingStatus
from utils import validation
from utils.errors import ConcurrencyConflict, SlotConflict, ValidationError
from utils.timeutils import db_now, isoformat, to_db

logger = logging.getLogger(__name__)

CREATE_FIELDS = ("customer_name", "customer_email")
PATCH_FIELDS = ("status", "payment_intent_ref", "customer_name", "customer_email")


def _clean(values: dict, allowed) -> dict:
    errors = {}
    cleaned = {}
    for key, value in values.items():
        if key not in allowed:
            errors[key] = f'"{key}" is not an allowed field'
            continue
        if key == "customer_name":
            msg = validation.check_name(value)
            value = value.strip() if msg is None else value
        elif key == "customer_email":
            msg = validation.check_email(value)
            value = validation.normalize_email(value) if msg is None else value
        elif key == "status":
            msg = validation.check_status(value)
            value = BookingStatus(value).value if msg is None else value
        else:
            msg = None
        if msg:
            errors[key] = msg
        cleaned[key] = value
    if errors:
        raise ValidationError(details=errors)
    return cleaned


class BookingStore:
    def __init__(self, session):
        self.session = session

    def _fresh(self, booking_id) -> Optional[Booking]:
        return self.session.get(Booking, booking_id, populate_existing=True)

    def _reactivate(self, slot_start: datetime, fields: dict) -> Optional[Booking]:
        stmt = (
            update(Booking)
            .where(
                Booking.slot_start == slot_start,
                Booking.status == BookingStatus.CANCELLED.value,
            )
            .values(
                status=BookingStatus.PENDING.value,
                # the previous customer's intent must never confirm this booking
                payment_intent_ref=None,
                updated_at=db_now(),
                version=Booking.version + 1,
                **fields,
            )
            .execution_options(synchronize_session=False)
        )
        result = self.session.execute(stmt)
        if result.rowcount != 1:
            return None

        self.session.commit()
        booking = self.session.execute(
            select(Booking)
            .where(Booking.slot_start == slot_start)
            .execution_options(populate_existing=True)
        ).scalar_one()
        logger.info("booking_reactivated id=%s slot=%s", booking.id, isoformat(slot_start))
        return booking

    def create_or_reactivate(self, slot_start: datetime, fields: dict) -> Booking:
        """
        Claim ``slot_start`` for a new customer.

        Creates a pending booking when the slot has never been booked,
        turns a cancelled booking for the slot back into a pending one
        (same id), and raises SlotConflict when an active booking holds it.
        """
        msg = validation.check_slot_start(slot_start)
        if msg:
            raise ValidationError(details={"slot_start": msg})
        fields = _clean(fields, CREATE_FIELDS)
        slot = to_db(slot_start)

        booking = self._reactivate(slot, fields)
        if booking is not None:
            return booking

        booking = Booking(slot_start=slot_start, status=BookingStatus.PENDING.value, **fields)
        self.session.add(booking)
        try:
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            # The slot row exists. It may have been cancelled since our first
            # attempt, so try the reactivation path once more.
            booking = self._reactivate(slot, fields)
            if booking is not None:
                return booking
            self.session.rollback()
            logger.warning("booking_slot_conflict slot=%s", isoformat(slot))
            raise SlotConflict(details={"slot_start": isoformat(slot)})

        logger.info("booking_created id=%s slot=%s", booking.id, isoformat(slot))
        return booking

    def find_one(self, **filters) -> Optional[Booking]:
        if "slot_start" in filters:
            filters["slot_start"] = to_db(filters["slot_start"])
        if isinstance(filters.get("status"), BookingStatus):
            filters["status"] = filters["status"].value
        return self.session.execute(
            select(Booking).filter_by(**filters).execution_options(populate_existing=True)
        ).scalars().first()

    def find_in_range(self, start: datetime, end: datetime) -> List[Booking]:
        """All bookings (any status) whose slot starts within [start, end]."""
        return list(
            self.session.execute(
                select(Booking)
                .where(Booking.slot_start >= to_db(start), Booking.slot_start <= to_db(end))
                .order_by(Booking.slot_start.asc())
            ).scalars()
        )

    def find_confirmed_started_by(self, cutoff: datetime) -> List[Booking]:
        return list(
            self.session.execute(
                select(Booking)
                .where(
                    Booking.status == BookingStatus.CONFIRMED.value,
                    Booking.slot_start <= to_db(cutoff),
                )
                .order_by(Booking.slot_start.asc())
            ).scalars()
        )

    def update_by_id(self, booking_id, patch: dict, expected_version: Optional[int] = None) -> Optional[Booking]:
        """
        Apply ``patch`` to one booking.

        Returns None when no such booking exists. With ``expected_version``
        the write only lands if nobody else wrote the row in between;
        otherwise ConcurrencyConflict is raised. Every use-case passes the
        version it read. Leaving it out is an unconditional operator write
        (fixtures, manual repair) that still bumps ``version``.
        """
        patch = _clean(patch, PATCH_FIELDS)

        stmt = update(Booking).where(Booking.id == booking_id)
        if expected_version is not None:
            stmt = stmt.where(Booking.version == expected_version)
        stmt = stmt.values(updated_at=db_now(), version=Booking.version + 1, **patch)

        result = self.session.execute(stmt.execution_options(synchronize_session=False))

        if result.rowcount == 0:
            self.session.rollback()
            if expected_version is not None and self._fresh(booking_id) is not None:
                logger.warning("booking_version_mismatch id=%s expected=%s", booking_id, expected_version)
                raise ConcurrencyConflict(details={"version": expected_version})
            return None

        self.session.commit()
        return self._fresh(booking_id)
