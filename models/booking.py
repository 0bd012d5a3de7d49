from sqlalchemy.orm import validates

from models.db import db
from models.status import BookingStatus, TERMINAL_STATUSES, can_transition
from utils.errors import InvalidTransition, ValidationError
from utils import validation
from utils.timeutils import as_utc, db_now, isoformat, to_db


class Booking(db.Model):
    __tablename__ = "bookings"

    id = db.Column(db.Integer, primary_key=True)

    # UTC slot start, stored naive
    slot_start = db.Column(db.DateTime, nullable=False)

    customer_name = db.Column(db.String(120), nullable=False)
    customer_email = db.Column(db.String(254), nullable=False)

    status = db.Column(db.String(20), nullable=False, default=BookingStatus.PENDING.value, index=True)
    # status values: pending, confirmed, cancelled, completed

    payment_intent_ref = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime, default=db_now, nullable=False)
    updated_at = db.Column(db.DateTime, default=db_now, onupdate=db_now, nullable=False)

    # Optimistic concurrency token, bumped on every write
    version = db.Column(db.Integer, nullable=False)

    __table_args__ = (
        # Hard business-rule: one row per slot start. Cancelled rows are
        # reactivated in place instead of inserting a second row.
        db.UniqueConstraint("slot_start", name="uq_booking_slot_start"),
    )

    __mapper_args__ = {"version_id_col": version}

    @validates("slot_start")
    def _validate_slot_start(self, key, value):
        msg = validation.check_slot_start(value)
        if msg:
            raise ValidationError(details={key: msg})
        return to_db(value)

    @validates("customer_name")
    def _validate_name(self, key, value):
        msg = validation.check_name(value)
        if msg:
            raise ValidationError(details={key: msg})
        return value.strip()

    @validates("customer_email")
    def _validate_email(self, key, value):
        msg = validation.check_email(value)
        if msg:
            raise ValidationError(details={key: msg})
        return validation.normalize_email(value)

    @validates("status")
    def _validate_status(self, key, value):
        msg = validation.check_status(value)
        if msg:
            raise ValidationError(details={key: msg})
        return BookingStatus(value).value

    @property
    def booking_status(self) -> BookingStatus:
        return BookingStatus(self.status)

    @property
    def is_active(self) -> bool:
        return self.booking_status != BookingStatus.CANCELLED

    @property
    def is_terminal(self) -> bool:
        return self.booking_status in TERMINAL_STATUSES

    @property
    def slot_start_utc(self):
        return as_utc(self.slot_start)

    def can_transition(self, target) -> bool:
        return can_transition(self.status, target)

    def check_transition(self, target) -> BookingStatus:
        target = BookingStatus(target)
        if not self.can_transition(target):
            raise InvalidTransition(
                f"Cannot move booking from {self.status} to {target.value}",
                details={"status": self.status},
            )
        return target

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "slot_start": isoformat(self.slot_start),
            "customer_name": self.customer_name,
            "customer_email": self.customer_email,
            "status": self.status,
            "payment_intent_ref": self.payment_intent_ref,
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
            "version": self.version,
        }

    def __repr__(self):
        return f"<Booking {self.id} {self.slot_start} {self.status}>"
