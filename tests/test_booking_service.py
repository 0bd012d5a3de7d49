from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

from models.status import BookingStatus
from services.booking_service import BookingService, Outcome, OutcomeKind
from utils.errors import ConcurrencyConflict, GatewayUnavailable, NotFound

from conftest import SLOT, booking_payload

UTC = timezone.utc
DAY = {"start_date": "2025-01-10T00:00:00Z", "end_date": "2025-01-10T23:59:00Z"}


def test_create_returns_created(service):
    outcome = service.create_booking(booking_payload())

    assert outcome.kind == OutcomeKind.CREATED
    assert outcome.ok
    assert outcome.value.status == "pending"
    assert outcome.value.customer_email == "ada@example.com"


def test_second_create_on_pending_slot_conflicts(service):
    service.create_booking(booking_payload())

    outcome = service.create_booking(booking_payload(customer_name="Bob Smith"))

    assert outcome.kind == OutcomeKind.CONFLICT
    assert outcome.error_kind == "slot_conflict"
    assert outcome.message == "Slot already booked"


def test_cancel_then_create_reuses_booking(service):
    first = service.create_booking(booking_payload()).value
    first_id = first.id
    assert service.cancel_booking(first_id).value.status == "cancelled"

    again = service.create_booking(booking_payload(customer_name="Bob Smith"))

    assert again.kind == OutcomeKind.CREATED
    assert again.value.id == first_id
    assert again.value.status == "pending"


def test_create_reports_all_validation_errors(service):
    outcome = service.create_booking({"slot_start": "2025-01-10T09:15:00Z", "customer_name": "",
                                      "customer_email": "nope"})

    assert outcome.kind == OutcomeKind.INVALID
    assert outcome.error_kind == "validation_error"
    assert set(outcome.details) == {"slot_start", "customer_name", "customer_email"}


def test_cancel_is_idempotent(service):
    booking_id = service.create_booking(booking_payload()).value.id

    first = service.cancel_booking(booking_id)
    version = first.value.version
    second = service.cancel_booking(booking_id)

    assert first.kind == second.kind == OutcomeKind.OK
    assert second.value.status == "cancelled"
    assert second.value.version == version


def test_cancel_unknown_booking(service):
    outcome = service.cancel_booking(12345)
    assert outcome.kind == OutcomeKind.NOT_FOUND
    assert outcome.message == "Booking not found"


def test_cancel_completed_booking_is_invalid(service, store):
    booking_id = service.create_booking(booking_payload()).value.id
    store.update_by_id(booking_id, {"status": "confirmed"})
    store.update_by_id(booking_id, {"status": "completed"})

    outcome = service.cancel_booking(booking_id)

    assert outcome.kind == OutcomeKind.INVALID
    assert outcome.error_kind == "invalid_transition"


def test_list_available_excludes_active_bookings(service):
    nine = service.create_booking(booking_payload(slot=SLOT)).value
    service.create_booking(booking_payload(slot=SLOT + timedelta(minutes=30)))
    service.cancel_booking(nine.id)

    outcome = service.list_available_slots(DAY)

    assert outcome.kind == OutcomeKind.OK
    assert len(outcome.value) == 17
    assert SLOT in outcome.value
    assert SLOT + timedelta(minutes=30) not in outcome.value
    assert outcome.value == sorted(outcome.value)


def test_list_available_rejects_bad_range(service):
    outcome = service.list_available_slots({"start_date": "2025-01-10", "end_date": "2025-03-10"})
    assert outcome.kind == OutcomeKind.INVALID
    assert "end_date" in outcome.details


def test_list_booked_returns_every_status(service):
    a = service.create_booking(booking_payload(slot=SLOT)).value
    service.create_booking(booking_payload(slot=SLOT + timedelta(hours=1)))
    service.cancel_booking(a.id)

    outcome = service.list_booked(DAY)

    assert [b.status for b in outcome.value] == ["cancelled", "pending"]


def test_payment_flow(service, gateway):
    booking_id = service.create_booking(booking_payload()).value.id

    not_ready = service.confirm_payment(booking_id)
    assert not_ready.error_kind == "payment_not_initialized"

    init = service.initialize_payment(booking_id)
    assert init.kind == OutcomeKind.OK
    assert init.value.client_secret == "pi_1_secret_abc"

    pending = service.confirm_payment(booking_id)
    assert pending.kind == OutcomeKind.INVALID
    assert pending.error_kind == "payment_not_succeeded"

    gateway.set_status("pi_1", "succeeded")
    done = service.confirm_payment(booking_id)
    assert done.kind == OutcomeKind.OK
    assert done.value.status == "confirmed"

    again = service.initialize_payment(booking_id)
    assert again.error_kind == "already_paid"
    assert again.kind == OutcomeKind.INVALID


def test_payment_on_unknown_booking(service):
    assert service.initialize_payment(404).kind == OutcomeKind.NOT_FOUND
    assert service.confirm_payment(404).kind == OutcomeKind.NOT_FOUND


def test_gateway_failure_is_retried_once(service, gateway):
    booking_id = service.create_booking(booking_payload()).value.id
    gateway.fail_creates = 1

    outcome = service.initialize_payment(booking_id)

    assert outcome.kind == OutcomeKind.OK
    # same idempotency key both times: the retry cannot create a second charge
    assert gateway.create_calls[0][3] == gateway.create_calls[1][3]


def test_gateway_failing_twice_is_unavailable(service, gateway):
    booking_id = service.create_booking(booking_payload()).value.id
    gateway.fail_creates = 2

    outcome = service.initialize_payment(booking_id)

    assert outcome.kind == OutcomeKind.UNAVAILABLE
    assert outcome.error_kind == "gateway_unavailable"


def _fake_booking(version):
    booking = Mock()
    booking.id = 7
    booking.version = version
    booking.booking_status = BookingStatus.PENDING
    return booking


def test_concurrency_conflict_retries_with_fresh_state():
    store = Mock()
    store.find_one.side_effect = [_fake_booking(1), _fake_booking(2)]
    cancelled = Mock(status="cancelled")
    store.update_by_id.side_effect = [ConcurrencyConflict(), cancelled]
    svc = BookingService(store, Mock(), slot_duration_ms=1800000, business_start_ms=0, business_end_ms=1)

    outcome = svc.cancel_booking(7)

    assert outcome.value is cancelled
    versions = [c.kwargs["expected_version"] for c in store.update_by_id.call_args_list]
    assert versions == [1, 2]


def test_concurrency_conflict_twice_is_reported():
    store = Mock()
    store.find_one.side_effect = [_fake_booking(1), _fake_booking(2)]
    store.update_by_id.side_effect = [ConcurrencyConflict(), ConcurrencyConflict()]
    svc = BookingService(store, Mock(), slot_duration_ms=1800000, business_start_ms=0, business_end_ms=1)

    outcome = svc.cancel_booking(7)

    assert outcome.kind == OutcomeKind.CONFLICT
    assert outcome.error_kind == "concurrency_conflict"


def test_outcome_from_error_keeps_details():
    outcome = Outcome.from_error(NotFound(details={"id": 3}))
    assert outcome.kind == OutcomeKind.NOT_FOUND
    assert outcome.details == {"id": 3}
    assert not outcome.ok
    assert Outcome.from_error(GatewayUnavailable()).kind == OutcomeKind.UNAVAILABLE


def test_complete_elapsed(service, store):
    past = service.create_booking(booking_payload(slot=SLOT)).value.id
    store.update_by_id(past, {"status": "confirmed"})
    later = service.create_booking(booking_payload(slot=SLOT + timedelta(hours=3))).value.id
    store.update_by_id(later, {"status": "confirmed"})
    pending = service.create_booking(booking_payload(slot=SLOT + timedelta(minutes=30))).value.id

    done = service.complete_elapsed(now=datetime(2025, 1, 10, 11, 0, tzinfo=UTC))

    assert [b.id for b in done] == [past]
    assert store.find_one(id=past).status == "completed"
    assert store.find_one(id=later).status == "confirmed"
    assert store.find_one(id=pending).status == "pending"
