from flask import Blueprint, request, jsonify

from routes.common import booking_service, error_response
from utils.audit import log_event
from utils.timeutils import isoformat

booking_bp = Blueprint("booking", __name__, url_prefix="/bookings")


# ---------- PUBLIC: view free slots ----------
@booking_bp.get("")
def list_available_slots():
    # required: start_date, end_date (ISO, UTC)
    outcome = booking_service().list_available_slots(request.args.to_dict())
    if not outcome.ok:
        return error_response(outcome)

    return jsonify([{"slot_start": isoformat(s)} for s in outcome.value]), 200


# ---------- ADMIN: every booking in a range, any status ----------
@booking_bp.get("/booked")
def list_booked():
    outcome = booking_service().list_booked(request.args.to_dict())
    if not outcome.ok:
        return error_response(outcome)

    return jsonify([b.to_dict() for b in outcome.value]), 200


# ---------- PUBLIC: book slot (DOUBLE-BOOKING SAFE) ----------
@booking_bp.post("/book")
def create_booking():
    data = request.get_json(silent=True)
    if data is None:
        data = {}

    outcome = booking_service().create_booking(data)
    if not outcome.ok:
        if outcome.error_kind == "slot_conflict":
            log_event("BOOKING_FAIL_ALREADY_BOOKED", entity="slot", entity_id=data.get("slot_start"))
        return error_response(outcome)

    booking = outcome.value
    log_event("BOOKING_CREATE", entity="booking", entity_id=booking.id,
              metadata={"slot_start": isoformat(booking.slot_start)})
    return jsonify(booking.to_dict()), 201


# ---------- PUBLIC: cancel booking ----------
@booking_bp.post("/<int:booking_id>/cancel")
def cancel_booking(booking_id: int):
    outcome = booking_service().cancel_booking(booking_id)
    if not outcome.ok:
        return error_response(outcome)

    log_event("BOOKING_CANCEL", entity="booking", entity_id=booking_id)
    return jsonify(id=booking_id, status=outcome.value.status), 200
