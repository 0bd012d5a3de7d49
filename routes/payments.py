from flask import Blueprint, jsonify

from routes.common import booking_service, error_response
from utils.audit import log_event

payments_bp = Blueprint("payments", __name__, url_prefix="/bookings")


@payments_bp.post("/<int:booking_id>/pay")
def start_payment(booking_id: int):
    outcome = booking_service().initialize_payment(booking_id)
    if not outcome.ok:
        return error_response(outcome)

    payment = outcome.value
    log_event("PAYMENT_INITIALIZED", entity="booking", entity_id=booking_id,
              metadata={"amount": payment.amount_minor_units, "currency": payment.currency})
    return jsonify(payment.to_dict()), 200


@payments_bp.post("/<int:booking_id>/pay/confirm")
def confirm_payment(booking_id: int):
    outcome = booking_service().confirm_payment(booking_id)
    if not outcome.ok:
        if outcome.error_kind == "payment_not_succeeded":
            log_event("PAYMENT_NOT_SUCCEEDED", entity="booking", entity_id=booking_id, metadata=outcome.details)
        return error_response(outcome)

    booking = outcome.value
    log_event("PAYMENT_CONFIRMED", entity="booking", entity_id=booking_id,
              metadata={"payment_intent_ref": booking.payment_intent_ref})
    return jsonify(id=booking.id, status=booking.status), 200
