from flask import current_app, jsonify

from services.booking_service import OutcomeKind

HTTP_STATUS = {
    OutcomeKind.OK: 200,
    OutcomeKind.CREATED: 201,
    OutcomeKind.INVALID: 400,
    OutcomeKind.CONFLICT: 400,
    OutcomeKind.NOT_FOUND: 404,
    OutcomeKind.UNAVAILABLE: 503,
}

# A lost optimistic-concurrency race is reported as a real conflict
ERROR_KIND_STATUS = {
    "concurrency_conflict": 409,
}


def booking_service():
    return current_app.extensions["booking_service"]


def error_response(outcome):
    body = {"error": outcome.message, "kind": outcome.error_kind}
    if outcome.details:
        body["details"] = outcome.details
    status = ERROR_KIND_STATUS.get(outcome.error_kind, HTTP_STATUS[outcome.kind])
    return jsonify(body), status
