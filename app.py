import logging

from flask import Flask, jsonify, request
from werkzeug.exceptions import HTTPException

from config import Config
from routes import health_bp, booking_bp, payments_bp

from models import db
from flask_migrate import Migrate
from services.booking_store import BookingStore
from services.booking_service import BookingService
from services.payment_coordinator import PaymentCoordinator
from services.payment_gateway import StripePaymentGateway


def build_booking_service(app, gateway=None):
    """Wire store, gateway and coordinator from app config (no globals)."""
    cfg = app.config
    store = BookingStore(db.session)
    if gateway is None:
        gateway = StripePaymentGateway(
            cfg.get("STRIPE_SECRET_KEY"),
            timeout_seconds=cfg.get("STRIPE_TIMEOUT_SECONDS", 10),
        )
    payments = PaymentCoordinator(
        store,
        gateway,
        amount_minor_units=cfg["BOOKING_PRICE_MINOR_UNITS"],
        currency=cfg["PAYMENT_CURRENCY"],
        method_types=cfg["PAYMENT_METHOD_TYPES"],
    )
    hour = 60 * 60 * 1000
    return BookingService(
        store,
        payments,
        slot_duration_ms=cfg["BOOKING_SLOT_MINUTES"] * 60 * 1000,
        business_start_ms=cfg["BUSINESS_START_HOUR"] * hour,
        business_end_ms=cfg["BUSINESS_END_HOUR"] * hour,
    )


def create_app(config_object=Config, gateway=None):
    app = Flask(__name__)
    app.config.from_object(config_object)

    logging.basicConfig(
        level=app.config.get("LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Register routes
    app.register_blueprint(health_bp)
    app.register_blueprint(booking_bp)
    app.register_blueprint(payments_bp)

    # Database init
    db.init_app(app)

    # Migrations
    Migrate(app, db)

    app.extensions["booking_service"] = build_booking_service(app, gateway=gateway)

    @app.errorhandler(HTTPException)
    def _http_error(exc):
        return jsonify(error=exc.description, kind=exc.name.lower().replace(" ", "_")), exc.code

    @app.errorhandler(Exception)
    def _unhandled(exc):
        app.logger.exception("unhandled_error")
        db.session.rollback()
        return jsonify(error="Internal server error", kind="internal_error"), 500

    @app.after_request
    def log_request(resp):
        app.logger.info("%s %s %s", request.method, request.path, resp.status_code)
        return resp

    @app.after_request
    def add_security_headers(resp):
        resp.headers["X-Content-Type-Options"] = "nosniff"
        resp.headers["X-Frame-Options"] = "DENY"
        resp.headers["Referrer-Policy"] = "no-referrer"
        resp.headers["Permissions-Policy"] = "geolocation=(), microphone=(), camera=()"
        # API only: nothing may be framed or loaded
        resp.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none';"
        return resp

    register_cli(app)

    return app

#-------------------------
import click
from utils.timeutils import isoformat, parse_iso


def register_cli(app):
    @app.cli.command("complete-bookings")
    @click.option("--now", "now_str", default=None, help="ISO timestamp to treat as now (UTC).")
    def complete_bookings(now_str):
        """Mark confirmed bookings whose slot has ended as completed."""
        now = parse_iso(now_str) if now_str else None
        done = app.extensions["booking_service"].complete_elapsed(now)
        for booking in done:
            click.echo(f"{booking.id} {isoformat(booking.slot_start)} completed")
        click.echo(f"{len(done)} booking(s) completed")

    @app.cli.command("list-slots")
    @click.argument("start_date")
    @click.argument("end_date")
    def list_slots(start_date, end_date):
        """Print free slots between START_DATE and END_DATE."""
        outcome = app.extensions["booking_service"].list_available_slots(
            {"start_date": start_date, "end_date": end_date}
        )
        if not outcome.ok:
            raise click.ClickException(f"{outcome.message}: {outcome.details}")
        for slot in outcome.value:
            click.echo(isoformat(slot))

#-------------------------


if __name__ == "__main__":
    app = create_app()
    # Run locally
    app.run(host="127.0.0.1", port=5002)
