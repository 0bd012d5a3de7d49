import os

BASE_DIR = os.path.abspath(os.path.dirname(__file__))


def _csv(value: str):
    return [part.strip() for part in value.split(",") if part.strip()]


class Config:
    # Secrets
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-only-change-me")

    # SQLite database file stored next to the app as slotbook.db
    SQLALCHEMY_DATABASE_URI = os.getenv(
        "DATABASE_URL",
        "sqlite:///" + os.path.join(BASE_DIR, "slotbook.db")
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Slot grid (UTC)
    BOOKING_SLOT_MINUTES = int(os.getenv("BOOKING_SLOT_MINUTES", "30"))
    BUSINESS_START_HOUR = int(os.getenv("BUSINESS_START_HOUR", "9"))
    BUSINESS_END_HOUR = int(os.getenv("BUSINESS_END_HOUR", "18"))

    # Availability queries may not span more than this many days
    MAX_RANGE_DAYS = int(os.getenv("MAX_RANGE_DAYS", "31"))

    # Payment policy: one fixed price per slot
    BOOKING_PRICE_MINOR_UNITS = int(os.getenv("BOOKING_PRICE_MINOR_UNITS", "1500"))
    PAYMENT_CURRENCY = os.getenv("PAYMENT_CURRENCY", "eur").lower()
    PAYMENT_METHOD_TYPES = _csv(os.getenv("PAYMENT_METHOD_TYPES", "card"))

    # Stripe (server secret never leaves the backend)
    STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY")
    STRIPE_TIMEOUT_SECONDS = int(os.getenv("STRIPE_TIMEOUT_SECONDS", "10"))

    # Request bodies are small JSON documents
    MAX_CONTENT_LENGTH = int(os.getenv("MAX_CONTENT_LENGTH", str(1024 * 1024)))

    # Basic app settings
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    DEBUG = False


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    STRIPE_SECRET_KEY = None
