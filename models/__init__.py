from .db import db
from .status import BookingStatus
from .booking import Booking
from .audit_log import AuditLog
