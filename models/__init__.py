from .db import db
from .teacher import Teacher
from .slot import Slot
from .booking_request import BookingRequest
from .user import User
from .settings import Settings
from .feedback import Feedback
from .session import Session
from .login_attempt import LoginAttempt
from .audit_log import AuditLog
