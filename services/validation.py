from dataclasses import dataclass
from typing import Optional

from services.errors import ValidationError

VISITOR_TYPES = ("parent", "company")

MAX_MESSAGE_LEN = 2000


def _clean(value) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        value = str(value)
    value = value.strip()
    return value or None


def is_valid_email(email) -> bool:
    return isinstance(email, str) and "@" in email and len(email) <= 255


@dataclass
class VisitorDetails:
    visitor_type: str
    class_name: str
    email: str
    parent_name: Optional[str] = None
    student_name: Optional[str] = None
    company_name: Optional[str] = None
    trainee_name: Optional[str] = None
    representative_name: Optional[str] = None
    message: Optional[str] = None

    def columns(self) -> dict:
        """Column values for slots/booking_requests; the other visitor type's fields are NULL."""
        return {
            "visitor_type": self.visitor_type,
            "class_name": self.class_name,
            "email": self.email,
            "message": self.message,
            "parent_name": self.parent_name,
            "student_name": self.student_name,
            "company_name": self.company_name,
            "trainee_name": self.trainee_name,
            "representative_name": self.representative_name,
        }


def parse_visitor_details(data: dict) -> VisitorDetails:
    """
    Validates the visitor part of a booking/request payload (camelCase keys).
    Raises ValidationError.
    """
    data = data or {}
    visitor_type = _clean(data.get("visitorType"))
    class_name = _clean(data.get("className"))
    email = _clean(data.get("email"))

    if not visitor_type or not class_name or not email:
        raise ValidationError("visitorType, className, email required")

    if visitor_type not in VISITOR_TYPES:
        raise ValidationError("visitorType must be parent or company")

    if not is_valid_email(email):
        raise ValidationError("Invalid email")

    message = _clean(data.get("message"))
    if message and len(message) > MAX_MESSAGE_LEN:
        raise ValidationError(f"message must be at most {MAX_MESSAGE_LEN} characters")

    details = VisitorDetails(
        visitor_type=visitor_type,
        class_name=class_name,
        email=email.lower(),
        message=message,
    )

    if visitor_type == "parent":
        details.parent_name = _clean(data.get("parentName"))
        details.student_name = _clean(data.get("studentName"))
        if not details.parent_name or not details.student_name:
            raise ValidationError("parentName and studentName required for parent type")
    else:
        details.company_name = _clean(data.get("companyName"))
        details.trainee_name = _clean(data.get("traineeName"))
        details.representative_name = _clean(data.get("representativeName"))
        if not details.company_name or not details.trainee_name or not details.representative_name:
            raise ValidationError("companyName, traineeName and representativeName required for company type")

    return details


def parse_id(value, name: str) -> int:
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be a number")
    if parsed <= 0:
        raise ValidationError(f"{name} must be a number")
    return parsed
