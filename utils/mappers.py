"""Row -> JSON payload mapping shared by every blueprint (camelCase keys)."""


def _iso(value):
    return value.isoformat() if value else None


def map_slot(slot):
    if slot is None:
        return None
    return {
        "id": slot.id,
        "teacherId": slot.teacher_id,
        "time": slot.time,
        "date": slot.date,
        "booked": slot.booked,
        "status": slot.status,
        "visitorType": slot.visitor_type,
        "parentName": slot.parent_name,
        "companyName": slot.company_name,
        "studentName": slot.student_name,
        "traineeName": slot.trainee_name,
        "representativeName": slot.representative_name,
        "className": slot.class_name,
        "email": slot.email,
        "message": slot.message,
        "verifiedAt": _iso(slot.verified_at),
    }


def map_public_slot(slot):
    # Public slot lists never expose visitor contact data
    return {
        "id": slot.id,
        "teacherId": slot.teacher_id,
        "time": slot.time,
        "date": slot.date,
        "booked": slot.booked,
    }


def map_booking_with_teacher(slot):
    mapped = map_slot(slot)
    if mapped is None:
        return None
    teacher = slot.teacher
    mapped["teacherName"] = teacher.name if teacher else "Unknown"
    mapped["teacherSubject"] = teacher.subject if teacher else "Unknown"
    return mapped


def map_booking_request(row):
    if row is None:
        return None
    return {
        "id": row.id,
        "teacherId": row.teacher_id,
        "date": row.date,
        "requestedTime": row.requested_time,
        "status": row.status,
        "visitorType": row.visitor_type,
        "parentName": row.parent_name,
        "companyName": row.company_name,
        "studentName": row.student_name,
        "traineeName": row.trainee_name,
        "representativeName": row.representative_name,
        "className": row.class_name,
        "email": row.email,
        "message": row.message,
        "verifiedAt": _iso(row.verified_at),
        "confirmationSentAt": _iso(row.confirmation_sent_at),
        "assignedSlotId": row.assigned_slot_id,
        "createdAt": _iso(row.created_at),
        "updatedAt": _iso(row.updated_at),
    }


def map_teacher(teacher):
    return {
        "id": teacher.id,
        "name": teacher.name,
        "salutation": teacher.salutation,
        "email": teacher.email,
        "subject": teacher.subject,
        "system": teacher.system,
        "room": teacher.room,
    }


def map_settings(settings):
    return {
        "id": settings.id,
        "event_name": settings.event_name,
        "event_date": settings.event_date.isoformat(),
        "updated_at": _iso(settings.updated_at),
    }


def map_user(user):
    return {
        "id": user.id,
        "username": user.username,
        "role": user.role,
        "teacher_id": user.teacher_id,
        "created_at": _iso(user.created_at),
        "updated_at": _iso(user.updated_at),
    }


def map_feedback(row):
    return {
        "id": row.id,
        "message": row.message,
        "created_at": _iso(row.created_at),
    }
