from datetime import date

from flask import current_app

from models import db
from models.settings import Settings
from utils.timeslots import parse_iso_date


def get_settings() -> Settings:
    """Returns the single settings row, creating it from config on first use."""
    row = Settings.query.order_by(Settings.id.asc()).first()
    if row:
        return row

    event_date = parse_iso_date(current_app.config.get("EVENT_DATE")) or date.today()
    row = Settings(
        id=1,
        event_name=current_app.config.get("EVENT_NAME", "BKSB Elternsprechtag"),
        event_date=event_date,
    )
    db.session.add(row)
    db.session.commit()
    return row
