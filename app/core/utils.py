import re
import uuid
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional

def utcnow() -> datetime:
    # Timestamps are stored as naive UTC in plain DateTime columns
    return datetime.now(timezone.utc).replace(tzinfo=None)

def to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value

def day_bounds(day: date) -> tuple[datetime, datetime]:
    start = datetime.combine(day, time.min)
    return start, start + timedelta(days=1)

def digits_only(value: str) -> str:
    return re.sub(r"\D", "", value or "")

def generate_view_token() -> str:
    return uuid.uuid4().hex

def calculate_age(born: Optional[date], today: Optional[date] = None) -> Optional[int]:
    if not born:
        return None
    today = today or date.today()
    return today.year - born.year - ((today.month, today.day) < (born.month, born.day))

def format_doctor_name(name: Optional[str]) -> str:
    if not name or not name.strip():
        return "N/A"
    name = name.strip().title()
    if not name.lower().startswith("dr."):
        name = f"Dr. {name}"
    return name
