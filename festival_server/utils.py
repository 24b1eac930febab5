"""
Utility functions for session ids and extended-hour time tokens
"""
import random
import re
import string

# "HH:MM" with hours 00-29; 24-29 run past midnight into the next calendar day
EXTENDED_TIME_RE = re.compile(r"^([0-2][0-9]):([0-5][0-9])$")
MAX_EXTENDED_HOUR = 29


def generate_session_id(length: int = 9) -> str:
    """Generate a random session ID"""
    alphabet = string.ascii_lowercase + string.digits
    return "session_" + "".join(random.choice(alphabet) for _ in range(length))


def is_extended_time(value) -> bool:
    """Check that a value is a zero-padded "HH:MM" token in the 00:00-29:59 range"""
    if not isinstance(value, str):
        return False
    match = EXTENDED_TIME_RE.match(value)
    return bool(match) and int(match.group(1)) <= MAX_EXTENDED_HOUR


def format_display_time(value: str) -> str:
    """Render extended hours as wall-clock time, e.g. "25:30" -> "01:30 (+1)" """
    hours, minutes = (int(part) for part in value.split(":"))
    if hours >= 24:
        return f"{hours - 24:02d}:{minutes:02d} (+1)"
    return value


def format_time_range(start_time: str, end_time: str) -> str:
    return f"{format_display_time(start_time)} - {format_display_time(end_time)}"
