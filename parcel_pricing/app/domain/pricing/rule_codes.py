"""
Rule code formatting.

Codes look like PR-YYYYMMDD-NNN; the sequence restarts every day and is
zero-padded to at least three digits.
"""

import re
from datetime import date
from typing import Optional

from parcel_pricing.app.core.config import settings

_CODE_PATTERN = re.compile(r"^(?P<prefix>[A-Z]+)-(?P<day>\d{8})-(?P<sequence>\d{3,})$")


def code_prefix(day: date, prefix: Optional[str] = None) -> str:
    return f"{prefix or settings.rule_code_prefix}-{day.strftime('%Y%m%d')}-"


def format_code(day: date, sequence: int, prefix: Optional[str] = None) -> str:
    if sequence < 1:
        raise ValueError(f"Sequence must be positive, got {sequence}")
    return f"{code_prefix(day, prefix)}{sequence:03d}"


def parse_sequence(code: str, day: date, prefix: Optional[str] = None) -> Optional[int]:
    """Sequence number of `code` if it belongs to `day`, else None."""
    match = _CODE_PATTERN.match(code)
    if not match or not code.startswith(code_prefix(day, prefix)):
        return None
    return int(match.group("sequence"))


def next_code(date_today: date, latest_code_for_today: Optional[str], prefix: Optional[str] = None) -> str:
    """
    Code following `latest_code_for_today`, or the day's first code.
    
    Raises:
        ValueError: If the latest code is not a code of `date_today`.
    """
    if latest_code_for_today is None:
        return format_code(date_today, 1, prefix)
    
    sequence = parse_sequence(latest_code_for_today, date_today, prefix)
    if sequence is None:
        raise ValueError(
            f"{latest_code_for_today!r} is not a rule code for {date_today.isoformat()}"
        )
    return format_code(date_today, sequence + 1, prefix)
