# medreview/diagnosis/age.py
from __future__ import annotations

from datetime import date, datetime
from typing import Optional, Union


def _as_date(value: Union[date, datetime, str]) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(value[:10])


def calculate_age(
    date_of_birth: Union[date, datetime, str],
    today: Optional[date] = None,
) -> int:
    """
    Whole years between date_of_birth and today.

    The year difference is reduced by one while this year's birthday
    (month, day) is still ahead of today.
    """
    dob = _as_date(date_of_birth)
    today = today or date.today()

    age = today.year - dob.year
    if (today.month, today.day) < (dob.month, dob.day):
        age -= 1
    return age
