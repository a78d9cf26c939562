from typing import Any, Mapping, Optional

import pendulum

from forumbadges.utils.constants import DATE_FORMAT
from forumbadges.utils.env import get_settings


def to_timestamp(value: Any) -> Optional[int]:
    '''Normalise a submitted date to unix seconds (None when unset).

    Accepts a timestamp, an ISO-ish string, or a date selector mapping
    `{'enabled': 1, 'day': .., 'month': .., 'year': ..}`.
    '''
    if value is None or value == '' or value == 0 or value == '0':
        return None
    if isinstance(value, Mapping):
        if not int(value.get('enabled', 0) or 0):
            return None
        return pendulum.datetime(
            int(value['year']),
            int(value['month']),
            int(value['day']),
            tz=get_settings().timezone,
        ).int_timestamp
    if isinstance(value, (int, float)):
        return int(value)
    text = str(value).strip()
    if text.isdigit():
        return int(text)
    parsed = pendulum.parse(text, strict=False, tz=get_settings().timezone)
    return parsed.int_timestamp


def format_date(timestamp: int) -> str:
    return pendulum.from_timestamp(timestamp, tz=get_settings().timezone).format(
        DATE_FORMAT
    )
