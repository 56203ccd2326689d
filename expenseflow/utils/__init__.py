"""Utility helpers."""

from expenseflow.utils.dates import (
    COMMON_TIMEZONES,
    effective_timezone,
    end_of_day,
    format_date_for_input,
    format_datetime_for_input,
    format_display_date,
    parse_input_date,
    start_of_day,
    utcnow,
)

__all__ = [
    "COMMON_TIMEZONES",
    "effective_timezone",
    "end_of_day",
    "format_date_for_input",
    "format_datetime_for_input",
    "format_display_date",
    "parse_input_date",
    "start_of_day",
    "utcnow",
]
