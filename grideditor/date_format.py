"""Date conversion between the database storage format and a display format.

The database side is always ISO-8601 (``yyyy-mm-dd`` with an optional
``HH:MM[:SS[.fff]]`` time part). The display side is any ``strftime`` pattern;
the constants below cover the formats grid date pickers usually emit.
"""

from __future__ import annotations

import re
import datetime
from typing import ClassVar

from pydantic import BaseModel, ConfigDict


DATE_ISO_8601 = "%Y-%m-%d"
"""2012-03-09"""
DATE_ISO_822 = "%a, %d %b %y"
"""Fri, 09 Mar 12"""
DATE_ISO_850 = "%A, %d-%b-%y"
"""Friday, 09-Mar-12"""
DATE_ISO_1123 = "%a, %d %b %Y"
"""Fri, 09 Mar 2012"""
DATE_ISO_1123_CUSTOM1 = "%a, %d %B %Y"
"""Fri, 09 March 2012"""
DATE_ISO_1123_CUSTOM2 = "%A, %d %B %Y"
"""Friday, 09 March 2012"""
DATE_ORACLE_DEFAULT = "%d-%b-%y"
"""13-Jun-98"""
DATE_TIMESTAMP = "%y%m%d%H%M%S"
"""120309000000"""


_ISO_DATE = re.compile(r"^\s*(\d{4})[-/|\\ ](\d{1,2})[-/|\\ ](\d{1,2})(?:[ T](\d{1,2}):(\d{1,2})(?::(\d{1,2})(?:\.\d+)?)?)?\s*$")


class DateFormat(BaseModel):
    """Display pattern for a DATE column.

    ``sql_to_format`` turns database text into display text and
    ``format_to_sql`` goes the other way; both raise ``ValueError`` on input
    they cannot read.
    """

    model_config = ConfigDict(frozen=True)

    DB_PATTERN: ClassVar[str] = DATE_ISO_8601

    pattern: str = DATE_ISO_8601

    def sql_to_format(self, value: str) -> str:
        """Convert an ISO-8601 database value (e.g. ``2016-01-11 08:00:00.0``) to the display pattern."""
        match = _ISO_DATE.match(value)
        if match is None:
            raise ValueError(f"Date from database is not ISO-8601: {value!r}")
        year, month, day, hours, minutes, seconds = match.groups()
        moment = datetime.datetime(
            int(year), int(month), int(day),
            int(hours or 0), int(minutes or 0), int(seconds or 0),
        )
        return moment.strftime(self.pattern)

    def format_to_sql(self, value: str) -> str:
        """Convert a display value back to the database format.

        A value holding a time (``:``) keeps hours and minutes.
        """
        value = value.strip()
        has_time = ":" in value
        patterns = [self.pattern]
        if has_time and "%H" not in self.pattern and "%I" not in self.pattern:
            patterns.append(self.pattern + " %H:%M")
            patterns.append(self.pattern + " %H:%M:%S")
        for pattern in patterns:
            try:
                moment = datetime.datetime.strptime(value, pattern)
            except ValueError:
                continue
            if has_time:
                return moment.strftime(self.DB_PATTERN + " %H:%M")
            return moment.strftime(self.DB_PATTERN)
        raise ValueError(f"Date {value!r} does not match pattern {self.pattern!r}")


__all__ = [
    "DateFormat",
    "DATE_ISO_8601",
    "DATE_ISO_822",
    "DATE_ISO_850",
    "DATE_ISO_1123",
    "DATE_ISO_1123_CUSTOM1",
    "DATE_ISO_1123_CUSTOM2",
    "DATE_ORACLE_DEFAULT",
    "DATE_TIMESTAMP",
]
