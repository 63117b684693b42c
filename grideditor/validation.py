"""Field validation.

A :class:`Validator` checks the text a client sent for one field and answers
with a :class:`ValidationMessage`; failures are values, not exceptions. Every
non-empty input is first screened for SQL injection markers, and a match is
reported through the validator's ``alert`` callback.
"""

from __future__ import annotations

import datetime
import enum
import ipaddress
import logging
import re
import urllib.parse
from decimal import Decimal, InvalidOperation
from typing import Callable, Optional

from pydantic import BaseModel, ConfigDict

from .constants import SQL_INSERTION_ALERT

logger = logging.getLogger(__name__)


INJECTION_CHARACTERS = ";'*%#()"
INJECTION_SEQUENCES = ("--", "/*", "*/")
INJECTION_WORDS = (
    "drop",
    "alter",
    "create",
    "select",
    "insert",
    "update",
    "delete",
    "where not in",
    "where not exist",
    "waitfor",
    "shutdown",
    "exec",
)

_EMAIL = re.compile(r"^[_A-Za-z0-9+-]+(\.[_A-Za-z0-9-]+)*@[A-Za-z0-9-]+(\.[A-Za-z0-9]+)*(\.[A-Za-z]{2,})$")


class ValidationType(str, enum.Enum):
    REQUIRED = "required"
    NOTREQUIRED = "notrequired"
    DATE_FORMAT = "date_format"
    EMAIL_REQUIRED = "email_required"
    BOOLEAN_REQUIRED = "boolean_required"
    NUMERIC_REQUIRED = "numeric_required"
    MINNUM_REQUIRED = "minNum_required"
    MAXNUM_REQUIRED = "maxNum_required"
    MINMAXNUM_REQUIRED = "minMaxNum_required"
    MINLEN_REQUIRED = "minLen_required"
    MAXLEN_REQUIRED = "maxLen_required"
    MINMAXLEN_REQUIRED = "minMaxLen_required"
    IP_REQUIRED = "ip_required"
    URI_REQUIRED = "url_required"


class ValidationMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    valid: bool
    message: str = ""


_VALID = ValidationMessage(valid=True)


def _invalid(message: str) -> ValidationMessage:
    return ValidationMessage(valid=False, message=message)


def find_injection(text: str) -> Optional[str]:
    """The first injection marker found in ``text``, or None."""
    for character in text:
        if character in INJECTION_CHARACTERS:
            return character
    for sequence in INJECTION_SEQUENCES:
        if sequence in text:
            return sequence
    lowered = text.lower()
    for word in INJECTION_WORDS:
        if word in lowered:
            return word
    return None


class Validator:
    """Checks one field's input against a :class:`ValidationType` rule.

    ``min`` and ``max`` bound numbers or lengths depending on the rule;
    ``date_pattern`` is the ``strftime`` pattern DATE_FORMAT expects.
    ``alert(message, text)`` is called when the input looks like an injection
    attempt; without it the attempt is only logged.
    """

    STOCK_REPLY = "Invalid input. Try again."

    def __init__(
        self,
        type: ValidationType,
        alert: Optional[Callable[[str, str], None]] = None,
        min: Optional[float] = None,
        max: Optional[float] = None,
        date_pattern: Optional[str] = None,
    ):
        self.type = ValidationType(type)
        self.alert = alert
        self.min = min
        self.max = max
        self.date_pattern = date_pattern
        if self.type in (ValidationType.MINNUM_REQUIRED, ValidationType.MINLEN_REQUIRED) and min is None:
            raise ValueError(f"{self.type.value} validation needs `min`")
        if self.type in (ValidationType.MAXNUM_REQUIRED, ValidationType.MAXLEN_REQUIRED) and max is None:
            raise ValueError(f"{self.type.value} validation needs `max`")
        if self.type in (ValidationType.MINMAXNUM_REQUIRED, ValidationType.MINMAXLEN_REQUIRED) and (min is None or max is None):
            raise ValueError(f"{self.type.value} validation needs `min` and `max`")
        if self.type is ValidationType.DATE_FORMAT and not date_pattern:
            raise ValueError("date_format validation needs `date_pattern`")

    def __repr__(self) -> str:
        return f"Validator({self.type.value!r})"

    def screen(self, text: str, alert: Optional[Callable[[str, str], None]] = None) -> ValidationMessage:
        """Reject ``text`` if it carries an injection marker, raising the alert.

        ``alert`` is only used when the validator has none of its own.
        """
        marker = find_injection(text)
        if marker is None:
            return _VALID
        logger.warning("%s: %r (matched %r)", SQL_INSERTION_ALERT, text, marker)
        alert = self.alert if self.alert is not None else alert
        if alert is not None:
            alert(SQL_INSERTION_ALERT, text)
        return _invalid(self.STOCK_REPLY)

    def validate(self, text: Optional[str], alert: Optional[Callable[[str, str], None]] = None) -> ValidationMessage:
        text = "" if text is None else str(text)
        if text == "":
            return self._empty()
        screened = self.screen(text, alert)
        if not screened.valid:
            return screened
        return self._check(text)

    def _empty(self) -> ValidationMessage:
        if self.type is ValidationType.NOTREQUIRED:
            return _VALID
        if self.type is ValidationType.EMAIL_REQUIRED:
            return _invalid("Please enter a valid e-mail address")
        if self.type is ValidationType.BOOLEAN_REQUIRED:
            return _invalid("Please enter true or false")
        if self.type is ValidationType.NUMERIC_REQUIRED:
            return _invalid("This input must be given as a number")
        if self.type is ValidationType.IP_REQUIRED:
            return _invalid("Please enter a valid IP address")
        if self.type is ValidationType.URI_REQUIRED:
            return _invalid("Please enter a valid URI")
        if self.type is ValidationType.DATE_FORMAT:
            return _invalid("Date is not in the expected format")
        return _invalid("This field is required")

    def _check(self, text: str) -> ValidationMessage:
        kind = self.type
        if kind in (ValidationType.REQUIRED, ValidationType.NOTREQUIRED):
            return _VALID
        if kind is ValidationType.EMAIL_REQUIRED:
            return _VALID if _EMAIL.match(text) else _invalid("Please enter a valid e-mail address")
        if kind is ValidationType.BOOLEAN_REQUIRED:
            return _VALID if text.lower() in ("true", "false") else _invalid("Please enter true or false")
        if kind is ValidationType.NUMERIC_REQUIRED:
            return _VALID if _number(text) is not None else _invalid("This input must be given as a number")
        if kind in (ValidationType.MINNUM_REQUIRED, ValidationType.MAXNUM_REQUIRED, ValidationType.MINMAXNUM_REQUIRED):
            return self._check_range(text)
        if kind in (ValidationType.MINLEN_REQUIRED, ValidationType.MAXLEN_REQUIRED, ValidationType.MINMAXLEN_REQUIRED):
            return self._check_length(text)
        if kind is ValidationType.IP_REQUIRED:
            try:
                ipaddress.ip_address(text)
            except ValueError:
                return _invalid("Please enter a valid IP address")
            return _VALID
        if kind is ValidationType.URI_REQUIRED:
            parsed = urllib.parse.urlparse(text)
            if "://" not in text or not parsed.scheme or not parsed.netloc:
                return _invalid("Please enter a valid URI")
            return _VALID
        if kind is ValidationType.DATE_FORMAT:
            try:
                datetime.datetime.strptime(text, self.date_pattern)
            except ValueError:
                return _invalid("Date is not in the expected format")
            return _VALID
        raise ValueError(f"Unhandled validation type {kind!r}")

    def _check_range(self, text: str) -> ValidationMessage:
        number = _number(text)
        if number is None:
            return _invalid("This input must be given as a number")
        if self.type is not ValidationType.MAXNUM_REQUIRED and number < Decimal(str(self.min)):
            return _invalid(f"Number is too small, must be {self.min} or larger")
        if self.type is not ValidationType.MINNUM_REQUIRED and number > Decimal(str(self.max)):
            return _invalid(f"Number is too large, must be {self.max} or smaller")
        return _VALID

    def _check_length(self, text: str) -> ValidationMessage:
        length = len(text)
        if self.type is not ValidationType.MAXLEN_REQUIRED and length < self.min:
            minimum = int(self.min)
            return _invalid(
                f"The input is too short. {minimum} characters required. ({minimum - length} more to go)"
            )
        if self.type is not ValidationType.MINLEN_REQUIRED and length > self.max:
            return _invalid(f"The input is {length - int(self.max)} characters too long")
        return _VALID


def _number(text: str) -> Optional[Decimal]:
    try:
        number = Decimal(text.strip())
    except InvalidOperation:
        return None
    return number if number.is_finite() else None


__all__ = [
    "Validator",
    "ValidationType",
    "ValidationMessage",
    "find_injection",
    "INJECTION_CHARACTERS",
    "INJECTION_SEQUENCES",
    "INJECTION_WORDS",
]
