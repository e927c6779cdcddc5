"""Date decoders for timestamp columns.

Every decoder exposes ``parse(text) -> epoch millis`` and
``format(epoch millis) -> text``. Decoders raise ``ValueError`` on
unparseable input; the line reader converts it to a line error.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal, DecimalException
from typing import Protocol

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_ONE_MILLISECOND = timedelta(milliseconds=1)
_MIN_EPOCH_MILLIS = -(2**63)
_MAX_EPOCH_MILLIS = 2**63 - 1
_MONTH_ABBREVIATIONS = (
    "JAN",
    "FEB",
    "MAR",
    "APR",
    "MAY",
    "JUN",
    "JUL",
    "AUG",
    "SEP",
    "OCT",
    "NOV",
    "DEC",
)


class DateDecoder(Protocol):
    """Bidirectional codec between column text and epoch milliseconds."""

    def parse(self, text: str) -> int:
        """Decode column text into epoch milliseconds."""
        ...

    def format(self, timestamp_millis: int) -> str:
        """Encode epoch milliseconds back into column text."""
        ...


class NumericEpochDecoder:
    """Decoder for numeric epochs written with a thousandfold resolution.

    The column text is divided by 1000 and truncated toward zero, so
    ``"1500000000123456"`` decodes to ``1500000000123``. Arithmetic is
    decimal, never binary floating point, and the result must fit a
    signed 64-bit integer.
    """

    divisor = 1000

    def parse(self, text: str) -> int:
        try:
            raw_value = Decimal(text.strip())
            if not raw_value.is_finite():
                raise ValueError(f"not a finite numeric epoch: {text!r}")
            timestamp_millis = int(raw_value // self.divisor)
        except DecimalException as error:
            raise ValueError(f"not a numeric epoch: {text!r}") from error
        if not _MIN_EPOCH_MILLIS <= timestamp_millis <= _MAX_EPOCH_MILLIS:
            raise ValueError(f"numeric epoch out of int64 range: {text!r}")
        return timestamp_millis

    def format(self, timestamp_millis: int) -> str:
        return str(timestamp_millis * self.divisor)


class IsoDateDecoder:
    """Decoder for ISO-8601 timestamps, naive values read as UTC."""

    accepted_formats = (
        "%Y-%m-%dT%H:%M:%S%z",
        "%Y-%m-%dT%H:%M:%S.%f%z",
        "%Y-%m-%dT%H:%M:%S.%f",
        "%Y-%m-%dT%H:%M:%S",
        "%Y-%m-%dT%H:%M",
    )

    def parse(self, text: str) -> int:
        candidate = text.strip()
        for date_format in self.accepted_formats:
            try:
                parsed = datetime.strptime(candidate, date_format)
            except ValueError:
                continue
            return _to_epoch_millis(parsed)
        raise ValueError(f"not an ISO-8601 timestamp: {text!r}")

    def format(self, timestamp_millis: int) -> str:
        return _from_epoch_millis(timestamp_millis).strftime("%Y-%m-%dT%H:%M:%SZ")


class MonthNameDateDecoder:
    """Decoder for ``dd-MON-yy HH:MM:SS.S`` timestamps such as ``03-FEB-17 10:00:00.5``.

    English month abbreviations are replaced by their two-digit number
    before parsing; numeric months are accepted as well. The part after
    the dot is a millisecond count, so ``.5`` is 5 ms and ``.500`` is 500 ms.
    """

    date_format = "%d-%m-%y %H:%M:%S"

    def parse(self, text: str) -> int:
        normalized = _replace_month_names(text.strip().upper())
        seconds_text, separator, millis_text = normalized.rpartition(".")
        if not separator or not millis_text.isdigit():
            raise ValueError(f"missing millisecond count in {text!r}")
        parsed = datetime.strptime(seconds_text, self.date_format)
        return _to_epoch_millis(parsed) + int(millis_text)

    def format(self, timestamp_millis: int) -> str:
        moment = _from_epoch_millis(timestamp_millis)
        return f"{moment:%d-%m-%y %H:%M:%S}.{moment.microsecond // 1000}"


def _replace_month_names(text: str) -> str:
    for index, month in enumerate(_MONTH_ABBREVIATIONS, 1):
        if month in text:
            text = text.replace(month, f"{index:02d}")
    return text


def _to_epoch_millis(moment: datetime) -> int:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return (moment - _EPOCH) // _ONE_MILLISECOND


def _from_epoch_millis(timestamp_millis: int) -> datetime:
    return _EPOCH + timedelta(milliseconds=timestamp_millis)
