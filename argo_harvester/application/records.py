"""
Parsing of index lines and the range test applied to candidate records.

Index resources are comma-delimited text with a fixed column layout. The
timestamps in columns 4 and 5 are fixed-width (``YYYY-MM-DDTHH:MM:SS``) and
are read by character offset, which keeps any change to the upstream format
local to this module.
"""

from datetime import datetime
from typing import Optional

from .domain import CandidateRecord, SearchWindow
from .exceptions import RecordParseError

_DELIMITER = ","
_SKIP_FLAG = "0"

# 0-based column positions
_FLAG_COL = 0
_PATH_COL = 2
_DATE_MIN_COL = 3
_DATE_MAX_COL = 4
_LAT_MIN_COL = 5
_LAT_MAX_COL = 6
_LON_MIN_COL = 7
_LON_MAX_COL = 8
_DEPTH_COL = 10

# (start, stop) offsets of year, month, day, hour, minute, second
_TIMESTAMP_SLICES = ((0, 4), (5, 7), (8, 10), (11, 13), (14, 16), (17, 19))


def parse_timestamp(text: str) -> datetime:
    """Reads a ``YYYY-MM-DDTHH:MM:SS`` string by fixed character offsets."""
    try:
        pieces = [text[start:stop] for start, stop in _TIMESTAMP_SLICES]
        if not all(piece.isdigit() for piece in pieces):
            raise ValueError("non-digit characters in a numeric field")
        return datetime(*(int(piece) for piece in pieces))
    except (ValueError, TypeError) as e:
        raise RecordParseError(f"Malformed timestamp {text!r}") from e


def _parse_number(text: str, column: str) -> float:
    try:
        return float(text)
    except ValueError as e:
        raise RecordParseError(f"Malformed {column} value {text!r}") from e


def parse_index_line(line: str) -> Optional[CandidateRecord]:
    """
    Parses one index line into a CandidateRecord.

    Args:
        line: A raw, comma-delimited record (header already discarded).

    Returns:
        The parsed record, or None when the line is blank or its skip flag
        marks it as ineligible.

    Raises:
        RecordParseError: If the line is too short or a numeric or date
            field is malformed.
    """

    if not line.strip():
        return None

    fields = [field.strip() for field in line.split(_DELIMITER)]
    if fields[_FLAG_COL] == _SKIP_FLAG:
        return None

    if len(fields) <= _DEPTH_COL:
        raise RecordParseError(
            f"Expected at least {_DEPTH_COL + 1} columns, got {len(fields)}"
        )

    return CandidateRecord(
        path=fields[_PATH_COL],
        date_min=parse_timestamp(fields[_DATE_MIN_COL]),
        date_max=parse_timestamp(fields[_DATE_MAX_COL]),
        lat_min=_parse_number(fields[_LAT_MIN_COL], "latmin"),
        lat_max=_parse_number(fields[_LAT_MAX_COL], "latmax"),
        lon_min=_parse_number(fields[_LON_MIN_COL], "lonmin"),
        lon_max=_parse_number(fields[_LON_MAX_COL], "lonmax"),
        max_depth=_parse_number(fields[_DEPTH_COL], "depth"),
    )


def within_window(record: CandidateRecord, window: SearchWindow) -> bool:
    """
    Tests whether a record's coverage envelope lies inside the window.

    The longitude upper bound is strict; every other bound is inclusive.
    Depth is not considered here.
    """
    return (
        record.date_min >= window.time_start
        and record.date_max <= window.time_end
        and record.lat_min >= window.lat_min
        and record.lat_max <= window.lat_max
        and record.lon_min >= window.lon_min
        and record.lon_max < window.lon_max
    )
