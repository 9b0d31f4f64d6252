"""
Pydantic model validating caller-facing retrieval options.

This model is the single boundary between loosely-typed caller input (CLI
arguments, dictionaries) and the application core. Malformed optional ranges
fall back to their defaults with a warning; a malformed time window or an
unknown basin is fatal.
"""

import dataclasses
import logging
import math
from datetime import datetime, timezone
from typing import Any, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, ValidationError
from pydantic import field_validator, model_validator

from ..application.domain import BASINS, SearchWindow
from ..application.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


def _bounded_pair(
    value: Any, low: float, high: float, name: str
) -> Optional[Tuple[float, float]]:
    """Returns an ordered (lower, upper) pair within bounds, or None."""
    if value is None:
        return None
    try:
        first, second = (float(v) for v in value)
    except (TypeError, ValueError):
        logger.warning(f"Invalid argument passed for {name}, using default value")
        return None
    if not low <= first <= second <= high:
        logger.warning(
            f"Range {name}={value} is not within [{low}, {high}] or is "
            f"reversed, using default value"
        )
        return None
    return first, second


class SearchOptions(BaseModel):
    """Validated retrieval options supplied by the caller."""

    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime
    months: Optional[Tuple[int, int]] = None
    lat: Optional[Tuple[float, float]] = None
    lon: Optional[Tuple[float, float]] = None
    min_depth: Optional[float] = None
    basins: Optional[List[str]] = None

    @field_validator("start", "end")
    @classmethod
    def _naive_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value

    @field_validator("months", mode="before")
    @classmethod
    def _check_months(cls, value):
        pair = _bounded_pair(value, 1, 12, "monthrange")
        if pair is None:
            return None
        if not all(float(v).is_integer() for v in pair):
            logger.warning("Invalid argument passed for monthrange, using default value")
            return None
        return int(pair[0]), int(pair[1])

    @field_validator("lat", mode="before")
    @classmethod
    def _check_lat(cls, value):
        return _bounded_pair(value, -90.0, 90.0, "latrange")

    @field_validator("lon", mode="before")
    @classmethod
    def _check_lon(cls, value):
        return _bounded_pair(value, -180.0, 180.0, "lonrange")

    @field_validator("min_depth", mode="before")
    @classmethod
    def _check_min_depth(cls, value):
        if value is None:
            return None
        try:
            depth = float(value)
        except (TypeError, ValueError):
            depth = math.nan
        if not math.isfinite(depth):
            logger.warning("Invalid argument passed for mindepth, using default value")
            return None
        return depth

    @field_validator("basins", mode="before")
    @classmethod
    def _check_basins(cls, value):
        if value is None:
            return None
        if isinstance(value, str):
            value = [value]
        basins = [str(basin).strip().lower() for basin in value]
        unknown = [basin for basin in basins if basin not in BASINS]
        if unknown:
            raise ValueError(f"Unknown basins {unknown}, expected any of {BASINS}")
        return basins or None

    @model_validator(mode="after")
    def _check_window(self):
        if self.start > self.end:
            raise ValueError(f"start {self.start} is after end {self.end}")
        return self

    def to_window(self) -> SearchWindow:
        """Applies defaults and builds the domain SearchWindow."""
        window = SearchWindow(time_start=self.start, time_end=self.end)
        changes = {}
        if self.months:
            changes.update(month_min=self.months[0], month_max=self.months[1])
        if self.lat:
            changes.update(lat_min=self.lat[0], lat_max=self.lat[1])
        if self.lon:
            changes.update(lon_min=self.lon[0], lon_max=self.lon[1])
        if self.min_depth is not None:
            changes.update(min_depth=self.min_depth)
        if self.basins:
            changes.update(basins=tuple(self.basins))
        return dataclasses.replace(window, **changes)


def build_window(**options) -> SearchWindow:
    """
    Validates raw options and returns the SearchWindow they describe.

    Raises:
        ConfigurationError: If the options cannot describe a valid window.
    """
    try:
        return SearchOptions(**options).to_window()
    except ValidationError as e:
        raise ConfigurationError(f"Invalid search options: {e}") from e
