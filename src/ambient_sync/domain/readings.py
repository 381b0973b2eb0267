"""
Station Readings
================

One timestamped measurement set from the weather station, in the two
unit systems that are indexed side by side.

`dateutc` (epoch milliseconds) is the ordering key within a category.
Sensor fields the models do not know about are kept in `model_extra`
and written back unchanged, so new station hardware never loses data.
"""

from typing import Any, Dict, Iterable, List, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field


R = TypeVar("R", bound="Reading")


class Reading(BaseModel):
    """Fields shared by both unit systems."""

    model_config = ConfigDict(extra="allow", frozen=True, populate_by_name=True)

    dateutc: int
    date: Optional[str] = None
    tz: Optional[str] = None
    humidity: Optional[float] = None
    humidityin: Optional[float] = None
    winddir: Optional[float] = None
    winddir_avg10m: Optional[float] = None
    solarradiation: Optional[float] = None
    uv: Optional[float] = None
    battout: Optional[float] = None
    last_rain: Optional[str] = Field(default=None, alias="lastRain")

    @classmethod
    def from_document(cls: Type[R], document: Dict[str, Any]) -> R:
        return cls.model_validate(document)

    def to_document(self) -> Dict[str, Any]:
        """Wire form: camelCase aliases, unset sensors omitted, extras kept."""
        return self.model_dump(by_alias=True, exclude_none=True)

    @property
    def extension_fields(self) -> Dict[str, Any]:
        return dict(self.model_extra or {})


class ImperialReading(Reading):
    """Reading as reported by the station (°F, mph, inHg, in)."""

    tempf: Optional[float] = None
    feels_like: Optional[float] = Field(default=None, alias="feelsLike")
    dew_point: Optional[float] = Field(default=None, alias="dewPoint")
    tempinf: Optional[float] = None
    feels_likein: Optional[float] = Field(default=None, alias="feelsLikein")
    dew_pointin: Optional[float] = Field(default=None, alias="dewPointin")
    windspeedmph: Optional[float] = None
    windgustmph: Optional[float] = None
    maxdailygust: Optional[float] = None
    windspdmph_avg10m: Optional[float] = None
    baromrelin: Optional[float] = None
    baromabsin: Optional[float] = None
    hourlyrainin: Optional[float] = None
    eventrainin: Optional[float] = None
    dailyrainin: Optional[float] = None
    weeklyrainin: Optional[float] = None
    monthlyrainin: Optional[float] = None
    yearlyrainin: Optional[float] = None
    totalrainin: Optional[float] = None


class MetricReading(Reading):
    """Reading converted to °C, km/h, hPa and mm."""

    tempc: Optional[float] = None
    feels_likec: Optional[float] = Field(default=None, alias="feelsLikec")
    dew_pointc: Optional[float] = Field(default=None, alias="dewPointc")
    tempinc: Optional[float] = None
    feels_likeinc: Optional[float] = Field(default=None, alias="feelsLikeinc")
    dew_pointinc: Optional[float] = Field(default=None, alias="dewPointinc")
    windspeedkmh: Optional[float] = None
    windgustkmh: Optional[float] = None
    maxdailygustkmh: Optional[float] = None
    windspdkmh_avg10m: Optional[float] = None
    baromrelhpa: Optional[float] = None
    baromabshpa: Optional[float] = None
    hourlyrainmm: Optional[float] = None
    eventrainmm: Optional[float] = None
    dailyrainmm: Optional[float] = None
    weeklyrainmm: Optional[float] = None
    monthlyrainmm: Optional[float] = None
    yearlyrainmm: Optional[float] = None
    totalrainmm: Optional[float] = None


def sort_and_dedupe(readings: Iterable[R]) -> List[R]:
    """Ascending by dateutc, keeping the first reading seen per timestamp."""
    seen: Dict[int, R] = {}
    for reading in readings:
        seen.setdefault(reading.dateutc, reading)
    return [seen[ts] for ts in sorted(seen)]


def newer_than(readings: Iterable[R], boundary: Optional[int]) -> List[R]:
    """Readings strictly newer than a stored boundary (all of them when absent)."""
    if boundary is None:
        return list(readings)
    return [r for r in readings if r.dateutc > boundary]


def strictly_between(readings: Iterable[R], start: int, end: int) -> List[R]:
    """Readings in the open interval (start, end)."""
    return [r for r in readings if start < r.dateutc < end]
