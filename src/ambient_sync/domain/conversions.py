"""
Unit conversion from station (imperial) units to metric.

Pure functions: one ImperialReading in, one MetricReading out, with the
same dateutc. Fields without a unit (humidity, direction, UV, solar,
battery, dates) and unknown extension fields are copied unchanged.
"""

from typing import Dict, Optional

from .readings import ImperialReading, MetricReading


def fahrenheit_to_celsius(value: Optional[float]) -> Optional[float]:
    if value is None:
        return None
    return round((value - 32) * 5 / 9, 1)


def mph_to_kmh(value: Optional[float]) -> Optional[float]:
    if value is None:
        return None
    return round(value * 1.609344, 2)


def inhg_to_hpa(value: Optional[float]) -> Optional[float]:
    if value is None:
        return None
    return round(value * 33.8638866667, 2)


def inches_to_mm(value: Optional[float]) -> Optional[float]:
    if value is None:
        return None
    return round(value * 25.4, 2)


# metric field -> (imperial field, converter)
_CONVERTED_FIELDS = {
    "tempc": ("tempf", fahrenheit_to_celsius),
    "feels_likec": ("feels_like", fahrenheit_to_celsius),
    "dew_pointc": ("dew_point", fahrenheit_to_celsius),
    "tempinc": ("tempinf", fahrenheit_to_celsius),
    "feels_likeinc": ("feels_likein", fahrenheit_to_celsius),
    "dew_pointinc": ("dew_pointin", fahrenheit_to_celsius),
    "windspeedkmh": ("windspeedmph", mph_to_kmh),
    "windgustkmh": ("windgustmph", mph_to_kmh),
    "maxdailygustkmh": ("maxdailygust", mph_to_kmh),
    "windspdkmh_avg10m": ("windspdmph_avg10m", mph_to_kmh),
    "baromrelhpa": ("baromrelin", inhg_to_hpa),
    "baromabshpa": ("baromabsin", inhg_to_hpa),
    "hourlyrainmm": ("hourlyrainin", inches_to_mm),
    "eventrainmm": ("eventrainin", inches_to_mm),
    "dailyrainmm": ("dailyrainin", inches_to_mm),
    "weeklyrainmm": ("weeklyrainin", inches_to_mm),
    "monthlyrainmm": ("monthlyrainin", inches_to_mm),
    "yearlyrainmm": ("yearlyrainin", inches_to_mm),
    "totalrainmm": ("totalrainin", inches_to_mm),
}

_PASSTHROUGH_FIELDS = (
    "dateutc", "date", "tz", "humidity", "humidityin", "winddir",
    "winddir_avg10m", "solarradiation", "uv", "battout", "last_rain",
)


def convert_to_metric(reading: ImperialReading) -> MetricReading:
    values: Dict[str, object] = dict(reading.extension_fields)
    for name in _PASSTHROUGH_FIELDS:
        values[name] = getattr(reading, name)
    for metric_field, (imperial_field, convert) in _CONVERTED_FIELDS.items():
        values[metric_field] = convert(getattr(reading, imperial_field))
    return MetricReading.model_validate(values)
