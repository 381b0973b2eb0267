"""External API clients."""

from .ambient_weather_client import AmbientWeatherAPIClient

__all__ = ["AmbientWeatherAPIClient"]
