"""
Core Configuration Module
=========================

Centralized configuration management using Pydantic Settings.
All environment variables are loaded and validated here.

Environment Variables Required:
- AMBIENT_WEATHER_API_KEY: Ambient Weather account API key
- AMBIENT_WEATHER_APPLICATION_KEY: Ambient Weather application key
- ES_CLOUD_ID (or ES_URL), ES_USERNAME, ES_PASSWORD: production cluster
- STAGING_CLOUD_ID (or STAGING_ES_URL), STAGING_ES_USERNAME,
  STAGING_ES_PASSWORD: staging cluster
"""

from pydantic import BaseModel
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Dict, List, Optional
from pathlib import Path
import os


PRODUCTION = "PRODUCTION"
STAGING = "STAGING"
CLUSTER_NAMES = (PRODUCTION, STAGING)

IMPERIAL = "imperial"
METRIC = "metric"
CATEGORIES = (IMPERIAL, METRIC)


def get_secret(secret_name: str, env_var_name: Optional[str] = None) -> Optional[str]:
    """
    Read a secret from Docker Secrets or environment variable.

    Order of precedence:
    1. Docker Secret file at /run/secrets/{secret_name}
    2. Environment variable {ENV_VAR_NAME}_FILE pointing to a file
    3. Environment variable {ENV_VAR_NAME} directly

    Args:
        secret_name: Name of the secret file (without path)
        env_var_name: Environment variable name (if different from secret_name)

    Returns:
        Secret value or None if not found
    """
    if env_var_name is None:
        env_var_name = secret_name.upper()

    secret_path = Path(f"/run/secrets/{secret_name}")
    if secret_path.exists():
        try:
            return secret_path.read_text().strip()
        except OSError as e:
            print(f"⚠️  Failed to read secret from {secret_path}: {e}")

    file_env_var = f"{env_var_name}_FILE"
    if file_env_var in os.environ:
        file_path = Path(os.environ[file_env_var])
        if file_path.exists():
            try:
                return file_path.read_text().strip()
            except OSError as e:
                print(f"⚠️  Failed to read secret from {file_path}: {e}")

    return os.environ.get(env_var_name)


class ClusterSettings(BaseModel):
    """Connection settings for one destination cluster."""
    name: str
    cloud_id: Optional[str] = None
    url: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    cloud_id_var: str
    url_var: str
    username_var: str
    password_var: str

    def missing_variables(self) -> List[str]:
        """Names of the environment variables that still need a value."""
        missing = []
        if not (self.cloud_id or self.url):
            missing.append(f"{self.cloud_id_var} or {self.url_var}")
        if not self.username:
            missing.append(self.username_var)
        if not self.password:
            missing.append(self.password_var)
        return missing


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        validate_default=False
    )

    # =================================================================
    # APPLICATION SETTINGS
    # =================================================================
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[Path] = None

    # =================================================================
    # AMBIENT WEATHER API
    # =================================================================
    AMBIENT_WEATHER_API_KEY: str = ""  # Will be loaded from secret
    AMBIENT_WEATHER_APPLICATION_KEY: str = ""  # Will be loaded from secret
    AMBIENT_WEATHER_API_BASE_URL: str = "https://rt.ambientweather.net/v1"
    AMBIENT_WEATHER_MAC_ADDRESS: Optional[str] = None
    AMBIENT_WEATHER_PAGE_LIMIT: int = 288  # API maximum per request
    AMBIENT_WEATHER_REQUEST_SPACING_SECONDS: float = 1.0
    AMBIENT_WEATHER_TIMEOUT_SECONDS: int = 30

    # =================================================================
    # ELASTICSEARCH CLUSTERS
    # =================================================================
    ES_CLOUD_ID: Optional[str] = None
    ES_URL: Optional[str] = None
    ES_USERNAME: Optional[str] = None
    ES_PASSWORD: Optional[str] = None

    STAGING_CLOUD_ID: Optional[str] = None
    STAGING_ES_URL: Optional[str] = None
    STAGING_ES_USERNAME: Optional[str] = None
    STAGING_ES_PASSWORD: Optional[str] = None

    ES_REQUEST_TIMEOUT_SECONDS: int = 30
    REMOTE_CALL_TIMEOUT_SECONDS: float = 60.0

    # Index naming: concrete indices are {INDEX_PREFIX}_{category}_*,
    # writes go through the {ALIAS_PREFIX}-{category} write alias
    INDEX_PREFIX: str = "ambient_weather_heiligers"
    ALIAS_PREFIX: str = "all-ambient-weather-heiligers"

    # =================================================================
    # LOCAL ARCHIVE
    # =================================================================
    DATA_DIR: Path = Path("./data")

    # =================================================================
    # SYNC & BACKFILL
    # =================================================================
    MIN_FETCH_INTERVAL_MINUTES: float = 5.0  # station sampling rate
    MIN_GAP_MINUTES: float = 10.0  # twice the sampling rate
    EXPECTED_READING_INTERVAL_MINUTES: float = 5.0
    DEFAULT_LOOKBACK_HOURS: float = 24.0

    @property
    def min_fetch_interval_ms(self) -> int:
        return int(self.MIN_FETCH_INTERVAL_MINUTES * 60 * 1000)

    @property
    def min_gap_ms(self) -> int:
        return int(self.MIN_GAP_MINUTES * 60 * 1000)

    @property
    def reading_interval_ms(self) -> int:
        return int(self.EXPECTED_READING_INTERVAL_MINUTES * 60 * 1000)

    @property
    def default_lookback_ms(self) -> int:
        return int(self.DEFAULT_LOOKBACK_HOURS * 60 * 60 * 1000)

    def read_pattern(self, category: str) -> str:
        """Wildcard pattern addressing every index of a category."""
        return f"{self.INDEX_PREFIX}_{category}_*"

    def write_alias(self, category: str) -> str:
        """Alias whose write index receives new documents of a category."""
        return f"{self.ALIAS_PREFIX}-{category}"

    def cluster_settings(self, name: str) -> ClusterSettings:
        """Build the connection settings of the PRODUCTION or STAGING cluster."""
        if name == PRODUCTION:
            return ClusterSettings(
                name=PRODUCTION,
                cloud_id=self.ES_CLOUD_ID,
                url=self.ES_URL,
                username=self.ES_USERNAME,
                password=self.ES_PASSWORD,
                cloud_id_var="ES_CLOUD_ID",
                url_var="ES_URL",
                username_var="ES_USERNAME",
                password_var="ES_PASSWORD",
            )
        if name == STAGING:
            return ClusterSettings(
                name=STAGING,
                cloud_id=self.STAGING_CLOUD_ID,
                url=self.STAGING_ES_URL,
                username=self.STAGING_ES_USERNAME,
                password=self.STAGING_ES_PASSWORD,
                cloud_id_var="STAGING_CLOUD_ID",
                url_var="STAGING_ES_URL",
                username_var="STAGING_ES_USERNAME",
                password_var="STAGING_ES_PASSWORD",
            )
        raise ValueError(f"Unknown cluster: {name}")

    def model_post_init(self, __context) -> None:
        """Load secrets from Docker Secrets after model initialization."""
        secrets: Dict[str, str] = {
            "AMBIENT_WEATHER_API_KEY": "ambient_weather_api_key",
            "AMBIENT_WEATHER_APPLICATION_KEY": "ambient_weather_application_key",
            "ES_PASSWORD": "es_password",
            "STAGING_ES_PASSWORD": "staging_es_password",
        }
        for attribute, secret_name in secrets.items():
            value = get_secret(secret_name, attribute)
            if value:
                setattr(self, attribute, value)

    def __repr__(self):
        """Safe representation without exposing secrets."""
        return (
            f"Settings("
            f"env={self.ENVIRONMENT}, "
            f"data_dir={self.DATA_DIR}, "
            f"index_prefix={self.INDEX_PREFIX}, "
            f"alias_prefix={self.ALIAS_PREFIX})"
        )


# Global settings instance
settings = Settings()
