import configparser
import os
from functools import lru_cache
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


CONFIG_FILE = os.environ.get("URL_SHORTENER_CONFIG", "config.ini")

# [server] keys in the ini file -> settings fields
INI_KEYS = {
    "urlsfile": "URLS_FILE",
    "baseurl": "BASE_URL",
    "path": "ROUTE_PREFIX",
    "password": "PASSWORD",
    "port": "PORT",
    "host": "HOST",
    "loglevel": "LOG_LEVEL",
    "logfile": "LOG_FILE",
}


class ConfigError(Exception):
    """Raised when the ini config file cannot be used"""


class Settings(BaseSettings):
    """
    application settings will be in here
    """

    #Application settings
    APP_NAME: str = "URL Shortener"
    APP_VERSION: str = "1.0.0"

    #Server
    HOST: str = "0.0.0.0"
    PORT: int = 8080

    #Journal
    URLS_FILE: str

    # URL Shortener Config
    BASE_URL: str
    ROUTE_PREFIX: str = ""
    PASSWORD: str
    MAX_TOKEN_ATTEMPTS: int = 1000

    #Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[str] = None

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="SHORTENER_",
        case_sensitive=True,
        extra="ignore",
    )

    @field_validator("ROUTE_PREFIX")
    @classmethod
    def normalize_prefix(cls, value: str) -> str:
        value = value.strip().rstrip("/")
        if value and not value.startswith("/"):
            value = "/" + value
        return value

    @field_validator("MAX_TOKEN_ATTEMPTS")
    @classmethod
    def positive_attempts(cls, value: int) -> int:
        if value < 1:
            raise ValueError("MAX_TOKEN_ATTEMPTS must be at least 1")
        return value

    def short_url(self, token: str) -> str:
        """Fully qualified short URL for a token"""
        return f"https://{self.BASE_URL}{self.ROUTE_PREFIX}/{token}"


def read_ini(filename: str) -> dict:
    """
    Read the [server] section of an ini file

    Args:
        filename: Path to the ini file

    Returns:
        dict: Settings field name -> raw value

    Raises:
        ConfigError: If the file is unreadable, malformed or has no [server] section
    """
    parser = configparser.ConfigParser(interpolation=None)
    try:
        with open(filename, encoding="utf-8") as f:
            parser.read_file(f)
    except OSError as e:
        raise ConfigError(f"Could not read config file {filename}: {e}") from e
    except configparser.Error as e:
        raise ConfigError(f"Malformed config file {filename}: {e}") from e

    if not parser.has_section("server"):
        raise ConfigError(f"Config file {filename} has no [server] section")

    section = parser["server"]
    return {field: section[key] for key, field in INI_KEYS.items() if key in section}


def load_settings(filename: str) -> Settings:
    """
    Build settings from an ini file, environment filling the rest
    """
    return Settings(**read_ini(filename))


@lru_cache()
def get_settings(filename: str = CONFIG_FILE) -> Settings:
    """
    Create and cache settings instance
    """
    return load_settings(filename)
