"""
Configuration management with environment variables.

This module provides centralized configuration management
with validation and type safety.
"""

import os
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse
from dotenv import load_dotenv


class SecureString:
    """
    Wrapper for sensitive strings that prevents accidental exposure.

    Examples:
        >>> password = SecureString("secret123")
        >>> str(password)  # Returns "********"
        >>> password.get_value()  # Returns actual value
    """

    def __init__(self, value: str):
        self._value = value

    def get_value(self) -> str:
        """
        Get the actual value (use with caution).

        Warning:
            This exposes the sensitive value. Use only for hashing the
            login password and never log the result.
        """
        return self._value

    def __str__(self) -> str:
        return "********"

    def __repr__(self) -> str:
        return "SecureString(********)"

    def __eq__(self, other) -> bool:
        if isinstance(other, SecureString):
            return self._value == other._value
        return False


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes")


def _env_optional_int(name: str, default: Optional[int]) -> Optional[int]:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return int(value)


class Config:
    """
    Application configuration manager.

    Loads configuration from environment variables (and a ``.env`` file)
    and provides validated access to configuration values.

    Attributes:
        izus_username: Portal login name
        izus_password: Portal password wrapped in SecureString
        base_url: Portal URL
        app_env: "production" or "development"
        drive_root: Local folder holding one folder of images per student
        refresh_interval: Seconds between background lesson refreshes
        stats_chunk_size: Teachers processed per batch
        stats_delay: Seconds to wait between batches

    Examples:
        >>> config = Config()
        >>> if config.validate():
        ...     print(f"Portal: {config.base_url}")
    """

    VALID_ENVIRONMENTS = ["production", "development"]

    @staticmethod
    def _validate_url(url: str, name: str) -> str:
        """
        Validate URL format and scheme.

        Raises:
            ValueError: If URL is invalid
        """
        parsed = urlparse(url)

        if not parsed.scheme:
            raise ValueError(f"{name} must include URL scheme (http/https)")

        if parsed.scheme not in ['http', 'https']:
            raise ValueError(f"{name} must use http or https scheme, got: {parsed.scheme}")

        if not parsed.netloc:
            raise ValueError(f"{name} must have a valid domain")

        return url

    def __init__(self):
        """Initialize configuration by loading environment variables."""
        load_dotenv()

        # Portal credentials
        self._izus_username = os.getenv("IZUS_USERNAME")
        pwd = os.getenv("IZUS_PASSWORD")
        self._izus_password = SecureString(pwd) if pwd else None

        url = os.getenv("BASE_URL", "https://www.izus.cz/")
        self._base_url = self._validate_url(url, "BASE_URL")

        self._app_env = os.getenv("APP_ENV", "production").strip().lower()

        # Output settings
        self._output_dir = Path(os.getenv("OUTPUT_DIR", "output"))
        self._log_level = os.getenv("LOG_LEVEL", "INFO").upper()
        self._drive_root = Path(os.getenv("DRIVE_ROOT", "drive"))
        self._http_timeout = float(os.getenv("HTTP_TIMEOUT", "30"))

        # Lessons
        self._refresh_interval = float(os.getenv("LESSONS_REFRESH_INTERVAL", "10"))
        self._log_refresh = _env_bool("LESSONS_LOG_REFRESH")
        self._image_time_offset_hours = float(os.getenv("IMAGE_TIME_OFFSET_HOURS", "1"))

        # Teacher statistics; development runs are capped to keep them short
        dev = self.is_development
        self._stats_chunk_size = int(os.getenv("STATS_CHUNK_SIZE", "20"))
        self._stats_delay = float(os.getenv("STATS_DELAY", "5"))
        self._stats_max_teachers = _env_optional_int("STATS_MAX_TEACHERS", 6 if dev else None)
        self._stats_max_classes = _env_optional_int("STATS_MAX_CLASSES", 5 if dev else None)

    @property
    def izus_username(self) -> Optional[str]:
        """Get portal login name, None if not set."""
        return self._izus_username

    @property
    def izus_password(self) -> Optional[SecureString]:
        """
        Get portal password (wrapped in SecureString).

        Note:
            The password can also be given on the command line, which
            takes precedence over IZUS_PASSWORD.
        """
        return self._izus_password

    @property
    def base_url(self) -> str:
        """Get portal URL."""
        return self._base_url

    @property
    def app_env(self) -> str:
        return self._app_env

    @property
    def is_development(self) -> bool:
        """Whether the application runs in development mode."""
        return self._app_env == "development"

    @property
    def output_dir(self) -> Path:
        """Get output directory path."""
        return self._output_dir

    @property
    def images_dir(self) -> Path:
        """Directory where downloaded notebook images are stored."""
        return self._output_dir / "images"

    @property
    def exports_dir(self) -> Path:
        return self._output_dir / "exports"

    @property
    def credentials_history_file(self) -> Path:
        """JSON file with the history of successful logins."""
        return self._output_dir / "auth" / "credentials-history.json"

    @property
    def log_file(self) -> Path:
        return self._output_dir / "logs" / "izus.log"

    @property
    def log_level(self) -> str:
        """Get logging level."""
        return self._log_level

    @property
    def drive_root(self) -> Path:
        """Get local drive root with one folder per student."""
        return self._drive_root

    @property
    def http_timeout(self) -> float:
        """Get HTTP timeout in seconds."""
        return self._http_timeout

    @property
    def refresh_interval(self) -> float:
        """Get seconds between background lesson refreshes."""
        return self._refresh_interval

    @property
    def log_refresh(self) -> bool:
        """Whether background refresh outcomes are reported."""
        return self._log_refresh

    @property
    def image_time_offset_hours(self) -> float:
        """Hours added to an image creation time before comparing it with a lesson date."""
        return self._image_time_offset_hours

    @property
    def stats_chunk_size(self) -> int:
        return self._stats_chunk_size

    @property
    def stats_delay(self) -> float:
        return self._stats_delay

    @property
    def stats_max_teachers(self) -> Optional[int]:
        """Cap on teachers included in statistics, None for no cap."""
        return self._stats_max_teachers

    @property
    def stats_max_classes(self) -> Optional[int]:
        """Cap on classes per teacher included in statistics, None for no cap."""
        return self._stats_max_classes

    def validate(self) -> bool:
        """
        Validate configuration values.

        Returns:
            True if all configuration is valid

        Raises:
            ValueError: If validation fails
        """
        errors = []

        if self._app_env not in self.VALID_ENVIRONMENTS:
            errors.append(
                f"APP_ENV must be one of: {', '.join(self.VALID_ENVIRONMENTS)}"
            )

        if self._http_timeout <= 0:
            errors.append("HTTP_TIMEOUT must be positive")

        if self._refresh_interval <= 0:
            errors.append("LESSONS_REFRESH_INTERVAL must be positive")

        if self._stats_chunk_size <= 0:
            errors.append("STATS_CHUNK_SIZE must be positive")

        if self._stats_delay < 0:
            errors.append("STATS_DELAY must not be negative")

        for name, value in (
            ("STATS_MAX_TEACHERS", self._stats_max_teachers),
            ("STATS_MAX_CLASSES", self._stats_max_classes),
        ):
            if value is not None and value <= 0:
                errors.append(f"{name} must be positive")

        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if self._log_level not in valid_levels:
            errors.append(
                f"LOG_LEVEL must be one of: {', '.join(valid_levels)}"
            )

        if errors:
            error_msg = "Configuration validation failed:\n  - " + "\n  - ".join(errors)
            raise ValueError(error_msg)

        return True

    def create_output_directories(self):
        """Create output directories if they don't exist."""
        directories = [
            self.output_dir / "logs",
            self.output_dir / "auth",
            self.images_dir,
            self.exports_dir,
        ]

        for directory in directories:
            directory.mkdir(parents=True, exist_ok=True)


# Singleton instance
config = Config()
