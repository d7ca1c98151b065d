"""
XDG Configuration Management for oktaws

Reads organization files from an XDG-compliant configuration directory and
resolves runtime settings from environment variables.

Directory layout:
    ~/.config/oktaws/<organization>.toml    (current)
    ~/.oktaws/<organization>.toml           (legacy, used when it is the only one present)

Usage:
    from oktaws.config import OrganizationLoader, get_settings

    settings = get_settings()
    organizations = OrganizationLoader(settings.config_dir).load_organizations()

Module: config
"""

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

import structlog
from pydantic import ValidationError

from .config_schema import OrganizationConfig
from .errors import ConfigurationError
from .models import Organization

logger = structlog.get_logger(__name__)

CONFIG_SUFFIX = ".toml"


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("true", "1", "yes")


def default_config_dir() -> Path:
    """
    Gets the default configuration directory

    Returns:
        ~/.config/oktaws, or the legacy ~/.oktaws when only that one exists
    """
    home = Path.home()
    xdg_home = Path(os.getenv("XDG_CONFIG_HOME") or home / ".config")
    current = xdg_home / "oktaws"
    legacy = home / ".oktaws"

    if not current.exists() and legacy.is_dir():
        return legacy
    return current


@dataclass
class Settings:
    """Runtime settings resolved from environment variables.

    Environment variables:
        - OKTAWS_CONFIG_DIR: Organization file directory (default: ~/.config/oktaws)
        - AWS_SHARED_CREDENTIALS_FILE: Credentials file (default: ~/.aws/credentials)
        - OKTAWS_MAX_WORKERS: Profile worker pool size (default: executor default)
        - OKTAWS_HTTP_TIMEOUT: Okta request timeout in seconds (default: 30)
        - OKTAWS_STS_REGION: Region of the STS endpoint (default: us-east-1)
        - OKTAWS_CACHE_APP_LINKS: Fetch application links once per organization (default: false)
        - OKTAWS_USE_SESSION_DURATION: Request the SAML SessionDuration from STS (default: false)
        - OKTAWS_LOG_FORMAT: "console" or "json" (default: console)
    """

    config_dir: Path = field(default_factory=default_config_dir)
    credentials_file: Path = field(default_factory=lambda: Path.home() / ".aws" / "credentials")
    max_workers: Optional[int] = None
    http_timeout: float = 30.0
    sts_region: str = "us-east-1"
    cache_app_links: bool = False
    use_session_duration: bool = False
    log_format: str = "console"

    @classmethod
    def from_env(cls) -> "Settings":
        settings = cls()

        if config_dir := os.getenv("OKTAWS_CONFIG_DIR"):
            settings.config_dir = Path(config_dir).expanduser()
        if credentials_file := os.getenv("AWS_SHARED_CREDENTIALS_FILE"):
            settings.credentials_file = Path(credentials_file).expanduser()

        max_workers = os.getenv("OKTAWS_MAX_WORKERS", "")
        http_timeout = os.getenv("OKTAWS_HTTP_TIMEOUT", "")
        try:
            if max_workers:
                settings.max_workers = int(max_workers)
            if http_timeout:
                settings.http_timeout = float(http_timeout)
        except ValueError as e:
            raise ConfigurationError(
                "Invalid numeric setting",
                "OKTAWS_MAX_WORKERS must be an integer and OKTAWS_HTTP_TIMEOUT a number of seconds",
                str(e),
            ) from e

        if settings.max_workers is not None and settings.max_workers < 1:
            raise ConfigurationError(f"OKTAWS_MAX_WORKERS must be >= 1, got {settings.max_workers}")

        settings.sts_region = os.getenv("OKTAWS_STS_REGION", settings.sts_region)
        settings.cache_app_links = _parse_bool(os.getenv("OKTAWS_CACHE_APP_LINKS", "false"))
        settings.use_session_duration = _parse_bool(os.getenv("OKTAWS_USE_SESSION_DURATION", "false"))
        settings.log_format = os.getenv("OKTAWS_LOG_FORMAT", settings.log_format).lower()

        return settings


class OrganizationLoader:
    """
    Loads organization files from a configuration directory

    Each *.toml file in the directory describes one organization; the file
    stem is the organization name.
    """

    def __init__(self, config_dir: Optional[Path] = None):
        """
        Initialize the loader

        Args:
            config_dir: Configuration directory (defaults to ~/.config/oktaws)
        """
        self.config_dir = config_dir or default_config_dir()

    def organization_paths(self) -> List[Path]:
        """
        Lists organization files, sorted by name

        Returns:
            List of organization file paths (empty if the directory is missing)
        """
        if not self.config_dir.is_dir():
            return []
        return sorted(p for p in self.config_dir.iterdir() if p.is_file() and p.suffix == CONFIG_SUFFIX)

    def read_config(self, path: Path) -> OrganizationConfig:
        """
        Reads and validates one organization file

        Args:
            path: Path of the organization file

        Returns:
            Validated organization configuration

        Raises:
            ConfigurationError: If the file cannot be read, is not TOML, or fails validation
        """
        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigurationError(f"Invalid TOML in organization file: {path}", details=str(e)) from e
        except OSError as e:
            raise ConfigurationError(f"Failed to read organization file: {path}", details=str(e)) from e

        try:
            return OrganizationConfig.model_validate(data)
        except ValidationError as e:
            raise ConfigurationError(
                f"Invalid organization file: {path}",
                "See the README for the organization file format",
                str(e),
            ) from e

    def load_organization(self, path: Path) -> Organization:
        """Load the Organization described by one file"""
        organization = self.read_config(path).to_organization(path.stem)
        logger.debug(
            "Loaded organization",
            organization=organization.name,
            path=str(path),
            profile_count=len(organization.profiles),
        )
        return organization

    def load_organizations(self) -> List[Organization]:
        """
        Loads every organization in the configuration directory

        Returns:
            Organizations sorted by name

        Raises:
            ConfigurationError: If no organization is configured or a file is invalid
        """
        paths = self.organization_paths()
        if not paths:
            raise ConfigurationError(
                "No organizations found",
                f"Create an organization file such as {self.config_dir / ('my-org' + CONFIG_SUFFIX)}",
            )
        return [self.load_organization(path) for path in paths]


def get_settings() -> Settings:
    """Get settings resolved from the current environment."""
    return Settings.from_env()
