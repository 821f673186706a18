"""
Configuration for StrmExtract.

Provides a pydantic-settings model loaded from explicit values, STRM_EXTRACT_
environment variables and an optional YAML file, with fail-fast validation
and sensible defaults.

Precedence (highest to lowest):
1. Values passed explicitly (CLI overrides, tests)
2. STRM_EXTRACT_-prefixed environment variables
3. YAML config file (STRM_EXTRACT_CONFIG_FILE, default ./strm_extract.yml)
4. Defaults defined below
"""

import logging
import os
from typing import Optional

import yaml
from pydantic import Field, ValidationError, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

from extraction.models import ItemQuery

log = logging.getLogger('StrmExtract.config')

CONFIG_FILE_ENV = "STRM_EXTRACT_CONFIG_FILE"
DEFAULT_CONFIG_FILE = "strm_extract.yml"

LOG_LEVELS = ('trace', 'debug', 'info', 'warning', 'error')
LOG_FORMATS = ('text', 'json')


class StrmExtractConfig(BaseSettings):
    """
    StrmExtract configuration with validation.

    Required:
        jellyfin_url: Jellyfin server URL (e.g., http://192.168.1.100:8096)
        jellyfin_api_key: Jellyfin API key (Dashboard > API Keys)

    Optional tunables:
        jellyfin_user_id: Scope item queries to one user's library view (default: None)
        library_id: Only scan below this library/folder id (default: whole library)
        include_item_types: Comma-separated item types to list, e.g. "Movie,Episode"
        exclude_item_types: Comma-separated item types to skip
        enabled: Master on/off switch (default: True)
        page_size: Items fetched per library request (default: 500, range: 50-5000)
        connect_timeout: Connection timeout in seconds (default: 5.0, range: 1.0-30.0)
        read_timeout: Read timeout in seconds, bounds one refresh call (default: 300.0, range: 5.0-3600.0)
        data_dir: Directory for run state (default: <install dir>/data)
        log_level: trace, debug, info, warning, error (default: info)
        log_format: text or json (default: text)
    """

    model_config = SettingsConfigDict(
        env_prefix="STRM_EXTRACT_",
        extra="ignore",
    )

    # Required fields
    jellyfin_url: str
    jellyfin_api_key: str

    jellyfin_user_id: Optional[str] = Field(
        default=None,
        description="Jellyfin user ID. If not set, items are listed with the API key's admin view."
    )

    # Library scope; all unset scans the whole recursive library
    library_id: Optional[str] = None
    include_item_types: Optional[str] = None
    exclude_item_types: Optional[str] = None

    enabled: bool = True
    page_size: int = Field(default=500, ge=50, le=5000)

    # Jellyfin connection timeouts (in seconds)
    connect_timeout: float = Field(default=5.0, ge=1.0, le=30.0)
    read_timeout: float = Field(default=300.0, ge=5.0, le=3600.0)

    data_dir: Optional[str] = Field(
        default=None,
        description="Directory holding extraction_state.json"
    )

    log_level: str = "info"
    log_format: str = "text"

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Return sources in priority order: init > env > YAML."""
        yaml_file = os.environ.get(CONFIG_FILE_ENV, DEFAULT_CONFIG_FILE)
        yaml_source = YamlConfigSettingsSource(settings_cls, yaml_file=yaml_file)
        return (init_settings, env_settings, yaml_source)

    @field_validator('jellyfin_url', mode='after')
    @classmethod
    def validate_jellyfin_url(cls, v: str) -> str:
        """Validate jellyfin_url is a valid HTTP/HTTPS URL."""
        if not v:
            raise ValueError('jellyfin_url is required')
        if not v.startswith(('http://', 'https://')):
            raise ValueError('jellyfin_url must start with http:// or https://')
        return v.rstrip('/')  # Normalize: remove trailing slash

    @field_validator('jellyfin_api_key', mode='after')
    @classmethod
    def validate_jellyfin_api_key(cls, v: str) -> str:
        """Validate jellyfin_api_key is present and reasonable length."""
        if not v:
            raise ValueError('jellyfin_api_key is required')
        if len(v) < 16:
            raise ValueError('jellyfin_api_key appears invalid (too short)')
        return v

    @field_validator('enabled', mode='before')
    @classmethod
    def validate_enabled(cls, v):
        """Ensure enabled is an actual boolean, not a truthy string."""
        if isinstance(v, bool):
            return v
        if isinstance(v, str):
            lower = v.lower()
            if lower in ('true', '1', 'yes'):
                return True
            if lower in ('false', '0', 'no'):
                return False
            raise ValueError(f"Invalid boolean value: {v}")
        raise ValueError(f"Expected boolean, got {type(v).__name__}")

    @field_validator('log_level', mode='before')
    @classmethod
    def validate_log_level(cls, v):
        """Validate log_level is one of: trace, debug, info, warning, error."""
        if isinstance(v, str) and v.lower() in LOG_LEVELS:
            return v.lower()
        raise ValueError(f"log_level must be one of {LOG_LEVELS}, got: {v}")

    @field_validator('log_format', mode='before')
    @classmethod
    def validate_log_format(cls, v):
        """Validate log_format is one of: text, json."""
        if isinstance(v, str) and v.lower() in LOG_FORMATS:
            return v.lower()
        raise ValueError(f"log_format must be one of {LOG_FORMATS}, got: {v}")

    def item_query(self) -> ItemQuery:
        """Build the library query from the scope settings."""
        def _split(value: Optional[str]) -> tuple[str, ...]:
            if not value:
                return ()
            return tuple(part.strip() for part in value.split(',') if part.strip())

        return ItemQuery(
            parent_id=self.library_id or None,
            include_item_types=_split(self.include_item_types),
            exclude_item_types=_split(self.exclude_item_types),
        )

    @property
    def masked_api_key(self) -> str:
        if len(self.jellyfin_api_key) > 8:
            return self.jellyfin_api_key[:4] + '****' + self.jellyfin_api_key[-4:]
        return '****'

    def log_config(self) -> None:
        """Log configuration with masked API key for security."""
        user_info = f"user_id={self.jellyfin_user_id}" if self.jellyfin_user_id else "user_id=(none)"
        log.info(
            f"StrmExtract config: url={self.jellyfin_url}, api_key={self.masked_api_key}, "
            f"{user_info}, enabled={self.enabled}, page_size={self.page_size}, "
            f"connect_timeout={self.connect_timeout}s, "
            f"read_timeout={self.read_timeout}s"
        )
        if self.library_id or self.include_item_types or self.exclude_item_types:
            log.info(
                f"Library scope: library_id={self.library_id}, "
                f"include={self.include_item_types}, exclude={self.exclude_item_types}"
            )
        if self.log_level in ('trace', 'debug'):
            log.warning(
                "Verbose logging enabled. Every dropped library item and HTTP "
                "request is logged; disable once troubleshooting is done."
            )


def validate_config(config_dict: dict) -> tuple[Optional[StrmExtractConfig], Optional[str]]:
    """
    Validate configuration values and return StrmExtractConfig or error message.

    Values in config_dict override environment variables and the YAML file.

    Args:
        config_dict: Dictionary containing configuration values

    Returns:
        Tuple of (StrmExtractConfig, None) on success,
        or (None, error_message) on validation failure
    """
    try:
        config = StrmExtractConfig(**config_dict)
        return (config, None)
    except ValidationError as e:
        # Extract user-friendly error messages
        errors = []
        for error in e.errors():
            field = '.'.join(str(loc) for loc in error['loc'])
            msg = error['msg']
            errors.append(f"{field}: {msg}")
        error_message = '; '.join(errors)
        return (None, error_message)
    except yaml.YAMLError as e:
        return (None, f"invalid config file: {e}")
    except OSError as e:
        return (None, f"cannot read config file: {e}")


# Re-export ValidationError for external use
__all__ = ['StrmExtractConfig', 'validate_config', 'ValidationError']
