"""
Centralized Configuration for the selection engine

This module loads configuration from defaults, an optional YAML or JSON file
(``CONFIG_PATH``) and environment variables, with environment variables
taking the highest priority. Every section is a pydantic settings model so
values are type checked and validated on load.
"""

import os
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Type

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from examselect.common.exceptions import ConfigurationError

# Configure logging
logger = logging.getLogger(__name__)

VALID_ALGORITHMS = ('weighted_random', 'difficulty_balanced', 'usage_based', 'adaptive')


class _EnvFirstSettings(BaseSettings):
    """Settings base where environment variables override file values."""

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        return env_settings, dotenv_settings, init_settings, file_secret_settings


class DatabaseConfig(_EnvFirstSettings):
    """Database configuration"""
    model_config = SettingsConfigDict(env_prefix="DB_", env_file=".env", extra="ignore")

    url: str = "sqlite:///./examselect.db"
    echo: bool = False
    pool_size: int = 5
    max_overflow: int = 10
    pool_timeout: int = 30


class LoggingConfig(_EnvFirstSettings):
    """Logging configuration"""
    model_config = SettingsConfigDict(env_prefix="LOG_", env_file=".env", extra="ignore")

    level: str = "INFO"
    use_json: bool = False
    file: Optional[str] = None

    @field_validator('level')
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Validate log level"""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v.upper()


class SelectionConfig(_EnvFirstSettings):
    """Question selection configuration"""
    model_config = SettingsConfigDict(env_prefix="SELECTION_", env_file=".env", extra="ignore")

    history_attempt_limit: int = 10
    default_overlap_percentage: float = 10.0
    default_algorithm: str = "weighted_random"
    recorder_workers: int = 2
    record_usage: bool = True

    @field_validator('history_attempt_limit', 'recorder_workers')
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError(f"Value must be positive, got {v}")
        return v

    @field_validator('default_overlap_percentage')
    @classmethod
    def validate_overlap(cls, v: float) -> float:
        """Validate overlap percentage is between 0 and 100"""
        if not 0 <= v <= 100:
            raise ValueError(f"Overlap percentage must be between 0 and 100, got {v}")
        return v

    @field_validator('default_algorithm')
    @classmethod
    def validate_algorithm(cls, v: str) -> str:
        if v.lower() not in VALID_ALGORITHMS:
            raise ValueError(f"Invalid algorithm: {v}. Must be one of {list(VALID_ALGORITHMS)}")
        return v.lower()


class APIConfig(_EnvFirstSettings):
    """API configuration"""
    model_config = SettingsConfigDict(env_prefix="API_", env_file=".env", extra="ignore")

    host: str = "0.0.0.0"
    port: int = 8000
    reload: bool = False
    prefix: str = "/api"


class EnvironmentConfig(_EnvFirstSettings):
    """Environment configuration"""
    model_config = SettingsConfigDict(env_prefix="", env_file=".env", extra="ignore")

    env: str = "development"
    testing: bool = False

    @field_validator('env')
    @classmethod
    def validate_env(cls, v: str) -> str:
        """Validate environment"""
        valid_envs = ['development', 'testing', 'staging', 'production']
        if v.lower() not in valid_envs:
            raise ValueError(f"Invalid environment: {v}. Must be one of {valid_envs}")
        return v.lower()


class AppConfig(BaseModel):
    """Main application configuration"""
    app_name: str = "ExamSelect"
    version: str = "0.1.0"
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    selection: SelectionConfig = Field(default_factory=SelectionConfig)
    api: APIConfig = Field(default_factory=APIConfig)
    environment: EnvironmentConfig = Field(default_factory=EnvironmentConfig)

    @property
    def is_testing(self) -> bool:
        """Check if environment is testing"""
        return self.environment.env == "testing" or self.environment.testing

    @property
    def is_production(self) -> bool:
        """Check if environment is production"""
        return self.environment.env == "production"


_SECTIONS: Dict[str, Type[BaseSettings]] = {
    "database": DatabaseConfig,
    "logging": LoggingConfig,
    "selection": SelectionConfig,
    "api": APIConfig,
    "environment": EnvironmentConfig,
}


class ConfigLoader:
    """
    Configuration loader for the application.

    Loads configuration from:
    1. Default values
    2. Config file
    3. Environment variables (highest priority)
    """

    def __init__(self, config_path: Optional[str] = None):
        """
        Initialize the config loader.

        Args:
            config_path: Path to config file (YAML or JSON)
        """
        self.config_path = config_path or os.environ.get("CONFIG_PATH")
        self._config: Optional[AppConfig] = None

    def load(self) -> AppConfig:
        """
        Load configuration from all sources.

        Returns:
            Loaded configuration

        Raises:
            ConfigurationError: If a value fails validation
        """
        if self._config is not None:
            return self._config

        file_config: Dict[str, Any] = {}
        if self.config_path:
            file_config = self._load_from_file(self.config_path)

        try:
            sections = {
                name: section_cls(**(file_config.get(name) or {}))
                for name, section_cls in _SECTIONS.items()
            }
            top_level = {k: v for k, v in file_config.items() if k not in _SECTIONS}
            self._config = AppConfig(**top_level, **sections)
        except ValueError as e:
            raise ConfigurationError(str(e)) from e

        return self._config

    def _load_from_file(self, path: str) -> Dict[str, Any]:
        """
        Load configuration from a file.

        Args:
            path: Path to config file

        Returns:
            Loaded configuration dictionary
        """
        path = Path(path)
        if not path.exists():
            logger.warning(f"Config file not found: {path}")
            return {}

        try:
            if path.suffix.lower() in ['.yaml', '.yml']:
                with open(path, 'r') as f:
                    return yaml.safe_load(f) or {}
            elif path.suffix.lower() == '.json':
                with open(path, 'r') as f:
                    return json.load(f)
            else:
                logger.warning(f"Unsupported config file format: {path.suffix}")
                return {}
        except (OSError, yaml.YAMLError, json.JSONDecodeError) as e:
            logger.error(f"Error loading config file: {e}")
            return {}


_config_loader: Optional[ConfigLoader] = None


def get_config() -> AppConfig:
    """
    Get the loaded configuration, loading it on first use.

    Returns:
        Loaded configuration
    """
    global _config_loader
    if _config_loader is None:
        _config_loader = ConfigLoader()
    return _config_loader.load()
