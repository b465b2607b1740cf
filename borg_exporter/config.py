"""Exporter configuration (YAML file given on the command line)"""

import logging
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from borg_exporter.borg_api import BORG_COMMAND, LOCK_RETRY_DELAY, RetryPolicy
from borg_exporter.errors import ConfigError

logger = logging.getLogger(__name__)


class ExporterConfig(BaseModel):
    """Settings read once at startup and shared read-only by every scrape"""

    model_config = ConfigDict(extra="ignore", frozen=True)

    port: int = Field(default=9002, ge=0, le=65535, description="Port to serve /metrics on")
    repositories: tuple[Path, ...] = Field(
        default=(), description="Borg repositories to report on, in output order"
    )
    listen_address: str = Field(default="127.0.0.1", description="Address to bind to")
    borg_command: str = Field(default=BORG_COMMAND, description="borg executable to run")
    lock_retry_delay: float = Field(
        default=LOCK_RETRY_DELAY, ge=0, description="Seconds to wait when a repository is locked"
    )
    lock_retry_attempts: int | None = Field(
        default=None, ge=1, description="Attempts per repository while locked (None = forever)"
    )

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(delay=self.lock_retry_delay, max_attempts=self.lock_retry_attempts)


def load_config(config_path: str | Path) -> ExporterConfig:
    """
    Load the exporter configuration, writing a default file if none exists

    Args:
        config_path: Path to the YAML configuration file

    Returns:
        ExporterConfig object

    Raises:
        ConfigError: If the file cannot be read, written or validated
    """
    config_path = Path(config_path)
    logger.debug("Opening config file %s", config_path)

    try:
        if not config_path.is_file():
            logger.warning("Config file %s not found. Creating a default one.", config_path)
            with open(config_path, "w", encoding="utf-8") as f:
                yaml.safe_dump(ExporterConfig().model_dump(mode="json"), f, sort_keys=False)

        with open(config_path, encoding="utf-8") as f:
            data = yaml.safe_load(f)

        if data is None:
            raise ConfigError(f"Config file {config_path} is empty")
        if not isinstance(data, dict):
            raise ConfigError(f"Config file {config_path} must contain a mapping")

        unknown = sorted(str(key) for key in data if key not in ExporterConfig.model_fields)
        if unknown:
            logger.warning("Ignoring unknown keys in config file %s: %s", config_path, ", ".join(unknown))

        config = ExporterConfig.model_validate(data)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in config file {config_path}: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"Invalid config file {config_path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Failed to open config file {config_path}: {e}") from e

    if not config.repositories:
        logger.warning(
            "The config file does not define any repositories. "
            "This program will do nothing if no repositories are defined"
        )
    logger.info("Loaded configuration from %s", config_path)
    logger.info("  Repositories: %d", len(config.repositories))
    return config
