"""Configuration for a transformation run

Values come from, in order of precedence: command-line options, environment
variables (optionally from a ``.env`` file), a ``.slack-transform.yaml`` file
in the current or home directory, and the defaults below.

Example .slack-transform.yaml:

    transform:
      attachments_dir: bulk-export-attachments
      import_workflow_messages: true
    redis:
      endpoint: localhost:6379
      login: default
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import redis
import yaml
from pydantic import BaseModel, ValidationError, field_validator

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = ".slack-transform.yaml"

REDIS_URL_SCHEMES = ("redis://", "rediss://", "unix://")


class RedisConfig(BaseModel):
    """Connection parameters for the Redis-backed thread store"""

    endpoint: str
    login: str = ""
    password: str = ""

    @field_validator("endpoint")
    @classmethod
    def validate_endpoint(cls, v: str) -> str:
        v = v.strip()
        if v.startswith(REDIS_URL_SCHEMES):
            return v
        host, sep, port = v.rpartition(":")
        if not sep or not host or not port.isdigit():
            raise ValueError(
                f"Redis endpoint must be host:port or a redis:// URL, got {v!r}"
            )
        return v

    @classmethod
    def from_options(
        cls,
        endpoint: Optional[str],
        login: Optional[str] = None,
        password: Optional[str] = None,
    ) -> Optional["RedisConfig"]:
        """Build a config from raw option values

        Returns:
            None when no endpoint is given, which selects the in-memory store

        Raises:
            ConfigurationError: If the endpoint is malformed
        """
        if not endpoint:
            return None
        try:
            return cls(endpoint=endpoint, login=login or "", password=password or "")
        except ValidationError as e:
            raise ConfigurationError(f"Invalid redis configuration: {e}") from e

    def create_client(self) -> redis.Redis:
        credentials = {
            "username": self.login or None,
            "password": self.password or None,
        }
        if self.endpoint.startswith(REDIS_URL_SCHEMES):
            return redis.Redis.from_url(
                self.endpoint, socket_connect_timeout=5, **credentials
            )

        host, _, port = self.endpoint.rpartition(":")
        return redis.Redis(
            host=host, port=int(port), socket_connect_timeout=5, **credentials
        )


class TransformConfig(BaseModel):
    """Options consumed by the transformation pipeline"""

    attachments_dir: str = "bulk-export-attachments"
    skip_attachments: bool = False
    discard_invalid_props: bool = False
    auth_data_as_email: bool = False
    auth_service: str = ""
    import_workflow_messages: bool = False
    skip_posts: bool = False
    skip_channels: bool = False
    redis: Optional[RedisConfig] = None


def default_config_paths() -> List[Path]:
    return [
        Path(CONFIG_FILE_NAME),
        Path.home() / CONFIG_FILE_NAME,
    ]


def load_config(config_paths: Optional[List[Path]] = None) -> Dict[str, Any]:
    """Load the first readable config file

    Looks for .slack-transform.yaml in current directory or home directory.
    Returns an empty dict when no file is found.
    """
    for config_path in config_paths or default_config_paths():
        if config_path.exists():
            try:
                with open(config_path) as f:
                    config = yaml.safe_load(f)
            except (OSError, yaml.YAMLError) as e:
                logger.warning(f"Failed to load {config_path}: {e}")
                continue

            if isinstance(config, dict):
                logger.debug(f"Loaded config from {config_path}")
                return config
            logger.warning(f"Ignoring {config_path}: expected a mapping")

    return {}
