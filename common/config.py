#!/usr/bin/env python3

import os
from configparser import ConfigParser
from dataclasses import dataclass
from typing import Optional

from common.utils import (
    DEFAULT_BLOCKED_CONNECTION_TIMEOUT,
    DEFAULT_PREFETCH_COUNT,
    DEFAULT_VIRTUAL_HOST,
    HEARTBEAT,
)


@dataclass
class MiddlewareConfig:
    """Configuration for the RabbitMQ connection"""

    host: str
    port: int
    username: str
    password: str
    virtual_host: str = DEFAULT_VIRTUAL_HOST
    heartbeat: int = HEARTBEAT
    blocked_connection_timeout: int = DEFAULT_BLOCKED_CONNECTION_TIMEOUT
    prefetch_count: int = DEFAULT_PREFETCH_COUNT


@dataclass
class DriverConfig:
    """Configuration for the consumer runner"""

    logging_level: str
    queue: str
    idle_timeout: float = 0
    total_timeout: Optional[float] = None


def initialize_config(path="config.ini"):
    """Parse config file to find program config params

    Function that searches for program configuration parameters in the config file.
    Environment variables take precedence over config file values.
    If at least one of the required parameters is not found a KeyError exception
    is thrown. If a parameter could not be parsed, a ValueError is thrown.
    If parsing succeeded, the function returns DriverConfig and MiddlewareConfig objects
    """

    config = ConfigParser()

    config_files_read = config.read(path)
    if not config_files_read:
        raise KeyError(f"Configuration file '{path}' not found or could not be read")

    def _get_config(env_key, config_key, default=None):
        """Get configuration value from environment variable or config file"""
        env_value = os.getenv(env_key)
        if env_value is not None:
            return env_value
        return config["DEFAULT"].get(config_key, default)

    def _get_required_config(env_key, config_key):
        """Get configuration value from environment variable or config file, raise error if missing"""
        value = _get_config(env_key, config_key)
        if value is None:
            raise KeyError(
                f"Required configuration parameter '{config_key}' not found in environment variable '{env_key}' or config file"
            )
        return value

    try:
        total_timeout = _get_config("CONSUME_TOTAL_TIMEOUT", "CONSUME_TOTAL_TIMEOUT")

        driver_config = DriverConfig(
            logging_level=_get_required_config("LOGGING_LEVEL", "LOGGING_LEVEL"),
            queue=_get_required_config("CONSUME_QUEUE", "CONSUME_QUEUE"),
            idle_timeout=float(
                _get_config("CONSUME_IDLE_TIMEOUT", "CONSUME_IDLE_TIMEOUT", 0)
            ),
            total_timeout=float(total_timeout) if total_timeout else None,
        )

        middleware_config = MiddlewareConfig(
            host=_get_required_config("RABBITMQ_HOST", "RABBITMQ_HOST"),
            port=int(_get_required_config("RABBITMQ_PORT", "RABBITMQ_PORT")),
            username=_get_required_config("RABBITMQ_USER", "RABBITMQ_USER"),
            password=_get_required_config("RABBITMQ_PASSWORD", "RABBITMQ_PASSWORD"),
            virtual_host=_get_config(
                "RABBITMQ_VHOST", "RABBITMQ_VHOST", DEFAULT_VIRTUAL_HOST
            ),
            heartbeat=int(_get_config("RABBITMQ_HEARTBEAT", "RABBITMQ_HEARTBEAT", HEARTBEAT)),
            blocked_connection_timeout=int(
                _get_config(
                    "RABBITMQ_BLOCKED_TIMEOUT",
                    "RABBITMQ_BLOCKED_TIMEOUT",
                    DEFAULT_BLOCKED_CONNECTION_TIMEOUT,
                )
            ),
            prefetch_count=int(
                _get_config(
                    "RABBITMQ_PREFETCH_COUNT",
                    "RABBITMQ_PREFETCH_COUNT",
                    DEFAULT_PREFETCH_COUNT,
                )
            ),
        )

    except KeyError as e:
        raise KeyError("Configuration error: {}. Aborting".format(e))
    except ValueError as e:
        raise ValueError("Configuration parsing error: {}. Aborting".format(e))

    return driver_config, middleware_config
