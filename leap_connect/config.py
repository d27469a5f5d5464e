"""Configuration management for the leap-connect client."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any

import yaml
from dotenv import load_dotenv

DEFAULT_API_URL = "http://0.0.0.0:1234/v1"
API_URL_ENV = "API_URL_V1"
DEFAULT_BETA_HEADER = "assistants=v1"


@dataclass(frozen=True)
class ClientConfig:
    """Explicit connection settings handed to the API client."""
    api_key: str
    api_endpoint: str = DEFAULT_API_URL
    organization: str | None = None
    proxy: str | None = None
    beta_header: str = DEFAULT_BETA_HEADER

    # Connection settings
    connect_timeout: float = 10.0
    read_timeout: float = 60.0
    write_timeout: float = 10.0
    pool_timeout: float = 10.0
    max_connections: int = 100
    max_keepalive: int = 20


class Configuration:
    """Manages configuration and environment variables for the client."""

    def __init__(self, config_path: str | None = None) -> None:
        """Initialize configuration from YAML and environment variables."""
        self.load_env()  # Load .env for API keys
        self._config = self._load_yaml_config(config_path)

    @staticmethod
    def load_env() -> None:
        """Load environment variables from .env file."""
        load_dotenv()

    def _load_yaml_config(self, config_path: str | None) -> dict[str, Any]:
        """Load configuration from YAML file."""
        if config_path is None:
            config_path = os.path.join(os.path.dirname(__file__), "config.yaml")
        with open(config_path) as file:
            config = yaml.safe_load(file)
            if not isinstance(config, dict):
                raise ValueError(
                    f"Config file must be YAML dict, got {type(config)}"
                )
            return config

    def get_config_dict(self) -> dict[str, Any]:
        """Get the full configuration dictionary."""
        return self._config

    def get_api_config(self) -> dict[str, Any]:
        """Get the api section of the YAML configuration."""
        return self._config.get("api", {})

    @property
    def api_endpoint(self) -> str:
        """Resolve the service endpoint.

        The API_URL_V1 environment variable wins over the YAML value, which
        wins over the built-in default.
        """
        env_value = os.getenv(API_URL_ENV)
        if env_value:
            return env_value
        return self.get_api_config().get("base_url") or DEFAULT_API_URL

    @property
    def api_key(self) -> str:
        """Get the API key.

        Raises:
            ValueError: If the API key is not found in environment variables.
        """
        env_key = self.get_api_config().get("api_key_env", "TUPLELEAP_AI_API_KEY")
        api_key = os.getenv(env_key)
        if not api_key:
            raise ValueError(
                f"API key '{env_key}' not found in environment variables"
            )
        return api_key

    def _optional_env(self, name_key: str, value_key: str) -> str | None:
        api_config = self.get_api_config()
        env_name = api_config.get(name_key)
        if env_name and os.getenv(env_name):
            return os.getenv(env_name)
        return api_config.get(value_key)

    @property
    def organization(self) -> str | None:
        return self._optional_env("organization_env", "organization")

    @property
    def proxy(self) -> str | None:
        return self._optional_env("proxy_env", "proxy")

    def get_http_client_config(self) -> dict[str, Any]:
        """Get HTTP client configuration.

        Returns:
            HTTP client configuration dictionary with validated values.

        Raises:
            ValueError: If required HTTP client parameters are missing or invalid.
        """
        http_config = self.get_api_config().get("http_client", {})

        required_keys = [
            "connect_timeout", "read_timeout", "write_timeout", "pool_timeout",
            "max_connections", "max_keepalive",
        ]
        for key in required_keys:
            if key not in http_config:
                raise ValueError(
                    f"http_client.{key} must be explicitly configured "
                    "in config.yaml under api.http_client"
                )

        for key in ["connect_timeout", "read_timeout", "write_timeout", "pool_timeout"]:
            if http_config[key] <= 0:
                raise ValueError(f"http_client.{key} must be positive")

        if http_config["max_connections"] < 1:
            raise ValueError("http_client.max_connections must be at least 1")
        if http_config["max_keepalive"] > http_config["max_connections"]:
            raise ValueError("http_client.max_keepalive must be <= max_connections")

        return http_config

    def get_client_config(self, api_key: str | None = None) -> ClientConfig:
        """Build the explicit client configuration.

        Args:
            api_key: Key to use instead of the environment lookup.
        """
        http_config = self.get_http_client_config()
        return ClientConfig(
            api_key=api_key if api_key is not None else self.api_key,
            api_endpoint=self.api_endpoint,
            organization=self.organization,
            proxy=self.proxy,
            beta_header=self.get_api_config().get("beta_header", DEFAULT_BETA_HEADER),
            connect_timeout=http_config["connect_timeout"],
            read_timeout=http_config["read_timeout"],
            write_timeout=http_config["write_timeout"],
            pool_timeout=http_config["pool_timeout"],
            max_connections=http_config["max_connections"],
            max_keepalive=http_config["max_keepalive"],
        )
