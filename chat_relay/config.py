"""Configuration management for the chat relay backend."""

import os
from typing import Any

import yaml
from dotenv import load_dotenv

DEFAULT_CONFIG_PATH = os.path.join(os.path.dirname(__file__), "config.yaml")


class Configuration:
    """Manages configuration and environment variables for the relay backend."""

    def __init__(self, config_path: str | None = None) -> None:
        """Initialize configuration from YAML and environment variables."""
        self.load_env()  # Load .env for secrets
        self.config_path = config_path or DEFAULT_CONFIG_PATH
        self._config = self._load_yaml_config()

    @staticmethod
    def load_env() -> None:
        """Load environment variables from .env file."""
        load_dotenv()

    def _load_yaml_config(self) -> dict[str, Any]:
        """Load configuration from YAML file."""
        with open(self.config_path) as file:
            config = yaml.safe_load(file)
            if not isinstance(config, dict):
                raise ValueError(
                    f"Config file must be YAML dict, got {type(config)}"
                )
            return config

    @property
    def access_secret(self) -> str:
        """Get the shared secret expected by the access gate.

        Returns:
            The secret as a string.

        Raises:
            ValueError: If the secret is not found in environment variables.
        """
        env_key = self.get_access_config()["secret_env"]
        secret = os.getenv(env_key)
        if not secret:
            raise ValueError(
                f"Access secret '{env_key}' not found in environment variables"
            )
        return secret

    def get_config_dict(self) -> dict[str, Any]:
        """Get the full configuration dictionary.

        Returns:
            The complete configuration dictionary.
        """
        return self._config

    def get_upstream_config(self) -> dict[str, Any]:
        """Get upstream completion service configuration from YAML.

        Returns:
            Upstream configuration dictionary with validated values.

        Raises:
            ValueError: If required upstream parameters are missing or invalid.
        """
        upstream_config = self._config.get("upstream", {})

        # Required configuration keys
        required_keys = [
            "base_url", "chat_path", "model", "shape",
            "connect_timeout", "read_timeout", "max_duration",
        ]
        for key in required_keys:
            if key not in upstream_config:
                raise ValueError(
                    f"upstream.{key} must be explicitly configured in config.yaml"
                )

        valid_shapes = ["auto", "ollama", "openai"]
        if upstream_config["shape"] not in valid_shapes:
            raise ValueError(f"upstream.shape must be one of: {valid_shapes}")

        if upstream_config["connect_timeout"] <= 0:
            raise ValueError("upstream.connect_timeout must be positive")
        if upstream_config["read_timeout"] <= 0:
            raise ValueError("upstream.read_timeout must be positive")

        max_duration = upstream_config["max_duration"]
        if max_duration is not None and max_duration <= 0:
            raise ValueError(
                "upstream.max_duration must be positive or null for no limit"
            )

        extra_body = upstream_config.get("extra_body") or {}
        if not isinstance(extra_body, dict):
            raise ValueError("upstream.extra_body must be a mapping")

        # Create new dictionary without mutating the original
        return {**upstream_config, "extra_body": {**extra_body}}

    def get_server_config(self) -> dict[str, Any]:
        """Get HTTP server configuration from YAML.

        Returns:
            Server configuration dictionary.

        Raises:
            ValueError: If required server parameters are missing or invalid.
        """
        server_config = self._config.get("server", {})

        required_keys = ["host", "port", "cors_origins"]
        for key in required_keys:
            if key not in server_config:
                raise ValueError(
                    f"server.{key} must be explicitly configured in config.yaml"
                )

        port = server_config["port"]
        if not isinstance(port, int) or not 0 < port < 65536:
            raise ValueError("server.port must be an integer between 1 and 65535")

        if not isinstance(server_config["cors_origins"], list):
            raise ValueError("server.cors_origins must be a list")

        return {**server_config}

    def get_repository_config(self) -> dict[str, Any]:
        """Get repository configuration from YAML.

        Returns:
            Repository configuration dictionary.

        Raises:
            ValueError: If required repository parameters are missing.
        """
        repo_config = self._config.get("repository", {})

        required_keys = ["path", "clear_on_startup"]
        for key in required_keys:
            if key not in repo_config:
                raise ValueError(
                    f"repository.{key} must be explicitly configured in config.yaml"
                )

        return {**repo_config}

    def get_access_config(self) -> dict[str, Any]:
        """Get access gate configuration from YAML.

        Returns:
            Access gate configuration dictionary.

        Raises:
            ValueError: If required access parameters are missing.
        """
        access_config = self._config.get("access", {})

        required_keys = ["header", "secret_env"]
        for key in required_keys:
            if key not in access_config:
                raise ValueError(
                    f"access.{key} must be explicitly configured in config.yaml"
                )

        return {**access_config}

    def get_logging_config(self) -> dict[str, Any]:
        """Get logging configuration from YAML.

        Returns:
            Logging configuration dictionary.
        """
        return {"level": "INFO", **self._config.get("logging", {})}
