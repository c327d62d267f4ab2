"""Configuration loading for the BOS HTTP client.

Supports two configuration sources:
1. Environment variables (for CI/CD) - takes priority
2. config.json file (for local development)

Environment Variables:
    BOS_ENDPOINT=https://bj.bcebos.com
    BOS_AK=your-access-key
    BOS_SK=your-secret-key
    BOS_ACCOUNT_ID=owner-id         (optional)
    BOS_ACCOUNT_NAME=display-name   (optional, defaults to the id)
    BOS_TIMEOUT=120                 (optional, seconds)

config.json:
    {
        "bos": {
            "endpoint": "https://bj.bcebos.com",
            "ak": "your-access-key",
            "sk": "your-secret-key",
            "account": {"id": "owner-id", "displayName": "display-name"}
        }
    }

The account is the bucket owner as the service reports it; it is only
used to check listings and is never sent.
"""

import json
import os
from pathlib import Path

from bce_bos.models import DEFAULT_TIMEOUT, ClientConfig, Credentials


class ConfigError(Exception):
    """Raised when configuration loading fails."""

    pass


# Required fields of the "bos" section
REQUIRED_FIELDS = ["endpoint", "ak", "sk"]

ENV_ENDPOINT = "BOS_ENDPOINT"


def _parse_timeout(value, source: str) -> float:
    try:
        timeout = float(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid timeout in {source}: {value!r}") from e
    if timeout <= 0:
        raise ConfigError(f"Timeout must be positive in {source}: {value!r}")
    return timeout


def _build_config(endpoint: str, ak: str, sk: str, account, timeout: float) -> ClientConfig:
    try:
        return ClientConfig(
            endpoint=endpoint,
            credentials=Credentials(ak=ak, sk=sk),
            account=account,
            timeout=timeout,
        )
    except ValueError as e:
        raise ConfigError(str(e)) from e


def load_from_json(config_path: str) -> ClientConfig:
    """Load the client configuration from a JSON file.

    Args:
        config_path: Path to the config.json file.

    Returns:
        The ClientConfig described by the "bos" section.

    Raises:
        ConfigError: If the file doesn't exist, contains invalid JSON,
                    or is missing required fields.
    """
    path = Path(config_path)

    if not path.exists():
        raise ConfigError(f"Config file not found: {config_path}")

    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in config file: {e}") from e

    section = data.get("bos") if isinstance(data, dict) else None
    if not isinstance(section, dict):
        raise ConfigError(f"Missing 'bos' section in config file: {config_path}")

    for field in REQUIRED_FIELDS:
        if not section.get(field):
            raise ConfigError(f"Missing required field '{field}' in 'bos' section")

    account = section.get("account")
    if account is not None and not isinstance(account, dict):
        raise ConfigError("Field 'account' must be an object with 'id' and 'displayName'")

    return _build_config(
        section["endpoint"],
        section["ak"],
        section["sk"],
        account,
        _parse_timeout(section.get("timeout", DEFAULT_TIMEOUT), config_path),
    )


def load_from_env() -> ClientConfig:
    """Load the client configuration from BOS_* environment variables.

    Returns:
        The ClientConfig built from the environment.

    Raises:
        ConfigError: If a required variable is missing or malformed.
    """
    values = {}
    for field in REQUIRED_FIELDS:
        var = f"BOS_{field.upper()}"
        value = os.environ.get(var)
        if not value:
            raise ConfigError(f"Missing environment variable: {var}")
        values[field] = value

    account = None
    account_id = os.environ.get("BOS_ACCOUNT_ID")
    if account_id:
        account = {
            "id": account_id,
            "displayName": os.environ.get("BOS_ACCOUNT_NAME") or account_id,
        }

    return _build_config(
        values["endpoint"],
        values["ak"],
        values["sk"],
        account,
        _parse_timeout(os.environ.get("BOS_TIMEOUT", DEFAULT_TIMEOUT), "BOS_TIMEOUT"),
    )


def has_env_config() -> bool:
    """Check if the BOS_ENDPOINT environment variable is set."""
    return bool(os.environ.get(ENV_ENDPOINT))


def load_config(config_path: str = "config.json") -> ClientConfig:
    """Load the client configuration with environment priority.

    Priority order:
    1. Environment variables (if BOS_ENDPOINT is set)
    2. config.json file

    Args:
        config_path: Path to config.json (used as fallback).

    Returns:
        The ClientConfig.

    Raises:
        ConfigError: If nothing is configured or the configuration is invalid.
    """
    if has_env_config():
        return load_from_env()
    if Path(config_path).exists():
        return load_from_json(config_path)

    raise ConfigError(
        "No configuration found. Set BOS_ENDPOINT, BOS_AK and BOS_SK "
        "or create a config.json file with a 'bos' section."
    )
