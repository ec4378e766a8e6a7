import fnmatch
import os
from pathlib import Path
from typing import Optional

import yaml

DEFAULT_CONFIG: dict = {
    "store": "sqlite",  # "memory" keeps nothing between runs
    "store_path": ".reviewsync.db",
    "poll_interval": 30,  # seconds between passes in `reviewsync watch`
    "exclude": [],  # fnmatch patterns or directory names never synced (e.g. "docs/generated/", "*.lock")
}

VALID_STORES = ("memory", "sqlite")


class ConfigError(ValueError):
    """Raised when the configuration file holds an unusable value."""


def load_config(config_path: str = ".reviewsync.yml", cli_overrides: Optional[dict] = None) -> dict:
    """
    Load configuration by merging (in order of precedence):
      1. Built-in defaults
      2. .reviewsync.yml in the current directory
      3. CLI argument overrides
    """
    config = {**DEFAULT_CONFIG, "exclude": list(DEFAULT_CONFIG["exclude"])}

    path = Path(config_path)
    if path.exists():
        with open(path) as f:
            file_config = yaml.safe_load(f) or {}
        if not isinstance(file_config, dict):
            raise ConfigError(f"{config_path} must contain a mapping, got {type(file_config).__name__}")
        config.update(file_config)

    if cli_overrides:
        for key, value in cli_overrides.items():
            if value is not None:
                config[key] = value

    _validate(config)

    # Resolve credentials from environment variables
    config["github_token"] = os.environ.get("GITHUB_TOKEN")

    return config


def _validate(config: dict) -> None:
    if config["store"] not in VALID_STORES:
        raise ConfigError(f"Unknown store {config['store']!r}; expected one of {', '.join(VALID_STORES)}")
    try:
        config["poll_interval"] = float(config["poll_interval"])
    except (TypeError, ValueError):
        raise ConfigError(f"poll_interval must be a number, got {config['poll_interval']!r}") from None
    if config["poll_interval"] <= 0:
        raise ConfigError("poll_interval must be positive")
    if isinstance(config["exclude"], str):
        config["exclude"] = [config["exclude"]]


def is_excluded(file_path: str, patterns: list) -> bool:
    """Return True if ``file_path`` matches an exclude pattern.

    A pattern ending in ``/`` excludes everything under that directory.
    """
    for pattern in patterns or []:
        if pattern.endswith("/"):
            if file_path.startswith(pattern) or f"/{pattern}" in f"/{file_path}":
                return True
        elif fnmatch.fnmatch(file_path, pattern) or fnmatch.fnmatch(Path(file_path).name, pattern):
            return True
    return False
