"""Configuration management for tinkoff-sync."""

import json
import os
from pathlib import Path
from typing import Any

from tinkoff_sync.models import INSTITUTION

# Default config filename
CONFIG_FILENAME = "config.json"

ENV_REPORTS_DIR = "TINKOFF_SYNC_REPORTS_DIR"
ENV_LEDGER_URL = "TINKOFF_SYNC_LEDGER_URL"
ENV_LEDGER_API_KEY = "TINKOFF_SYNC_LEDGER_API_KEY"


def get_config_dir() -> Path:
    """Get the config directory path (XDG compliant)."""
    xdg_config_home = os.getenv("XDG_CONFIG_HOME", str(Path.home() / ".config"))
    return Path(xdg_config_home) / "tinkoff-sync"


def get_config_path() -> Path:
    """Get the default config file path."""
    return get_config_dir() / CONFIG_FILENAME


def find_config_file() -> Path | None:
    """Find the config file in standard locations.

    Searches for config in the following order:
    1. config.json in current directory
    2. XDG config: ~/.config/tinkoff-sync/config.json
    """
    config_paths = [
        Path(CONFIG_FILENAME),
        get_config_path(),
    ]

    for path in config_paths:
        if path.exists():
            return path

    return None


def load_json_config(config_path: Path) -> dict[str, Any]:
    """Load configuration from a JSON file."""
    with open(config_path, encoding="utf-8") as f:
        return json.load(f)  # type: ignore[no-any-return]


def save_json_config(config: dict[str, Any], config_path: Path | None = None) -> Path:
    """Save configuration to a JSON file.

    Args:
        config: Configuration dictionary to save
        config_path: Path to save to (defaults to XDG config location)

    Returns:
        Path where config was saved
    """
    if config_path is None:
        config_path = get_config_path()

    config_path.parent.mkdir(parents=True, exist_ok=True)

    with open(config_path, "w", encoding="utf-8") as f:
        json.dump(config, f, indent=2, ensure_ascii=False)
        f.write("\n")

    return config_path


def load_config(config_path: Path | None = None) -> dict[str, Any] | None:
    """Load configuration from config file.

    Args:
        config_path: Explicit path to config.json file

    Returns:
        Loaded config dict or None if not found
    """
    if config_path:
        return load_json_config(config_path)

    config_file = find_config_file()
    if config_file:
        return load_json_config(config_file)

    return None


def get_reports_dir(
    config: dict[str, Any] | None = None,
    override: str | Path | None = None,
) -> Path | None:
    """Get the directory holding report files.

    Precedence: override, TINKOFF_SYNC_REPORTS_DIR, ``reports_dir`` in config.
    """
    value = override or os.getenv(ENV_REPORTS_DIR) or (config or {}).get("reports_dir")
    return Path(value).expanduser() if value else None


def get_institution(config: dict[str, Any] | None = None) -> str:
    """Get the institution id whose cards and accounts are used."""
    return (config or {}).get("institution", INSTITUTION)  # type: ignore[no-any-return]


def get_ledger_settings(
    config: dict[str, Any] | None = None,
    url: str | None = None,
    api_key: str | None = None,
) -> tuple[str | None, str | None, float | None]:
    """Get ledger URL, API key and request timeout.

    Args:
        config: Loaded JSON config
        url: Optional URL to use instead of environment/config
        api_key: Optional API key to use instead of environment/config

    Returns:
        Tuple of (url, api_key, timeout); missing values are None
    """
    ledger_config = (config or {}).get("ledger", {})
    timeout = ledger_config.get("timeout")
    return (
        url or os.getenv(ENV_LEDGER_URL) or ledger_config.get("url"),
        api_key or os.getenv(ENV_LEDGER_API_KEY) or ledger_config.get("api_key"),
        float(timeout) if timeout is not None else None,
    )


def create_default_config() -> dict[str, Any]:
    """Create a default empty configuration."""
    return {
        "reports_dir": None,
        "institution": INSTITUTION,
        "ledger": {
            "url": None,
            "api_key": None,
        },
        "accounts": [],
        "cards": [],
    }
