"""
User configuration file support.

Reads/writes ``~/.speedcheck/config.json``.

Supported keys::

    download_endpoints = [...]   # pool for the download probe
    ping_endpoints = [...]       # rotated through by the ping probe
    jitter_endpoint = "..."      # single reference for the jitter probe
    ping_count = 5
    ping_interval = 0.2          # seconds
    jitter_count = 8
    jitter_interval = 0.1        # seconds
    request_timeout = 10.0       # seconds, per request
    share_origin = "https://..." # base of generated share links
    share_path = "/"
    storage_file = ""            # override history location
    log_level = "WARNING"
"""
from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict

from .constants import (
    DEFAULT_JITTER_COUNT,
    DEFAULT_JITTER_INTERVAL,
    DEFAULT_PING_COUNT,
    DEFAULT_PING_INTERVAL,
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_SHARE_ORIGIN,
    DEFAULT_SHARE_PATH,
    DOWNLOAD_ENDPOINTS,
    JITTER_ENDPOINT,
    PING_ENDPOINTS,
)

logger = logging.getLogger(__name__)

_CONFIG_DIR = os.path.join(Path.home(), ".speedcheck")
_CONFIG_FILE = "config.json"


def _config_path() -> str:
    return os.path.join(_CONFIG_DIR, _CONFIG_FILE)


# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------

DEFAULTS: Dict[str, Any] = {
    "download_endpoints": list(DOWNLOAD_ENDPOINTS),
    "ping_endpoints": list(PING_ENDPOINTS),
    "jitter_endpoint": JITTER_ENDPOINT,
    "ping_count": DEFAULT_PING_COUNT,
    "ping_interval": DEFAULT_PING_INTERVAL,
    "jitter_count": DEFAULT_JITTER_COUNT,
    "jitter_interval": DEFAULT_JITTER_INTERVAL,
    "request_timeout": DEFAULT_REQUEST_TIMEOUT,
    "share_origin": DEFAULT_SHARE_ORIGIN,
    "share_path": DEFAULT_SHARE_PATH,
    "storage_file": "",
    "log_level": "WARNING",
}


# ---------------------------------------------------------------------------
# Read / Write
# ---------------------------------------------------------------------------

def load_config() -> Dict[str, Any]:
    """Load config from disk, returning defaults for missing keys."""
    path = _config_path()
    config = json.loads(json.dumps(DEFAULTS))  # deep copy; lists are mutable

    if not os.path.isfile(path):
        return config

    try:
        with open(path, encoding="utf-8") as fh:
            user = json.load(fh)
        if isinstance(user, dict):
            config.update(user)
    except (json.JSONDecodeError, IOError) as exc:
        logger.warning("Ignoring unreadable config %s: %s", path, exc)

    return config


def save_config(config: Dict[str, Any]) -> str:
    """Write *config* to disk.  Returns the file path."""
    path = _config_path()
    os.makedirs(os.path.dirname(path), exist_ok=True)

    with open(path, "w", encoding="utf-8") as fh:
        json.dump(config, fh, indent=2, ensure_ascii=False)

    return path


def get_config_value(key: str) -> Any:
    """Get a single config value."""
    return load_config().get(key, DEFAULTS.get(key))


def set_config_value(key: str, value: Any) -> str:
    """Set a single config value and persist.  Returns file path."""
    config = load_config()
    config[key] = value
    return save_config(config)


def config_path() -> str:
    """Return the config file path (for display purposes)."""
    return _config_path()
