"""Configuration loading from defaults, an optional YAML file, env vars and CLI args."""

import logging
import os
from dataclasses import dataclass, fields

import yaml

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Config:
    api_base_url: str = "http://localhost:8000"
    ws_url: str = "ws://localhost:8000/ws/log_entries/"
    page_size: int = 25
    idle_grace_secs: float = 5.0
    live_window: int = 50
    highlight_min_length: int = 3
    fetch_more_ratio: float = 0.25
    request_timeout: float = 30.0
    max_warnings: int = 100


# env var name -> (config field, converter)
ENV_VARS = {
    "LOG_VIEWER_API_URL": ("api_base_url", str),
    "LOG_VIEWER_WS_URL": ("ws_url", str),
    "PAGE_SIZE": ("page_size", int),
    "IDLE_GRACE_SECS": ("idle_grace_secs", float),
    "LIVE_WINDOW": ("live_window", int),
    "HIGHLIGHT_MIN_LENGTH": ("highlight_min_length", int),
    "FETCH_MORE_RATIO": ("fetch_more_ratio", float),
    "REQUEST_TIMEOUT": ("request_timeout", float),
}


def load_yaml_config(path: str | None) -> dict:
    """Load settings from a YAML file. Returns empty dict if no path."""
    if not path:
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        logger.info("Loaded YAML config from %s", path)
        return data
    except FileNotFoundError:
        logger.warning("Config file %s not found, using defaults", path)
        return {}


def load_config(cli_args=None, yaml_data: dict | None = None) -> Config:
    """Build Config from defaults <- YAML <- env vars <- CLI args (highest priority).

    `cli_args` is an argparse Namespace (or None); attributes named after
    Config fields override everything else when they are not None.
    """
    known = {f.name for f in fields(Config)}
    kwargs: dict = {}

    for key, value in (yaml_data or {}).items():
        key = key.replace("-", "_")
        if key in known:
            kwargs[key] = value
        else:
            logger.warning("Ignoring unknown config key %r", key)

    for env_name, (key, convert) in ENV_VARS.items():
        value = os.environ.get(env_name)
        if value is not None:
            kwargs[key] = convert(value)

    if cli_args is not None:
        for key in known:
            value = getattr(cli_args, key, None)
            if value is not None:
                kwargs[key] = value

    config = Config(**kwargs)
    _validate(config)
    return config


def _validate(config: Config):
    if config.page_size <= 0:
        raise ValueError(f"page_size must be positive, got {config.page_size}")
    if config.live_window <= 0:
        raise ValueError(f"live_window must be positive, got {config.live_window}")
    if not 0 < config.fetch_more_ratio <= 1:
        raise ValueError(f"fetch_more_ratio must be in (0, 1], got {config.fetch_more_ratio}")
    if config.idle_grace_secs < 0:
        raise ValueError(f"idle_grace_secs must be >= 0, got {config.idle_grace_secs}")
