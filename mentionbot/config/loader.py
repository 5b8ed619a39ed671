from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass, field
from typing import Any

import yaml
from dotenv import load_dotenv

from mentionbot.state import DEFAULT_HISTORY_SIZE, DEFAULT_RATE_LIMIT_SECONDS

from .validator import validate_config, ConfigValidationError


DEFAULT_CONFIG_FILE = "config.yaml"
CONFIG_ENV_VAR = "CONFIG_PATH"

DEFAULT_MAX_LENGTH = 250
DEFAULT_TREND_TIMEOUT_SECONDS = 10.0


def get_config_path() -> str:
    """
    Resolve the config path, preferring an explicit environment override.
    """
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return env_path
    return DEFAULT_CONFIG_FILE


def split_ids(raw: str | None) -> list[str]:
    """Parse a comma-separated id list such as ALLOWED_SERVERS."""
    if not raw:
        return []
    return [part.strip() for part in raw.split(",") if part.strip()]


def _load_raw_config(path: str) -> dict[str, Any]:
    # Unlike the environment, the YAML file is optional.
    if not os.path.exists(path):
        logging.info("Config file %s not found, using environment only", path)
        return {}
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        logging.error("YAML parsing error in %s: %s", path, e)
        sys.exit(1)

    if not isinstance(data, dict):
        logging.error("Config root must be a mapping, got %s", type(data).__name__)
        sys.exit(1)

    return data


def apply_env_overrides(cfg: dict[str, Any], environ: dict[str, str] | None = None) -> dict[str, Any]:
    """
    Layer environment variables over the YAML values.

    ALLOWED_SERVERS / EXCLUDED_USERS are comma-separated ids,
    ENABLE_TREND is on only when exactly "true".
    """
    env = os.environ if environ is None else environ
    cfg = dict(cfg)

    if "ALLOWED_SERVERS" in env:
        cfg["allowed_servers"] = split_ids(env["ALLOWED_SERVERS"])
    if "EXCLUDED_USERS" in env:
        cfg["excluded_users"] = split_ids(env["EXCLUDED_USERS"])
    if "ENABLE_TREND" in env:
        cfg["enable_trend"] = env["ENABLE_TREND"] == "true"
    if env.get("DISCORD_TOKEN"):
        cfg["bot_token"] = env["DISCORD_TOKEN"]
    if env.get("TOGETHER_API_KEY"):
        cfg["llm"] = {**(cfg.get("llm") or {}), "api_key": env["TOGETHER_API_KEY"]}

    return cfg


def get_config(path: str | None = None) -> dict[str, Any]:
    """
    Public helper for loading configuration.

    - Loads .env, then config.yaml (CONFIG_PATH if set), then env overrides.
    - Performs validation.
    - Exits with error code 1 if validation fails.
    - Returns the merged dict; Settings.from_config() gives a typed view.
    """
    load_dotenv()
    cfg_path = path or get_config_path()
    cfg = apply_env_overrides(_load_raw_config(cfg_path))

    try:
        validate_config(cfg, cfg_path)
    except ConfigValidationError:
        sys.exit(1)

    return cfg


@dataclass
class Settings:
    bot_token: str = ""
    allowed_servers: set[str] = field(default_factory=set)
    excluded_users: set[str] = field(default_factory=set)
    enable_trend: bool = False
    admin_ids: list[int] = field(default_factory=list)
    status_message: str = ""
    max_length: int = DEFAULT_MAX_LENGTH
    history_size: int = DEFAULT_HISTORY_SIZE
    rate_limit_seconds: float = DEFAULT_RATE_LIMIT_SECONDS
    trend_on_failure: str = "abort"
    trend_timeout_seconds: float = DEFAULT_TREND_TIMEOUT_SECONDS
    llm: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_config(cls, cfg: dict[str, Any]) -> "Settings":
        limits = cfg.get("limits") or {}
        trends = cfg.get("trends") or {}
        return cls(
            bot_token=cfg.get("bot_token") or "",
            allowed_servers={str(i) for i in cfg.get("allowed_servers") or []},
            excluded_users={str(i) for i in cfg.get("excluded_users") or []},
            enable_trend=bool(cfg.get("enable_trend", False)),
            admin_ids=[int(i) for i in cfg.get("admin_ids") or []],
            status_message=cfg.get("status_message") or "",
            max_length=int(limits.get("max_length", DEFAULT_MAX_LENGTH)),
            history_size=int(limits.get("history_size", DEFAULT_HISTORY_SIZE)),
            rate_limit_seconds=float(limits.get("rate_limit_seconds", DEFAULT_RATE_LIMIT_SECONDS)),
            trend_on_failure=trends.get("on_failure", "abort"),
            trend_timeout_seconds=float(trends.get("timeout_seconds", DEFAULT_TREND_TIMEOUT_SECONDS)),
            llm=dict(cfg.get("llm") or {}),
        )
