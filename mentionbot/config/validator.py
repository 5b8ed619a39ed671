"""
Configuration validator for the merged config.yaml + environment settings.

Validates structure, value types, and common misconfigurations.
"""

from __future__ import annotations

import logging
from typing import Any


logger = logging.getLogger(__name__)

TREND_FAILURE_POLICIES = ("abort", "skip")


class ConfigValidationError(Exception):
    """Raised when config validation fails."""
    pass


def _check_id_list(cfg: dict[str, Any], key: str, errors: list[str]) -> None:
    if key not in cfg:
        return
    ids = cfg[key]
    if not isinstance(ids, list):
        errors.append(f"'{key}' must be a list, got {type(ids).__name__}")
        return
    for i, value in enumerate(ids):
        if not isinstance(value, (str, int)) or isinstance(value, bool):
            errors.append(f"'{key}[{i}]' must be an id string or integer, got {type(value).__name__}")
        elif not str(value).strip().isdigit():
            errors.append(f"'{key}[{i}]' is not a numeric Discord id: {value!r}")


def _check_positive_number(section: dict[str, Any], name: str, key: str, errors: list[str]) -> None:
    if key not in section:
        return
    value = section[key]
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        errors.append(f"'{name}.{key}' must be a number, got {type(value).__name__}")
    elif value <= 0:
        errors.append(f"'{name}.{key}' must be greater than 0, got {value}")


def validate_config(cfg: dict[str, Any], config_path: str = "config.yaml") -> None:
    """
    Validation of the merged configuration.

    Raises ConfigValidationError if validation fails.
    Logs detailed error messages before raising.

    Args:
        cfg: The merged config dictionary
        config_path: Path to config file (for error messages)

    Raises:
        ConfigValidationError: If validation fails
    """
    errors = []
    warnings = []

    # ── Check root structure ────────────────────────────────────────────────
    if not isinstance(cfg, dict):
        errors.append(f"Config root must be a mapping, got {type(cfg).__name__}")
        cfg = {}

    # ── Token ───────────────────────────────────────────────────────────────
    if not cfg.get("bot_token"):
        errors.append("Missing bot token: set DISCORD_TOKEN or 'bot_token'")

    # ── Id lists ────────────────────────────────────────────────────────────
    for key in ("allowed_servers", "excluded_users", "admin_ids"):
        _check_id_list(cfg, key, errors)

    if isinstance(cfg.get("allowed_servers"), list) and not cfg["allowed_servers"]:
        warnings.append("'allowed_servers' is empty: the bot will refuse every server (DMs still work)")

    if "enable_trend" in cfg and not isinstance(cfg["enable_trend"], bool):
        errors.append(f"'enable_trend' must be boolean, got {type(cfg['enable_trend']).__name__}")

    # ── Validate limits section ─────────────────────────────────────────────
    if "limits" in cfg:
        limits = cfg["limits"]
        if not isinstance(limits, dict):
            errors.append(f"'limits' must be a mapping, got {type(limits).__name__}")
        else:
            for key in ("max_length", "history_size", "rate_limit_seconds"):
                _check_positive_number(limits, "limits", key, errors)
            for key in ("max_length", "history_size"):
                if key in limits and isinstance(limits[key], float):
                    errors.append(f"'limits.{key}' must be an integer, got float")

    # ── Validate llm section ────────────────────────────────────────────────
    llm = cfg.get("llm")
    if llm is not None:
        if not isinstance(llm, dict):
            errors.append(f"'llm' must be a mapping, got {type(llm).__name__}")
        else:
            for key in ("base_url", "api_key", "text_model", "vision_model"):
                if key in llm and not isinstance(llm[key], str):
                    errors.append(f"'llm.{key}' must be a string, got {type(llm[key]).__name__}")
            _check_positive_number(llm, "llm", "timeout_seconds", errors)
            if "max_retries" in llm:
                retries = llm["max_retries"]
                if isinstance(retries, bool) or not isinstance(retries, int) or retries < 0:
                    errors.append(f"'llm.max_retries' must be a non-negative integer, got {retries!r}")
    if not (isinstance(llm, dict) and llm.get("api_key")):
        warnings.append("No LLM API key: set TOGETHER_API_KEY or 'llm.api_key'")

    # ── Validate trends section ─────────────────────────────────────────────
    if "trends" in cfg:
        trends = cfg["trends"]
        if not isinstance(trends, dict):
            errors.append(f"'trends' must be a mapping, got {type(trends).__name__}")
        else:
            _check_positive_number(trends, "trends", "timeout_seconds", errors)
            policy = trends.get("on_failure", "abort")
            if policy not in TREND_FAILURE_POLICIES:
                errors.append(
                    f"'trends.on_failure' must be one of {', '.join(TREND_FAILURE_POLICIES)}, "
                    f"got {policy!r}"
                )

    # ── Log warnings ────────────────────────────────────────────────────────
    for warning in warnings:
        logger.warning("Config warning: %s", warning)

    # ── Log errors and raise if any ─────────────────────────────────────────
    if errors:
        logger.error("=" * 70)
        logger.error("CONFIG VALIDATION FAILED (%s)", config_path)
        logger.error("=" * 70)
        for i, error in enumerate(errors, 1):
            logger.error("[%d] %s", i, error)
        logger.error("=" * 70)
        logger.error("Please fix the errors above and restart the bot.")
        logger.error("=" * 70)
        raise ConfigValidationError(f"Config validation failed with {len(errors)} error(s)")
