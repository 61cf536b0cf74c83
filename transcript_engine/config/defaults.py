"""
Environment overrides for operational settings.

Each helper reads a small set of environment variables and writes them into
the raw configuration dictionary before validation. Invalid numeric values
are ignored so the YAML (or model default) stays in effect.
"""

import os
from typing import Any, Dict

_TRUE_VALUES = ("1", "true", "yes", "on")


def _section(config_data: Dict[str, Any], name: str) -> Dict[str, Any]:
    block = config_data.get(name)
    if not isinstance(block, dict):
        block = {}
    config_data[name] = block
    return block


def _env_bool(name: str):
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return None
    return raw.strip().lower() in _TRUE_VALUES


def apply_logging_defaults(config_data: Dict[str, Any]) -> None:
    """
    Environment variables:
    - LOG_LEVEL: debug|info|warning|error|critical
    - LOG_FORMAT: json|console
    """
    block = _section(config_data, "logging")
    if os.getenv("LOG_LEVEL"):
        block["level"] = os.getenv("LOG_LEVEL").strip().lower()
    if os.getenv("LOG_FORMAT"):
        block["format"] = os.getenv("LOG_FORMAT").strip().lower()


def apply_termination_defaults(config_data: Dict[str, Any]) -> None:
    """
    Environment variables:
    - TERMINATION_ENABLED: enable/disable closing-phrase detection
    - TERMINATION_GRACE_PERIOD_SEC: delay before the call is marked ended
    """
    block = _section(config_data, "termination")
    enabled = _env_bool("TERMINATION_ENABLED")
    if enabled is not None:
        block["enabled"] = enabled
    grace = os.getenv("TERMINATION_GRACE_PERIOD_SEC")
    if grace:
        try:
            block["grace_period_sec"] = float(grace)
        except ValueError:
            pass


def apply_fallback_defaults(config_data: Dict[str, Any]) -> None:
    """
    Environment variables:
    - FALLBACK_TRANSCRIPTION_ENABLED: enable/disable re-transcription
    - STT_MODEL: speech-to-text model name
    """
    block = _section(config_data, "fallback_transcription")
    enabled = _env_bool("FALLBACK_TRANSCRIPTION_ENABLED")
    if enabled is not None:
        block["enabled"] = enabled
    if os.getenv("STT_MODEL"):
        _section(config_data, "stt")["model"] = os.getenv("STT_MODEL").strip()


def apply_analysis_defaults(config_data: Dict[str, Any]) -> None:
    """
    Environment variables:
    - ANALYSIS_MODEL: chat model used for call analysis
    """
    if os.getenv("ANALYSIS_MODEL"):
        _section(config_data, "analysis")["model"] = os.getenv("ANALYSIS_MODEL").strip()


def apply_event_source_defaults(config_data: Dict[str, Any]) -> None:
    """
    Environment variables:
    - REALTIME_EVENTS_URL: websocket URL of the realtime event relay
    """
    url = os.getenv("REALTIME_EVENTS_URL")
    if url and url.strip():
        _section(config_data, "event_source")["url"] = url.strip()
