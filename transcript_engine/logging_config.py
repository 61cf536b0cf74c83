"""
Structured Logging Configuration

Configures structlog on top of stdlib logging. Events are rendered as JSON
(default) or as colorized console lines, and carry the transcript session id
of the conversation that produced them.
"""

import contextvars
import logging
import os
import sys
import uuid
from logging.handlers import RotatingFileHandler
from typing import Any, Dict, Optional

import structlog
from structlog import dev as structlog_dev

SERVICE_NAME = "transcript-engine"

# Session id of the conversation currently being reduced
session_id_var: contextvars.ContextVar = contextvars.ContextVar("session_id", default=None)

_SENSITIVE_KEYS = (
    "apikey",
    "apikeys",
    "token",
    "accesstoken",
    "refreshtoken",
    "bearer",
    "password",
    "passwd",
    "pass",
    "pwd",
    "authorization",
    "credential",
    "credentials",
    "secret",
    "secrets",
    "privatekey",
    "clientsecret",
)


def get_session_id() -> Optional[str]:
    return session_id_var.get()


def set_session_id(value: Optional[str] = None) -> str:
    """Bind a session id to the current context, generating one if needed."""
    if value is None:
        value = uuid.uuid4().hex[:12]
    session_id_var.set(value)
    return value


def add_session_id(logger, method_name, event_dict):
    session_id = get_session_id()
    if session_id and "session_id" not in event_dict:
        event_dict["session_id"] = session_id
    return event_dict


def add_service_context(logger, method_name, event_dict):
    event_dict["service"] = SERVICE_NAME
    component = event_dict.get("logger")
    if not component:
        component = getattr(getattr(logger, "logger", None), "name", None) or getattr(logger, "name", "unknown")
    event_dict["component"] = component
    return event_dict


def _is_sensitive_key(key: Any) -> bool:
    normalized = str(key).lower().replace("_", "").replace("-", "")
    # Suffix match catches "openai_api_key" without matching "passthrough"
    return any(normalized == pattern or normalized.endswith(pattern) for pattern in _SENSITIVE_KEYS)


def _redact(value: Any) -> Any:
    if value is None or isinstance(value, bool):
        return value
    if isinstance(value, str):
        if not value:
            return ""
        if len(value) > 4:
            return f"{value[:2]}***REDACTED***"
        return "***REDACTED***"
    if isinstance(value, (list, tuple)):
        return [_redact(v) for v in value]
    if isinstance(value, dict):
        return {k: _redact(v) for k, v in value.items()}
    return "***REDACTED***"


def _sanitize(data: Dict[Any, Any]) -> Dict[Any, Any]:
    sanitized = {}
    for key, value in data.items():
        if _is_sensitive_key(key):
            sanitized[key] = _redact(value)
        elif isinstance(value, dict):
            sanitized[key] = _sanitize(value)
        elif isinstance(value, (list, tuple)):
            sanitized[key] = [_sanitize(v) if isinstance(v, dict) else v for v in value]
        else:
            sanitized[key] = value
    return sanitized


def sanitize_secrets(logger, method_name, event_dict):
    """
    Redact API keys, tokens, passwords and similar values from log events.

    Matching is done on normalized key names (case and separators ignored),
    recursing into nested dicts and lists of dicts. Redacted strings keep
    their first two characters so an "sk" key prefix is still recognisable.
    """
    return _sanitize(event_dict)


def configure_logging(log_level: str = "INFO", log_format: Optional[str] = None, log_to_file: bool = False,
                      log_file_path: str = "transcript-engine.log") -> None:
    """
    Set up structured logging for the transcript engine.

    Environment overrides (optional):
      - LOG_LEVEL: debug|info|warning|error|critical
      - LOG_FORMAT: json|console (default: json)
      - LOG_COLOR: 0|1 (console only; default: 1)
      - LOG_TO_FILE: 0|1 (default: 0)
      - LOG_FILE_PATH: path of the rotating log file
      - LOG_SHOW_TRACEBACKS: auto|always|never (auto shows them at debug)
    """
    env_level = os.getenv("LOG_LEVEL")
    if env_level:
        log_level = env_level
    level_name = str(log_level).upper()
    level_value = getattr(logging, level_name, logging.INFO)

    if os.getenv("LOG_TO_FILE") is not None:
        log_to_file = os.getenv("LOG_TO_FILE", "0").strip().lower() in ("1", "true", "yes")
    log_file_path = os.getenv("LOG_FILE_PATH", log_file_path)
    log_format = (os.getenv("LOG_FORMAT") or log_format or "json").strip().lower()
    log_color = os.getenv("LOG_COLOR", "1").strip().lower() not in ("0", "false")

    tb_mode = os.getenv("LOG_SHOW_TRACEBACKS", "auto").strip().lower()
    if tb_mode == "always":
        show_tracebacks = True
    elif tb_mode == "never":
        show_tracebacks = False
    else:
        show_tracebacks = level_name == "DEBUG"

    def suppress_exc_info_if_disabled(logger, method_name, event_dict):
        if not show_tracebacks and event_dict.get("exc_info"):
            event_dict.pop("exc_info", None)
        return event_dict

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            add_service_context,
            add_session_id,
            sanitize_secrets,
            suppress_exc_info_if_disabled,
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    if log_format == "console":
        renderer = structlog_dev.ConsoleRenderer(colors=log_color)
    else:
        renderer = structlog.processors.JSONRenderer()

    formatter = structlog.stdlib.ProcessorFormatter(
        processor=renderer,
        foreign_pre_chain=[
            structlog.stdlib.add_logger_name,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
        ],
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(level_value)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_to_file:
        try:
            directory = os.path.dirname(log_file_path)
            if directory:
                os.makedirs(directory, exist_ok=True)
            file_handler = RotatingFileHandler(log_file_path, maxBytes=10 * 1024 * 1024, backupCount=5)
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)
        except OSError as e:
            get_logger(__name__).warning(
                "File logging disabled; continuing with console only",
                error=str(e),
                configured_path=log_file_path,
            )

    for noisy in ("websockets", "websockets.client", "aiohttp", "asyncio", "uvicorn.access"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def get_logger(name: str):
    """Get a structlog logger."""
    return structlog.get_logger(name)
