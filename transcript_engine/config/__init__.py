"""
Configuration package for the transcript engine.

This package contains:
- schema: Pydantic models
- loaders: YAML file loading and path resolution
- security: credential injection (environment only)
- defaults: environment overrides for operational settings
"""

import os
from typing import List, Optional, Tuple

from ..logging_config import get_logger
from .defaults import (
    apply_analysis_defaults,
    apply_event_source_defaults,
    apply_fallback_defaults,
    apply_logging_defaults,
    apply_termination_defaults,
)
from .loaders import DEFAULT_CONFIG_PATH, load_yaml_with_env_expansion, resolve_config_path
from .schema import (
    AnalysisConfig,
    AppConfig,
    ClassifierConfig,
    EventSourceConfig,
    FallbackTranscriptionConfig,
    LoggingConfig,
    SpeechToTextConfig,
    TerminationConfig,
)
from .security import inject_openai_credentials

logger = get_logger(__name__)


def load_config(path: Optional[str] = None) -> AppConfig:
    """
    Load and validate configuration.

    The path comes from the argument, then TRANSCRIPT_ENGINE_CONFIG, then the
    default `config/transcript-engine.yaml`. Only the default path may be
    absent, in which case model defaults apply.

    Raises:
        FileNotFoundError: If an explicitly requested file doesn't exist
        yaml.YAMLError: If YAML parsing fails
        pydantic.ValidationError: If values fail validation
    """
    explicit = path or os.getenv("TRANSCRIPT_ENGINE_CONFIG")
    resolved = resolve_config_path(explicit or DEFAULT_CONFIG_PATH)
    if explicit or os.path.exists(resolved):
        config_data = load_yaml_with_env_expansion(resolved)
    else:
        logger.debug("No configuration file found; using defaults", path=resolved)
        config_data = {}

    inject_openai_credentials(config_data)

    apply_logging_defaults(config_data)
    apply_termination_defaults(config_data)
    apply_fallback_defaults(config_data)
    apply_analysis_defaults(config_data)
    apply_event_source_defaults(config_data)

    return AppConfig(**config_data)


def validate_config(config: AppConfig) -> Tuple[List[str], List[str]]:
    """
    Check a loaded configuration for problems that only show up at runtime.

    Returns:
        (errors, warnings)
    """
    errors: List[str] = []
    warnings: List[str] = []

    if config.classifier.target_locale_start > config.classifier.target_locale_end:
        errors.append("classifier.target_locale_start must not exceed classifier.target_locale_end")
    if config.fallback_transcription.enabled and not config.stt.api_key:
        warnings.append("Fallback transcription is enabled but OPENAI_API_KEY is not set; it will always fail")
    if not config.analysis.api_key:
        warnings.append("OPENAI_API_KEY is not set; call analysis is unavailable")
    if config.termination.enabled and not config.termination.phrases:
        warnings.append("Termination detection is enabled with an empty phrase list")
    if config.logging.level.lower() == "debug":
        warnings.append("Debug logging includes transcript previews; avoid it in production")

    return errors, warnings


__all__ = [
    "AnalysisConfig",
    "AppConfig",
    "ClassifierConfig",
    "EventSourceConfig",
    "FallbackTranscriptionConfig",
    "LoggingConfig",
    "SpeechToTextConfig",
    "TerminationConfig",
    "load_config",
    "validate_config",
]
