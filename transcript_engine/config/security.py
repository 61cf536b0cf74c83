"""
Credential injection for configuration.

SECURITY POLICY:
- API keys MUST NEVER be read from YAML files
- All credentials come from environment variables only; any YAML value is
  overwritten so a key committed by mistake is never used
"""

import os
from typing import Any, Dict

_CREDENTIAL_SECTIONS = ("stt", "analysis")


def _section(config_data: Dict[str, Any], name: str) -> Dict[str, Any]:
    block = config_data.get(name)
    if not isinstance(block, dict):
        block = {}
    config_data[name] = block
    return block


def inject_openai_credentials(config_data: Dict[str, Any]) -> None:
    """
    Inject OpenAI credentials into every section that calls OpenAI.

    Environment variables:
    - OPENAI_API_KEY: API key for speech-to-text and analysis
    - OPENAI_ORGANIZATION: optional organization header

    Args:
        config_data: Configuration dictionary to modify in-place
    """
    api_key = os.getenv("OPENAI_API_KEY") or None
    organization = os.getenv("OPENAI_ORGANIZATION") or None
    for name in _CREDENTIAL_SECTIONS:
        block = _section(config_data, name)
        block["api_key"] = api_key
        block["organization"] = organization
