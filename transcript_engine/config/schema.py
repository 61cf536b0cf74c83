"""
Pydantic models for the transcript engine configuration.
"""

from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from ..core.classifier import DEFAULT_TARGET_LOCALE_END, DEFAULT_TARGET_LOCALE_START
from ..core.termination import DEFAULT_END_CALL_PHRASES, DEFAULT_GRACE_PERIOD_SEC

DEFAULT_ANALYSIS_SYSTEM_PROMPT = (
    "You are an expert call analyzer providing detailed insights on conversation transcripts."
)
DEFAULT_ANALYSIS_INSTRUCTIONS = (
    "Analyze this call and summarize the conversation, the key points raised by each side, "
    "and any follow-up actions. Format the response with clear headings and bullet points."
)


class LoggingConfig(BaseModel):
    level: str = Field(default="info")  # debug|info|warning|error|critical
    format: str = Field(default="json")  # json|console


class TerminationConfig(BaseModel):
    enabled: bool = Field(default=True)
    grace_period_sec: float = Field(default=DEFAULT_GRACE_PERIOD_SEC, ge=0.0)
    phrases: List[str] = Field(default_factory=lambda: list(DEFAULT_END_CALL_PHRASES))


class ClassifierConfig(BaseModel):
    # Unicode block treated as the secondary locale (default: Devanagari)
    target_locale_start: int = Field(default=DEFAULT_TARGET_LOCALE_START, ge=0)
    target_locale_end: int = Field(default=DEFAULT_TARGET_LOCALE_END, ge=0)

    @field_validator("target_locale_start", "target_locale_end", mode="before")
    @classmethod
    def _parse_codepoint(cls, value):
        # Accept "0x0900" / "U+0900" / "0900" strings from YAML
        if isinstance(value, str):
            text = value.strip().upper()
            if text.startswith("U+"):
                text = text[2:]
            return int(text, 16)
        return value


class SpeechToTextConfig(BaseModel):
    api_key: Optional[str] = None
    organization: Optional[str] = None
    base_url: str = Field(default="https://api.openai.com/v1/audio/transcriptions")
    model: str = Field(default="whisper-1")
    response_format: str = Field(default="text")  # text|json
    language: Optional[str] = None
    prompt: Optional[str] = None
    request_timeout_sec: float = Field(default=30.0, gt=0)


class FallbackTranscriptionConfig(BaseModel):
    enabled: bool = Field(default=True)
    fetch_timeout_sec: float = Field(default=10.0, gt=0)
    audio_filename: str = Field(default="speech.webm")
    audio_content_type: str = Field(default="audio/webm")


class AnalysisConfig(BaseModel):
    api_key: Optional[str] = None
    organization: Optional[str] = None
    chat_base_url: str = Field(default="https://api.openai.com/v1")
    model: str = Field(default="gpt-4o")
    system_prompt: str = Field(default=DEFAULT_ANALYSIS_SYSTEM_PROMPT)
    instructions: str = Field(default=DEFAULT_ANALYSIS_INSTRUCTIONS)
    request_timeout_sec: float = Field(default=60.0, gt=0)


class EventSourceConfig(BaseModel):
    url: Optional[str] = None
    reconnect_attempts: int = Field(default=5, ge=0)
    reconnect_backoff_sec: float = Field(default=0.5, ge=0)


class AppConfig(BaseModel):
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    termination: TerminationConfig = Field(default_factory=TerminationConfig)
    classifier: ClassifierConfig = Field(default_factory=ClassifierConfig)
    stt: SpeechToTextConfig = Field(default_factory=SpeechToTextConfig)
    fallback_transcription: FallbackTranscriptionConfig = Field(default_factory=FallbackTranscriptionConfig)
    analysis: AnalysisConfig = Field(default_factory=AnalysisConfig)
    event_source: EventSourceConfig = Field(default_factory=EventSourceConfig)
