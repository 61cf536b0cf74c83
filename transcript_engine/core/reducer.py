"""
Event reducer: the single mutator of a session's transcript.

Each recognised realtime event maps to one handler. Handlers read and write
the ItemStore, consult the classifier, and may hand work to the fallback
transcription bridge or the call status tracker. Nothing an individual event
carries can stop the reducer: malformed events and handler failures are
logged and skipped.
"""

import json
from typing import Any, Callable, Dict, Mapping, Optional, Tuple, Union

from prometheus_client import Counter

from ..logging_config import get_logger
from .call_status import CallStatusTracker
from .classifier import LanguageClassification, classify
from .events import (
    CallEnded,
    ContentPartAdded,
    ItemCreated,
    MalformedEventError,
    OutputItemDone,
    RealtimeEvent,
    SessionCreated,
    SessionDisconnected,
    SpeechStarted,
    TranscriptDelta,
    TranscriptDone,
    TranscriptionCompleted,
    UnknownEvent,
    parse_event,
)
from .fallback_transcription import FallbackTranscriptionBridge
from .item_store import ItemStore
from .models import (
    NOTE_MALFORMED_ARGUMENTS,
    NOTE_NON_DEFAULT_LANGUAGE,
    NOTE_TARGET_LOCALE,
    ContentPart,
    ItemKind,
    ItemRole,
    ItemStatus,
    new_local_id,
    text_content,
)
from .termination import CallTerminationDetector

logger = get_logger(__name__)

_EVENTS_PROCESSED = Counter(
    "transcript_engine_events_total",
    "Realtime events processed by the reducer",
    labelnames=("event_type",),
)
_EVENTS_REJECTED = Counter(
    "transcript_engine_events_rejected_total",
    "Realtime events skipped because they were malformed or their handler failed",
    labelnames=("event_type", "reason"),
)

SPEECH_PLACEHOLDER = "..."
FUNCTION_OUTPUT_PREFIX = "Function call response: "

Classifier = Callable[[str], LanguageClassification]


def format_function_call(name: Optional[str], arguments: Any) -> Tuple[str, bool]:
    """
    Render a function call as `name(<compact JSON arguments>)`.

    Returns:
        (display text, ok). When the arguments are not valid JSON the raw
        payload is shown instead and ok is False.
    """
    label = name or "function"
    if arguments is None or arguments == "":
        return f"{label}({{}})", True
    if not isinstance(arguments, str):
        try:
            return f"{label}({json.dumps(arguments, separators=(',', ':'), ensure_ascii=False)})", True
        except (TypeError, ValueError):
            return f"{label}({arguments!r})", False
    try:
        parsed = json.loads(arguments)
    except (TypeError, ValueError):
        return f"{label}({arguments})", False
    return f"{label}({json.dumps(parsed, separators=(',', ':'), ensure_ascii=False)})", True


def _content_from_item(item: Mapping[str, Any]):
    parts = []
    for part in item.get("content") or []:
        if not isinstance(part, dict):
            continue
        text = part.get("text")
        if text is None:
            text = part.get("transcript")
        if isinstance(text, str):
            parts.append(ContentPart(text=text, type=str(part.get("type") or "text")))
    return parts


def _role(value: Any, default: ItemRole) -> Optional[ItemRole]:
    """Missing roles take `default`; unrecognised ones are kept as None."""
    if value is None or value == "":
        return default
    try:
        return ItemRole(value)
    except ValueError:
        logger.debug("Unrecognised item role", role=value)
        return None


class EventReducer:
    """Applies realtime events to one session's store and call status."""

    def __init__(
        self,
        store: ItemStore,
        tracker: CallStatusTracker,
        detector: CallTerminationDetector,
        *,
        classifier: Classifier = classify,
        bridge: Optional[FallbackTranscriptionBridge] = None,
    ):
        self.store = store
        self.tracker = tracker
        self.detector = detector
        self.bridge = bridge
        self._classify = classifier
        self._handlers: Dict[type, Callable[[Any], None]] = {
            SessionCreated: self._on_session_created,
            SpeechStarted: self._on_speech_started,
            ItemCreated: self._on_item_created,
            TranscriptionCompleted: self._on_transcription_completed,
            ContentPartAdded: self._on_content_part_added,
            TranscriptDelta: self._on_transcript_delta,
            TranscriptDone: self._on_transcript_done,
            OutputItemDone: self._on_output_item_done,
            CallEnded: self._on_call_ended,
            SessionDisconnected: self._on_disconnected,
        }

    def handle(self, event: Union[RealtimeEvent, Mapping[str, Any]]) -> None:
        """Apply one event. Never raises for event-level problems."""
        raw_type = event.get("type") if isinstance(event, Mapping) else type(event).__name__
        if isinstance(event, Mapping):
            try:
                event = parse_event(event)
            except MalformedEventError as e:
                logger.warning("Skipping malformed realtime event", event_type=e.event_type, error=str(e))
                _EVENTS_REJECTED.labels(event_type=str(e.event_type), reason="malformed").inc()
                return

        handler = self._handlers.get(type(event))
        if handler is None:
            if isinstance(event, UnknownEvent):
                logger.debug("Ignoring unrecognised realtime event", event_type=event.type)
            else:
                logger.debug("Ignoring unsupported event object", event_class=type(event).__name__)
            _EVENTS_PROCESSED.labels(event_type="unknown").inc()
            return

        _EVENTS_PROCESSED.labels(event_type=str(raw_type)).inc()
        try:
            handler(event)
        except Exception as e:
            logger.error(
                "Realtime event handler failed",
                event_type=str(raw_type),
                error=str(e),
                exc_info=True,
            )
            _EVENTS_REJECTED.labels(event_type=str(raw_type), reason="handler_error").inc()

    # ------------------------------------------------------------------ #
    # Session lifecycle
    # ------------------------------------------------------------------ #

    def _on_session_created(self, event: SessionCreated) -> None:
        dropped = self.store.clear()
        self.tracker.start("session.created")
        logger.info("New realtime session", upstream_session_id=event.session_id, dropped_items=dropped)

    def _on_call_ended(self, event: CallEnded) -> None:
        logger.info("Call ended event received", items=len(self.store))
        self.tracker.end(event.reason)

    def _on_disconnected(self, event: SessionDisconnected) -> None:
        logger.info("Realtime session disconnected; ending call", reason=event.reason)
        self.tracker.end(event.reason)

    # ------------------------------------------------------------------ #
    # Messages
    # ------------------------------------------------------------------ #

    def _on_speech_started(self, event: SpeechStarted) -> None:
        if event.item_id in self.store:
            return
        self.store.upsert(
            event.item_id,
            kind=ItemKind.MESSAGE,
            role=ItemRole.USER,
            content=text_content(SPEECH_PLACEHOLDER),
            status=ItemStatus.RUNNING,
        )

    def _on_item_created(self, event: ItemCreated) -> None:
        item_type = event.item_type
        if item_type == ItemKind.MESSAGE.value:
            self._apply_message(event.item)
        elif item_type == ItemKind.FUNCTION_CALL_OUTPUT.value:
            self._apply_function_output(event.item)
        else:
            # function_call items are displayed from response.output_item.done
            logger.debug("Ignoring created item", item_type=item_type)

    def _apply_message(self, item: Mapping[str, Any]) -> None:
        item_id = item.get("id")
        if not isinstance(item_id, str) or not item_id:
            item_id = new_local_id()
        role = _role(item.get("role"), ItemRole.ASSISTANT)
        content = _content_from_item(item)

        patch: Dict[str, Any] = {
            "kind": ItemKind.MESSAGE,
            "role": role,
            "status": ItemStatus.COMPLETED,
        }
        # An empty creation event must not wipe fragments streamed ahead of it
        if content or item_id not in self.store:
            patch["content"] = content
        stored = self.store.upsert(item_id, **patch)

        if role == ItemRole.ASSISTANT and stored.text:
            self.detector.evaluate(stored.text)

    def _on_transcription_completed(self, event: TranscriptionCompleted) -> None:
        classification = self._classify(event.transcript)
        self.store.upsert(
            event.item_id,
            kind=ItemKind.MESSAGE,
            role=ItemRole.USER,
            content=text_content(event.transcript),
            status=ItemStatus.COMPLETED,
        )
        if classification.is_non_default_language:
            self.store.annotate(event.item_id, NOTE_NON_DEFAULT_LANGUAGE)
        if classification.is_target_locale:
            self.store.annotate(event.item_id, NOTE_TARGET_LOCALE)

        if not classification.should_attempt_fallback:
            return
        logger.info(
            "Non-default language transcript detected",
            item_id=event.item_id,
            target_locale=classification.is_target_locale,
            has_audio=bool(event.audio_url),
        )
        if event.audio_url and self.bridge is not None:
            self.bridge.submit(event.item_id, event.audio_url, event.transcript)

    def _on_content_part_added(self, event: ContentPartAdded) -> None:
        self._append_assistant_fragment(event.item_id, event.output_index, event.fragment)

    def _on_transcript_delta(self, event: TranscriptDelta) -> None:
        self._append_assistant_fragment(event.item_id, event.output_index, event.delta)

    def _append_assistant_fragment(self, item_id: str, output_index: int, fragment: str) -> None:
        if output_index != 0 or not fragment:
            return
        self.store.append_content(
            item_id,
            fragment,
            kind=ItemKind.MESSAGE,
            role=ItemRole.ASSISTANT,
            status=ItemStatus.RUNNING,
        )

    def _on_transcript_done(self, event: TranscriptDone) -> None:
        if event.output_index != 0:
            return
        existing = self.store.get(event.item_id)
        if not event.text and existing is not None and existing.text:
            # Nothing authoritative to replace the streamed fragments with
            self.store.upsert(event.item_id, status=ItemStatus.COMPLETED)
            final_text = existing.text
            role = existing.role
        else:
            patch: Dict[str, Any] = {"content": text_content(event.text), "status": ItemStatus.COMPLETED}
            if existing is None:
                patch.update(kind=ItemKind.MESSAGE, role=ItemRole.ASSISTANT)
            stored = self.store.upsert(event.item_id, **patch)
            final_text = stored.text
            role = stored.role
        if role == ItemRole.ASSISTANT and final_text:
            self.detector.evaluate(final_text)

    # ------------------------------------------------------------------ #
    # Tool calls
    # ------------------------------------------------------------------ #

    def _on_output_item_done(self, event: OutputItemDone) -> None:
        if event.item_type != ItemKind.FUNCTION_CALL.value:
            return
        item = event.item
        call_id = item.get("call_id")
        item_id = item.get("id")
        if not isinstance(item_id, str) or not item_id:
            item_id = f"call-{call_id}" if call_id else new_local_id()

        name = item.get("name")
        arguments = item.get("arguments")
        display, ok = format_function_call(name, arguments)
        already_answered = self.store.find_by_call_id(call_id, ItemKind.FUNCTION_CALL_OUTPUT) is not None

        logger.info("📞 Function call requested", item_id=item_id, function_call_id=call_id, function_name=name)
        self.store.upsert(
            item_id,
            kind=ItemKind.FUNCTION_CALL,
            role=ItemRole.ASSISTANT,
            content=text_content(display),
            status=ItemStatus.COMPLETED if already_answered else ItemStatus.RUNNING,
            call_id=call_id,
            name=name,
            arguments=arguments if isinstance(arguments, str) or arguments is None else json.dumps(arguments),
        )
        if not ok:
            logger.warning("Function call arguments are not valid JSON", item_id=item_id, function_name=name)
            self.store.annotate(item_id, NOTE_MALFORMED_ARGUMENTS)

    def _apply_function_output(self, item: Mapping[str, Any]) -> None:
        call_id = item.get("call_id")
        item_id = item.get("id")
        if not isinstance(item_id, str) or not item_id:
            item_id = f"output-{call_id}" if call_id else new_local_id()
        output = item.get("output")
        if output is None:
            output = ""
        elif not isinstance(output, str):
            output = json.dumps(output, ensure_ascii=False)

        self.store.upsert(
            item_id,
            kind=ItemKind.FUNCTION_CALL_OUTPUT,
            role=ItemRole.TOOL,
            content=text_content(f"{FUNCTION_OUTPUT_PREFIX}{output}"),
            status=ItemStatus.COMPLETED,
            call_id=call_id,
            output=output,
        )

        call = self.store.find_by_call_id(call_id, ItemKind.FUNCTION_CALL)
        if call is not None and call.status != ItemStatus.COMPLETED:
            self.store.upsert(call.id, status=ItemStatus.COMPLETED)
            logger.debug("Function call completed by its output", item_id=call.id, function_call_id=call_id)
