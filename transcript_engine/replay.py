"""
Replay a captured realtime event log through a transcript session.

Usage:
    transcript-engine-replay events.jsonl
    transcript-engine-replay events.jsonl --json --analyze

Each non-blank line of the input is one JSON event object. The resulting
transcript is printed as text (or JSON), followed by the final call status.
"""

import argparse
import asyncio
import json
import sys
from typing import Any, Dict, Iterator, List, Optional, TextIO

from .config import AppConfig, load_config, validate_config
from .logging_config import configure_logging, get_logger
from .services.analysis import CallAnalyzer
from .services.stt import OpenAITranscriptionClient
from .session import TranscriptSession

logger = get_logger(__name__)


def iter_events(stream: TextIO) -> Iterator[Dict[str, Any]]:
    """Yield decoded events, skipping blank and undecodable lines."""
    for line_no, line in enumerate(stream, start=1):
        line = line.strip()
        if not line:
            continue
        try:
            event = json.loads(line)
        except json.JSONDecodeError as e:
            logger.warning("Skipping undecodable event line", line=line_no, error=str(e))
            continue
        yield event


async def replay(
    stream: TextIO,
    config: AppConfig,
    *,
    grace_period_sec: Optional[float] = None,
    with_fallback: bool = True,
) -> TranscriptSession:
    """Feed every event in `stream` to a new session and wait for async work."""
    if grace_period_sec is not None:
        config = config.model_copy(deep=True)
        config.termination.grace_period_sec = grace_period_sec

    stt_client = OpenAITranscriptionClient(config.stt) if with_fallback and config.stt.api_key else None
    session = TranscriptSession(config, stt_client=stt_client)
    count = 0
    for event in iter_events(stream):
        session.handle_event(event)
        count += 1
        # Let timers and fallback tasks interleave like a live stream
        await asyncio.sleep(0)

    await session.drain()
    if session.tracker.has_pending_end:
        await asyncio.sleep(config.termination.grace_period_sec + 0.05)
    logger.info("Replay finished", events=count, items=len(session.store), status=session.status.value)
    return session


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Replay realtime events into a call transcript")
    parser.add_argument("events", help="JSON-lines event capture ('-' for stdin)")
    parser.add_argument("--config", help="Path to a transcript-engine YAML file")
    parser.add_argument("--json", action="store_true", help="Print the transcript as JSON")
    parser.add_argument("--analyze", action="store_true", help="Request a call analysis after replay")
    parser.add_argument("--grace-period", type=float, default=None, help="Override the termination grace period")
    parser.add_argument("--no-fallback", action="store_true", help="Disable fallback transcription")
    return parser


async def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    config = load_config(args.config)
    configure_logging(log_level=config.logging.level, log_format=config.logging.format)

    errors, warnings = validate_config(config)
    for warning in warnings:
        logger.warning("Configuration warning", detail=warning)
    if errors:
        for error in errors:
            logger.error("Configuration error", detail=error)
        return 2

    if args.events == "-":
        session = await replay(sys.stdin, config, grace_period_sec=args.grace_period,
                               with_fallback=not args.no_fallback)
    else:
        with open(args.events, "r", encoding="utf-8") as f:
            session = await replay(f, config, grace_period_sec=args.grace_period,
                                   with_fallback=not args.no_fallback)

    try:
        print(session.transcript_json() if args.json else session.transcript_text())
        print(f"\nCall status: {session.status.value}")
        if args.analyze:
            analyzer = CallAnalyzer(config.analysis)
            try:
                print("\n" + await session.analyze(analyzer))
            finally:
                await analyzer.close()
    finally:
        await session.aclose()
    return 0


def run() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
