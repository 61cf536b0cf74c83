"""
FastAPI application.

Routes:
- POST /api/transcribe: multipart `audio` upload -> {"transcription": str}
- POST /api/analyze-call: {"items": [...]} -> {"analysis": str}
- POST /api/transcript/text: {"items": [...]} -> text/plain attachment
- GET /health, GET /metrics
"""

from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import APIRouter, FastAPI, File, HTTPException, Request, UploadFile
from fastapi.responses import PlainTextResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from ..config import AppConfig
from ..core.models import Item
from ..export import format_transcript_text, transcript_filename
from ..logging_config import get_logger
from ..services.analysis import CallAnalyzer
from ..services.base import AnalysisClient, SpeechToTextClient, TranscriptionError
from ..services.stt import OpenAITranscriptionClient

logger = get_logger(__name__)

router = APIRouter()


async def _items_from_request(request: Request) -> List[Item]:
    try:
        body = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="Request body must be JSON")

    raw_items = body.get("items") if isinstance(body, dict) else None
    if not isinstance(raw_items, list):
        raise HTTPException(status_code=400, detail="Invalid request. 'items' array is required.")

    items = []
    for index, raw in enumerate(raw_items):
        if not isinstance(raw, dict):
            raise HTTPException(status_code=400, detail=f"Item {index} must be an object")
        try:
            items.append(Item.from_dict(raw))
        except (TypeError, ValueError) as e:
            raise HTTPException(status_code=400, detail=f"Item {index} is invalid: {e}")
    return items


@router.post("/api/transcribe")
async def transcribe(request: Request, audio: Optional[UploadFile] = File(None)):
    if audio is None:
        raise HTTPException(status_code=400, detail="No audio file provided")
    payload = await audio.read()
    if not payload:
        raise HTTPException(status_code=400, detail="No audio file provided")

    stt_client: SpeechToTextClient = request.app.state.stt_client
    logger.info("Transcription requested", filename=audio.filename, content_type=audio.content_type, size=len(payload))
    try:
        transcription = await stt_client.transcribe(
            payload,
            filename=audio.filename or "speech.webm",
            content_type=audio.content_type or "audio/webm",
        )
    except TranscriptionError as e:
        logger.error("Transcription failed", error=str(e), status=e.status)
        raise HTTPException(status_code=500, detail=f"Transcription error: {e}")
    return {"transcription": transcription}


@router.post("/api/analyze-call")
async def analyze_call(request: Request):
    items = await _items_from_request(request)
    analyzer: AnalysisClient = request.app.state.analyzer
    analysis = await analyzer.analyze(items)
    return {"analysis": analysis}


@router.post("/api/transcript/text")
async def transcript_text(request: Request):
    items = await _items_from_request(request)
    filename = transcript_filename()
    return PlainTextResponse(
        format_transcript_text(items),
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/health")
async def health_check():
    return {"status": "healthy"}


@router.get("/metrics")
async def metrics():
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


def create_app(
    config: Optional[AppConfig] = None,
    *,
    stt_client: Optional[SpeechToTextClient] = None,
    analyzer: Optional[AnalysisClient] = None,
) -> FastAPI:
    """Build the API app; collaborators default to the OpenAI clients."""
    config = config or AppConfig()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await app.state.stt_client.close()
        await app.state.analyzer.close()

    app = FastAPI(title="Transcript Engine API", lifespan=lifespan)
    app.state.config = config
    app.state.stt_client = stt_client or OpenAITranscriptionClient(config.stt)
    app.state.analyzer = analyzer or CallAnalyzer(config.analysis)
    app.include_router(router)
    return app


def main() -> None:
    import os

    import uvicorn

    from ..config import load_config
    from ..logging_config import configure_logging

    config = load_config()
    configure_logging(log_level=config.logging.level, log_format=config.logging.format)
    uvicorn.run(
        create_app(config),
        host=os.getenv("UVICORN_HOST", "127.0.0.1"),
        port=int(os.getenv("UVICORN_PORT", "8000")),
        log_config=None,
    )


if __name__ == "__main__":
    main()
