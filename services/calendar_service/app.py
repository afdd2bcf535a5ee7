"""
FastAPI service for the Canvas calendar and syllabus pipeline.

It proxies Canvas, prioritizes assignments and turns both assignments and
syllabus PDFs into calendar events. Model calls can take several seconds;
when no model credential is configured the rule-based fallbacks answer
instead.
"""
from __future__ import annotations

import asyncio
import logging
import typing as t
from contextlib import asynccontextmanager

from fastapi import Body, Depends, FastAPI, Header, HTTPException, Request
from openai import AsyncOpenAI
from pydantic import TypeAdapter, ValidationError

from calendar_core.dates import days_until_due
from calendar_core.events import assignments_to_calendar_events, syllabus_events_to_calendar_events
from calendar_core.models import ProcessedAssignment
from calendar_core.priorities import prioritize_assignments
from canvas_lms.assignments import fetch_canvas_calendar, get_all_upcoming_assignments
from canvas_lms.client import CanvasClient, CanvasError
from services.shared import config
from services.shared.llm import get_llm_client
from services.shared.models import (
    CanvasCalendarResponse,
    PrioritizeResponse,
    ProcessSyllabusRequest,
    ProcessSyllabusResponse,
    StoredSyllabusResponse,
)
from syllabus_parser.parser import SyllabusProcessingError, process_syllabus
from syllabus_parser.pdf_utils import PdfExtractionError, decode_pdf_content, extract_pdf_pages_from_content
from syllabus_parser.store import SyllabusStore

logger = logging.getLogger(__name__)

NO_EVENTS_MESSAGE = "No events were found in the syllabus. Try a different file or add events manually."
_ASSIGNMENT_LIST = TypeAdapter(list[ProcessedAssignment])


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the Canvas and model clients on startup and close them on shutdown."""
    if config.CANVAS_ACCESS_TOKEN:
        app.state.canvas = CanvasClient()
    else:
        logger.warning("CANVAS_ACCESS_TOKEN is not set; Canvas endpoints will fail")
        app.state.canvas = None
    app.state.llm = get_llm_client()
    app.state.syllabus_store = SyllabusStore()

    yield

    if app.state.canvas is not None:
        await app.state.canvas.aclose()
    if app.state.llm is not None:
        await app.state.llm.close()


app = FastAPI(
    title="Calendar Service",
    description="Canvas assignments and syllabus PDFs as prioritized calendar events",
    version="1.0.0",
    lifespan=lifespan,
)


def get_canvas_client(request: Request) -> CanvasClient:
    canvas = getattr(request.app.state, "canvas", None)
    if canvas is None:
        raise HTTPException(status_code=500, detail="No Canvas API token configured")
    return canvas


def get_llm(request: Request) -> t.Optional[AsyncOpenAI]:
    return getattr(request.app.state, "llm", None)


def get_syllabus_store(request: Request) -> SyllabusStore:
    return request.app.state.syllabus_store


def get_session_key(x_session_id: str = Header(default="default")) -> str:
    return x_session_id


@app.get("/health")
async def health_check():
    """Health check endpoint for container orchestration."""
    return {"status": "healthy", "service": "calendar-service"}


@app.get("/api/canvas/assignments", response_model=list[ProcessedAssignment])
async def canvas_assignments(canvas: CanvasClient = Depends(get_canvas_client)) -> list[ProcessedAssignment]:
    """Upcoming assignments across all active courses, soonest first."""
    try:
        return await get_all_upcoming_assignments(canvas)
    except CanvasError as e:
        logger.error("Error fetching Canvas assignments: %s", e)
        raise HTTPException(status_code=500, detail=f"Failed to fetch assignments: {e}")


@app.get("/api/calendar/canvas-events", response_model=CanvasCalendarResponse)
async def canvas_calendar_events(
    canvas: CanvasClient = Depends(get_canvas_client),
    llm: t.Optional[AsyncOpenAI] = Depends(get_llm),
) -> CanvasCalendarResponse:
    """Fetch, prioritize and materialize Canvas assignments in one call."""
    try:
        calendar = await fetch_canvas_calendar(canvas, llm, config.PRIORITIZATION_MODEL)
    except CanvasError as e:
        logger.error("Error building Canvas calendar: %s", e)
        raise HTTPException(status_code=500, detail=f"Failed to fetch Canvas calendar: {e}")
    return CanvasCalendarResponse(events=calendar.events, assignments=calendar.assignments)


@app.get("/api/canvas/{path:path}")
async def canvas_proxy(
    path: str,
    request: Request,
    canvas: CanvasClient = Depends(get_canvas_client),
) -> t.Any:
    """Forward a GET to the Canvas API with the server-side token."""
    try:
        return await canvas.get(path, params=request.query_params.multi_items())
    except CanvasError as e:
        raise HTTPException(status_code=e.status_code or 500, detail=str(e))


@app.post("/api/calendar-priorities", response_model=PrioritizeResponse)
async def calendar_priorities(
    body: t.Any = Body(default=None),
    llm: t.Optional[AsyncOpenAI] = Depends(get_llm),
) -> PrioritizeResponse:
    """
    Prioritize a list of assignments and turn them into calendar events.

    The body is a JSON array of processed assignments. ``days_until_due`` is
    recomputed from ``due_at`` rather than trusted.
    """
    if not isinstance(body, list):
        raise HTTPException(status_code=400, detail="Invalid request body. Expected an array of assignments.")
    try:
        assignments = _ASSIGNMENT_LIST.validate_python(body)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=f"Invalid assignment data: {e}")

    if not assignments:
        return PrioritizeResponse(message="No assignments to prioritize.")

    assignments = [
        a.model_copy(update={"days_until_due": days_until_due(a.due_at)}) for a in assignments
    ]
    prioritized = await prioritize_assignments(assignments, llm, config.PRIORITIZATION_MODEL)
    events = assignments_to_calendar_events(prioritized)
    logger.info("Transformed %d assignments into calendar events", len(events))
    return PrioritizeResponse(
        prioritized_assignments=prioritized,
        calendar_events=events,
        message=(
            f"Successfully prioritized {len(assignments)} assignments "
            f"and created {len(events)} calendar events."
        ),
    )


@app.post("/api/syllabus/process", response_model=ProcessSyllabusResponse)
async def process_syllabus_pdf(
    request: ProcessSyllabusRequest,
    llm: t.Optional[AsyncOpenAI] = Depends(get_llm),
    store: SyllabusStore = Depends(get_syllabus_store),
    session_key: str = Depends(get_session_key),
) -> ProcessSyllabusResponse:
    """
    Extract calendar events from a base64 syllabus PDF.

    A syllabus that yields events is stored for the session. Finding no
    events is not an error.
    """
    if request.file is None or not request.file.data:
        raise HTTPException(status_code=400, detail="No file data provided")

    try:
        content = decode_pdf_content(request.file.data)
        pages = await asyncio.to_thread(extract_pdf_pages_from_content, content)
    except PdfExtractionError as e:
        raise HTTPException(status_code=400, detail=str(e))

    try:
        result = await process_syllabus(pages, llm, config.SYLLABUS_MODEL)
    except SyllabusProcessingError as e:
        logger.error("Error processing syllabus with AI: %s", e)
        raise HTTPException(status_code=500, detail=str(e))

    response = ProcessSyllabusResponse(
        events=result.events,
        calendar_events=syllabus_events_to_calendar_events(result.events),
        course_code=result.course_code,
        course_name=result.course_name,
        instructor=result.instructor,
        term=result.term,
        used_fallback=result.used_fallback,
    )
    if not result.events:
        response.message = NO_EVENTS_MESSAGE
        return response

    store.save(session_key, request.file.data, request.file.name)
    response.message = f"Extracted {len(result.events)} events from {request.file.name}."
    return response


@app.get("/api/syllabus", response_model=StoredSyllabusResponse)
async def stored_syllabus(
    store: SyllabusStore = Depends(get_syllabus_store),
    session_key: str = Depends(get_session_key),
) -> StoredSyllabusResponse:
    stored = store.get(session_key)
    if stored is None:
        raise HTTPException(status_code=404, detail="No syllabus stored")
    return StoredSyllabusResponse(
        filename=stored.filename,
        uploaded_at=stored.uploaded_at,
        has_events=stored.has_events,
        data=stored.data_url,
    )


@app.delete("/api/syllabus")
async def clear_syllabus(
    store: SyllabusStore = Depends(get_syllabus_store),
    session_key: str = Depends(get_session_key),
):
    if not store.clear(session_key):
        raise HTTPException(status_code=404, detail="No syllabus stored")
    return {"status": "cleared"}


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(
        level=config.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    uvicorn.run(app, host=config.SERVICE_HOST, port=config.SERVICE_PORT)
