"""FastAPI REST, SSE and WebSocket interface for the ADC monitor.

Single-process service: one SamplingLoop task reads the ADC every
SAMPLE_INTERVAL_S and publishes each sample to a SharedState that the
request handlers read from:
- GET/POST /threshold read and overwrite the alert threshold
- GET /events (SSE) and WS /stream push every new sample

Error mapping:
- AdcError → 503
- Request validation → 422 (FastAPI default)
"""

import asyncio
import json
import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional

import uvicorn
from dotenv import load_dotenv
from fastapi import APIRouter, Depends, FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse, StreamingResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel, Field

from adc_lib import (
    AdcError,
    AlertDispatcher,
    AlertSettings,
    NtfyClient,
    SamplingLoop,
    SharedState,
    create_sampler,
)
from adc_lib.models import PhysicalSample
from adc_lib.transport import Sampler

# =============================================================================
# Environment Configuration
# =============================================================================

load_dotenv()

API_HOST = os.getenv("API_HOST", "0.0.0.0")
API_PORT = int(os.getenv("API_PORT", "3000"))
ADC_BACKEND = os.getenv("ADC_BACKEND", "auto")
I2C_BUS = int(os.getenv("I2C_BUS", "1"))
ADC_ADDRESS = int(os.getenv("ADC_ADDRESS", "0x48"), 0)
SAMPLE_INTERVAL_S = float(os.getenv("SAMPLE_INTERVAL_S", "0.1"))
STREAM_BACKLOG = int(os.getenv("STREAM_BACKLOG", "100"))
DEFAULT_THRESHOLD = int(os.getenv("DEFAULT_THRESHOLD", "10000"))
ALERTS_ENABLED = os.getenv("ALERTS_ENABLED", "true").lower() in ("1", "true", "yes")
SSE_KEEPALIVE_S = float(os.getenv("SSE_KEEPALIVE_S", "15"))
STATIC_DIR = Path(os.getenv("STATIC_DIR", str(Path(__file__).parent / "static")))
CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*").split(",")

API_VERSION = "0.1.0"

INT32_MIN = -(2**31)
INT32_MAX = 2**31 - 1

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# =============================================================================
# Request/Response Models
# =============================================================================

class ThresholdRequest(BaseModel):
    """Request body for POST /threshold."""
    value: int = Field(..., ge=INT32_MIN, le=INT32_MAX)


class ThresholdResponse(BaseModel):
    """Response for GET/POST /threshold."""
    threshold: int


class SamplingStats(BaseModel):
    running: bool
    cycles: int
    bus_errors: int
    alerts: int


class HealthResponse(BaseModel):
    """Response for GET /health."""
    service: str
    version: str
    status: str
    backend: Optional[str]
    threshold: int
    subscribers: int
    published: int
    sampling: Optional[SamplingStats]


# =============================================================================
# Dependencies
# =============================================================================

def get_state(request: Request) -> SharedState:
    return request.app.state.shared


def format_sse(sample: PhysicalSample) -> str:
    """Render one sample as a Server-Sent Events message."""
    return f"data: {json.dumps(sample.to_dict())}\n\n"


async def sample_events(
    state: SharedState, keepalive_s: float = SSE_KEEPALIVE_S
) -> AsyncIterator[str]:
    """Yield SSE messages for one client until its subscription closes or it goes away.

    The subscription is created on first iteration and closed when the
    generator finishes, so a client that leaves before streaming starts
    leaves nothing registered.

    Emits a comment line every keepalive_s seconds without samples so proxies
    keep the connection open.
    """
    subscription = state.subscribe()
    logger.info(f"SSE client connected ({state.channel.subscriber_count} subscribers)")
    try:
        while True:
            try:
                sample = await asyncio.wait_for(subscription.get(), timeout=keepalive_s)
            except asyncio.TimeoutError:
                yield ": keepalive\n\n"
                continue
            if sample is None:
                break
            yield format_sse(sample)
    finally:
        subscription.close()
        logger.info("SSE client disconnected")


async def _wait_for_disconnect(websocket: WebSocket) -> None:
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            return


# =============================================================================
# Routes
# =============================================================================

router = APIRouter()


@router.get("/threshold", response_model=ThresholdResponse)
async def get_threshold(state: SharedState = Depends(get_state)):
    """Get the current alert threshold (raw ADC counts)."""
    return ThresholdResponse(threshold=state.current_threshold())


@router.post("/threshold", response_model=ThresholdResponse)
async def set_threshold(req: ThresholdRequest, state: SharedState = Depends(get_state)):
    """Overwrite the alert threshold.

    Any 32-bit integer is accepted, including negative values.
    """
    logger.info(f"[THRESHOLD] Request: value={req.value}")
    return ThresholdResponse(threshold=state.set_threshold(req.value))


@router.get("/events")
async def events_stream(state: SharedState = Depends(get_state)):
    """Server-Sent Events stream of live samples.

    Each event carries one JSON sample:
        data: {"raw_value": 1234, "voltage": 0.15425, "timestamp": 1700000000, "threshold": 10000}

    Usage:
        const source = new EventSource("/events");
        source.onmessage = (event) => console.log(JSON.parse(event.data));
    """
    return StreamingResponse(
        sample_events(state),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@router.websocket("/stream")
async def websocket_stream(websocket: WebSocket):
    """WebSocket push of live samples (same JSON shape as /events)."""
    state: SharedState = websocket.app.state.shared

    await websocket.accept()
    logger.info(f"WebSocket client connected: {websocket.client}")

    subscription = state.subscribe()
    disconnected = asyncio.ensure_future(_wait_for_disconnect(websocket))
    try:
        while True:
            next_sample = asyncio.ensure_future(subscription.get())
            done, _ = await asyncio.wait(
                {next_sample, disconnected}, return_when=asyncio.FIRST_COMPLETED
            )
            if disconnected in done:
                next_sample.cancel()
                break

            sample = next_sample.result()
            if sample is None:
                break
            await websocket.send_json(sample.to_dict())

    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.error(f"WebSocket error: {e}", exc_info=True)
    finally:
        disconnected.cancel()
        subscription.close()
        logger.info(f"WebSocket client disconnected: {websocket.client}")


@router.get("/health", response_model=HealthResponse)
async def health(request: Request, state: SharedState = Depends(get_state)):
    """Service health plus sampling loop counters."""
    sampling: Optional[SamplingLoop] = request.app.state.sampling
    return HealthResponse(
        service="ADC Monitor",
        version=API_VERSION,
        status="online",
        backend=request.app.state.backend,
        threshold=state.current_threshold(),
        subscribers=state.channel.subscriber_count,
        published=state.channel.published,
        sampling=SamplingStats(**sampling.stats()) if sampling else None,
    )


@router.get("/")
async def root(request: Request):
    """Serve the live view page, or the health payload when no static dir exists."""
    index = STATIC_DIR / "index.html"
    if index.exists():
        return FileResponse(index)
    return await health(request, get_state(request))


# =============================================================================
# App Factory
# =============================================================================

def create_app(
    state: Optional[SharedState] = None,
    sampler: Optional[Sampler] = None,
    dispatcher: Optional[AlertDispatcher] = None,
    *,
    start_sampling: bool = True,
    alerts_enabled: bool = ALERTS_ENABLED,
    interval_s: float = SAMPLE_INTERVAL_S,
) -> FastAPI:
    """Build the FastAPI app around one SharedState.

    Collaborators not passed in are built from the environment at startup.
    Missing NTFY_* variables abort startup when alerts are enabled.

    Args:
        state: Shared threshold and sample channel
        sampler: ADC sampler; default picks i2c or simulated via ADC_BACKEND
        dispatcher: Alert dispatcher; default posts to NTFY_URL
        start_sampling: Start the SamplingLoop task on startup
        alerts_enabled: Build a dispatcher from env when none is given
        interval_s: Delay between sampling cycles
    """
    shared = state or SharedState(initial_threshold=DEFAULT_THRESHOLD, backlog=STREAM_BACKLOG)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        alerts = dispatcher
        if alerts is None and alerts_enabled:
            alerts = AlertDispatcher(NtfyClient(AlertSettings.from_env()))

        adc = sampler or create_sampler(ADC_BACKEND, bus_number=I2C_BUS, address=ADC_ADDRESS)
        sampling = SamplingLoop(adc, shared, dispatcher=alerts, interval_s=interval_s)
        app.state.sampling = sampling
        app.state.backend = getattr(adc, "backend", type(adc).__name__)

        logger.info("=" * 60)
        logger.info("ADC Monitor API started")
        logger.info(f"Version: {API_VERSION}")
        logger.info(f"Backend: {app.state.backend}")
        logger.info(f"I2C Bus: {I2C_BUS}, Address: 0x{ADC_ADDRESS:02x}")
        logger.info(f"Sample Interval: {interval_s}s")
        logger.info(f"Initial Threshold: {shared.current_threshold()}")
        logger.info(f"Alerts: {'enabled' if alerts else 'disabled'}")
        logger.info(f"Static Dir: {STATIC_DIR}")
        logger.info("=" * 60)

        if start_sampling:
            sampling.start()
        try:
            yield
        finally:
            logger.info("Shutting down ADC Monitor API...")
            await sampling.stop()
            if alerts is not None:
                await alerts.drain()
            adc.close()
            logger.info("Shutdown complete")

    app = FastAPI(
        title="ADC Monitor API",
        description="Live ADS1115 samples with threshold alerts",
        version=API_VERSION,
        lifespan=lifespan,
    )
    app.state.shared = shared
    app.state.sampling = None
    app.state.backend = None

    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_404_requests(request: Request, call_next):
        """Log all 404 responses to help debug missing routes."""
        response = await call_next(request)
        if response.status_code == 404:
            logger.warning(f"404 NOT FOUND: {request.method} {request.url.path}")
        return response

    @app.exception_handler(AdcError)
    async def adc_error_handler(request: Request, exc: AdcError):
        """Map library errors to 503 Service Unavailable."""
        logger.error(f"{type(exc).__name__}: {exc}")
        return JSONResponse(status_code=503, content={"detail": str(exc)})

    app.include_router(router)

    if STATIC_DIR.exists():
        app.mount("/static", StaticFiles(directory=str(STATIC_DIR)), name="static")

    return app


app = create_app()


def main() -> None:
    """Run the API with uvicorn."""
    uvicorn.run(app, host=API_HOST, port=API_PORT, log_level=LOG_LEVEL.lower())


if __name__ == "__main__":
    main()
