"""
FastAPI application for the network health monitor.
Serves the dashboard's polling contract on top of the monitoring engine.
"""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Depends, Form, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from . import __version__
from .config import settings
from .errors import HostLimitReached, InvalidHost, MonitorError
from .monitor import NetworkMonitor, get_monitor
from .monitoring import trace_to_wire
from .schemas import (
    ErrorResponse,
    HealthResponse,
    HostActionResponse,
    HostDetailResponse,
    MetricsResponse,
    TracerouteResponse,
    TraceRequestResponse,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events."""
    # Startup
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    monitor = get_monitor()
    for host in settings.default_hosts:
        try:
            monitor.add_host(host)
        except (InvalidHost, HostLimitReached) as e:
            logger.error(f"Skipping default host: {e}")

    monitor.start()
    print(f"✓ Monitoring {len(monitor.registry)} host(s)")
    print(f"✓ Server running at http://{settings.api_host}:{settings.api_port}")

    yield

    # Shutdown
    monitor.stop()
    print("✓ Monitor stopped")


# Create FastAPI app with lifespan
app = FastAPI(
    title=settings.app_name,
    description="Network health monitor API",
    version=__version__,
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Add middleware to prevent caching of live data
class NoCacheMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        # The dashboard polls these every 3 seconds
        if request.url.path == "/metrics" or request.url.path.startswith("/api/"):
            response.headers["Cache-Control"] = "no-cache, no-store, must-revalidate"
            response.headers["Pragma"] = "no-cache"
            response.headers["Expires"] = "0"
        return response


app.add_middleware(NoCacheMiddleware)


@app.exception_handler(MonitorError)
async def monitor_error_handler(request: Request, exc: MonitorError):
    """Render engine errors as ``{"error": ...}`` with the error's status code."""
    return JSONResponse(status_code=exc.status_code, content={"error": str(exc)})


# ============================================================================
# Snapshot Endpoints
# ============================================================================


@app.get("/metrics", response_model=MetricsResponse)
def get_metrics(monitor: NetworkMonitor = Depends(get_monitor)):
    """
    Current per-host metrics and the alert feed.
    Alerts are ordered oldest first; the dashboard reverses them for display.
    """
    return monitor.snapshots.snapshot()


@app.get(
    "/api/traceroute/{host}",
    response_model=TracerouteResponse,
    responses={404: {"model": ErrorResponse}},
)
def get_traceroute(host: str, monitor: NetworkMonitor = Depends(get_monitor)):
    """Latest traceroute for a monitored host."""
    result = monitor.snapshots.traceroute(monitor.canonical(host))
    return trace_to_wire(result)


@app.post(
    "/api/traceroute/{host}",
    response_model=TraceRequestResponse,
    status_code=status.HTTP_202_ACCEPTED,
    responses={404: {"model": ErrorResponse}},
)
def trigger_traceroute(host: str, monitor: NetworkMonitor = Depends(get_monitor)):
    """
    Schedule an on-demand traceroute; the result replaces the cached one.
    Reports ``already_running`` instead when a trace for the host is in flight.
    """
    scheduled = monitor.request_trace(host)
    return TraceRequestResponse(
        status="scheduled" if scheduled else "already_running",
        host=monitor.canonical(host),
    )


@app.get(
    "/api/hosts/{host}",
    response_model=HostDetailResponse,
    responses={404: {"model": ErrorResponse}},
)
def get_host_detail(host: str, monitor: NetworkMonitor = Depends(get_monitor)):
    """State, trend and recent latency history for one host."""
    return monitor.snapshots.host_detail(monitor.canonical(host))


# ============================================================================
# Host Management Endpoints
# ============================================================================


@app.post(
    "/add_host",
    response_model=HostActionResponse,
    responses={400: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
def add_host(host: str = Form(...), monitor: NetworkMonitor = Depends(get_monitor)):
    """Start monitoring a host (IP literal or DNS hostname)."""
    result = monitor.add_host(host)
    return HostActionResponse(status=result.value, host=monitor.canonical(host))


@app.post(
    "/remove_host",
    response_model=HostActionResponse,
    responses={404: {"model": ErrorResponse}},
)
def remove_host(host: str = Form(...), monitor: NetworkMonitor = Depends(get_monitor)):
    """
    Stop monitoring a host.
    Returns after its polling loop has been cancelled and its state dropped.
    """
    result = monitor.remove_host(host)
    return HostActionResponse(status=result.value, host=monitor.canonical(host))


# ============================================================================
# Health Endpoint
# ============================================================================


@app.get("/health", response_model=HealthResponse)
def health_check(monitor: NetworkMonitor = Depends(get_monitor)):
    """Health check endpoint."""
    return HealthResponse(
        status="healthy",
        service="netmon-api",
        version=__version__,
        hosts=len(monitor.registry),
        running=monitor.running,
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
