import logging
import os
import time

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.routing import APIRoute
from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration

from . import gemini, incidentiq, tasks
from .auth import get_current_user
from .config import Settings
from .database import init_db
from .identity import IdentityProvider
from .storage import DriveStorage, SpeechTranscriber
from .routes import (
    proxy,
    users,
    media,
    waivers,
    messages,
    tickets,
    locations,
)

logger = logging.getLogger(__name__)


def configure_logging(level: str | None = None) -> None:
    logging.basicConfig(
        level=level or os.getenv("LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


configure_logging()

dsn = os.getenv("SENTRY_DSN")
if dsn:
    sentry_sdk.init(dsn=dsn, integrations=[FastApiIntegration()])

REQUEST_COUNT = Counter("request_count", "Total requests", ["method", "endpoint"])
REQUEST_LATENCY = Histogram(
    "request_latency_seconds", "Request latency", ["endpoint"]
)

settings = Settings.from_env()
tasks.configure(settings)
init_db()

app = FastAPI(title="Support Kiosk API")
app.state.settings = settings
app.state.identity_provider = IdentityProvider.from_settings(settings)
app.state.incident_iq = incidentiq.incident_iq_client(settings)
app.state.gemini = gemini.gemini_client(settings)
app.state.drive_storage = DriveStorage.from_settings(settings)
app.state.transcriber = SpeechTranscriber()

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

limiter = Limiter(key_func=get_remote_address)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, lambda r, e: Response("Too Many Requests", status_code=429))
if os.getenv("TESTING") != "1":
    app.add_middleware(SlowAPIMiddleware)


@app.exception_handler(RequestValidationError)
async def bad_request(request: Request, exc: RequestValidationError):
    fields = sorted({".".join(str(p) for p in err["loc"][1:]) or err["loc"][0] for err in exc.errors()})
    logger.warning("Rejected %s %s: invalid %s", request.method, request.url.path, ", ".join(fields))
    return JSONResponse(status_code=400, content={"detail": f"Bad Request: invalid {', '.join(fields)}."})


@app.middleware("http")
async def record_metrics(request: Request, call_next):
    start = time.time()
    response = await call_next(request)
    endpoint = request.url.path
    REQUEST_COUNT.labels(request.method, endpoint).inc()
    REQUEST_LATENCY.labels(endpoint).observe(time.time() - start)
    return response


@app.get("/metrics")
def metrics():
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


app.include_router(proxy.router)
app.include_router(users.router)
app.include_router(media.router)
app.include_router(waivers.router)
app.include_router(messages.router)
app.include_router(tickets.router)
app.include_router(locations.router)


# Must stay the last route registered.
@app.api_route(
    "/{path:path}",
    methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
    include_in_schema=False,
)
async def route_not_found(path: str):
    return JSONResponse(status_code=404, content={"detail": "Route not found."})


PUBLIC_ROUTES = {
    ("POST", "/findUser"),
    ("POST", "/incidentIqProxy"),
    ("POST", "/geminiProxy"),
    ("POST", "/uploadVideo"),
    ("POST", "/transcribeAudio"),
    ("POST", "/syncWaiverFromSheet"),
    ("POST", "/tickets"),
    ("GET", "/tickets/context"),
    ("POST", "/messages"),
    ("POST", "/waivers"),
    ("GET", "/metrics"),
}


def _depends_on(dependant, target) -> bool:
    return any(dep.call is target or _depends_on(dep, target) for dep in dependant.dependencies)


def audit_routes():
    for route in app.routes:
        if not isinstance(route, APIRoute) or route.endpoint is route_not_found:
            continue
        for method in route.methods:
            if (method, route.path) in PUBLIC_ROUTES:
                continue
            if not _depends_on(route.dependant, get_current_user):
                raise RuntimeError(f"Route {method} {route.path} missing authentication")


audit_routes()
