import logging

from fastapi import HTTPException, Request

from ..upstream import UpstreamClient

logger = logging.getLogger(__name__)


def require_fields(message: str, **values) -> None:
    """400 with ``message`` when any of the named values is missing or empty."""
    missing = [name for name, value in values.items() if value is None or value == ""]
    if missing:
        logger.warning("Bad request, missing %s", ", ".join(missing))
        raise HTTPException(status_code=400, detail=message)


def require_secret(value, name: str) -> None:
    if not value:
        logger.critical("%s is not configured for this process.", name)
        raise HTTPException(status_code=500, detail="Server configuration error.")


def internal_error(context: str) -> HTTPException:
    logger.exception("Error in %s", context)
    return HTTPException(status_code=500, detail="Internal Server Error")


def get_incident_iq_client(request: Request) -> UpstreamClient:
    return request.app.state.incident_iq


def get_gemini_client(request: Request) -> UpstreamClient:
    return request.app.state.gemini
