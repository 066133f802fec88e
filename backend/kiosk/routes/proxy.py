from fastapi import APIRouter, Depends, HTTPException

from ..config import Settings, get_settings
from .. import gemini, incidentiq, schemas
from ..upstream import UpstreamClient, UpstreamError, relay
from ._deps import (
    get_gemini_client,
    get_incident_iq_client,
    internal_error,
    require_fields,
    require_secret,
)

router = APIRouter(tags=["proxy"])


@router.post("/findUser")
def find_user(
    payload: schemas.FindUserRequest,
    settings: Settings = Depends(get_settings),
    client: UpstreamClient = Depends(get_incident_iq_client),
):
    require_secret(settings.incident_iq_api_token, "INCIDENT_IQ_API_TOKEN")
    require_fields("Bad Request: Missing searchTerm.", searchTerm=payload.search_term)
    try:
        result = incidentiq.find_user(client, payload.search_term)
    except UpstreamError:
        raise internal_error("/findUser")
    return relay(result, service="Incident IQ")


@router.post("/incidentIqProxy")
def incident_iq_proxy(
    payload: schemas.IncidentIqProxyRequest,
    settings: Settings = Depends(get_settings),
    client: UpstreamClient = Depends(get_incident_iq_client),
):
    require_secret(settings.incident_iq_api_token, "INCIDENT_IQ_API_TOKEN")
    require_fields("Bad Request: Missing path or method.", path=payload.path, method=payload.method)
    if not payload.path.startswith("/") or payload.path.startswith("//"):
        raise HTTPException(status_code=400, detail="Bad Request: path must be an absolute API path.")
    try:
        result = incidentiq.proxy(client, payload.path, payload.method, payload.body)
    except UpstreamError:
        raise internal_error("Incident IQ proxy")
    return relay(result, service="Incident IQ")


@router.post("/geminiProxy")
def gemini_proxy(
    payload: schemas.GeminiProxyRequest,
    settings: Settings = Depends(get_settings),
    client: UpstreamClient = Depends(get_gemini_client),
):
    require_secret(settings.gemini_api_key, "GEMINI_API_KEY")
    require_fields("Bad Request: Missing 'body' wrapper.", body=payload.body)
    try:
        result = gemini.generate_content(client, settings.gemini_model, payload.body)
    except UpstreamError:
        raise internal_error("Gemini proxy")
    return relay(result, service="Gemini")
