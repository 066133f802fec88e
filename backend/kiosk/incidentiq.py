from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

from .config import Settings
from .upstream import UpstreamClient, UpstreamResponse

logger = logging.getLogger(__name__)

USERS_PATH = "/api/v1.0/users/"
USER_SEARCH_PATH = "/services/users"
ASSETS_PATH = "/api/v1.0/assets"
NEW_TICKET_PATH = "/api/v1.0/tickets/new"


def incident_iq_client(settings: Settings, session=None) -> UpstreamClient:
    return UpstreamClient(
        base_url=settings.incident_iq_base_url,
        headers={
            "Authorization": f"Bearer {settings.incident_iq_api_token}",
            "Content-Type": "application/json",
            "Accept": "application/json",
            "siteid": settings.incident_iq_site_id,
            "client": "ApiClient",
        },
        session=session,
    )


def proxy(client: UpstreamClient, path: str, method: str, body: Any = None) -> UpstreamResponse:
    # Only POST carries a body upstream; GET and friends go out bare.
    payload = body if method.upper() == "POST" else None
    return client.call(method, path, json=payload)


def _items(body: Any) -> list[Any]:
    if not isinstance(body, dict):
        return []
    items = body.get("Items")
    return items if isinstance(items, list) else []


def find_user(client: UpstreamClient, search_term: str) -> UpstreamResponse:
    """Look a user up by key, falling back to a text search when the key is unknown.

    Callers pass whatever the kiosk captured (badge number, spoken name) without
    knowing which it is. A hit on the direct lookup comes back as a one-element
    list; after a 404 the search results (possibly empty) are returned instead.
    Any other failure status is handed back unchanged.
    """
    direct = client.call("GET", USERS_PATH + quote(search_term, safe=""))
    if direct.ok:
        return UpstreamResponse(status=200, body=[direct.body] if direct.body is not None else [])
    if direct.status != 404:
        logger.error(
            'Incident IQ direct lookup error for "%s". Status: %s, Response: %s',
            search_term, direct.status, direct.body,
        )
        return UpstreamResponse(status=direct.status, body=direct.body if direct.body is not None else {})

    logger.info('Direct lookup for "%s" failed with 404. Falling back to search.', search_term)
    search = client.call(
        "GET",
        USER_SEARCH_PATH,
        params={"$filter": f"(SearchText contains '{search_term}')"},
    )
    if search.ok:
        return UpstreamResponse(status=200, body=_items(search.body))
    logger.error(
        'Incident IQ fallback search error for "%s". Status: %s, Response: %s',
        search_term, search.status, search.body,
    )
    return UpstreamResponse(status=search.status, body=search.body if search.body is not None else {})


def get_user_assets(client: UpstreamClient, user_id: str) -> list[dict[str, Any]]:
    result = client.call("POST", ASSETS_PATH, json={"Filters": [{"Facet": "User", "Id": user_id}]})
    if not result.ok:
        logger.error("Asset lookup for %s failed with status %s", user_id, result.status)
        return []
    return _items(result.body)


class TicketCreationError(Exception):
    pass


def create_ticket(client: UpstreamClient, payload: dict[str, Any]) -> dict[str, Any]:
    """Open a ticket upstream and return its id, number, subject and requester."""
    result = client.call("POST", NEW_TICKET_PATH, json=payload)
    if not result.ok:
        raise TicketCreationError(f"API Error: {result.status}")
    body = result.body if isinstance(result.body, dict) else {}
    # the id sits at the top level, the details under "Item"
    if body.get("Id") is None:
        raise TicketCreationError("Ticket creation failed to return a valid ID.")
    item = body.get("Item") or {}
    return {
        "ticketId": body["Id"],
        "ticketNumber": item.get("TicketNumber"),
        "title": item.get("Subject"),
        "visitorName": (item.get("For") or {}).get("Name"),
    }
