"""Single-attempt calls to third-party HTTP APIs.

Every proxy route in the kiosk API forwards one request upstream and hands the
result back to the caller unchanged, so all of them share :class:`UpstreamClient`
and the :func:`relay` helper. There is no retry and no explicit timeout.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping
from urllib.parse import urlsplit

import requests
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class UpstreamError(Exception):
    """Network failure or unreadable body from an upstream service."""


@dataclass(frozen=True)
class UpstreamResponse:
    status: int
    body: Any = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


def _parse_body(response: requests.Response) -> Any:
    text = response.text
    if not text:
        return None
    try:
        return response.json()
    except ValueError as exc:
        raise UpstreamError(f"Upstream returned a non-JSON body (status {response.status_code})") from exc


@dataclass
class UpstreamClient:
    base_url: str
    headers: Mapping[str, str] = field(default_factory=dict)
    params: Mapping[str, str] = field(default_factory=dict)
    session: Any = None

    def __post_init__(self) -> None:
        if self.session is None:
            self.session = requests.Session()

    def url_for(self, path: str) -> str:
        url = f"{self.base_url}{path}"
        # the caller only picks the path, never the host
        if urlsplit(url).netloc != urlsplit(self.base_url).netloc:
            raise UpstreamError(f"Refusing to call outside {urlsplit(self.base_url).netloc}")
        return url

    def call(self, method: str, path: str, json: Any = None, params: Mapping[str, str] | None = None) -> UpstreamResponse:
        merged = dict(self.params)
        if params:
            merged.update(params)
        try:
            response = self.session.request(
                method.upper(),
                self.url_for(path),
                headers=dict(self.headers),
                params=merged or None,
                json=json,
            )
        except requests.RequestException as exc:
            raise UpstreamError(str(exc)) from exc
        return UpstreamResponse(status=response.status_code, body=_parse_body(response))


def relay(result: UpstreamResponse, *, service: str) -> JSONResponse:
    """Turn an upstream result into the route's response, status and body untouched."""
    if not result.ok:
        logger.error("%s API error. Status: %s, Response: %s", service, result.status, result.body)
        return JSONResponse(status_code=result.status, content=result.body)
    return JSONResponse(status_code=200, content=result.body)
