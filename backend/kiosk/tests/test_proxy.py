import dataclasses

import pytest
import requests

from kiosk.main import app
from kiosk.upstream import UpstreamClient, UpstreamError
from .conftest import FakeResponse, FakeSession


def test_incident_iq_proxy_relays_success(client, upstream):
    iiq = upstream["incident_iq"]
    iiq.responses.append(FakeResponse(200, {"Items": [1, 2]}))
    resp = client.post("/incidentIqProxy", json={"path": "/api/v1.0/assets", "method": "GET"})
    assert resp.status_code == 200
    assert resp.json() == {"Items": [1, 2]}
    call = iiq.calls[0]
    assert call["method"] == "GET"
    assert call["url"].endswith("/api/v1.0/assets")
    assert call["json"] is None


def test_incident_iq_proxy_forwards_body_only_for_post(client, upstream):
    iiq = upstream["incident_iq"]
    iiq.responses.append(FakeResponse(200, {"Id": "t-1"}))
    client.post("/incidentIqProxy", json={"path": "/api/v1.0/tickets/new", "method": "post", "body": {"Subject": "x"}})
    assert iiq.calls[0]["method"] == "POST"
    assert iiq.calls[0]["json"] == {"Subject": "x"}


def test_incident_iq_proxy_relays_upstream_error_verbatim(client, upstream):
    upstream["incident_iq"].responses.append(FakeResponse(404, {"Message": "nope"}))
    resp = client.post("/incidentIqProxy", json={"path": "/api/v1.0/users/zzz", "method": "GET"})
    assert resp.status_code == 404
    assert resp.json() == {"Message": "nope"}


def test_incident_iq_proxy_missing_fields_never_calls_upstream(client, upstream):
    resp = client.post("/incidentIqProxy", json={"path": "/api/v1.0/assets"})
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Bad Request: Missing path or method."
    assert upstream["incident_iq"].calls == []


@pytest.mark.parametrize("path", ["@attacker.example/steal", ".attacker.example/steal", "//attacker.example/steal"])
def test_incident_iq_proxy_rejects_paths_that_change_host(client, upstream, path):
    resp = client.post("/incidentIqProxy", json={"path": path, "method": "GET"})
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Bad Request: path must be an absolute API path."
    assert upstream["incident_iq"].calls == []


def test_upstream_client_stays_on_its_host():
    session = FakeSession([FakeResponse(200, {})])
    client = UpstreamClient(base_url="https://normanps.incidentiq.com", headers={"Authorization": "Bearer t"}, session=session)
    for path in ("@attacker.example/x", ".attacker.example/x", ":8443@attacker.example/x"):
        with pytest.raises(UpstreamError):
            client.call("GET", path)
    assert session.calls == []
    client.call("GET", "/api/v1.0/assets")
    assert session.calls[0]["url"] == "https://normanps.incidentiq.com/api/v1.0/assets"


def test_incident_iq_proxy_network_failure_is_500(client, upstream):
    upstream["incident_iq"].responses.append(requests.ConnectionError("down"))
    resp = client.post("/incidentIqProxy", json={"path": "/x", "method": "GET"})
    assert resp.status_code == 500
    assert resp.json()["detail"] == "Internal Server Error"


def test_missing_token_is_configuration_error(client, upstream, monkeypatch):
    monkeypatch.setattr(app.state, "settings", dataclasses.replace(app.state.settings, incident_iq_api_token=None))
    resp = client.post("/incidentIqProxy", json={"path": "/x", "method": "GET"})
    assert resp.status_code == 500
    assert resp.json()["detail"] == "Server configuration error."
    assert upstream["incident_iq"].calls == []


def test_find_user_direct_hit_returns_single_item_list(client, upstream):
    iiq = upstream["incident_iq"]
    iiq.responses.append(FakeResponse(200, {"UserId": "u1", "Name": "Ada Lovelace"}))
    resp = client.post("/findUser", json={"searchTerm": "12345"})
    assert resp.status_code == 200
    assert resp.json() == [{"UserId": "u1", "Name": "Ada Lovelace"}]
    assert len(iiq.calls) == 1
    assert iiq.calls[0]["url"].endswith("/api/v1.0/users/12345")


def test_find_user_falls_back_to_search_on_404(client, upstream):
    iiq = upstream["incident_iq"]
    iiq.responses.extend([
        FakeResponse(404, {"Message": "not found"}),
        FakeResponse(200, {"Items": [{"UserId": "u2"}, {"UserId": "u3"}]}),
    ])
    resp = client.post("/findUser", json={"searchTerm": "ada smith"})
    assert resp.status_code == 200
    assert resp.json() == [{"UserId": "u2"}, {"UserId": "u3"}]
    search = iiq.calls[1]
    assert search["url"].endswith("/services/users")
    assert search["params"]["$filter"] == "(SearchText contains 'ada smith')"


def test_find_user_search_with_no_items_is_empty_list(client, upstream):
    upstream["incident_iq"].responses.extend([FakeResponse(404), FakeResponse(200, {})])
    resp = client.post("/findUser", json={"searchTerm": "nobody"})
    assert resp.status_code == 200
    assert resp.json() == []


def test_find_user_relays_non_404_direct_failure(client, upstream):
    iiq = upstream["incident_iq"]
    iiq.responses.append(FakeResponse(401, {"Message": "bad token"}))
    resp = client.post("/findUser", json={"searchTerm": "12345"})
    assert resp.status_code == 401
    assert resp.json() == {"Message": "bad token"}
    assert len(iiq.calls) == 1


def test_find_user_requires_search_term(client, upstream):
    resp = client.post("/findUser", json={})
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Bad Request: Missing searchTerm."


def test_gemini_proxy_forwards_body_and_key(client, upstream):
    gem = upstream["gemini"]
    reply = {"candidates": [{"content": {"parts": [{"text": "hi"}]}}]}
    gem.responses.append(FakeResponse(200, reply))
    body = {"contents": [{"role": "user", "parts": [{"text": "hello"}]}]}
    resp = client.post("/geminiProxy", json={"body": body})
    assert resp.status_code == 200
    assert resp.json() == reply
    call = gem.calls[0]
    assert call["url"].endswith(f"{app.state.settings.gemini_model}:generateContent")
    assert call["params"] == {"key": app.state.settings.gemini_api_key}
    assert call["json"] == body


def test_gemini_proxy_relays_error_status(client, upstream):
    upstream["gemini"].responses.append(FakeResponse(429, {"error": {"code": 429}}))
    resp = client.post("/geminiProxy", json={"body": {"contents": []}})
    assert resp.status_code == 429
    assert resp.json() == {"error": {"code": 429}}


def test_gemini_proxy_requires_body_wrapper(client, upstream):
    resp = client.post("/geminiProxy", json={"contents": []})
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Bad Request: Missing 'body' wrapper."
    assert upstream["gemini"].calls == []


def test_find_user_direct_hit_without_body_is_empty_list(client, upstream):
    upstream["incident_iq"].responses.append(FakeResponse(200))
    resp = client.post("/findUser", json={"searchTerm": "12345"})
    assert resp.status_code == 200
    assert resp.json() == []


def test_find_user_search_returning_list_is_empty_list(client, upstream):
    upstream["incident_iq"].responses.extend([FakeResponse(404), FakeResponse(200, [{"UserId": "u2"}])])
    resp = client.post("/findUser", json={"searchTerm": "ada"})
    assert resp.status_code == 200
    assert resp.json() == []
