from __future__ import annotations

import json
from typing import Any

from .config import Settings
from .upstream import UpstreamClient, UpstreamResponse

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models/"

TICKET_SUMMARY_FIELDS = (
    "summary",
    "details",
    "suggestedCategory",
    "suggestedUrgency",
    "relevantHistory",
    "techNotes",
    "troubleshootingTips",
)

DEFAULT_CLARIFICATION = "Can you tell me a bit more about what's happening?"


class SummaryFormatError(ValueError):
    pass


def gemini_client(settings: Settings, session=None) -> UpstreamClient:
    return UpstreamClient(
        base_url=GEMINI_BASE_URL,
        headers={"Content-Type": "application/json"},
        params={"key": settings.gemini_api_key or ""},
        session=session,
    )


def generate_content(client: UpstreamClient, model: str, body: Any) -> UpstreamResponse:
    return client.call("POST", f"{model}:generateContent", json=body)


def text_request(prompt: str, *, json_response: bool = False) -> dict[str, Any]:
    payload: dict[str, Any] = {"contents": [{"role": "user", "parts": [{"text": prompt}]}]}
    if json_response:
        payload["generationConfig"] = {"responseMimeType": "application/json"}
    return payload


def extract_text(response_body: Any) -> str:
    try:
        return response_body["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError) as exc:
        raise SummaryFormatError("Model response has no candidate text") from exc


def _history_lines(tickets: list[dict[str, Any]], limit: int, with_device: bool = False) -> list[str]:
    lines = []
    for t in tickets[:limit]:
        problem = t.get("problemDescription") or "Issue"
        when = t.get("createdAt") or ""
        if with_device:
            lines.append(f"- {problem} on {t.get('device')} ({when})")
        else:
            lines.append(f"- {problem} ({when})")
    return lines


def clarification_prompt(
    problem: str,
    user_name: str,
    asset: dict[str, Any] | None,
    history: dict[str, Any] | None,
) -> str:
    asset = asset or {}
    history = history or {}
    asset_tickets = history.get("assetTicketHistory") or []
    patterns = history.get("commonPatterns") or []
    history_context = ""
    if asset_tickets:
        history_context = (
            "RELEVANT DEVICE HISTORY:\n"
            + "\n".join(_history_lines(asset_tickets, 2))
            + f"\n\nCOMMON ISSUES FOR THIS DEVICE: {', '.join(patterns)}\n"
        )
    first_pattern = patterns[0] if patterns else "similar"
    return (
        "You are an IT support technician. Ask ONE brief, smart clarification question.\n\n"
        f"STUDENT: {user_name}\n"
        f"DEVICE: {asset.get('Name')} ({(asset.get('Model') or {}).get('Name')})\n"
        f'PROBLEM: "{problem}"\n'
        f"{history_context}\n"
        "TASK: Ask ONE quick question to get critical missing details. Keep it to 10-15 seconds to answer.\n"
        f'- Reference history if relevant: "I see you had {first_pattern} issues before..."\n'
        '- Be device-specific (e.g., iPad: "Is the screen responding?" vs MacBook: "Can you hear the fan?")\n'
        "- Do NOT ask what they already said\n\n"
        "RESPONSE MUST BE VALID JSON:\n"
        '{"status": "asking", "content": "Your ONE question here."}'
    )


def ticket_summary_prompt(
    problem: str,
    follow_up: str | None,
    user_name: str,
    asset: dict[str, Any] | None,
    history: dict[str, Any] | None,
) -> str:
    asset = asset or {}
    history = history or {}
    conversation = f"Initial: {problem}\nFollow-up Response: {follow_up}" if follow_up else problem
    device_history = "\n".join(_history_lines(history.get("assetTicketHistory") or [], 3)) or "No prior issues"
    user_history = (
        "\n".join(_history_lines(history.get("userTicketHistory") or [], 2, with_device=True))
        or "First reported issue"
    )
    return f"""You are an expert IT support technician creating a ticket summary for the tech staff.

DEVICE: {asset.get('Name')} ({(asset.get('Model') or {}).get('Name')})
STUDENT: {user_name}
PROBLEM DESCRIBED: {conversation}

DEVICE HISTORY:
{device_history}

STUDENT'S HISTORY:
{user_history}

CREATE A TICKET SUMMARY with these EXACT JSON fields:

{{
  "summary": "One clear sentence describing the issue",
  "details": "2-3 sentences with specific details and any relevant context",
  "suggestedCategory": "e.g., 'Hardware > Screen', 'Software > Performance', 'Connectivity > WiFi'",
  "suggestedUrgency": "High|Medium|Low",
  "relevantHistory": "Any related prior tickets or patterns (or null)",
  "techNotes": "Specific things tech should check first",
  "troubleshootingTips": ["Tip 1", "Tip 2"] (only include if applicable, otherwise empty array)
}}

RESPONSE MUST BE VALID JSON ONLY."""


def parse_ticket_summary(text: str) -> dict[str, Any]:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise SummaryFormatError("Ticket summary is not valid JSON") from exc
    if not isinstance(data, dict) or not data.get("summary"):
        raise SummaryFormatError("Ticket summary is missing the summary field")
    summary = {key: data.get(key) for key in TICKET_SUMMARY_FIELDS}
    tips = summary["troubleshootingTips"]
    summary["troubleshootingTips"] = [str(t) for t in tips] if isinstance(tips, list) else []
    return summary


def parse_clarification(text: str) -> str:
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        return DEFAULT_CLARIFICATION
    if isinstance(data, dict) and data.get("status") == "asking" and data.get("content"):
        return str(data["content"])
    return DEFAULT_CLARIFICATION
