"""Walk-up check-in conversation as a pure state machine.

The kiosk front end feeds events in and carries out the effects that come
back; nothing here touches the network or the database.
"""

from __future__ import annotations

# purpose: keep the check-in conversation rules testable apart from any UI
# status: active

import enum
import re
from collections import Counter
from dataclasses import dataclass, replace
from typing import Any, Iterable, Mapping, Sequence

CANCEL_WORDS = ("cancel", "start over", "never mind", "delete")
SPECIFIC_KEYWORDS = ("cracked", "broken", "won't", "can't", "not", "won t", "cant")
RESET_DELAY_SECONDS = 10

# pattern -> substrings of a past problem description that count toward it
PATTERN_KEYWORDS = {
    "screen": ("screen",),
    "battery": ("battery",),
    "charge": ("charge",),
    "keyboard": ("keyboard",),
    "connectivity": ("wifi",),
    "performance": ("freeze", "slow"),
    "physical": ("crack", "damage"),
}


class Status(str, enum.Enum):
    verifying_user = "verifying_user"
    processing = "processing"
    awaiting_asset_selection = "awaiting_asset_selection"
    awaiting_problem = "awaiting_problem"
    awaiting_clarification = "awaiting_clarification"
    ticket_preview = "ticket_preview"
    confirming = "confirming"
    error = "error"
    reset = "reset"


class InvalidTransition(ValueError):
    pass


@dataclass(slots=True)
class Session:
    status: Status = Status.verifying_user
    user: Mapping[str, Any] | None = None
    visitor_name: str = ""
    assets: tuple = ()
    asset: Mapping[str, Any] | None = None
    common_patterns: tuple = ()
    problem: str = ""
    history: tuple = ()
    clarification_question: str = ""
    summary: Mapping[str, Any] | None = None
    ticket: Mapping[str, Any] | None = None
    error_message: str = ""


# events


@dataclass(slots=True)
class UserVerified:
    user: Mapping[str, Any]
    assets: Sequence[Mapping[str, Any]] = ()


@dataclass(slots=True)
class AssetSelected:
    asset: Mapping[str, Any] | None
    common_patterns: Sequence[str] = ()


@dataclass(slots=True)
class Transcript:
    text: str


@dataclass(slots=True)
class ClarificationAsked:
    question: str


@dataclass(slots=True)
class SummaryReady:
    summary: Mapping[str, Any]


@dataclass(slots=True)
class SummaryFailed:
    message: str = "Failed to generate ticket summary. Please try again."


@dataclass(slots=True)
class ConfirmTicket:
    video_link: str | None = None


@dataclass(slots=True)
class TicketCreated:
    ticket: Mapping[str, Any]


@dataclass(slots=True)
class TicketFailed:
    message: str = "Failed to create ticket in Incident IQ."


@dataclass(slots=True)
class RedoProblem:
    pass


@dataclass(slots=True)
class Reset:
    pass


# effects


@dataclass(slots=True)
class AskClarification:
    problem: str
    asset: Mapping[str, Any] | None
    common_patterns: Sequence[str]
    visitor_name: str


@dataclass(slots=True)
class GenerateSummary:
    problem: str
    answer: str | None
    asset: Mapping[str, Any] | None
    common_patterns: Sequence[str]
    visitor_name: str = ""


@dataclass(slots=True)
class CreateTicket:
    payload: dict


@dataclass(slots=True)
class ScheduleReset:
    seconds: int = RESET_DELAY_SECONDS


def proper_case(text: str) -> str:
    return " ".join(w[:1].upper() + w[1:].lower() for w in text.split())


def is_cancel(transcript: str) -> bool:
    lowered = transcript.lower()
    return any(word in lowered for word in CANCEL_WORDS)


def common_patterns(problems: Iterable[str | None], limit: int = 3) -> list[str]:
    """Most frequent problem categories across past ticket descriptions."""
    counts: Counter = Counter()
    for problem in problems:
        text = (problem or "").lower()
        for pattern, keywords in PATTERN_KEYWORDS.items():
            if any(k in text for k in keywords):
                counts[pattern] += 1
    return [name for name, _ in counts.most_common(limit)]


def should_ask_clarification(problem: str, patterns: Sequence[str] = ()) -> bool:
    """False when the problem matches a known pattern or is already specific."""

    # purpose: skip the follow-up question when the first answer is enough
    if patterns:
        regex = re.compile("|".join(re.escape(p) for p in patterns), re.IGNORECASE)
        if regex.search(problem):
            return False
    lowered = problem.lower()
    specific = any(kw in lowered for kw in SPECIFIC_KEYWORDS)
    return not (specific and len(problem) > 30)


def build_ticket_payload(session: Session, video_link: str | None) -> dict:
    """Incident IQ ``tickets/new`` body for a previewed session."""
    if session.user is None or session.summary is None:
        raise InvalidTransition("ticket payload needs a verified user and a summary")
    user = session.user
    summary = session.summary
    asset = session.asset
    location_name = (user.get("Location") or {}).get("Name") or "Unknown Location"
    if asset:
        subject = f"{asset.get('Name')} > {summary.get('suggestedCategory') or 'General'}"
    else:
        subject = f"{summary.get('suggestedCategory') or 'Support'} - {location_name}"
    tech_notes = summary.get("techNotes")
    description = (
        f"{summary.get('summary')}\n\n{summary.get('details')}\n\n"
        f"{f'Tech Notes: {tech_notes}' if tech_notes else ''}\n\n"
        f"Audio Submission: {video_link or 'Not available.'}"
    )
    return {
        "Subject": subject,
        "IssueDescription": description,
        "ForId": user.get("UserId"),
        "LocationId": user.get("LocationId"),
        "Assets": [{"AssetId": asset.get("AssetId")}] if asset else [],
        "Tags": [{"Name": "Walk Up"}],
    }


def _expect(session: Session, event, *statuses: Status) -> None:
    if session.status not in statuses:
        raise InvalidTransition(f"{type(event).__name__} not accepted while {session.status.value}")


def _fail(message: str) -> tuple[Session, list]:
    return Session(status=Status.error, error_message=message), [ScheduleReset()]


def transition(session: Session, event) -> tuple[Session, list]:
    """Apply ``event`` and return the next session plus the effects to run."""

    # inputs: current session (never mutated) and one event
    # outputs: new session and a list of effect requests for the caller
    if isinstance(event, Reset):
        return Session(status=Status.reset), []

    if isinstance(event, UserVerified):
        _expect(session, event, Status.verifying_user, Status.reset)
        first = (event.user.get("Name") or "").split(" ")[0]
        status = Status.awaiting_asset_selection if event.assets else Status.awaiting_problem
        return Session(
            status=status,
            user=event.user,
            visitor_name=proper_case(first),
            assets=tuple(event.assets),
        ), []

    if isinstance(event, AssetSelected):
        _expect(session, event, Status.awaiting_asset_selection)
        return replace(
            session,
            status=Status.awaiting_problem,
            asset=event.asset,
            common_patterns=tuple(event.common_patterns),
        ), []

    if isinstance(event, Transcript):
        text = event.text.strip()
        if not text:
            return session, []
        if is_cancel(text):
            return Session(status=Status.reset), []
        if session.status == Status.awaiting_problem:
            nxt = replace(session, status=Status.processing, problem=text, history=(text,))
            if should_ask_clarification(text, session.common_patterns):
                return nxt, [AskClarification(text, session.asset, session.common_patterns, session.visitor_name)]
            return nxt, [
                GenerateSummary(text, None, session.asset, session.common_patterns, session.visitor_name)
            ]
        if session.status == Status.awaiting_clarification:
            nxt = replace(
                session,
                status=Status.processing,
                history=session.history + (text,),
            )
            return nxt, [
                GenerateSummary(session.problem, text, session.asset, session.common_patterns, session.visitor_name)
            ]
        raise InvalidTransition(f"Transcript not accepted while {session.status.value}")

    if isinstance(event, ClarificationAsked):
        _expect(session, event, Status.processing)
        return replace(
            session,
            status=Status.awaiting_clarification,
            clarification_question=event.question,
            history=session.history + (event.question,),
        ), []

    if isinstance(event, SummaryReady):
        _expect(session, event, Status.processing)
        return replace(session, status=Status.ticket_preview, summary=event.summary), []

    if isinstance(event, SummaryFailed):
        _expect(session, event, Status.processing)
        return _fail(event.message)

    if isinstance(event, ConfirmTicket):
        _expect(session, event, Status.ticket_preview)
        payload = build_ticket_payload(session, event.video_link)
        return replace(session, status=Status.processing), [CreateTicket(payload)]

    if isinstance(event, TicketCreated):
        _expect(session, event, Status.processing)
        return replace(session, status=Status.confirming, ticket=event.ticket), [ScheduleReset()]

    if isinstance(event, TicketFailed):
        _expect(session, event, Status.processing)
        return _fail(event.message)

    if isinstance(event, RedoProblem):
        _expect(session, event, Status.ticket_preview, Status.awaiting_clarification, Status.awaiting_problem)
        return replace(
            session,
            status=Status.awaiting_problem,
            problem="",
            history=(),
            clarification_question="",
            summary=None,
            ticket=None,
        ), []

    raise InvalidTransition(f"unknown event {event!r}")
