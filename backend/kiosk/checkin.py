"""Carries out the effects the check-in state machine asks for.

:mod:`kiosk.kiosk_flow` decides what happens next; this module makes the
Incident IQ and Gemini calls and turns their results back into events.
"""

from __future__ import annotations

# purpose: drive a kiosk_flow.Session against the real upstream clients
# status: active

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping

from . import gemini, incidentiq
from . import kiosk_flow as flow
from .upstream import UpstreamClient, UpstreamError

logger = logging.getLogger(__name__)


def _history(extra: Mapping[str, Any] | None, patterns) -> dict[str, Any]:
    history = dict(extra or {})
    history.setdefault("commonPatterns", list(patterns))
    return history


def _model_text(client: UpstreamClient, model: str, prompt: str) -> str:
    result = gemini.generate_content(client, model, gemini.text_request(prompt, json_response=True))
    if not result.ok:
        raise UpstreamError(f"Gemini returned status {result.status}")
    return gemini.extract_text(result.body)


@dataclass
class CheckIn:
    """One walk-up conversation bound to its upstream clients."""

    incident_iq: UpstreamClient
    gemini: UpstreamClient
    model: str
    history: Mapping[str, Any] | None = None
    session: flow.Session = field(default_factory=flow.Session)
    reset_after: int | None = None

    def verify(self, user: Mapping[str, Any]) -> flow.Session:
        assets = incidentiq.get_user_assets(self.incident_iq, user.get("UserId"))
        return self.send(flow.UserVerified(user, assets))

    def send(self, event) -> flow.Session:
        """Apply ``event`` and keep feeding follow-up events until none are left."""
        pending = [event]
        while pending:
            self.session, effects = flow.transition(self.session, pending.pop(0))
            for effect in effects:
                if isinstance(effect, flow.ScheduleReset):
                    self.reset_after = effect.seconds
                    continue
                pending.append(self.run(effect))
        return self.session

    def run(self, effect):
        if isinstance(effect, flow.AskClarification):
            return self._clarify(effect)
        if isinstance(effect, flow.GenerateSummary):
            return self._summarize(effect)
        if isinstance(effect, flow.CreateTicket):
            return self._create_ticket(effect)
        raise flow.InvalidTransition(f"no runner for {effect!r}")

    def _clarify(self, effect: flow.AskClarification) -> flow.ClarificationAsked:
        prompt = gemini.clarification_prompt(
            effect.problem,
            effect.visitor_name,
            effect.asset,
            _history(self.history, effect.common_patterns),
        )
        try:
            return flow.ClarificationAsked(gemini.parse_clarification(_model_text(self.gemini, self.model, prompt)))
        except (UpstreamError, gemini.SummaryFormatError):
            logger.warning("Clarification request failed, using the default question", exc_info=True)
            return flow.ClarificationAsked(gemini.DEFAULT_CLARIFICATION)

    def _summarize(self, effect: flow.GenerateSummary):
        prompt = gemini.ticket_summary_prompt(
            effect.problem,
            effect.answer,
            effect.visitor_name,
            effect.asset,
            _history(self.history, effect.common_patterns),
        )
        try:
            text = _model_text(self.gemini, self.model, prompt)
            return flow.SummaryReady(gemini.parse_ticket_summary(text))
        except (UpstreamError, gemini.SummaryFormatError):
            logger.exception("Ticket summary generation failed")
            return flow.SummaryFailed()

    def _create_ticket(self, effect: flow.CreateTicket):
        try:
            return flow.TicketCreated(incidentiq.create_ticket(self.incident_iq, effect.payload))
        except (UpstreamError, incidentiq.TicketCreationError) as exc:
            logger.error("Ticket creation failed: %s", exc)
            return flow.TicketFailed(f"Failed to create ticket in Incident IQ. {exc}")
