from dataclasses import asdict

from supportdesk.modules.handoff.coordinator import Outcome


def outcome_payload(outcome: Outcome) -> dict:
    """JSON body for an HTTP response carrying a hand-off outcome."""
    return {
        "state": outcome.state.value,
        "ticket": outcome.ticket.model_dump(mode="json") if outcome.ticket else None,
        "session": outcome.session.model_dump(mode="json") if outcome.session else None,
        "message": outcome.message.model_dump(mode="json") if outcome.message else None,
        "messages": [m.model_dump(mode="json") for m in outcome.messages],
        "navigate": outcome.navigate,
        "notices": [asdict(n) for n in outcome.notices],
    }
