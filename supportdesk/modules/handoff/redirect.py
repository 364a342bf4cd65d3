"""
Customer auto-redirect: once an admin accepts a customer's ticket, the
customer is sent to the live chat without doing anything.
"""

from supportdesk.models.ticket import Ticket, TicketStatus
from supportdesk.modules.handoff.effects import Navigate, Notice, live_chat_view

REDIRECT_NOTICE = Notice(
    title="Live Chat Ready!",
    description="Your ticket is now in live chat. Redirecting...",
)


def pending_redirect(tickets: list[Ticket], customer_id: str, current_view: str | None) -> Navigate | None:
    """Navigation to the customer's active live chat, or None if there is nothing to do.

    Uses the first of the customer's in-progress tickets that has a session,
    in the order given (newest first from the ticket list).
    """
    for ticket in tickets:
        if (
            ticket.customer_id == customer_id
            and ticket.status == TicketStatus.IN_PROGRESS
            and ticket.session_id is not None
        ):
            target = live_chat_view(ticket.session_id)
            if current_view == target:
                return None
            return Navigate(target)
    return None
