from datetime import datetime, timedelta, timezone
from uuid import uuid4

from supportdesk.models.ticket import Ticket, TicketStatus
from supportdesk.modules.handoff.redirect import pending_redirect

BASE = datetime(2026, 2, 10, 8, 0, tzinfo=timezone.utc)


def ticket(status, customer_id="cust-1", session_id=None, age=0) -> Ticket:
    return Ticket(
        id=uuid4(),
        title="Email not syncing",
        customer_id=customer_id,
        status=status,
        session_id=session_id,
        created_at=BASE - timedelta(minutes=age),
    )


def test_redirects_to_accepted_ticket():
    session_id = uuid4()
    tickets = [ticket(TicketStatus.PENDING), ticket(TicketStatus.IN_PROGRESS, session_id=session_id, age=5)]

    redirect = pending_redirect(tickets, "cust-1", "ticket-list")

    assert redirect.view == f"live-chat/{session_id}"


def test_no_redirect_when_already_there():
    session_id = uuid4()
    tickets = [ticket(TicketStatus.IN_PROGRESS, session_id=session_id)]

    assert pending_redirect(tickets, "cust-1", f"live-chat/{session_id}") is None


def test_no_redirect_for_pending_or_resolved():
    tickets = [ticket(TicketStatus.PENDING), ticket(TicketStatus.RESOLVED, session_id=uuid4())]
    assert pending_redirect(tickets, "cust-1", None) is None


def test_in_progress_without_session_is_skipped():
    session_id = uuid4()
    tickets = [ticket(TicketStatus.IN_PROGRESS), ticket(TicketStatus.IN_PROGRESS, session_id=session_id, age=3)]

    assert pending_redirect(tickets, "cust-1", None).view == f"live-chat/{session_id}"


def test_ignores_other_customers_tickets():
    tickets = [ticket(TicketStatus.IN_PROGRESS, customer_id="cust-2", session_id=uuid4())]
    assert pending_redirect(tickets, "cust-1", None) is None


def test_first_in_list_wins():
    newest, older = uuid4(), uuid4()
    tickets = [
        ticket(TicketStatus.IN_PROGRESS, session_id=newest),
        ticket(TicketStatus.IN_PROGRESS, session_id=older, age=60),
    ]

    assert pending_redirect(tickets, "cust-1", None).view == f"live-chat/{newest}"
