import pytest
from fastapi.testclient import TestClient

from supportdesk.config import Settings
from supportdesk.deps import Services
from supportdesk.main import create_app
from supportdesk.models.live_chat import Role
from supportdesk.models.ticket import NewTicket
from supportdesk.modules.assistant.client import SupportAssistant
from supportdesk.modules.handoff.coordinator import HandoffCoordinator
from supportdesk.modules.handoff.machine import Actor

from tests.fakes import (
    FakeConversationStore,
    FakeFeed,
    FakeMeetingStore,
    FakeMessageStore,
    FakeSessionStore,
    FakeTicketStore,
)

CUSTOMER = Actor(user_id="cust-1", role=Role.CUSTOMER)
OTHER_CUSTOMER = Actor(user_id="cust-2", role=Role.CUSTOMER)
ADMIN_A = Actor(user_id="admin-a", role=Role.ADMIN)
ADMIN_B = Actor(user_id="admin-b", role=Role.ADMIN)


def headers(actor: Actor) -> dict:
    return {"X-User-Id": actor.user_id, "X-User-Role": actor.role.value}


@pytest.fixture
def settings():
    return Settings(_env_file=None, anthropic_api_key="", database_url="postgresql://unused")


@pytest.fixture
def feed():
    return FakeFeed()


@pytest.fixture
def tickets(feed):
    return FakeTicketStore(feed)


@pytest.fixture
def sessions(feed):
    return FakeSessionStore(feed)


@pytest.fixture
def messages(feed):
    return FakeMessageStore(feed)


@pytest.fixture
def coordinator(tickets, sessions, messages):
    return HandoffCoordinator(tickets, sessions, messages)


@pytest.fixture
def open_ticket(tickets):
    async def _open(customer: Actor = CUSTOMER, title: str = "Printer offline"):
        return await tickets.create(customer.user_id, NewTicket(title=title, description="It stopped printing."))
    return _open


@pytest.fixture
def services(settings, tickets, sessions, messages, feed):
    return Services(
        settings=settings,
        tickets=tickets,
        sessions=sessions,
        messages=messages,
        meetings=FakeMeetingStore(),
        conversations=FakeConversationStore(),
        feed=feed,
        assistant=SupportAssistant(settings),
    )


@pytest.fixture
def client(services):
    app = create_app(services=services)
    with TestClient(app) as c:
        yield c
