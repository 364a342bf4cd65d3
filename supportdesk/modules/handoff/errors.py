"""
Hand-off failures. Each carries the notice shown to the user and, for
terminal conditions, the view the user is sent to.
"""

from supportdesk.modules.handoff.effects import TICKET_LIST_VIEW, Notice


class HandoffError(Exception):
    status_code = 400
    title = "Error"
    navigate_to: str | None = None

    def __init__(self, description: str):
        super().__init__(description)
        self.description = description

    @property
    def notice(self) -> Notice:
        return Notice(title=self.title, description=self.description, variant="destructive")


class AccessDenied(HandoffError):
    status_code = 403
    title = "Access Denied"
    navigate_to = TICKET_LIST_VIEW


class NotFound(HandoffError):
    status_code = 404
    title = "Not Found"
    navigate_to = TICKET_LIST_VIEW


class InvalidTransition(HandoffError):
    status_code = 409
    title = "Not Allowed"


class WriteFailed(HandoffError):
    status_code = 502
    title = "Write Failed"


class PartialCascadeFailure(WriteFailed):
    """The session was closed but its ticket could not be marked resolved."""
    title = "Chat Closed, Ticket Not Resolved"


class ReadFailed(HandoffError):
    status_code = 503
    title = "Load Failed"
