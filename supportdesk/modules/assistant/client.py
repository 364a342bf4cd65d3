"""
Support Assistant: answers customer questions with Claude and detects when
the customer asks for a ticket, returning a suggestion for them to confirm.
"""

import json
import logging
import re
from dataclasses import dataclass

from anthropic import AsyncAnthropic, APIError

from supportdesk.config import Settings
from supportdesk.models.assistant import AssistantMessage
from supportdesk.modules.assistant.prompts import (
    ASSISTANT_SYSTEM_PROMPT,
    FALLBACK_REPLY,
    NOT_CONFIGURED_REPLY,
)

logger = logging.getLogger(__name__)

JSON_FENCE_RE = re.compile(r"```(?:json)?\s*(\{.*\})\s*```", re.DOTALL)


@dataclass(frozen=True)
class TextReply:
    text: str


@dataclass(frozen=True)
class TicketSuggestion:
    title: str
    description: str


AssistantReply = TextReply | TicketSuggestion


def parse_reply(raw: str) -> AssistantReply:
    """Turn the model output into a text reply or a create-ticket suggestion."""
    content = raw.strip()
    match = JSON_FENCE_RE.search(content)
    if match:
        content = match.group(1)

    try:
        data = json.loads(content)
    except json.JSONDecodeError:
        return TextReply(raw.strip())

    if (
        isinstance(data, dict)
        and data.get("action") == "create_ticket"
        and data.get("title")
        and data.get("description")
    ):
        return TicketSuggestion(title=str(data["title"]).strip(), description=str(data["description"]).strip())
    return TextReply(raw.strip())


class SupportAssistant:

    def __init__(self, settings: Settings, client: AsyncAnthropic | None = None):
        self.settings = settings
        self.client = client
        if self.client is None and settings.anthropic_api_key:
            self.client = AsyncAnthropic(api_key=settings.anthropic_api_key)

    async def ask(self, history: list[AssistantMessage], text: str) -> AssistantReply:
        """Send the conversation so far plus the new message. Never raises on API failure."""
        if self.client is None:
            logger.error("ANTHROPIC_API_KEY is not set; assistant disabled")
            return TextReply(NOT_CONFIGURED_REPLY)

        messages = []
        for msg in history[-self.settings.assistant_history_limit:]:
            role = "user" if msg.role == "user" else "assistant"
            messages.append({"role": role, "content": msg.content})
        messages.append({"role": "user", "content": text})

        try:
            response = await self.client.messages.create(
                model=self.settings.anthropic_model,
                max_tokens=self.settings.assistant_max_tokens,
                system=ASSISTANT_SYSTEM_PROMPT.format(company_name=self.settings.company_name),
                messages=messages,
            )
            raw = response.content[0].text
        except (APIError, IndexError, AttributeError) as e:
            logger.error("Assistant error: %s", e)
            return TextReply(FALLBACK_REPLY)

        reply = parse_reply(raw)
        if isinstance(reply, TicketSuggestion):
            logger.info("Assistant suggested a ticket: %s", reply.title)
        return reply
