"""Completion gateway: history + tenant customization -> next assistant turn.

The model may request a booking by ending its reply with a marker line::

    [[BOOKING {"service": "...", "datetime": "...", "customer_name": "...", "notes": "..."}]]

The marker is stripped from the text the customer sees and surfaced as a side effect.
"""

import asyncio
import json
import re
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from receptionist.logging_config import get_logger
from receptionist.services.llm.base import LLMProvider
from receptionist.services.tenant_service import AiContext

logger = get_logger("completion_service")

BOOKING_MARKER_RE = re.compile(r"\[\[BOOKING\s*(.*?)\]\]", re.DOTALL)

BASE_INSTRUCTIONS = (
    "You are the AI receptionist for {business_name}. "
    "Answer customer questions politely and concisely, using only the business information you were given. "
    "If you do not know something, say that a team member will follow up."
)

BOOKING_PROTOCOL = (
    "When the customer clearly asks to book an appointment and has given a service and a preferred time, "
    "confirm that the request was passed on to the team and add one final line exactly like:\n"
    '[[BOOKING {"service": "<service>", "datetime": "<requested time>", '
    '"customer_name": "<name or null>", "notes": "<notes or null>"}]]\n'
    "Never mention this line to the customer."
)

ROLE_MAP = {
    "customer": "user",
    "ai": "assistant",
    "agent": "assistant",
}


@dataclass
class SideEffect:
    kind: str
    data: dict[str, Any] = field(default_factory=dict)


@dataclass
class CompletionResult:
    text: str
    side_effect: Optional[SideEffect] = None
    used_fallback: bool = False


def build_system_prompt(ai_context: AiContext) -> str:
    parts = [BASE_INSTRUCTIONS.format(business_name=ai_context.business_name)]

    if ai_context.preferred_language:
        parts.append(f"Reply in the customer's language; default to '{ai_context.preferred_language}'.")
    if ai_context.language_instructions:
        parts.append(ai_context.language_instructions.strip())
    if ai_context.prompt_override:
        parts.append(ai_context.prompt_override.strip())

    if ai_context.training:
        grouped: dict[str, list[str]] = {}
        for snippet in ai_context.training:
            grouped.setdefault(snippet.category or "general", []).append(snippet.content.strip())
        lines = ["Business information:"]
        for category, contents in grouped.items():
            lines.append(f"## {category}")
            lines.extend(f"- {content}" for content in contents)
        parts.append("\n".join(lines))

    parts.append(BOOKING_PROTOCOL)
    return "\n\n".join(parts)


def _field(item: Any, name: str) -> Any:
    if isinstance(item, dict):
        return item.get(name)
    return getattr(item, name, None)


def build_messages(ai_context: AiContext, history: Iterable[Any], new_inbound_text: str, history_limit: int) -> list[dict]:
    """Chat-completions message list: system prompt, recent history, new inbound text."""
    turns = []
    for item in history:
        role = ROLE_MAP.get(str(_field(item, "role")))
        content = _field(item, "content")
        if role and content:
            turns.append({"role": role, "content": content})

    if not turns or turns[-1] != {"role": "user", "content": new_inbound_text}:
        turns.append({"role": "user", "content": new_inbound_text})

    if history_limit > 0:
        turns = turns[-history_limit:]

    return [{"role": "system", "content": build_system_prompt(ai_context)}, *turns]


def extract_side_effect(text: str) -> tuple[str, Optional[SideEffect]]:
    side_effect = None
    for match in BOOKING_MARKER_RE.finditer(text):
        if side_effect is not None:
            continue
        try:
            data = json.loads(match.group(1))
        except ValueError:
            logger.warning("Malformed booking marker ignored", extra={"context": {"marker": match.group(0)[:200]}})
            continue
        if isinstance(data, dict):
            side_effect = SideEffect(kind="booking", data=data)
    cleaned = BOOKING_MARKER_RE.sub("", text).strip()
    return cleaned, side_effect


BOOKING_ACTION_PROMPTS = {
    "confirmed": (
        "The business owner has APPROVED the {service} booking for {requested_time}. "
        "Confirm this good news to the customer and give any next steps."
    ),
    "cancelled": (
        "The business owner has REJECTED the {service} booking for {requested_time}.{comment} "
        "Politely inform the customer and offer alternative options or times."
    ),
    "reschedule_requested": (
        "The business owner needs to RESCHEDULE the {service} booking for {requested_time}.{comment} "
        "Inform the customer and help them find a new suitable time."
    ),
}

BOOKING_UPDATE_PROMPT = "There has been an update to the {service} booking. Inform the customer about the status change."


def booking_action_prompt(
    status: str,
    service: Optional[str],
    requested_time: Optional[str],
    comment: Optional[str] = None,
) -> str:
    """Instruction turn asking the model to tell the customer about an owner decision."""
    template = BOOKING_ACTION_PROMPTS.get(status, BOOKING_UPDATE_PROMPT)
    details = "Reason" if status == "cancelled" else "Details"
    return template.format(
        service=service or "requested",
        requested_time=requested_time or "the requested time",
        comment=f" {details}: {comment}." if comment else "",
    )


class CompletionGateway:
    def __init__(
        self,
        provider: LLMProvider,
        fallback_reply: str,
        timeout_seconds: float = 20.0,
        history_limit: int = 20,
        temperature: float = 0.6,
        model: Optional[str] = None,
    ):
        self.provider = provider
        self.fallback_reply = fallback_reply
        self.timeout_seconds = timeout_seconds
        self.history_limit = history_limit
        self.temperature = temperature
        self.model = model

    async def respond(self, ai_context: AiContext, history: Iterable[Any], new_inbound_text: str) -> CompletionResult:
        """Return the next assistant message. Never raises: failures yield the fallback reply."""
        messages = build_messages(ai_context, history, new_inbound_text, self.history_limit)
        context = {"tenant_id": ai_context.tenant_id, "turns": len(messages) - 1}

        try:
            response = await asyncio.wait_for(
                self.provider.generate(messages, model=self.model, temperature=self.temperature),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning("Completion timed out, using fallback", extra={"context": context})
            return CompletionResult(text=self.fallback_reply, used_fallback=True)
        except Exception as e:
            logger.error(f"Completion failed: {e}", extra={"context": context}, exc_info=True)
            return CompletionResult(text=self.fallback_reply, used_fallback=True)

        text, side_effect = extract_side_effect(response.content or "")
        if not text:
            logger.warning("Completion returned empty text, using fallback", extra={"context": context})
            return CompletionResult(text=self.fallback_reply, side_effect=side_effect, used_fallback=True)

        return CompletionResult(text=text, side_effect=side_effect)
