from typing import List, Optional

from receptionist.services.llm.base import LLMProvider, LLMResponse


class EchoProvider(LLMProvider):
    """Stand-in used when no API key is configured: repeats the last user turn."""

    async def generate(
        self,
        messages: List[dict],
        model: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 1000,
    ) -> LLMResponse:
        last_user = next((m["content"] for m in reversed(messages) if m.get("role") == "user"), "")
        return LLMResponse(content=f"Echo: {last_user}", model="echo")
