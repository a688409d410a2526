from receptionist.config import Settings
from receptionist.services.llm.base import LLMProvider, LLMResponse
from receptionist.services.llm.echo_provider import EchoProvider
from receptionist.services.llm.openai_provider import OpenAIProvider


def build_provider(settings: Settings) -> LLMProvider:
    if not settings.openai_api_key:
        return EchoProvider()
    return OpenAIProvider(
        api_key=settings.openai_api_key,
        default_model=settings.openai_model,
        base_url=settings.openai_base_url,
        timeout_seconds=settings.completion_timeout_seconds,
    )


__all__ = ["LLMProvider", "LLMResponse", "EchoProvider", "OpenAIProvider", "build_provider"]
