from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ValidationError

from receptionist.services.result import Result


class Channel(str, Enum):
    WEBSITE = "website"
    TELEGRAM = "telegram"
    WHATSAPP = "whatsapp"
    FACEBOOK = "facebook"
    INSTAGRAM = "instagram"


@dataclass
class InboundRequest:
    """Transport-neutral view of a provider callback."""

    headers: Mapping[str, str] = field(default_factory=dict)
    query: Mapping[str, str] = field(default_factory=dict)
    body: bytes = b""

    def header(self, name: str) -> Optional[str]:
        value = self.headers.get(name)
        if value is None:
            lowered = name.lower()
            for key, candidate in self.headers.items():
                if key.lower() == lowered:
                    value = candidate
                    break
        if value is None:
            return None
        return value.strip() or None


@dataclass
class InboundMessage:
    external_id: str
    text: str
    message_id: Optional[str] = None
    display_name: Optional[str] = None
    metadata: dict[str, Any] = field(default_factory=dict)


class ChannelAdapter(ABC):
    """Provider-specific verify / extract / send capability set."""

    channel: Channel
    credentials_model: type[BaseModel]
    requires_config: bool = True

    def parse_credentials(self, config: Optional[dict]) -> Optional[BaseModel]:
        """Validate the stored credential blob; None means the channel is not configured."""
        try:
            return self.credentials_model.model_validate(config or {})
        except ValidationError:
            return None

    @abstractmethod
    def verify(self, credentials: BaseModel, request: InboundRequest) -> bool:
        """Check that a delivery really comes from the provider for this tenant."""

    def verify_challenge(self, credentials: BaseModel, query: Mapping[str, str]) -> Optional[str]:
        """Answer a subscription handshake. Channels without a handshake return None."""
        return None

    @abstractmethod
    def extract_batch(self, payload: Any) -> list[InboundMessage]:
        """Return every customer text message in the payload; unknown shapes yield []."""

    def extract_inbound(self, payload: Any) -> Optional[InboundMessage]:
        batch = self.extract_batch(payload)
        return batch[0] if batch else None

    @abstractmethod
    async def send_outbound(self, credentials: BaseModel, external_id: str, text: str) -> Result[dict]:
        """Deliver text through the provider API. Must not raise."""
