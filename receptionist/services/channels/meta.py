"""Shared plumbing for channels delivered through the Meta Graph API."""

import hashlib
import hmac
from typing import Mapping, Optional

import httpx

from receptionist.logging_config import get_logger
from receptionist.services.channels.base import ChannelAdapter, InboundRequest
from receptionist.services.result import Result

logger = get_logger("channels.meta")

SIGNATURE_HEADER = "X-Hub-Signature-256"
SIGNATURE_PREFIX = "sha256="


def compute_signature(app_secret: str, body: bytes) -> str:
    digest = hmac.new(app_secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return f"{SIGNATURE_PREFIX}{digest}"


def verify_signature(app_secret: str, body: bytes, signature_header: Optional[str]) -> bool:
    if not signature_header or not signature_header.startswith(SIGNATURE_PREFIX):
        return False
    expected = compute_signature(app_secret, body)
    return hmac.compare_digest(expected, signature_header)


class GraphChannelAdapter(ChannelAdapter):
    """Base for WhatsApp, Messenger and Instagram: signed POSTs, hub.challenge handshake."""

    def __init__(
        self,
        api_base: str = "https://graph.facebook.com",
        api_version: str = "v20.0",
        timeout: float = 15.0,
    ):
        self.api_base = api_base.rstrip("/")
        self.api_version = api_version
        self.timeout = timeout

    def verify(self, credentials, request: InboundRequest) -> bool:
        app_secret = getattr(credentials, "app_secret", None)
        if not app_secret:
            logger.warning(
                "Accepting unsigned delivery: no app secret configured",
                extra={"context": {"channel": self.channel.value}},
            )
            return True
        return verify_signature(app_secret, request.body, request.header(SIGNATURE_HEADER))

    def verify_challenge(self, credentials, query: Mapping[str, str]) -> Optional[str]:
        if query.get("hub.mode") != "subscribe":
            return None
        provided = query.get("hub.verify_token") or ""
        expected = getattr(credentials, "verify_token", None) or ""
        if not provided or not expected:
            return None
        if not hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8")):
            return None
        return query.get("hub.challenge")

    def graph_url(self, path: str) -> str:
        return f"{self.api_base}/{self.api_version}/{path.lstrip('/')}"

    async def _post_graph(
        self,
        path: str,
        payload: dict,
        access_token: str,
        token_in_query: bool = False,
    ) -> Result[dict]:
        url = self.graph_url(path)
        headers = {}
        params = {}
        if token_in_query:
            params["access_token"] = access_token
        else:
            headers["Authorization"] = f"Bearer {access_token}"

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(url, json=payload, headers=headers, params=params)
        except Exception as e:
            logger.error(f"Graph API error: {e}", extra={"context": {"channel": self.channel.value}})
            return Result.failure(str(e), "send_error")

        if response.status_code >= 400:
            logger.error(
                "Graph API rejected message",
                extra={
                    "context": {
                        "channel": self.channel.value,
                        "status_code": response.status_code,
                        "body": response.text[:500],
                    }
                },
            )
            return Result.failure(f"HTTP {response.status_code}", "send_error")

        try:
            data = response.json()
        except ValueError:
            data = {}
        return Result.success(data)
