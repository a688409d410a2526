"""Operator alerts posted to a Telegram chat."""

from typing import Optional

import httpx

from receptionist.logging_config import get_logger

logger = get_logger("alert_service")


def format_alert(level: str, message: str, context: Optional[dict] = None) -> str:
    lines = [f"[{level}] {message}"]
    if context:
        lines.append("")
        lines.extend(f"{key}={value}" for key, value in context.items())
    return "\n".join(lines)


class Alerter:
    """Posts operator alerts through the Bot API.

    Disabled (every call returns False) unless both bot token and chat id are set.
    """

    def __init__(
        self,
        bot_token: Optional[str] = None,
        chat_id: Optional[str] = None,
        api_base: str = "https://api.telegram.org",
        timeout_seconds: float = 10.0,
    ):
        self.bot_token = bot_token
        self.chat_id = chat_id
        self.api_base = api_base.rstrip("/")
        self.timeout_seconds = timeout_seconds

    @property
    def enabled(self) -> bool:
        return bool(self.bot_token and self.chat_id)

    async def send(self, level: str, message: str, context: Optional[dict] = None) -> bool:
        if not self.enabled:
            logger.info("Alert skipped, no alert chat configured", extra={"context": {"level": level, "alert": message}})
            return False

        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                response = await client.post(
                    f"{self.api_base}/bot{self.bot_token}/sendMessage",
                    json={"chat_id": self.chat_id, "text": format_alert(level, message, context)},
                )
        except httpx.HTTPError as e:
            logger.error(f"Alert delivery failed: {e}")
            return False

        if response.status_code != 200:
            logger.error("Alert rejected", extra={"context": {"status_code": response.status_code}})
            return False
        return True

    async def error(self, message: str, context: Optional[dict] = None) -> bool:
        return await self.send("ERROR", message, context)

    async def warning(self, message: str, context: Optional[dict] = None) -> bool:
        return await self.send("WARNING", message, context)


def build_alerter(settings) -> Alerter:
    return Alerter(
        bot_token=settings.alert_bot_token,
        chat_id=settings.alert_chat_id,
        api_base=settings.telegram_api_base,
    )
