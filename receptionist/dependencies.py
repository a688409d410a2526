from typing import Generator

from fastapi import Request
from sqlalchemy.orm import Session

from receptionist.services.channels import ChannelAdapter
from receptionist.services.live_notifier import LiveNotifier
from receptionist.services.pipeline import InboundPipeline


def get_db(request: Request) -> Generator[Session, None, None]:
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()


def get_pipeline(request: Request) -> InboundPipeline:
    return request.app.state.pipeline


def get_notifier(request: Request) -> LiveNotifier:
    return request.app.state.notifier


def get_adapter_or_none(request: Request, channel: str) -> ChannelAdapter | None:
    for key, adapter in request.app.state.adapters.items():
        if key.value == channel:
            return adapter
    return None
