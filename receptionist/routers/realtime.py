import json

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from receptionist.logging_config import get_logger

logger = get_logger("realtime")

router = APIRouter()


@router.websocket("/ws")
async def live_updates(websocket: WebSocket):
    """Dashboard push channel.

    The socket connects without tenant context; the client then sends
    {"type": "auth", "tenantId": "..."} and receives {"type": "ready"}.
    """
    notifier = websocket.app.state.notifier
    await websocket.accept()
    tenant_id = None
    try:
        while True:
            raw = await websocket.receive_text()
            try:
                frame = json.loads(raw)
            except ValueError:
                continue
            if not isinstance(frame, dict) or frame.get("type") != "auth":
                continue

            requested = frame.get("tenantId") or frame.get("userId")
            if not requested:
                continue
            tenant_id = str(requested)
            notifier.subscribe(websocket, tenant_id)
            logger.info("Live session authenticated", extra={"context": {"tenant_id": tenant_id}})
            await websocket.send_json({"type": "ready"})
    except WebSocketDisconnect:
        pass
    finally:
        notifier.unsubscribe(websocket, tenant_id)
