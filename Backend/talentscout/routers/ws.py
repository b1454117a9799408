# backend/talentscout/routers/ws.py
import asyncio
import json
import logging
import uuid

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from talentscout.core.models import ProgressEvent
from talentscout.services.progress_broadcaster import PROCESSING_STARTED

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Progress"])


@router.websocket("/ws")
async def progress_socket(websocket: WebSocket):
    """Stream every progress event to the client until it disconnects."""
    broadcaster = websocket.app.state.pipeline.broadcaster
    await websocket.accept()
    client_id = f"client_{uuid.uuid4().hex[:12]}"
    queue = broadcaster.subscribe()

    welcome = ProgressEvent(
        type=PROCESSING_STARTED,
        data={"message": "Connected to TalentScout progress stream", "clientId": client_id},
    )
    await websocket.send_json(welcome.model_dump(by_alias=True, mode="json"))

    async def forward_events():
        while True:
            event = await queue.get()
            await websocket.send_json(event.model_dump(by_alias=True, mode="json"))

    sender = asyncio.create_task(forward_events())
    try:
        while True:
            message = await websocket.receive_text()
            try:
                data = json.loads(message)
            except json.JSONDecodeError:
                logger.warning("Ignoring malformed message from %s", client_id)
                continue
            if isinstance(data, dict) and data.get("type") == "join_session" and data.get("sessionId"):
                logger.info("Client %s joined session %s", client_id, data["sessionId"])
    except WebSocketDisconnect:
        logger.info("WebSocket client disconnected: %s", client_id)
    finally:
        sender.cancel()
        broadcaster.unsubscribe(queue)
