"""
WebSocket rooms for live event activity
"""

import json
import logging
from typing import Dict, List
from fastapi import APIRouter, WebSocket, WebSocketDisconnect, Depends
from sqlalchemy.orm import Session

from app.core.db import get_db
from app.services.repositories import EventRepo

logger = logging.getLogger(__name__)

class WebSocketManager:
    """Tracks the open sockets of each event room"""

    def __init__(self):
        # event_id -> list of websockets
        self.rooms: Dict[str, List[WebSocket]] = {}

    async def connect(self, websocket: WebSocket, event_id: str):
        await websocket.accept()
        self.rooms.setdefault(event_id, []).append(websocket)
        logger.info(f"WebSocket joined room {event_id} ({len(self.rooms[event_id])} open)")

    def disconnect(self, websocket: WebSocket, event_id: str):
        sockets = self.rooms.get(event_id)
        if not sockets or websocket not in sockets:
            return
        sockets.remove(websocket)
        logger.info(f"WebSocket left room {event_id} ({len(sockets)} open)")
        if not sockets:
            del self.rooms[event_id]

    async def send_personal_message(self, message: dict, websocket: WebSocket):
        try:
            await websocket.send_text(json.dumps(message))
        except Exception as e:
            logger.error(f"Error sending personal message: {e}")

    async def broadcast_to_event(self, event_id: str, message: dict):
        """Send ``message`` to every socket in the room, dropping dead ones"""
        sockets = list(self.rooms.get(event_id, []))
        if not sockets:
            logger.debug(f"No listeners for event {event_id}")
            return

        payload = json.dumps(message)
        dead = []
        for websocket in sockets:
            try:
                await websocket.send_text(payload)
            except Exception as e:
                logger.error(f"Error broadcasting to websocket: {e}")
                dead.append(websocket)

        for websocket in dead:
            self.disconnect(websocket, event_id)

    def get_connection_count(self, event_id: str) -> int:
        return len(self.rooms.get(event_id, []))

# Global WebSocket manager instance
websocket_manager = WebSocketManager()

router = APIRouter()

@router.websocket("/events/{event_id}")
async def websocket_endpoint(
    websocket: WebSocket,
    event_id: str,
    db: Session = Depends(get_db)
):
    """Live activity feed for one event"""
    event = EventRepo.get(db, event_id)
    if not event:
        await websocket.close(code=4004, reason="Event not found")
        return

    await websocket_manager.connect(websocket, event_id)

    try:
        await websocket_manager.send_personal_message({
            "type": "connection",
            "message": f"Connected to event: {event['name']}",
            "event_id": event_id,
            "connection_count": websocket_manager.get_connection_count(event_id)
        }, websocket)

        while True:
            data = await websocket.receive_text()
            try:
                client_message = json.loads(data)
            except json.JSONDecodeError:
                logger.warning(f"Invalid JSON received from WebSocket: {data}")
                continue

            if isinstance(client_message, dict) and client_message.get("type") == "ping":
                await websocket_manager.send_personal_message({
                    "type": "pong",
                    "timestamp": client_message.get("timestamp")
                }, websocket)

    except WebSocketDisconnect:
        pass
    finally:
        websocket_manager.disconnect(websocket, event_id)
