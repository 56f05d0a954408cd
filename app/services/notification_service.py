"""
Real-time event notifications over the WebSocket rooms
"""

from datetime import datetime, timezone
from typing import Any, Dict, List

from app.api.ws import WebSocketManager

class NotificationService:
    """Broadcasts membership and photo activity to an event's room"""
    
    def __init__(self, websocket_manager: WebSocketManager):
        self.websocket_manager = websocket_manager
    
    async def broadcast_attendee_joined(self, event_id: str, attendee: Dict[str, Any], is_new: bool):
        """Broadcast a join; email addresses stay out of the room"""
        message = {
            "type": "attendee_joined",
            "attendee": {
                "name": attendee["name"],
                "relationship": attendee["relationship"],
            },
            "is_new": is_new,
            "timestamp": datetime.now(timezone.utc).isoformat()
        }
        
        await self.websocket_manager.broadcast_to_event(event_id, message)
    
    async def broadcast_photos_uploaded(self, event_id: str, photos: List[Dict[str, Any]]):
        """Broadcast newly shared photos"""
        message = {
            "type": "photo_uploaded",
            "photos": [{"id": photo["id"], "url": photo["url"]} for photo in photos],
            "timestamp": datetime.now(timezone.utc).isoformat()
        }
        
        await self.websocket_manager.broadcast_to_event(event_id, message)
