import logging
from fastapi import WebSocket
from typing import Dict, Optional, Set, Tuple

logger = logging.getLogger(__name__)

# Close code sent to sockets whose login was superseded or logged out
SESSION_EXPIRED_CODE = 4001

class ConnectionManager:
    """Websocket clients watching the leaderboard, keyed to the session that opened them."""

    def __init__(self):
        self.active_connections: Dict[WebSocket, Tuple[int, str]] = {}

    async def connect(self, websocket: WebSocket, user_id: int, device_id: str):
        self.active_connections[websocket] = (user_id, device_id)

    def disconnect(self, websocket: WebSocket):
        self.active_connections.pop(websocket, None)

    @property
    def has_listeners(self) -> bool:
        return bool(self.active_connections)

    @property
    def user_ids(self) -> Set[int]:
        return {user_id for user_id, _ in self.active_connections.values()}

    async def broadcast(self, message: dict, active_devices: Optional[Dict[int, str]] = None):
        """Send to every socket; with ``active_devices`` given, stale sessions are closed instead."""
        for websocket, (user_id, device_id) in list(self.active_connections.items()):
            if active_devices is not None and active_devices.get(user_id) != device_id:
                self.disconnect(websocket)
                try:
                    await websocket.close(code=SESSION_EXPIRED_CODE, reason="SessionExpired")
                except Exception as e:
                    logger.warning(f"Error closing superseded websocket: {str(e)}")
                continue
            try:
                await websocket.send_json(message)
            except Exception as e:
                logger.error(f"Error broadcasting to websocket: {str(e)}")
                self.disconnect(websocket)

manager = ConnectionManager()
