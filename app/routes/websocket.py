import logging
from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from sqlalchemy.ext.asyncio import AsyncSession
from app.core.errors import AuthenticationError
from app.core.security import resolve_session
from app.core.websocket import SESSION_EXPIRED_CODE, manager
from app.db.session import get_db
from app.routes.teams import results_to_list
from app.services import scoreboard

router = APIRouter()
logger = logging.getLogger(__name__)

@router.websocket("/ws/results")
async def results_socket(websocket: WebSocket, db: AsyncSession = Depends(get_db)):
    """Push the leaderboard on connect and after every review."""
    token = websocket.query_params.get("token")
    await websocket.accept()

    try:
        user = await resolve_session(db, token)
    except AuthenticationError as e:
        logger.info(f"Rejected leaderboard socket: {e.kind}")
        await websocket.close(code=SESSION_EXPIRED_CODE, reason=e.kind)
        return
    username = user.username

    # Registered before the snapshot is read
    await manager.connect(websocket, user.id, user.active_device_id)
    logger.info(f"{username} is watching the leaderboard")
    try:
        entries = await scoreboard.results(db)
        # Release the read so this idle connection holds no database state
        await db.commit()
        await websocket.send_json({"type": "results", "results": results_to_list(entries)})
        while True:
            # Clients only listen; incoming text is treated as a keepalive
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        manager.disconnect(websocket)
        logger.info(f"{username} stopped watching the leaderboard")
