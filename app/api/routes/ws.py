from fastapi import APIRouter, HTTPException, WebSocket, WebSocketDisconnect, status

from app.api.deps import authenticate_token
from app.core.constants import PHARMACY_QUEUE, UserRole
from app.core.logger import logger
from app.core.notifications import user_room
from app.db.session import async_session

router = APIRouter()

# Roles allowed to listen to the shared pharmacy queue
PHARMACY_LISTENERS = {UserRole.MEDICAL_SHOP.value, UserRole.ADMIN.value}

@router.websocket("/ws")
async def notifications_socket(websocket: WebSocket, token: str):
    """
    Push-only channel. The caller joins its own user room on connect and may
    ask to join the pharmacy queue; nothing else is read from the client.
    """
    try:
        async with async_session() as session:
            user = await authenticate_token(token, session)
    except HTTPException as exc:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=exc.detail)
        return

    manager = websocket.app.state.notifier
    await websocket.accept()
    manager.join(websocket, user_room(user.id))

    try:
        while True:
            try:
                message = await websocket.receive_json()
            except ValueError:
                continue
            event = message.get("event") if isinstance(message, dict) else None
            if event == "join_pharmacy_room":
                if user.role in PHARMACY_LISTENERS:
                    manager.join(websocket, PHARMACY_QUEUE)
                else:
                    logger.warning(f"User {user.id} ({user.role}) may not join the pharmacy queue")
            elif event == "join_user_room":
                manager.join(websocket, user_room(user.id))
    except WebSocketDisconnect:
        logger.info(f"Socket for user {user.id} disconnected")
    finally:
        manager.disconnect(websocket)
