"""Direct message endpoints and the live-delivery WebSocket."""

import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from watchrebel.api.deps import get_current_user, messaging_service
from watchrebel.api.schemas import MessageBody
from watchrebel.models.tables import User
from watchrebel.services.messaging import MessagingService, serialize_message

logger = logging.getLogger(__name__)

router = APIRouter()
ws_router = APIRouter()


@router.get("/messages/conversations")
async def get_conversations(
    user: User = Depends(get_current_user),
    service: MessagingService = Depends(messaging_service),
):
    return {"conversations": await service.get_conversations(user.id)}


@router.get("/messages/{conversation_id}")
async def read_conversation(
    conversation_id: str,
    user: User = Depends(get_current_user),
    service: MessagingService = Depends(messaging_service),
):
    """Messages oldest-first; incoming ones are marked read."""
    return {"messages": await service.read_conversation(user.id, conversation_id)}


@router.post("/messages", status_code=201)
async def send_message(
    body: MessageBody,
    user: User = Depends(get_current_user),
    service: MessagingService = Depends(messaging_service),
):
    message = await service.send(user, body.receiver_id, body.content)
    return {"message": serialize_message(message, user)}


@router.delete("/messages/{message_id}")
async def delete_message(
    message_id: str,
    user: User = Depends(get_current_user),
    service: MessagingService = Depends(messaging_service),
):
    await service.delete_message(user.id, message_id)
    return {"message": "Сообщение удалено"}


# ── WebSocket ────────────────────────────────────────────────────

async def _authenticate(websocket: WebSocket, data) -> User | None:
    if not isinstance(data, dict) or data.get("type") != "auth" or not data.get("user_id"):
        return None
    async with websocket.app.state.session_factory() as session:
        user = await session.get(User, str(data["user_id"]))
    if user is None or user.is_blocked:
        return None
    return user


@ws_router.websocket("/ws")
async def messages_socket(websocket: WebSocket):
    """Authenticate with ``{"type": "auth", "user_id": ...}``, then receive events.

    Server → client events: ``new_message`` and ``messages_read``.
    """
    connections = websocket.app.state.connections
    await websocket.accept()
    user_id = None
    try:
        user = await _authenticate(websocket, await websocket.receive_json())
        if user is None:
            await websocket.send_json({"type": "auth", "success": False, "error": "Invalid user"})
            await websocket.close(code=1008)
            return
        user_id = user.id
        connections.register(user_id, websocket)
        await websocket.send_json({"type": "auth", "success": True, "userId": user_id})

        while True:
            data = await websocket.receive_json()
            if isinstance(data, dict) and data.get("type") == "ping":
                await websocket.send_json({"type": "pong"})
    except WebSocketDisconnect:
        pass
    except ValueError as e:
        logger.warning(f"Malformed WebSocket frame from {user_id or 'unauthenticated client'}: {e}")
        await websocket.close(code=1003)
    finally:
        if user_id is not None:
            connections.unregister(user_id, websocket)
