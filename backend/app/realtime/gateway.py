import socketio
import logging
from typing import Optional

from app.core.security import decode_token
from app.core.config import settings
from app.models.notification import Notification

logger = logging.getLogger(__name__)

sio = socketio.AsyncServer(
    async_mode="asgi",
    cors_allowed_origins=settings.CORS_ORIGINS,
)

socket_app = socketio.ASGIApp(sio, socketio_path="")


def user_room(user_id) -> str:
    return f"user:{user_id}"


def get_user_from_token(token: str) -> Optional[dict]:
    payload = decode_token(token)
    if not payload or payload.get("type") != "access":
        return None
    if not payload.get("sub"):
        return None
    return {"id": payload["sub"], "role": payload.get("role")}


@sio.event
async def connect(sid, environ, auth):
    token = auth.get("token") if auth else None
    if not token:
        return False

    user = get_user_from_token(token)
    if not user:
        return False

    # Personal room receives notification pushes
    await sio.enter_room(sid, user_room(user["id"]))
    return True


async def push_notification(notification: Notification) -> None:
    await sio.emit(
        "notification",
        {
            "id": str(notification.id),
            "type": notification.type.value,
            "title": notification.title,
            "message": notification.message,
            "related_id": str(notification.related_id) if notification.related_id else None,
            "created_at": notification.created_at.isoformat() if notification.created_at else None,
        },
        room=user_room(notification.recipient_id),
    )
