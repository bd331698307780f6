import uuid

from app.core.security import create_access_token
from app.realtime import gateway


async def test_connect_joins_personal_room(monkeypatch):
    joined = []

    async def enter_room(sid, room):
        joined.append((sid, room))

    monkeypatch.setattr(gateway.sio, "enter_room", enter_room)
    user_id = uuid.uuid4()
    token = create_access_token(str(user_id), "student")

    assert await gateway.connect("sid-1", {}, {"token": token}) is True
    assert joined == [("sid-1", f"user:{user_id}")]


async def test_connect_rejects_missing_or_bad_token(monkeypatch):
    joined = []

    async def enter_room(sid, room):
        joined.append((sid, room))

    monkeypatch.setattr(gateway.sio, "enter_room", enter_room)

    assert await gateway.connect("sid-2", {}, None) is False
    assert await gateway.connect("sid-3", {}, {"token": "not-a-jwt"}) is False
    assert joined == []
