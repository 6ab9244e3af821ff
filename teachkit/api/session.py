"""
Signed-cookie sessions backed by Redis. The cookie carries only a signed session id;
{email, name} live server-side.
"""
from typing import Optional
from uuid import UUID, uuid4

import redis
from fastapi import Request, Response
from fastapi_sessions.backends.session_backend import SessionBackend
from fastapi_sessions.frontends.implementations import SessionCookie, CookieParameters
from pydantic import BaseModel

from teachkit.core.config import settings


class SessionData(BaseModel):
    email: str
    name: str | None = None


class RedisSessionBackend(SessionBackend[UUID, SessionData]):
    def __init__(self) -> None:
        self.client = redis.Redis.from_url(settings.redis_url, decode_responses=True)
        self.ttl_seconds = settings.session_ttl
        self.key_prefix = "session:"

    async def create(self, session_id: UUID, data: SessionData) -> None:
        self.client.setex(
            f"{self.key_prefix}{session_id}",
            self.ttl_seconds,
            data.model_dump_json(),
        )

    async def read(self, session_id: UUID) -> Optional[SessionData]:
        raw = self.client.get(f"{self.key_prefix}{session_id}")
        if not raw:
            return None
        return SessionData.model_validate_json(raw)

    async def update(self, session_id: UUID, data: SessionData) -> None:
        await self.create(session_id, data)

    async def delete(self, session_id: UUID) -> None:
        self.client.delete(f"{self.key_prefix}{session_id}")


session_backend = RedisSessionBackend()

cookie_params = CookieParameters(
    max_age=settings.session_ttl,
    samesite=settings.session_cookie_samesite,
    secure=settings.session_cookie_secure,
)

session_cookie = SessionCookie(
    cookie_name="teachkit_session",
    identifier="teachkit_session",
    auto_error=False,
    secret_key=settings.session_secret,
    cookie_params=cookie_params,
)


def get_session_id(request: Request) -> Optional[UUID]:
    # Without auto_error the frontend returns an error object instead of raising
    session_id = session_cookie(request)
    return session_id if isinstance(session_id, UUID) else None


async def read_session(request: Request) -> Optional[SessionData]:
    session_id = get_session_id(request)
    if not session_id:
        return None
    return await session_backend.read(session_id)


async def create_session(response: Response, email: str, name: str | None) -> UUID:
    session_id = uuid4()
    await session_backend.create(session_id, SessionData(email=email, name=name))
    session_cookie.attach_to_response(response, session_id)
    return session_id


async def end_session(request: Request, response: Response) -> None:
    session_id = get_session_id(request)
    if session_id:
        await session_backend.delete(session_id)
    session_cookie.delete_from_response(response)
