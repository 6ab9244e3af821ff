"""
Email sign-in backed by a server-side session.
"""
from fastapi import APIRouter, Body, Depends, Request, Response

from teachkit.api.deps import get_session_data
from teachkit.api.session import SessionData, create_session, end_session
from teachkit.core.errors import Unauthenticated
from teachkit.schemas.auth import SessionOut, SignInIn

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/signin", response_model=SessionOut)
async def signin(response: Response, body: SignInIn = Body(...)):
    await create_session(response, body.email, body.name)
    return SessionOut(email=body.email, name=body.name)


@router.post("/signout")
async def signout(request: Request, response: Response):
    await end_session(request, response)
    return {"message": "Signed out"}


@router.get("/session", response_model=SessionOut)
async def current_session(session: SessionData | None = Depends(get_session_data)):
    if session is None:
        raise Unauthenticated()
    return SessionOut(email=session.email, name=session.name)
