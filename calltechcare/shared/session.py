"""Anonymous visitor session carried in the `sessionId` cookie"""

import uuid

from fastapi import Request, Response

from ..config import COOKIE_SECURE

SESSION_ID_COOKIE = "sessionId"


def get_cart_session_id(request: Request, response: Response) -> str:
    """FastAPI dependency: the visitor's session id, minted and set on first use"""
    session_id = request.cookies.get(SESSION_ID_COOKIE)
    if not session_id:
        session_id = str(uuid.uuid4())
        response.set_cookie(
            SESSION_ID_COOKIE,
            session_id,
            httponly=True,
            secure=COOKIE_SECURE,
            samesite="lax",
            path="/",
        )
    request.state.cart_session_id = session_id
    return session_id
