import logging
import uuid
from datetime import datetime, timedelta
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.concurrency import run_in_threadpool
from jose import JWTError, jwt

from config import SECRET_KEY, ALGORITHM, ACCESS_TOKEN_EXPIRE_MINUTES
from database import SQLiteSessionStorage, find_users_by_credentials
from guard import guard
from pages import REGISTRY
from session import MemoryStorage, Session, SessionContextError

logger = logging.getLogger(__name__)

# Paths served without restoring a session
SESSIONLESS_PATHS = ["/docs", "/redoc", "/openapi.json"]


def new_session_id() -> str:
    return uuid.uuid4().hex


def create_access_token(data: dict):
    """Create JWT access token"""
    to_encode = data.copy()
    expire = datetime.utcnow() + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def decode_session_id(token: str) -> Optional[str]:
    """Session id carried by a bearer token, None if the token is unusable"""
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError as e:
        logger.warning(f"Rejected bearer token: {e}")
        return None
    return payload.get("sub")


def build_session(storage, on_navigate=None) -> Session:
    return Session(
        storage,
        registry=REGISTRY,
        user_lookup=find_users_by_credentials,
        on_navigate=on_navigate,
        run_blocking=run_in_threadpool,
    )


async def open_session(authorization: Optional[str]) -> Session:
    """Restore the session named by an Authorization header, anonymous otherwise"""
    session_id = None
    if authorization and authorization.startswith("Bearer "):
        session_id = decode_session_id(authorization.split(" ", 1)[1])

    storage = SQLiteSessionStorage(session_id) if session_id else MemoryStorage()
    session = build_session(storage)
    await session.restore_session()
    return session


async def session_middleware(request: Request, call_next):
    """Bind the caller's restored Session to request.state"""
    if request.url.path not in SESSIONLESS_PATHS and request.method != "OPTIONS":
        request.state.session = await open_session(request.headers.get("Authorization"))

    response = await call_next(request)
    return response


def get_session(request: Request) -> Session:
    """Session bound by session_middleware"""
    session = getattr(request.state, "session", None)
    if session is None:
        raise SessionContextError(f"No session bound for {request.url.path}; is session_middleware installed?")
    return session


def require_page(page_key: Optional[str] = None):
    """Dependency that redirects unless the session may open `page_key`"""
    def check_page(session: Session = Depends(get_session)):
        decision = guard(session, page_key)
        if not decision.render:
            raise HTTPException(
                status_code=status.HTTP_303_SEE_OTHER,
                detail=f"Redirecting to {decision.redirect_to}",
                headers={"Location": decision.redirect_to},
            )
        return session
    return check_page
