from fastapi import APIRouter, Depends, HTTPException
from fastapi.concurrency import run_in_threadpool

from auth import build_session, create_access_token, get_session, new_session_id
from config import ACCESS_TOKEN_EXPIRE_MINUTES, DEFAULT_LANDING_PATH, LOGIN_PATH
from database import SQLiteSessionStorage, purge_expired_sessions
from models import LoginRequest, LogoutResponse, SessionResponse, TokenResponse, identity_response
from session import Session

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/login", response_model=TokenResponse)
async def login(request: LoginRequest):
    """Check credentials and open a new session"""
    if not request.username or not request.password:
        raise HTTPException(status_code=400, detail="Please enter both username and password")

    await run_in_threadpool(purge_expired_sessions)

    session_id = new_session_id()
    targets = []
    session = build_session(SQLiteSessionStorage(session_id), on_navigate=targets.append)
    await session.restore_session()

    if not await session.login(request.username, request.password):
        raise HTTPException(status_code=401, detail="Invalid username or password")

    access_token = create_access_token(data={"sub": session_id, "role": session.identity.role})
    return TokenResponse(
        access_token=access_token,
        expires_in=ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        redirect_to=targets[-1] if targets else DEFAULT_LANDING_PATH,
    )


@router.post("/logout", response_model=LogoutResponse)
def logout(session: Session = Depends(get_session)):
    """Drop the caller's session records"""
    targets = []
    session.on_navigate = targets.append
    session.logout()
    return LogoutResponse(redirect_to=targets[-1] if targets else LOGIN_PATH)


@router.get("/session", response_model=SessionResponse)
def current_session(session: Session = Depends(get_session)):
    """Session state as seen by the dashboard shell"""
    if session.identity is None:
        return SessionResponse(state=session.state.value, loading=session.loading)

    return SessionResponse(
        state=session.state.value,
        loading=session.loading,
        user=identity_response(session.identity),
        all_access=session.authorized_pages.is_all,
        pages=session.accessible_page_keys(),
    )
