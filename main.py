import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from config import API_TITLE, API_VERSION, HOST, PORT, LOG_LEVEL
from database import init_database
from auth import session_middleware
from routers import auth_router, navigation_router, users_router

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Initialize database on startup
    init_database()
    logger.info("Database ready")
    yield


app = FastAPI(title=API_TITLE, version=API_VERSION, lifespan=lifespan)

# Add middleware
app.middleware("http")(session_middleware)

# Include routers
app.include_router(auth_router.router)
app.include_router(navigation_router.router)
app.include_router(users_router.router)


# Root endpoint
@app.get("/")
def root():
    return {
        "message": "Hospital MIS Dashboard API",
        "docs": "/docs",
        "endpoints": {
            "login": "POST /auth/login",
            "logout": "POST /auth/logout",
            "session": "GET /auth/session",
            "pages": "GET /pages",
            "sidebar": "GET /nav/sidebar",
            "page_access": "GET /nav/access/{page_key}",
            "guard": "GET /nav/guard?page_key=...",
            "users": "GET/POST /users, PUT/DELETE /users/{user_id}",
            "current_user": "GET /users/me"
        },
        "default_users": {
            "admin": "admin123",
            "user": "user123"
        }
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host=HOST, port=PORT, reload=True)
