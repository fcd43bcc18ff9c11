# Wok.AI API Main Entry Point
import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded

from .settings import settings
from .realtime.cook_bus import notify_session_update, notify_timer_complete
from .services.cook_session import SessionManager
from .routers.ready import router as ready_router
from .routers.cook import router as cook_router
from .routers.recipes import router as recipes_router
from .routers.conversation import router as conversation_router

# Configure structured logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[logging.StreamHandler(sys.stdout)]
)
logger = logging.getLogger("wokai")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Sessions live only as long as this app instance
    app.state.sessions = SessionManager(
        tick_seconds=settings.timer_tick_seconds,
        history_limit=settings.tool_history_limit,
        on_updated=notify_session_update,
        on_timer_complete=notify_timer_complete,
    )
    logger.info("Cook session manager ready")
    try:
        yield
    finally:
        app.state.sessions.close_all()
        logger.info("Closed all cook sessions")


# Rate limiter (per-IP)
limiter = Limiter(key_func=get_remote_address, default_limits=["100/minute"])

app = FastAPI(title="Wok.AI API", version="0.1.0", lifespan=lifespan)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(ready_router, prefix="/api", tags=["ready"])
app.include_router(cook_router, prefix="/api", tags=["cook"])
app.include_router(recipes_router, prefix="/api", tags=["recipes"])
app.include_router(conversation_router, prefix="/api", tags=["conversation"])
