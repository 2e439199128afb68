import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from vidshare.config import get_settings
from vidshare.core.redis import build_broadcaster, close_redis
from vidshare.errors import EngagementError
from vidshare.routers import auth, realtime, uploads, users, videos
from vidshare.services.rooms import RoomManager

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    broadcaster = await build_broadcaster()
    await broadcaster.start()
    app.state.broadcaster = broadcaster
    app.state.rooms = RoomManager(broadcaster, send_timeout=settings.ws_send_timeout)
    logger.info("Realtime broadcaster: %s", type(broadcaster).__name__)
    try:
        yield
    finally:
        await app.state.rooms.close()
        await broadcaster.stop()
        await close_redis()


app = FastAPI(title="Vidshare API", version="1.0.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.frontend_url],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(EngagementError)
async def engagement_error_handler(request: Request, exc: EngagementError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error(
        "Database error on %s %s: %s",
        request.method, request.url.path, exc.__class__.__name__,
        exc_info=exc,
    )
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


app.include_router(auth.router)
app.include_router(videos.router)
app.include_router(users.router)
app.include_router(uploads.router)
app.include_router(realtime.router)


@app.get("/")
def root():
    return {"message": "Vidshare API", "docs": "/docs"}
