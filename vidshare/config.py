from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    # Database
    database_url: str = "sqlite:///./vidshare.db"

    # JWT
    secret_key: str = "your-secret-key-change-in-production"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24 * 7  # 7 days

    # Frontend URL for CORS
    frontend_url: str = "http://localhost:5173"

    # Uploads: folder paths (empty = backend/uploads/videos, backend/uploads/thumbnails)
    video_upload_dir: str = ""
    thumbnail_upload_dir: str = ""
    max_upload_mb: int = 500

    # Redis (optional pub/sub for realtime events across workers; empty = in-process only)
    redis_url: str = ""  # e.g. redis://localhost:6379/0
    broadcast_channel_prefix: str = "vidshare:"
    # Seconds a WebSocket send may take before the socket is dropped from its room
    ws_send_timeout: float = 5.0

    log_level: str = "INFO"

    class Config:
        env_file = ".env"


@lru_cache
def get_settings() -> Settings:
    return Settings()
