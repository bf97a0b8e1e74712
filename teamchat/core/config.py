from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Client configuration loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Real-time channel (Socket.IO)
    CHAT_SERVER_URL: str = "http://localhost:4000"
    SOCKETIO_PATH: str = "socket.io"
    SOCKET_RECONNECT_ATTEMPTS: int = 5

    # REST backend (participant directory)
    API_BASE_URL: str = "http://localhost:4000/api"
    HTTP_TIMEOUT_SECONDS: float = 10.0

    # Credentials (issued by the sign-in flow)
    ACCESS_TOKEN: str | None = None

    # Session timing
    SUBSCRIBE_TIMEOUT_SECONDS: float = 10.0
    SEND_TIMEOUT_SECONDS: float = 10.0

    # Composer
    MENTION_TRIGGER: str = "@"


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
