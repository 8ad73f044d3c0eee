from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    APP_NAME: str = "PBLab"
    APP_VERSION: str = "1.0.0"
    APP_BASE_URL: str = "http://localhost:8000"

    SECRET_KEY: str = "dev-secret-key-change-me"
    DATABASE_URL: str = "sqlite:///pblab.db"
    LOG_LEVEL: str = "INFO"

    # Auth
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24
    AUTH_COOKIE_NAME: str = "pblab_access_token"
    SESSION_COOKIE_SAMESITE: str = "Lax"
    SESSION_COOKIE_SECURE: bool = False

    # Invites
    INVITE_ISSUER: str = "pblab"
    TEAM_INVITE_EXPIRE_HOURS: int = 24
    USER_INVITE_EXPIRE_DAYS: int = 7

    # Generative AI completion service
    AI_API_URL: str | None = None
    AI_API_KEY: str | None = None
    AI_MODEL: str = "gemini-2.5-flash"
    AI_TIMEOUT_SECONDS: float = 60.0

    # Limits
    COMMENT_MAX_LENGTH: int = 2000
    NOTIFICATIONS_DEFAULT_LIMIT: int = 50


settings = Settings()
