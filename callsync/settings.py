from pydantic import BaseModel
import os

class Settings(BaseModel):
    storage_backend: str = os.getenv("STORAGE_BACKEND", "sql")  # sql|mongo
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./callsync.db")
    mongo_uri: str = os.getenv("MONGO_URI", "mongodb://localhost:27017")
    mongo_db: str = os.getenv("MONGO_DB", "callsync")
    mongo_timeout_ms: int = int(os.getenv("MONGO_TIMEOUT_MS", "5000"))
    cors_origins: list[str] = os.getenv("CORS_ORIGINS", "*").split(",")

    default_limit: int = int(os.getenv("DEFAULT_LIMIT", "100"))
    max_limit: int = int(os.getenv("MAX_LIMIT", "1000"))

    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    host: str = os.getenv("HOST", "0.0.0.0")
    port: int = int(os.getenv("PORT", "3000"))

settings = Settings()
