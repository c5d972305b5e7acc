# config.py
from dotenv import load_dotenv
from typing import List
import os

load_dotenv()


class Settings:
    """Runtime settings read from the environment (and a local .env file)."""

    def __init__(
        self,
        mongodb_uri: str = "mongodb://localhost:27017",
        mongodb_db: str = "KissanPartner",
        log_level: str = "INFO",
        attendance_max_attempts: int = 5,
        cors_origins: List[str] = None,
        static_dir: str = "dist",
        uploads_dir: str = "uploads",
    ):
        self.mongodb_uri = mongodb_uri
        self.mongodb_db = mongodb_db
        self.log_level = log_level
        self.attendance_max_attempts = attendance_max_attempts
        self.cors_origins = cors_origins or ["*"]
        self.static_dir = static_dir
        self.uploads_dir = uploads_dir

    @classmethod
    def from_env(cls) -> "Settings":
        origins = os.getenv("CORS_ORIGINS", "*")
        return cls(
            mongodb_uri=os.getenv("MONGODB_URI", "mongodb://localhost:27017"),
            mongodb_db=os.getenv("MONGODB_DB", "KissanPartner"),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            attendance_max_attempts=int(os.getenv("ATTENDANCE_MAX_ATTEMPTS", "5")),
            cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
            static_dir=os.getenv("STATIC_DIR", "dist"),
            uploads_dir=os.getenv("UPLOADS_DIR", "uploads"),
        )
