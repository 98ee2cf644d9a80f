from pydantic_settings import BaseSettings
from pathlib import Path
from functools import lru_cache
import os

class Settings(BaseSettings):
    APP_NAME: str = "ImagePress"
    VERSION: str = "1.0.0"
    DESCRIPTION: str = "Batch image compression and conversion"
    API_V1_PREFIX: str = "/api/v1"

    HOST: str = "127.0.0.1"
    PORT: int = 3000

    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000"
    ]

    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    LOG_TO_FILE: bool = True

    STORAGE_DIR: Path = Path("/tmp/jobs")

    # Upload limits
    MAX_FILE_SIZE: int = 10 * 1024 * 1024
    MAX_FILES: int = 20
    ALLOWED_MIME_TYPES: list[str] = [
        "image/jpeg",
        "image/jpg",
        "image/png",
        "image/webp",
        "image/gif"
    ]
    OUTPUT_FORMATS: list[str] = ["webp", "jpeg", "png"]

    # Cleanup: interval in minutes, TTL and initial delay in seconds
    CLEANUP_INTERVAL: int = 15
    FILE_TTL: int = 3600
    INITIAL_CLEANUP_DELAY: float = 60.0

    MAX_WORKERS: int = 4

    class Config:
        env_file = ".env"
        case_sensitive = True
        frozen = True

    def get_app_dir(self) -> Path:
        if os.name == 'nt':
            base_dir = os.path.join(os.environ.get('APPDATA', ''), 'ImagePress')
        else:
            base_dir = os.path.join(
                os.environ.get('XDG_CONFIG_HOME', os.path.expanduser('~/.config')),
                'imagepress'
            )

        path = Path(base_dir)
        if not path.exists():
            path.mkdir(parents=True, exist_ok=True)
        return path

    def get_log_dir(self) -> Path:
        log_dir = self.get_app_dir() / 'logs'
        if not log_dir.exists():
            log_dir.mkdir(exist_ok=True)
        return log_dir

@lru_cache()
def get_settings() -> Settings:
    return Settings()
