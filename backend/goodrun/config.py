from pathlib import Path
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    data_dir: Path = Path.home() / "GoodRun"
    api_prefix: str = "/api/v1"
    cors_origins: list[str] = [
        "http://127.0.0.1:3000",
        "http://localhost:3000",
    ]
    session_ttl_seconds: int = 1800  # 30 minutes, sliding
    log_level: str = "INFO"
    # First admin, created on startup only while the users table is empty.
    bootstrap_admin_email: str | None = None
    bootstrap_admin_password: str | None = None
    bootstrap_admin_name: str = "Administrator"

    @property
    def db_path(self) -> Path:
        return self.data_dir / "goodrun.sqlite"

    model_config = {"env_prefix": "GOODRUN_"}


settings = Settings()
