from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(env_file=".env", env_prefix="FUNKOVAULT_")

    app_name: str = "funkovault"
    log_level: str = "INFO"

    host: str = "127.0.0.1"
    port: int = 60300

    # One subdirectory per user, one <id>.json file per item
    data_dir: Path = Path("data")

    # Seconds a client may take to deliver a complete request
    idle_timeout: float = 30.0

    max_request_bytes: int = 1024 * 1024


settings = Settings()


# =============================================================================
# USERNAME CONSTRAINTS
# =============================================================================

# Usernames become directory names under data_dir
USERNAME_PATTERN = r"^[A-Za-z0-9_.-]{1,64}$"
RESERVED_USERNAMES = frozenset({".", ".."})
