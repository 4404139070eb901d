"""NetWise configuration — loaded from environment / .env file."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_prefix="NETWISE_", extra="ignore")

    env: str = "development"  # development | test | production
    database_url: str = "sqlite+aiosqlite:///./netwise.db"
    log_level: str = "INFO"

    # 64 hex chars (256 bits). Required when env == "production".
    vault_key: str = ""

    # Base URL the installed agents use to reach the control plane
    api_url: str = "http://localhost:8000"
    agent_poll_interval: int = 30

    # SSH
    ssh_connect_timeout: float = 15.0
    install_timeout: float = 1800.0
    command_timeout: float = 60.0

    cors_origins: list[str] = ["http://localhost:5173"]

    @property
    def is_production(self) -> bool:
        return self.env == "production"


settings = Settings()
