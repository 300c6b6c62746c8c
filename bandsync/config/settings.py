from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional, List


class Settings(BaseSettings):
    # Supabase
    supabase_url: str = ""
    supabase_key: str = ""
    supabase_service_role_key: Optional[str] = None  # Required for background workers (bypasses RLS)

    # Membership
    invite_code_length: int = 6
    invite_code_max_attempts: int = 5
    transaction_max_attempts: int = 5

    # Live listeners (Supabase store polls; seconds)
    listener_poll_interval: float = 2.0
    permission_cache_max_groups: int = 256

    # Push notifications
    notifications_enabled: bool = True
    notification_poll_interval: int = 60
    push_function_name: str = "send-push"

    # App
    app_name: str = "bandsync-backend"
    debug: bool = False
    environment: str = "development"  # development | staging | production
    log_level: str = "INFO"
    cors_origins: str = "http://localhost:3000,http://localhost:5173,http://127.0.0.1:3000,http://127.0.0.1:5173"
    rate_limit: str = "100/minute"  # slowapi format, e.g. "100/minute"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def get_cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        env_prefix="",
        extra="ignore"
    )


settings = Settings()
