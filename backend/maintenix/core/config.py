from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_ignore_empty=True)

    database_url: str
    jwt_secret: str
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 30
    cron_secret: str | None = None

    upload_dir: str = "uploads"
    public_base_url: str = "http://localhost:8000"
    max_upload_bytes: int = 20 * 1024 * 1024

    import_batch_size: int = 5
    import_pool_size: int = 10
    import_stale_after_minutes: int = 10
    import_checkpoint_every: int = 10
    import_scheduler_interval_seconds: int = 120
    import_fetch_timeout_seconds: float = 30.0


settings = Settings()
