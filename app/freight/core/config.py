from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env")

    APP_NAME: str = "FREIGHT-DESK"
    SECRET_KEY: str = "change-me"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    DATABASE_URL: str = "sqlite+pysqlite:///./freight.db"
    LOG_LEVEL: str = "INFO"
    DEFAULT_TENANT_NAME: str = "Default Tenant"
    SUPERADMIN_USERNAME: str = "superadmin"
    SUPERADMIN_EMAIL: str = "superadmin@example.com"
    SUPERADMIN_PASSWORD: str = "change-me"
    FOLDERS_DEFAULT_PAGE_SIZE: int = 20
    FOLDERS_MAX_PAGE_SIZE: int = 100
    CLIENTS_DEFAULT_PAGE_SIZE: int = 50
    CLIENTS_MAX_PAGE_SIZE: int = 100
    STAGE_BLOCKED_ALERT_DAYS: int = 3
    SLOW_REQUEST_MS: int = 1000


settings = Settings()
