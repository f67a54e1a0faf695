# Файл: src/doc_index/config.py

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional


# --- PostgreSQL (index store) ---
class PostgresConfig(BaseModel):
    user: str = "postgres"
    password: str = "postgres"
    host: str = "localhost"
    port: int = 5432
    db: str = "doc_index"

    # Full SQLAlchemy URL; wins over the fields above (e.g. sqlite+aiosqlite:///./index.db)
    dsn: Optional[str] = None

    pool_size: int = 5
    max_overflow: int = 5
    pool_timeout: int = 30
    pool_recycle: int = 1800
    application_name: str = "doc_index"

    def get_pg_dsn(self) -> str:
        """Builds the SQLAlchemy DSN from this object's fields."""
        if self.dsn:
            return self.dsn
        return f"postgresql+asyncpg://{self.user}:{self.password}@{self.host}:{self.port}/{self.db}"


# --- MinIO (blob store) ---
class MinioConfig(BaseModel):
    endpoint: str = "localhost:9000"
    accesskey: str = "minioadmin"
    secretkey: str = "minioadmin"
    bucket: str = "documents"
    secure: bool = False


class AuthConfig(BaseModel):
    team_password: str = ""
    admin_password: str = ""
    cookie_name: str = "doc_auth"
    cookie_max_age: int = 86400 * 30
    cookie_secure: bool = True


class CacheConfig(BaseModel):
    # Empty url disables the shared response cache
    url: Optional[str] = None
    ttl: int = 14400
    namespace: str = "doc_index"
    # Larger responses are served but not cached
    max_body_bytes: int = 10 * 1024 * 1024


class TelegramConfig(BaseModel):
    bot_token: str = ""
    api_base: str = "https://api.telegram.org"
    webhook_secret: Optional[str] = None
    timeout: float = 10.0
    max_results: int = 10


class DocIndexConfig(BaseModel):
    """Everything the client and the app need, passed explicitly."""
    postgres: PostgresConfig = Field(default_factory=PostgresConfig)
    minio: MinioConfig = Field(default_factory=MinioConfig)
    auth: AuthConfig = Field(default_factory=AuthConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    telegram: TelegramConfig = Field(default_factory=TelegramConfig)
    public_base_url: Optional[str] = None


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        env_nested_delimiter="__",
        extra="ignore",
    )

    log_level: str = Field("INFO", alias="LOG_LEVEL")
    public_base_url: Optional[str] = Field(None, alias="PUBLIC_BASE_URL")

    postgres: PostgresConfig = Field(default_factory=PostgresConfig)
    minio: MinioConfig = Field(default_factory=MinioConfig)
    auth: AuthConfig = Field(default_factory=AuthConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    telegram: TelegramConfig = Field(default_factory=TelegramConfig)

    def to_config(self) -> DocIndexConfig:
        return DocIndexConfig(
            postgres=self.postgres,
            minio=self.minio,
            auth=self.auth,
            cache=self.cache,
            telegram=self.telegram,
            public_base_url=self.public_base_url,
        )


_cached_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Returns the settings singleton, built on first call so that importing
    the package never fails validation.
    """
    global _cached_settings
    if _cached_settings is None:
        _cached_settings = Settings()
    return _cached_settings
