"""
Application settings (pydantic-settings).

Values come from the process environment and an optional ``.env`` file.
Query declarations (``QUERY_*``) are not fields here; they are read by
``querygate.core.descriptors`` from the raw environment.
"""

from typing import Annotated, Any, Literal

from pydantic import AnyUrl, BeforeValidator, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict

from querygate.models import ProductTypeEnum


def parse_cors(v: Any) -> list[str] | str:
    if isinstance(v, str) and not v.startswith("["):
        return [i.strip() for i in v.split(",") if i.strip()]
    if isinstance(v, (list, str)):
        return v
    raise ValueError(v)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_ignore_empty=True,
        extra="ignore",
    )

    PROJECT_NAME: str = "querygate"
    ENVIRONMENT: Literal["local", "staging", "production"] = "local"
    LOG_LEVEL: str = "INFO"
    SENTRY_DSN: AnyUrl | None = None
    API_PREFIX: str = ""
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    BACKEND_CORS_ORIGINS: Annotated[list[AnyUrl] | str, BeforeValidator(parse_cors)] = []

    @computed_field  # type: ignore[prop-decorator]
    @property
    def all_cors_origins(self) -> list[str]:
        return [str(origin).rstrip("/") for origin in self.BACKEND_CORS_ORIGINS]

    # --- Database ---
    DB_PRODUCT_TYPE: ProductTypeEnum = ProductTypeEnum.ORACLE
    DB_HOST: str = "localhost"
    DB_PORT: int | None = None
    DB_DATABASE: str = ""
    DB_USER: str = ""
    DB_PASSWORD: str = ""
    # Oracle connect string (host:port/service or TNS alias); overrides host/port/database
    DB_DSN: str | None = None
    DB_CONNECT_TIMEOUT: int = 10
    # Seconds; None or 0 disables the per-statement timeout
    DB_STATEMENT_TIMEOUT: float | None = None
    DB_POOL_SIZE: int = 10
    DB_POOL_MAX_AGE_SEC: float = 600.0
    DB_POOL_ACQUIRE_TIMEOUT: float | None = 30.0
    DB_MAX_ROW_SIZE: int = 1000
    ORACLE_CLIENT_DIR: str | None = None

    SQL_INJECTION_CHECK: bool = False
    MAPPER_DIR: str | None = None

    # --- Push publishing ---
    PUBLISH_TRANSPORT: Literal["mqtt", "redis", "none"] = "none"
    PUBLISH_TOPIC_PREFIX: str = ""
    MQTT_HOST: str = "localhost"
    MQTT_PORT: int = 1883
    MQTT_CLIENT_ID: str = ""
    MQTT_USERNAME: str | None = None
    MQTT_PASSWORD: str | None = None
    REDIS_URL: str = "redis://localhost:6379/0"

    # --- Bearer tokens (RS256) ---
    SECRET_KEY: str = "querygate"
    JWT_PUBLIC_KEY_PATH: str | None = None
    JWT_PRIVATE_KEY_PATH: str | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def default_db_port(self) -> int:
        if self.DB_PORT:
            return self.DB_PORT
        return {
            ProductTypeEnum.ORACLE: 1521,
            ProductTypeEnum.POSTGRES: 5432,
            ProductTypeEnum.MYSQL: 3306,
            ProductTypeEnum.TRINO: 8080,
        }[self.DB_PRODUCT_TYPE]


settings = Settings()  # type: ignore
