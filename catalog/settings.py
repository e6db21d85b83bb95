import os

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field

load_dotenv()


class Settings(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    # Product API Configuration
    api_base_url: str = Field(default="https://fakestoreapi.com", alias="API_BASE_URL")
    request_timeout: float = Field(default=10.0, alias="REQUEST_TIMEOUT")
    max_retries: int = Field(default=3, alias="MAX_RETRIES")
    retry_base_delay: float = Field(default=1.0, alias="RETRY_BASE_DELAY")
    retry_jitter: bool = Field(default=False, alias="RETRY_JITTER")

    # Circuit Breaker Configuration
    circuit_failure_threshold: int = Field(
        default=5, alias="CIRCUIT_FAILURE_THRESHOLD"
    )
    circuit_reset_timeout: float = Field(default=60.0, alias="CIRCUIT_RESET_TIMEOUT")

    # Response Cache Configuration
    cache_ttl: float = Field(default=300.0, alias="CACHE_TTL")

    # Database Configuration
    database_url: str = Field(
        default="sqlite+aiosqlite:///./catalog.db", alias="DATABASE_URL"
    )
    database_echo: bool = Field(default=False, alias="DATABASE_ECHO")

    # Local Storage Configuration
    storage_namespace: str = Field(default="@ProductCatalog", alias="STORAGE_NAMESPACE")
    storage_max_retries: int = Field(default=1, alias="STORAGE_MAX_RETRIES")
    storage_retry_delay: float = Field(default=0.5, alias="STORAGE_RETRY_DELAY")

    # Error Reporting
    error_history_size: int = Field(default=100, alias="ERROR_HISTORY_SIZE")


global_settings = Settings.model_validate(dict(os.environ))
