from pydantic import Field
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    app_name: str = Field("receipt-ocr-service", alias="APP_NAME")
    app_env: str = Field("dev", alias="APP_ENV")

    # Logging
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_json: bool = Field(False, alias="LOG_JSON")

    # LLM extraction (primary strategy)
    llm_enabled: bool = Field(True, alias="LLM_ENABLED")
    llm_base_url: str | None = Field(default=None, alias="LLM_BASE_URL")
    llm_api_key: str | None = Field(default=None, alias="LLM_API_KEY")
    llm_deployment: str = Field("gpt-4o-mini", alias="LLM_DEPLOYMENT")
    llm_temperature: float = Field(0.0, alias="LLM_TEMPERATURE")

    # Azure Document Intelligence (OCR provider)
    az_di_endpoint: str | None = Field(default=None, alias="AZ_DI_ENDPOINT")
    az_di_api_key: str | None = Field(default=None, alias="AZ_DI_API_KEY")
    az_di_model: str = Field("prebuilt-read", alias="AZ_DI_MODEL")

    # Result cache
    cache_backend: str = Field("sqlite", alias="CACHE_BACKEND")  # "sqlite" or "memory"
    cache_db_path: str = Field("receipt_cache.db", alias="CACHE_DB_PATH")
    cache_ttl_days: int = Field(7, alias="CACHE_TTL_DAYS")

    # Heuristics
    # Rewrites bare 3-5 digit integers as cents before amount parsing.
    # Can corrupt whole-dollar amounts; kept on until product decides otherwise.
    amount_decimal_repair: bool = Field(True, alias="AMOUNT_DECIMAL_REPAIR")

    # CORS allowed origins (comma-separated list for production deployment)
    cors_origins: str = Field("http://localhost:3000,http://127.0.0.1:3000", alias="CORS_ORIGINS")

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    @property
    def ocr_configured(self) -> bool:
        return bool(self.az_di_endpoint and self.az_di_api_key)

    @property
    def llm_configured(self) -> bool:
        return bool(self.llm_api_key)

settings = Settings()
