from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    DATABASE_URL: str

    # CORS origins, a JSON list when set from the environment
    CORS_ORIGINS: list[str] = ["http://localhost:3000"]

    # Ledger posting
    VOUCHER_PREFIX: str = "JZ"
    VOUCHER_MAX_RETRIES: int = 5
    LEDGER_ENFORCE_SUFFICIENT_BALANCE: bool = True
    # Backdated postings leave later balance snapshots stale; False rejects them
    LEDGER_ALLOW_BACKDATING: bool = True
    BUSINESS_TIMEZONE: str = "Asia/Shanghai"

    # Employee provisioning
    SAGA_MAX_EXTERNAL_STEPS: int = 3
    COMPANY_EMAIL_DOMAIN: str = "example.com"

    # Mail routing (Cloudflare Email Routing compatible API)
    EMAIL_ROUTING_API_BASE_URL: str = "https://api.cloudflare.com/client/v4"
    EMAIL_ROUTING_ACCOUNT_ID: str = ""
    EMAIL_ROUTING_ZONE_ID: str = ""
    EMAIL_ROUTING_API_TOKEN: str = ""
    EMAIL_ROUTING_TIMEOUT_SECONDS: float = 10.0

    # Redis / Celery
    CELERY_BROKER_URL: str = "redis://localhost:6379/0"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/1"


settings = Settings()  # type: ignore[call-arg]
