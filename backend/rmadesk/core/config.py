from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    DEBUG: bool = False
    APP_NAME: str = "rma-desk"
    APP_DOMAIN: str = "example.com"
    APP_DATABASE_DSN: str = "sqlite:////tmp/rmadesk.db"
    REDIS_URL: str = "redis://localhost:6379"

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173"

    # Rate limiting (per caller IP)
    RATE_LIMIT_RMA_PER_MINUTE: int = 120
    RATE_LIMIT_AI_PER_MINUTE: int = 10

    # Idempotency
    IDEMPOTENCY_LOCK_SECONDS: int = 300
    IDEMPOTENCY_MAX_AGE_HOURS: int = 72

    # Case defaults
    DEFAULT_SLA_DAYS: int = 10
    WARRANTY_MONTHS: int = 12
    SUPPORT_SIGNATURE: str = "CHT Support"

    # HubSpot ticket pipeline
    HUBSPOT_ACCESS_TOKEN: str = ""
    HUBSPOT_PORTAL_ID: str = ""
    HUBSPOT_RMA_PIPELINE_ID: str = ""
    HUBSPOT_RMA_STAGE_RECEIVED: str = ""
    HUBSPOT_RMA_STAGE_TESTING: str = ""
    HUBSPOT_RMA_STAGE_SENT_TO_MANUFACTURER: str = ""
    HUBSPOT_RMA_STAGE_REPAIRED_REPLACED: str = ""
    HUBSPOT_RMA_STAGE_BACK_TO_CUSTOMER: str = ""

    # Klaviyo
    KLAVIYO_API_KEY: str = ""
    KLAVIYO_REVISION: str = "2024-10-15"
    KLAVIYO_FROM_EMAIL: str = ""
    KLAVIYO_FROM_LABEL: str = ""

    # Shopify
    SHOPIFY_STORE_DOMAIN: str = ""
    SHOPIFY_ACCESS_TOKEN: str = ""
    SHOPIFY_API_SECRET: str = ""
    SHOPIFY_API_VERSION: str = "2024-10"

    # AI recommendations
    OPENROUTER_API_KEY: str = ""
    AI_MODEL: str = "anthropic/claude-3.5-haiku"

    @property
    def version(self) -> str:
        from rmadesk import __version__

        return __version__

    @property
    def hubspot_stage_map(self) -> dict[str, str]:
        return {
            "received": self.HUBSPOT_RMA_STAGE_RECEIVED,
            "testing": self.HUBSPOT_RMA_STAGE_TESTING,
            "sent_to_manufacturer": self.HUBSPOT_RMA_STAGE_SENT_TO_MANUFACTURER,
            "repaired_replaced": self.HUBSPOT_RMA_STAGE_REPAIRED_REPLACED,
            "back_to_customer": self.HUBSPOT_RMA_STAGE_BACK_TO_CUSTOMER,
        }

    @property
    def hubspot_enabled(self) -> bool:
        return bool(
            self.HUBSPOT_ACCESS_TOKEN
            and self.HUBSPOT_RMA_PIPELINE_ID
            and all(self.hubspot_stage_map.values())
        )

    @property
    def klaviyo_enabled(self) -> bool:
        return bool(self.KLAVIYO_API_KEY)

    @property
    def shopify_enabled(self) -> bool:
        return bool(self.SHOPIFY_STORE_DOMAIN and self.SHOPIFY_ACCESS_TOKEN)


settings = Settings()
