from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    PROJECT_NAME: str = "WhatsApp Inbox API"
    APP_ENV: str = "development"  # "production" enables strict host checks
    CORS_ORIGIN: str = "http://localhost:3000"  # Comma-separated list allowed
    LOG_LEVEL: str = "INFO"
    DATABASE_URL: str

    # Host-based tenant resolution
    HOST_ALLOWLIST: str = ""  # JSON list of {"host", "prefixes", "ownerId"}
    DEV_HOST: str = "localhost:8000"
    DEFAULT_TENANT_ID: str = ""
    DEFAULT_COUNTRY_CODE: str = "55"  # Brazil

    # Z-API WhatsApp Messaging API
    ZAPI_BASE_URL: str = "https://api.z-api.io"
    ZAPI_INSTANCE_ID: str = ""
    ZAPI_TOKEN: str = ""
    ZAPI_CLIENT_TOKEN: str = ""
    ZAPI_WEBHOOK_TOKEN: str = ""  # Shared secret expected on every webhook delivery
    WEBHOOK_AUTH_MODE: str = "strict"  # "strict" rejects unverified deliveries, "permissive" only warns
    WEBHOOK_ALLOWED_IPS: str = ""  # Comma-separated IPs to whitelist (optional)

    # Outbound defaults
    DEFAULT_OUTREACH_TEMPLATE: str = "default_outreach"
    DEFAULT_OUTREACH_MESSAGE: str = "Olá! Tudo bem? Podemos conversar por aqui?"

    # Supabase Auth (identity provider)
    SUPABASE_URL: str = ""
    SUPABASE_ANON_KEY: str = ""

    # Google Places
    GOOGLE_MAPS_API_KEY: str = ""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore"
    )

    @property
    def is_production(self) -> bool:
        return self.APP_ENV.strip().lower() == "production"

    @property
    def cors_origins(self) -> list:
        return [origin.strip() for origin in self.CORS_ORIGIN.split(",") if origin.strip()]

settings = Settings()
