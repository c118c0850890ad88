from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    APP_NAME: str = "storefront-coupons"
    version: str = "0.1.0"
    DEBUG: bool = False
    APP_DOMAIN: str = "example.com"
    APP_DATABASE_DSN: str = "sqlite:////tmp/coupons.db"
    API_PREFIX: str = "/api"
    LOG_LEVEL: str = "INFO"

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173"

    # Auth
    JWT_SECRET: str = "dev-only-secret-change-me-in-production"
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRE_MINUTES: int = 60 * 24

    # Development tokens of the form mock-jwt-token-{userId}-{timestamp}
    MOCK_AUTH_ENABLED: bool = False
    MOCK_ADMIN_USERS: str = ""  # comma-separated user ids treated as admins

    # Coupons
    CURRENCY_SYMBOL: str = "₹"
    COUPON_ENFORCE_USAGE_LIMIT_ON_APPLY: bool = True

    @property
    def cors_origins(self) -> list[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def mock_admin_users(self) -> set[str]:
        return {u.strip() for u in self.MOCK_ADMIN_USERS.split(",") if u.strip()}


settings = Settings()
