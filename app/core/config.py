from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional
from pydantic import field_validator

class Settings(BaseSettings):
    # Database settings
    DATABASE_URL: Optional[str] = None
    POSTGRES_USER: str = 'crm_user'
    POSTGRES_PASSWORD: str = 'crm_pass'
    POSTGRES_DB: str = 'crm_db'
    POSTGRES_HOST: str = 'postgres'
    POSTGRES_PORT: int = 5432

    # Email settings
    EMAIL_SMTP_SERVER: str = 'smtp.zoho.eu'
    EMAIL_SMTP_PORT: int = 465
    EMAIL_USE_TLS: bool = False  # False = implicit SSL (port 465)
    EMAIL_USERNAME: str = ''
    EMAIL_PASSWORD: str = ''
    EMAIL_FROM: str = ''
    EMAIL_FROM_NAME: str = 'Företag'
    EMAIL_TIMEOUT_SECONDS: float = 30.0
    SITE_URL: str = 'http://localhost:3000'

    # Billing
    DEFAULT_VAT_RATE: int = 25
    VAT_ROUNDING: str = 'half_up'  # half_up | half_even
    MONEY_QUANTUM: str = '1'  # smallest printed unit, whole kronor
    INVOICE_PAYMENT_TERMS_DAYS: int = 30
    QUOTE_VALIDITY_DAYS: int = 10
    DEFAULT_SERVICE_TYPE: str = 'Webbhotell'
    TIMEZONE: str = 'Europe/Stockholm'

    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = True

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+psycopg2://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    model_config = SettingsConfigDict(
        extra="allow",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True
    )

    @field_validator("DEBUG", mode="before")
    @classmethod
    def parse_debug(cls, v):
        if isinstance(v, str):
            return v.lower().strip('"').strip("'") in ("true", "1", "yes", "on")
        return bool(v)

    @field_validator("EMAIL_USE_TLS", mode="before")
    @classmethod
    def parse_email_tls(cls, v):
        if isinstance(v, str):
            return v.lower().strip('"').strip("'") in ("true", "1", "yes", "on")
        return bool(v)

    @field_validator("VAT_ROUNDING")
    @classmethod
    def validate_vat_rounding(cls, v):
        if v not in ("half_up", "half_even"):
            raise ValueError("VAT_ROUNDING must be 'half_up' or 'half_even'")
        return v

settings = Settings()
