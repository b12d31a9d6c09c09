from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Database settings
    DATABASE_URL: Optional[str] = None
    POSTGRES_USER: str = 'invoicing_user'
    POSTGRES_PASSWORD: str = 'invoicing_pass'
    POSTGRES_DB: str = 'invoicing_db'
    POSTGRES_HOST: str = 'postgres'
    POSTGRES_PORT: int = 5432
    SQL_ECHO: bool = False

    # JWT settings (no default: the app refuses to start without a secret)
    APP_SECRET_STRING: str
    ALGORITHM: str = 'HS256'
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 30
    # Public registration may create admins and accountants only while no user exists
    ALLOW_PRIVILEGED_REGISTRATION: bool = False

    # CORS
    CORS_ORIGINS: List[str] = ["*"]

    # Invoice numbering
    INVOICE_COMPANY_CODE: str = 'AI'
    INVOICE_FINANCIAL_YEAR: str = '24-25'
    DEFAULT_SAC_CODE: str = '998314'
    PAYMENT_TERMS: str = 'Net 30'

    # Issuer block printed on documents
    COMPANY_NAME: str = 'InnoAI Technologies Pvt Ltd'
    COMPANY_ADDRESS: str = 'VRA A 39, Kallummoodu, Anayara, Thiruvananthapuram, Kerala 695029'
    COMPANY_TAX_ID: Optional[str] = None
    COMPANY_BANK_DETAILS: Optional[str] = None

    # Document rendering
    DOCUMENTS_DIR: Path = Path('invoices')
    PDF_BROWSER_PATH: Optional[str] = None
    PDF_RENDER_TIMEOUT: int = 60

    # Reports
    REPORT_TAX_RATE: float = 0.18

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

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    model_config = SettingsConfigDict(
        extra="allow",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True
    )

    @field_validator("DEBUG", "SQL_ECHO", "ALLOW_PRIVILEGED_REGISTRATION", mode="before")
    @classmethod
    def parse_bool(cls, v):
        if isinstance(v, str):
            return v.lower().strip('"').strip("'") in ("true", "1", "yes", "on")
        return bool(v)

    @field_validator("APP_SECRET_STRING")
    @classmethod
    def require_secret(cls, v):
        if not v or not v.strip():
            raise ValueError("APP_SECRET_STRING must not be empty")
        return v


@lru_cache
def get_settings() -> Settings:
    """Settings instance shared by the app and injected into services."""
    return Settings()


settings = get_settings()
