from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator


class Settings(BaseSettings):
    database_url: str = Field(alias="DATABASE_URL")

    mercado_pago_access_token: str | None = Field(default=None, alias="MERCADO_PAGO_ACCESS_TOKEN")
    mercado_pago_api_url: str = Field(default="https://api.mercadopago.com", alias="MERCADO_PAGO_API_URL")
    mercado_pago_timeout_seconds: float = Field(default=15.0, alias="MERCADO_PAGO_TIMEOUT_SECONDS")
    mercado_pago_webhook_secret: str | None = Field(default=None, alias="MERCADO_PAGO_WEBHOOK_SECRET")
    mercado_pago_webhook_secrets: str | None = Field(default=None, alias="MERCADO_PAGO_WEBHOOK_SECRETS")
    mercado_pago_webhook_allow_unsigned: bool = Field(default=False, alias="MERCADO_PAGO_WEBHOOK_ALLOW_UNSIGNED")
    mercado_pago_test_payment_ids: str = Field(default="123456", alias="MERCADO_PAGO_TEST_PAYMENT_IDS")
    mercado_pago_statement_descriptor: str = Field(default="HP MARCAS", alias="MERCADO_PAGO_STATEMENT_DESCRIPTOR")
    public_base_url: str = Field(default="http://localhost:3000", alias="PUBLIC_BASE_URL")
    payer_fallback_email: str = Field(default="cliente@hpmarcas.com.br", alias="PAYER_FALLBACK_EMAIL")
    email_service_url: str | None = Field(default=None, alias="EMAIL_SERVICE_URL")
    email_service_token: str | None = Field(default=None, alias="EMAIL_SERVICE_TOKEN")
    email_timeout_seconds: float = Field(default=10.0, alias="EMAIL_TIMEOUT_SECONDS")

    # Config do pydantic-settings (v2)
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",        # ignora chaves do .env que não tenham campo/alias
        case_sensitive=False,  # tolera caixa; prefira MAIÚSCULO no .env
    )

    # Propriedades p/ compatibilidade (caso alguém use MAIÚSCULO em outro lugar)
    @property
    def DATABASE_URL(self) -> str:
        return self.database_url

    @property
    def MERCADO_PAGO_ACCESS_TOKEN(self) -> str | None:
        return self.mercado_pago_access_token

    @property
    def MERCADO_PAGO_WEBHOOK_SECRETS_LIST(self) -> list[str]:
        secrets: list[str] = []
        if self.mercado_pago_webhook_secret:
            secrets.append(self.mercado_pago_webhook_secret)
        if self.mercado_pago_webhook_secrets:
            secrets.extend([s.strip() for s in self.mercado_pago_webhook_secrets.split(",") if s.strip()])
        unique: list[str] = []
        for secret in secrets:
            if secret not in unique:
                unique.append(secret)
        return unique

    @property
    def MERCADO_PAGO_TEST_PAYMENT_IDS_LIST(self) -> list[str]:
        return [s.strip() for s in (self.mercado_pago_test_payment_ids or "").split(",") if s.strip()]

    @property
    def EMAIL_SERVICE_URL(self) -> str | None:
        return self.email_service_url

    @field_validator("mercado_pago_webhook_secret")
    @classmethod
    def validate_webhook_secret(cls, value: str | None) -> str | None:
        if value is None or value == "":
            return None
        if value == "change-me" or len(value) < 16:
            raise ValueError("MERCADO_PAGO_WEBHOOK_SECRET must be at least 16 chars long")
        return value

    @field_validator("mercado_pago_webhook_secrets")
    @classmethod
    def validate_webhook_secrets(cls, value: str | None) -> str | None:
        if value is None:
            return value
        secrets = [s.strip() for s in value.split(",") if s.strip()]
        for secret in secrets:
            if len(secret) < 16:
                raise ValueError("MERCADO_PAGO_WEBHOOK_SECRETS entries must be at least 16 chars long")
        return value

    @field_validator("mercado_pago_api_url", "public_base_url")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        return (value or "").rstrip("/")


settings = Settings()

# use a property minúscula (ou a maiúscula de compatibilidade, ambas funcionam)
engine = create_engine(settings.database_url, pool_pre_ping=True)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)


class Base(DeclarativeBase):
    pass


# Dependency
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
