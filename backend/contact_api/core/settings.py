# contact_api/core/settings.py
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import List, Optional

from contact_api.core.errors import ConfigurationError


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
        populate_by_name=True,
        frozen=True,
    )

    service_name: str = Field(default="bmDub API", alias="SERVICE_NAME")
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=3000, alias="PORT")
    log_level: str = Field(default="info", alias="LOG_LEVEL")

    # Brevo transactional API; when set it wins over SMTP
    brevo_api_key: Optional[str] = Field(default=None, alias="BREVO_API_KEY")
    brevo_api_url: str = Field(default="https://api.brevo.com/v3/smtp/email", alias="BREVO_API_URL")
    brevo_timeout: float = Field(default=15.0, alias="BREVO_TIMEOUT")

    smtp_host: Optional[str] = Field(default=None, alias="SMTP_HOST")
    smtp_port: int = Field(default=587, alias="SMTP_PORT")
    smtp_user: Optional[str] = Field(default=None, alias="SMTP_USER")
    smtp_pass: Optional[str] = Field(default=None, alias="SMTP_PASS")
    smtp_require_tls: bool = Field(default=True, alias="SMTP_REQUIRE_TLS")
    smtp_timeout: float = Field(default=20.0, alias="SMTP_TIMEOUT")
    smtp_verify_timeout: float = Field(default=12.0, alias="SMTP_VERIFY_TIMEOUT")
    smtp_max_messages: int = Field(default=50, alias="SMTP_MAX_MESSAGES")

    # FROM_EMAIL must be a verified sender when the Brevo API is used
    to_email: str = Field(default="cmwingo@email.sc.edu", alias="TO_EMAIL")
    from_email: str = Field(default="bmDub Contact <cwingo64@gmail.com>", alias="FROM_EMAIL")
    subject_prefix: str = Field(default="[bmDub Contact]", alias="SUBJECT_PREFIX")

    cors_origins: str = Field(
        default="https://cwingo.github.io,https://Cwingo.github.io,https://cwingo242.github.io,http://localhost:5173",
        alias="CORS_ORIGINS",
    )
    cors_case_sensitive: bool = Field(default=True, alias="CORS_CASE_SENSITIVE")

    rate_limit_max: int = Field(default=5, alias="RATE_LIMIT_MAX")
    rate_limit_window: int = Field(default=60, alias="RATE_LIMIT_WINDOW")
    # Honour X-Forwarded-For when running behind a reverse proxy
    trust_proxy: bool = Field(default=False, alias="TRUST_PROXY")

    max_body_bytes: int = Field(default=100 * 1024, alias="MAX_BODY_BYTES")
    expose_delivery_errors: bool = Field(default=False, alias="EXPOSE_DELIVERY_ERRORS")

    @property
    def allowed_origins(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def uses_brevo(self) -> bool:
        return bool(self.brevo_api_key)

    def require_mail_backend(self) -> None:
        """Fail fast when neither the Brevo key nor a full SMTP account is configured."""
        if self.uses_brevo:
            return
        missing = [
            name
            for name, value in (
                ("SMTP_HOST", self.smtp_host),
                ("SMTP_USER", self.smtp_user),
                ("SMTP_PASS", self.smtp_pass),
            )
            if not value
        ]
        if missing:
            raise ConfigurationError(
                f"Missing {', '.join(missing)} env vars and no BREVO_API_KEY provided."
            )


def load_settings(**overrides) -> Settings:
    settings = Settings(**overrides)
    settings.require_mail_backend()
    return settings
