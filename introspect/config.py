"""
Application configuration settings loaded from environment variables.
Uses pydantic_settings for validation and type conversion.
"""
from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Application settings class with environment variable validation.

    Attributes:
        database_url: Database connection string
        secret_key: Secret key used to sign session tokens
        algorithm: Algorithm used for JWT signing (HS256)
        access_token_expire_hours: Session token lifetime in hours
        reset_token_expire_minutes: Password reset token lifetime in minutes

        # Delivery settings
        sender_timeout_seconds: Upper bound on a single SMS/email send call
        delivery_lock_seconds: Lease length of an in-flight delivery attempt
        urgent_notifications_per_day: Urgent messages allowed per recipient per rolling day

        # Twilio / SMTP / Cloudinary credentials, all optional. Missing
        # credentials turn the matching adapter into a logged no-op.
    """
    # Database settings
    database_url: str

    # JWT settings
    secret_key: str
    algorithm: str = "HS256"
    access_token_expire_hours: int = 24
    reset_token_expire_minutes: int = 60

    # Runtime settings
    environment: str = "production"
    log_level: str = "INFO"
    frontend_url: str = "http://localhost:5000"

    # Delivery settings
    sender_timeout_seconds: float = 10.0
    delivery_lock_seconds: int = 60
    urgent_notifications_per_day: int = 10

    # Twilio settings
    twilio_account_sid: Optional[str] = None
    twilio_auth_token: Optional[str] = None
    twilio_phone_number: Optional[str] = None

    # Email settings
    mail_username: Optional[str] = None
    mail_password: Optional[str] = None
    mail_from: Optional[str] = None
    mail_server: Optional[str] = None
    mail_port: int = 587
    mail_starttls: bool = True
    mail_ssl_tls: bool = False

    # Cloudinary settings
    cloudinary_cloud_name: Optional[str] = None
    cloudinary_api_key: Optional[str] = None
    cloudinary_api_secret: Optional[str] = None

    # Bootstrap admin settings (optional - only used for first super admin creation)
    bootstrap_admin_email: Optional[str] = None
    bootstrap_admin_password: Optional[str] = None
    bootstrap_admin_name: str = "System Administrator"

    class Config:
        """Configuration for environment variables loading"""
        env_file = ".env"
        case_sensitive = False

    @property
    def is_development(self) -> bool:
        return self.environment.lower() == "development"

    @property
    def twilio_configured(self) -> bool:
        return bool(self.twilio_account_sid and self.twilio_auth_token and self.twilio_phone_number)

    @property
    def mail_configured(self) -> bool:
        return bool(self.mail_username and self.mail_password and self.mail_from and self.mail_server)

    @property
    def cloudinary_configured(self) -> bool:
        return bool(self.cloudinary_cloud_name and self.cloudinary_api_key and self.cloudinary_api_secret)


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
