"""
Configuration management for the SnazzPay order service
"""
from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    """Application settings"""

    # Application
    app_name: str = "SnazzPay Secure COD"
    environment: str = "development"
    debug: bool = True
    log_level: str = "INFO"
    log_dir: str = "logs"
    log_to_file: bool = True

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    # Database (document store backing)
    database_url: str = "sqlite:///./snazzpay.db"

    # Razorpay
    razorpay_key_id: Optional[str] = None
    razorpay_key_secret: Optional[str] = None
    razorpay_api_base_url: str = "https://api.razorpay.com/v1"
    currency: str = "INR"

    # Email (Gmail app password works with smtp.gmail.com)
    smtp_host: Optional[str] = "smtp.gmail.com"
    smtp_port: int = 587
    smtp_user: Optional[str] = None
    smtp_password: Optional[str] = None
    email_from_name: str = "Snazzify"
    internal_alert_email: Optional[str] = None

    # WhatsApp / support contact
    whatsapp_webhook_url: Optional[str] = None
    public_base_url: Optional[str] = None  # used for secure-cod links in messages
    support_email: str = "customer.service@snazzify.co.in"
    support_whatsapp: str = "9920320790"

    # Business rules
    default_commission_rate: float = 5.0  # percent
    shakti_welcome_points: int = 100
    shakti_validity_years: int = 2
    delete_converted_leads: bool = False
    report_cache_seconds: int = 60

    class Config:
        env_file = ".env"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
