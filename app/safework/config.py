import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    secret_key: str
    env: str
    database_url: str
    log_level: str
    app_url: str

    storage_backend: str
    storage_local_root: str
    s3_endpoint: str
    s3_region: str
    s3_bucket: str
    s3_access_key_id: str
    s3_secret_access_key: str

    smtp_host: str
    smtp_port: int
    smtp_username: str
    smtp_password: str
    smtp_use_tls: bool
    mail_from: str

    stripe_secret_key: str
    stripe_webhook_secret: str
    stripe_starter_price_id: str
    stripe_professional_price_id: str
    stripe_enterprise_price_id: str

    cron_secret: str


def _getenv(name: str, default: str = "") -> str:
    return (os.environ.get(name) or default).strip()


def _getbool(name: str, default: bool) -> bool:
    raw = _getenv(name, "")
    if not raw:
        return default
    return raw.lower() in ("1", "true", "yes", "on")


def load_settings() -> Settings:
    return Settings(
        secret_key=_getenv("SECRET_KEY", "change-me"),
        env=_getenv("ENV", "development"),
        database_url=_getenv("DATABASE_URL", "sqlite:///safework.db"),
        log_level=_getenv("LOG_LEVEL", "INFO").upper(),
        app_url=_getenv("APP_URL", "http://localhost:5000"),
        storage_backend=_getenv("STORAGE_BACKEND", "local"),
        storage_local_root=_getenv("STORAGE_LOCAL_ROOT", ""),
        s3_endpoint=_getenv("S3_ENDPOINT", ""),
        s3_region=_getenv("S3_REGION", "us-west-1"),
        s3_bucket=_getenv("S3_BUCKET", ""),
        s3_access_key_id=_getenv("S3_ACCESS_KEY_ID", ""),
        s3_secret_access_key=_getenv("S3_SECRET_ACCESS_KEY", ""),
        smtp_host=_getenv("SMTP_HOST", ""),
        smtp_port=int(_getenv("SMTP_PORT", "587")),
        smtp_username=_getenv("SMTP_USERNAME", ""),
        smtp_password=_getenv("SMTP_PASSWORD", ""),
        smtp_use_tls=_getbool("SMTP_USE_TLS", True),
        mail_from=_getenv("MAIL_FROM", "SafeWorkCA <notifications@safeworkca.com>"),
        stripe_secret_key=_getenv("STRIPE_SECRET_KEY", ""),
        stripe_webhook_secret=_getenv("STRIPE_WEBHOOK_SECRET", ""),
        stripe_starter_price_id=_getenv("STRIPE_STARTER_PRICE_ID", ""),
        stripe_professional_price_id=_getenv("STRIPE_PROFESSIONAL_PRICE_ID", ""),
        stripe_enterprise_price_id=_getenv("STRIPE_ENTERPRISE_PRICE_ID", ""),
        cron_secret=_getenv("CRON_SECRET", ""),
    )


def load_config() -> dict:
    s = load_settings()
    is_production = s.env in ("prod", "production")
    return {
        "SECRET_KEY": s.secret_key,
        "ENV": s.env,
        "DATABASE_URL": s.database_url,
        "LOG_LEVEL": s.log_level,
        "APP_URL": s.app_url.rstrip("/"),
        "STORAGE_BACKEND": s.storage_backend,
        "STORAGE_LOCAL_ROOT": s.storage_local_root,
        "S3_ENDPOINT": s.s3_endpoint,
        "S3_REGION": s.s3_region,
        "S3_BUCKET": s.s3_bucket,
        "S3_ACCESS_KEY_ID": s.s3_access_key_id,
        "S3_SECRET_ACCESS_KEY": s.s3_secret_access_key,
        "SMTP_HOST": s.smtp_host,
        "SMTP_PORT": s.smtp_port,
        "SMTP_USERNAME": s.smtp_username,
        "SMTP_PASSWORD": s.smtp_password,
        "SMTP_USE_TLS": s.smtp_use_tls,
        "MAIL_FROM": s.mail_from,
        "STRIPE_SECRET_KEY": s.stripe_secret_key,
        "STRIPE_WEBHOOK_SECRET": s.stripe_webhook_secret,
        "STRIPE_STARTER_PRICE_ID": s.stripe_starter_price_id,
        "STRIPE_PROFESSIONAL_PRICE_ID": s.stripe_professional_price_id,
        "STRIPE_ENTERPRISE_PRICE_ID": s.stripe_enterprise_price_id,
        "CRON_SECRET": s.cron_secret,
        # CSRF header check for cookie-authenticated API calls (off under ENV=test)
        "CSRF_ENABLED": s.env != "test",
        # security defaults
        "SESSION_COOKIE_HTTPONLY": True,
        "SESSION_COOKIE_SAMESITE": "Lax",
        "SESSION_COOKIE_SECURE": is_production,
        # file upload limits (25MB)
        "MAX_CONTENT_LENGTH": 25 * 1024 * 1024,
    }
