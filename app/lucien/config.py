import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    secret_key: str
    env: str
    database_url: str

    jwt_secret: str
    allow_dev_jwt_fallback: bool
    session_ttl: int

    redis_url: str
    global_ip_rate_limit: int
    global_ip_rate_window: int

    erp_base_url: str
    erp_api_key: str
    erp_api_secret: str
    erp_timeout: int
    tier_field: str
    tier_scheme: str
    enforce_client_gate: bool
    auth_mode: str

    invite_api_secret: str
    invite_base_url: str
    portal_base_url: str
    invite_ttl_hours: int

    email_provider: str
    smtp_host: str
    smtp_port: int
    smtp_user: str
    smtp_pass: str
    smtp_from: str
    brevo_api_key: str
    invite_email_from: str
    invite_email_from_name: str

    payment_link_template: str

    secure_channel_server_public_key: str
    secure_channel_retention_seconds: int
    secure_channel_max_messages: int


def _getenv(name: str, default: str = "") -> str:
    return (os.environ.get(name) or default).strip()


def _getint(name: str, default: int) -> int:
    raw = _getenv(name)
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value > 0 else default


def _getbool(name: str, default: bool = False) -> bool:
    raw = _getenv(name).lower()
    if not raw:
        return default
    return raw in ("1", "true", "yes", "on")


def load_settings() -> Settings:
    return Settings(
        secret_key=_getenv("SECRET_KEY", "change-me"),
        env=_getenv("ENV", "development"),
        database_url=_getenv("DATABASE_URL", "sqlite:///lucien.db"),
        jwt_secret=_getenv("LUCIEN_JWT_SECRET", ""),
        allow_dev_jwt_fallback=_getbool("ALLOW_DEV_JWT_FALLBACK"),
        session_ttl=_getint("LUCIEN_SESSION_TTL", 8 * 60 * 60),
        redis_url=_getenv("REDIS_URL", ""),
        global_ip_rate_limit=_getint("LUCIEN_GLOBAL_IP_RATE_LIMIT", 120),
        global_ip_rate_window=_getint("LUCIEN_GLOBAL_IP_RATE_WINDOW", 60),
        erp_base_url=_getenv("ERP_BASE_URL", "").rstrip("/"),
        erp_api_key=_getenv("ERP_API_KEY", ""),
        erp_api_secret=_getenv("ERP_API_SECRET", ""),
        erp_timeout=_getint("ERP_TIMEOUT", 10),
        tier_field=_getenv("LUCIEN_TIER_FIELD", "lucien_tier"),
        tier_scheme=_getenv("LUCIEN_TIER_SCHEME", "blueprint").lower(),
        enforce_client_gate=_getbool("LUCIEN_ENFORCE_CLIENT_GATE", True),
        auth_mode=_getenv("AUTH_MODE", "local").lower(),
        invite_api_secret=_getenv("INVITE_API_SECRET", ""),
        invite_base_url=_getenv("INVITE_BASE_URL", ""),
        portal_base_url=_getenv("PORTAL_BASE_URL", ""),
        invite_ttl_hours=_getint("INVITE_TTL_HOURS", 72),
        email_provider=_getenv("EMAIL_PROVIDER", "smtp").lower(),
        smtp_host=_getenv("SMTP_HOST", ""),
        smtp_port=_getint("SMTP_PORT", 587),
        smtp_user=_getenv("SMTP_USER", ""),
        smtp_pass=_getenv("SMTP_PASS", ""),
        smtp_from=_getenv("SMTP_FROM", "no-reply@lucien.technology"),
        brevo_api_key=_getenv("BREVO_API_KEY", ""),
        invite_email_from=_getenv("INVITE_EMAIL_FROM", "no-reply@lucien.technology"),
        invite_email_from_name=_getenv("INVITE_EMAIL_FROM_NAME", "Lucien"),
        payment_link_template=_getenv("PAYMENT_LINK_TEMPLATE", ""),
        secure_channel_server_public_key=_getenv("SECURE_CHANNEL_SERVER_PUBLIC_KEY", ""),
        secure_channel_retention_seconds=_getint("LUCIEN_SECURE_CHANNEL_RETENTION_SECONDS", 24 * 60 * 60),
        secure_channel_max_messages=_getint("LUCIEN_SECURE_CHANNEL_MAX_MESSAGES", 250),
    )


def is_production(env: str | None) -> bool:
    return (env or "").strip().lower() in ("prod", "production")


def load_config() -> dict:
    s = load_settings()
    production = is_production(s.env)
    return {
        "SECRET_KEY": s.secret_key,
        "ENV": s.env,
        "DATABASE_URL": s.database_url,
        "LUCIEN_JWT_SECRET": s.jwt_secret,
        "ALLOW_DEV_JWT_FALLBACK": s.allow_dev_jwt_fallback,
        "LUCIEN_SESSION_TTL": s.session_ttl,
        "REDIS_URL": s.redis_url,
        "LUCIEN_GLOBAL_IP_RATE_LIMIT": s.global_ip_rate_limit,
        "LUCIEN_GLOBAL_IP_RATE_WINDOW": s.global_ip_rate_window,
        "ERP_BASE_URL": s.erp_base_url,
        "ERP_API_KEY": s.erp_api_key,
        "ERP_API_SECRET": s.erp_api_secret,
        "ERP_TIMEOUT": s.erp_timeout,
        "LUCIEN_TIER_FIELD": s.tier_field,
        "LUCIEN_TIER_SCHEME": s.tier_scheme if s.tier_scheme in ("blueprint", "sovereign") else "blueprint",
        "LUCIEN_ENFORCE_CLIENT_GATE": s.enforce_client_gate,
        "AUTH_MODE": s.auth_mode if s.auth_mode in ("local", "erp") else "local",
        "INVITE_API_SECRET": s.invite_api_secret,
        "INVITE_BASE_URL": s.invite_base_url,
        "PORTAL_BASE_URL": s.portal_base_url,
        "INVITE_TTL_HOURS": s.invite_ttl_hours,
        "EMAIL_PROVIDER": s.email_provider,
        "SMTP_HOST": s.smtp_host,
        "SMTP_PORT": s.smtp_port,
        "SMTP_USER": s.smtp_user,
        "SMTP_PASS": s.smtp_pass,
        "SMTP_FROM": s.smtp_from,
        "BREVO_API_KEY": s.brevo_api_key,
        "INVITE_EMAIL_FROM": s.invite_email_from,
        "INVITE_EMAIL_FROM_NAME": s.invite_email_from_name,
        "PAYMENT_LINK_TEMPLATE": s.payment_link_template,
        "SECURE_CHANNEL_SERVER_PUBLIC_KEY": s.secure_channel_server_public_key,
        "LUCIEN_SECURE_CHANNEL_RETENTION_SECONDS": s.secure_channel_retention_seconds,
        "LUCIEN_SECURE_CHANNEL_MAX_MESSAGES": s.secure_channel_max_messages,
        # flask's own signed session is only used for portal flash messages
        "SESSION_COOKIE_HTTPONLY": True,
        "SESSION_COOKIE_SAMESITE": "Lax",
        "SESSION_COOKIE_SECURE": production,
        # uploads are capped at 50MB in the upload handler; leave headroom for multipart framing
        "MAX_CONTENT_LENGTH": 64 * 1024 * 1024,
    }
