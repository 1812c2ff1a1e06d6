"""Application settings loaded from environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict

SSO_COOKIE_MAX_AGE_DEFAULT = 7 * 24 * 3600
SESSION_MAX_AGE_DEFAULT = 7 * 24 * 3600
JWKS_CACHE_TTL_DEFAULT = 3600
INVITE_TTL_HOURS_DEFAULT = 48
HTTP_TIMEOUT_DEFAULT = 10.0
DB_POOL_SIZE_DEFAULT = 5
DB_MAX_OVERFLOW_DEFAULT = 10
DB_PORT_DEFAULT = 5432


class DatabaseSettings(BaseSettings):
    """PostgreSQL connection settings."""

    model_config = SettingsConfigDict(env_prefix="FEDAUTH_DB_")

    url: str = ""
    host: str = "localhost"
    port: int = DB_PORT_DEFAULT
    user: str = "fedauth"
    password: str = "fedauth"
    database: str = "fedauth"
    pool_size: int = DB_POOL_SIZE_DEFAULT
    max_overflow: int = DB_MAX_OVERFLOW_DEFAULT

    @property
    def async_url(self) -> str:
        """Build async connection URL, honouring an explicit override."""
        if self.url:
            return self.url
        return (
            f"postgresql+asyncpg://{self.user}:{self.password}"
            f"@{self.host}:{self.port}/{self.database}"
        )


class LoggingSettings(BaseSettings):
    """Log level and renderer selection."""

    model_config = SettingsConfigDict(env_prefix="FEDAUTH_LOG_")

    level: str = "info"
    json_output: bool = True


class RegistrySettings(BaseSettings):
    """Settings for the central identity registry."""

    model_config = SettingsConfigDict(env_prefix="REGISTRY_")

    issuer_url: str = "http://localhost:8000"
    parent_domain: str = "localhost"
    default_redirect_url: str = "http://localhost:8000"
    sso_cookie_name: str = "fedauth_sso"
    sso_cookie_max_age: int = SSO_COOKIE_MAX_AGE_DEFAULT
    signing_key_encryption_key: str = ""
    internal_token: str = ""
    state_secret: str = ""
    cors_origins: str = ""

    provider_client_id: str = ""
    provider_client_secret: str = ""
    provider_authorize_url: str = "https://accounts.google.com/o/oauth2/v2/auth"
    provider_token_url: str = "https://oauth2.googleapis.com/token"
    provider_userinfo_url: str = "https://www.googleapis.com/oauth2/v3/userinfo"
    provider_scope: str = "openid email profile"
    http_timeout: float = HTTP_TIMEOUT_DEFAULT

    @property
    def callback_url(self) -> str:
        """The registry's own OAuth redirect target."""
        return f"{self.issuer_url.rstrip('/')}/auth/callback"

    @property
    def sso_cookie_domain(self) -> str:
        """Cookie domain shared by the registry and every vault subdomain."""
        return f".{self.parent_domain}"

    def get_cors_origin_list(self) -> list[str]:
        """Parse comma-separated CORS origins."""
        if not self.cors_origins:
            return []
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


class VaultSettings(BaseSettings):
    """Settings for a tenant vault trusting the registry."""

    model_config = SettingsConfigDict(env_prefix="VAULT_")

    vault_id: str = ""
    registry_url: str = "http://localhost:8000"
    public_url: str = "http://localhost:5173"
    session_secret: str = ""
    session_cookie_name: str = "member_session"
    session_max_age: int = SESSION_MAX_AGE_DEFAULT
    jwks_cache_ttl: int = JWKS_CACHE_TTL_DEFAULT
    invite_ttl_hours: int = INVITE_TTL_HOURS_DEFAULT
    http_timeout: float = HTTP_TIMEOUT_DEFAULT

    @property
    def callback_url(self) -> str:
        """Callback registered with the registry for this vault."""
        return f"{self.public_url.rstrip('/')}/api/auth/callback"
