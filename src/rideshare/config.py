from pydantic_settings import BaseSettings


class Config(BaseSettings):
    """Application configuration loaded from environment variables."""

    database_url: str
    host: str = "0.0.0.0"  # noqa: S104
    port: int = 5000
    debug: bool = False
    cors_origins: list[str] = []
    allowed_email_domain: str = "vitstudent.ac.in"  # Registration is limited to campus addresses
    auth_token_ttl_days: int = 30
    quick_match_ttl_minutes: int = 10  # Lifetime of a Quick Match session from creation
    quick_match_message_ttl_seconds: int = 900  # Outlives the session so trailing reads still work
    cookie_secure: bool = False  # Enable behind HTTPS
    ws_ping_interval: float = 20.0  # Seconds between keepalive pings on chat sockets
    redis_url: str | None = None  # Shared Socket.IO message queue when running several workers

    model_config = {
        "env_file": [".env"],
        "env_prefix": "RIDESHARE_",
        "extra": "ignore",
    }
